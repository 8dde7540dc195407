"""
Tests for forest training, grid search, repeated fits and scoring.
"""

import numpy as np
import pandas as pd

import pytest

from vegas_inspections.config import PipelineConfig, DEFAULT_GRID, ID_COLUMN
from vegas_inspections.model_training import (
    HyperparameterConfig,
    TrainedModel,
    build_grid,
    rank_configurations
)
from vegas_inspections.utils import percent_gain, threshold_labels


def test_default_mtry_is_a_third_of_the_features():
    assert HyperparameterConfig().resolve(21).mtry == 7
    assert HyperparameterConfig().resolve(2).mtry == 1
    assert HyperparameterConfig(mtry=4).resolve(21).mtry == 4


@pytest.mark.parametrize("config", [
    HyperparameterConfig(mtry=0),
    HyperparameterConfig(mtry=22),
    HyperparameterConfig(min_node_size=0),
    HyperparameterConfig(sample_fraction=1.5),
    HyperparameterConfig(replace=False, sample_fraction=1.0),
])
def test_invalid_configurations_raise(config):
    with pytest.raises(ValueError):
        config.resolve(21)


def test_reference_grid_has_120_configurations():
    configs = build_grid(DEFAULT_GRID)

    assert len(configs) == 5 * 4 * 2 * 3
    assert len(set(configs)) == len(configs)
    assert configs[0] == HyperparameterConfig(3, 1, True, 0.5)
    assert configs[1] == HyperparameterConfig(3, 1, True, 0.632)


def test_build_grid_requires_every_dimension():
    with pytest.raises(ValueError, match="sample_fraction"):
        build_grid({'mtry': [3], 'min_node_size': [1], 'replace': [True]})


def test_yaml_grid_values_are_coerced(trainer, model_data, tmp_path):
    X_train, y_train, _, _ = model_data
    path = tmp_path / "pipeline.yaml"
    path.write_text(
        "grid:\n"
        "  mtry: [5]\n"
        "  min_node_size: [1.0]\n"
        "  replace: [true]\n"
        "  sample_fraction: [1]\n"
    )

    (config,) = build_grid(PipelineConfig.from_yaml(str(path)).grid)

    assert isinstance(config.min_node_size, int)
    assert isinstance(config.sample_fraction, float)
    assert config == HyperparameterConfig(5, 1, True, 1.0)

    model = trainer.train(X_train, y_train, config)
    reference = trainer.train(X_train, y_train, HyperparameterConfig(5, 1, True, 1.0))

    assert all(len(rows) == len(X_train) for rows in model.estimator.estimators_samples_)
    assert model.oob_error == reference.oob_error


def test_train_returns_model_with_oob_error(default_model, model_data, config):
    X_train, _, _, _ = model_data

    assert isinstance(default_model, TrainedModel)
    assert default_model.config.mtry == X_train.shape[1] // 3
    assert default_model.n_trees == config.trees_per_feature * X_train.shape[1]
    assert 0 < default_model.oob_error < 1


def test_seeded_training_is_reproducible(trainer, model_data, default_model):
    X_train, y_train, _, _ = model_data

    again = trainer.train(X_train, y_train)

    assert again.oob_error == default_model.oob_error


def test_sampling_without_replacement_trains(trainer, model_data):
    X_train, y_train, _, _ = model_data
    config = HyperparameterConfig(mtry=5, min_node_size=3, replace=False, sample_fraction=0.5)

    model = trainer.train(X_train, y_train, config)

    assert model.config == config
    assert np.isfinite(model.oob_error)


def test_feature_importances_cover_every_feature(default_model, model_data):
    X_train, _, _, _ = model_data

    importances = default_model.feature_importances()

    assert sorted(importances['feature']) == sorted(X_train.columns)
    assert importances['importance'].is_monotonic_decreasing
    assert importances['importance'].sum() == pytest.approx(1.0)


def test_grid_search_trains_every_configuration(trainer, model_data, default_model, config):
    X_train, y_train, _, _ = model_data

    search = trainer.grid_search(
        X_train, y_train, config.grid, default_model.oob_error, top_n=5
    )

    expected = int(np.prod([len(values) for values in config.grid.values()]))
    assert len(search.results) == expected
    assert search.results['config_id'].tolist() == list(range(expected))
    assert len(search.ranking) == 5
    assert search.ranking['oob_rmse'].is_monotonic_increasing
    assert search.best == HyperparameterConfig.from_row(search.ranking.iloc[0])
    assert search.ranking['pct_gain'].iloc[0] == search.ranking['pct_gain'].max()


def test_rank_configurations_is_stable_with_ties():
    results = pd.DataFrame({
        'config_id': [0, 1, 2, 3],
        'mtry': [3, 5, 7, 9],
        'min_node_size': [1, 1, 1, 1],
        'replace': [True, True, False, False],
        'sample_fraction': [0.5, 0.5, 0.5, 0.5],
        'oob_rmse': [0.40, 0.30, 0.30, 0.35],
    })

    first = rank_configurations(results, default_error=0.40, top_n=3)
    second = rank_configurations(results.copy(), default_error=0.40, top_n=3)

    assert first['config_id'].tolist() == [1, 2, 3]
    pd.testing.assert_frame_equal(first, second)
    assert first['pct_gain'].tolist() == pytest.approx([25.0, 25.0, 12.5])
    assert HyperparameterConfig.from_row(first.iloc[0]).mtry == 5


def test_rank_configurations_keeps_all_rows_without_top_n():
    results = pd.DataFrame({'config_id': [0, 1], 'oob_rmse': [0.2, 0.1]})

    ranked = rank_configurations(results, default_error=0.2, top_n=None)

    assert ranked['config_id'].tolist() == [1, 0]


def test_percent_gain_rejects_zero_baseline():
    assert percent_gain(0.5, 0.4) == pytest.approx(20.0)
    with pytest.raises(ValueError):
        percent_gain(0.0, 0.1)


def test_repeated_fit_is_unseeded(trainer, model_data):
    X_train, y_train, _, _ = model_data
    config = HyperparameterConfig(mtry=5, min_node_size=1, replace=True, sample_fraction=0.632)

    errors = trainer.repeated_fit(X_train, y_train, config, n_repeats=4)

    assert len(errors) == 4
    assert errors.name == 'oob_rmse'
    assert errors.nunique() > 1


def test_predict_is_deterministic_and_thresholded(trainer, default_model, model_data):
    _, _, X_test, test_ids = model_data

    first = trainer.predict(default_model, X_test, test_ids)
    second = trainer.predict(default_model, X_test, test_ids)

    pd.testing.assert_frame_equal(first, second)
    assert list(first.columns) == [ID_COLUMN, 'probability', 'prediction']
    assert first[ID_COLUMN].tolist() == test_ids.tolist()
    assert first['probability'].between(0, 1).all()
    assert (first['prediction'] == (first['probability'] > 0.5).astype(int)).all()


def test_predict_rejects_misaligned_ids(trainer, default_model, model_data):
    _, _, X_test, test_ids = model_data

    with pytest.raises(ValueError):
        trainer.predict(default_model, X_test, test_ids.iloc[:-1])


def test_threshold_labels_is_strict():
    assert threshold_labels([0.2, 0.5, 0.5000001, 1.0]).tolist() == [0, 0, 1, 1]


def test_save_and_load_model(trainer, default_model, model_data, tmp_path):
    _, _, X_test, _ = model_data

    path = trainer.save_model(default_model, name="default", models_dir=tmp_path)
    loaded = trainer.load_model(str(path))

    np.testing.assert_array_equal(loaded.predict(X_test), default_model.predict(X_test))
    assert loaded.oob_error == default_model.oob_error


def test_plots_are_written(trainer, default_model, tmp_path):
    importance_path = tmp_path / "importance.png"
    errors_path = tmp_path / "errors.png"

    trainer.plot_feature_importance(default_model, top_n=5, save_path=importance_path)
    trainer.plot_error_distribution(
        pd.Series([0.41, 0.42, 0.40], name='oob_rmse'),
        default_error=0.43,
        save_path=errors_path
    )

    assert importance_path.exists()
    assert errors_path.exists()
