"""
Pipeline Module
===============
Runs the whole batch: load both tables, clean them, train the default
forest, search the hyperparameter grid, measure the spread of the best
configuration over unseeded refits, and score the test table.

Every stage hands its output to the next explicitly; nothing is kept in
module state.

Author: [Shril Patel]
Date: [Oct 18, 2026]
"""

import pandas as pd
from pathlib import Path
from dataclasses import dataclass
from typing import Optional, Dict, List
import logging

from .config import PipelineConfig, DEFAULT_CONFIG_FILE
from .data_loader import InspectionDataLoader, DropReport
from .feature_engineering import FeatureEngineer
from .model_training import ModelTrainer, TrainedModel, GridSearchResult
from .utils import Timer, log_dataframe_info

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything a run produces."""
    train_report: DropReport
    test_report: DropReport
    default_model: TrainedModel
    search: GridSearchResult
    repeated_errors: pd.Series
    final_model: TrainedModel
    predictions: pd.DataFrame
    feature_groups: Dict[str, List[str]]


def run_pipeline(
    config: Optional[PipelineConfig] = None,
    train_df: Optional[pd.DataFrame] = None,
    test_df: Optional[pd.DataFrame] = None,
    save_outputs: bool = True
) -> PipelineResult:
    """
    Run the full training and scoring workflow.

    Args:
        config: Pipeline settings (defaults when omitted)
        train_df: Raw training table; loaded from config.train_source when omitted
        test_df: Raw test table; loaded from config.test_source when omitted
        save_outputs: Write predictions and plots to disk

    Returns:
        PipelineResult
    """
    config = config or PipelineConfig()
    loader = InspectionDataLoader(config)

    # 1. Load
    if train_df is None:
        train_df = loader.load_train()
    if test_df is None:
        test_df = loader.load_test()

    is_valid, issues = loader.validate_data(train_df, require_target=True)
    if not is_valid:
        raise ValueError(f"Training table failed validation: {issues}")
    is_valid, issues = loader.validate_data(test_df)
    if not is_valid:
        raise ValueError(f"Test table failed validation: {issues}")

    # 2. Clean. The test table's label, if it has one, is never used.
    test_df = test_df.drop(columns=[config.target_column], errors='ignore')
    train_clean, train_report = loader.clean_data(train_df)
    test_clean, test_report = loader.clean_data(test_df)
    log_dataframe_info(train_clean, "Training table")
    log_dataframe_info(test_clean, "Test table")

    # 3. Select features
    fe = FeatureEngineer(target_col=config.target_column, id_col=config.id_column)
    X_train, y_train, X_test, test_ids = fe.prepare_model_data(train_clean, test_clean)

    trainer = ModelTrainer(
        random_state=config.random_state,
        trees_per_feature=config.trees_per_feature,
        n_jobs=config.n_jobs
    )

    # 4. Default forest
    with Timer("Default forest"):
        default_model = trainer.train(X_train, y_train)
    logger.info(f"Default configuration {default_model.config}: OOB RMSE {default_model.oob_error:.4f}")

    # 5. Grid search
    search = trainer.grid_search(
        X_train, y_train, config.grid, default_model.oob_error, top_n=config.top_n
    )

    # 6. Spread of the best configuration
    repeated_errors = trainer.repeated_fit(X_train, y_train, search.best, n_repeats=config.n_repeats)

    # 7. Final model and test scores
    final_model = trainer.train(X_train, y_train, search.best, seeded=True)
    predictions = trainer.predict(
        final_model, X_test, test_ids,
        threshold=config.threshold, id_col=config.id_column
    )

    if save_outputs:
        trainer.save_predictions(predictions, config.predictions_path)

        assets_dir = Path(config.assets_dir)
        assets_dir.mkdir(parents=True, exist_ok=True)
        trainer.plot_feature_importance(final_model, save_path=assets_dir / 'feature_importance.png')
        trainer.plot_error_distribution(
            repeated_errors,
            default_error=default_model.oob_error,
            save_path=assets_dir / 'oob_error_distribution.png'
        )

    return PipelineResult(
        train_report=train_report,
        test_report=test_report,
        default_model=default_model,
        search=search,
        repeated_errors=repeated_errors,
        final_model=final_model,
        predictions=predictions,
        feature_groups=fe.get_feature_list()
    )


def main():
    """Run the pipeline with configs/pipeline.yaml when present."""

    if DEFAULT_CONFIG_FILE.exists():
        config = PipelineConfig.from_yaml(str(DEFAULT_CONFIG_FILE))
    else:
        config = PipelineConfig()

    result = run_pipeline(config)

    trainer = ModelTrainer()
    trainer.print_grid_table(result.search)

    print("\n" + "="*50)
    print("ROWS DROPPED")
    print("="*50)
    for name, report in [('train', result.train_report), ('test', result.test_report)]:
        print(f"{name}: {report.to_dict()}")

    print("\n" + "="*50)
    print("FEATURES USED")
    print("="*50)
    for group, cols in result.feature_groups.items():
        print(f"{group} ({len(cols)}): {', '.join(cols)}")

    print("\n" + "="*50)
    print("TOP 10 FEATURES")
    print("="*50)
    print(result.final_model.feature_importances().head(10).to_string(index=False))

    trainer.save_model(result.final_model)

    print("\nModel training complete!")
    print(f"   Predictions saved to: {config.predictions_path}")
    print(f"   Plots saved to: {config.assets_dir}")


if __name__ == "__main__":
    main()
