"""
Configuration for the unit tests.
"""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd

import pytest

from vegas_inspections.config import PipelineConfig, TARGET_COLUMN
from vegas_inspections.data_loader import InspectionDataLoader
from vegas_inspections.feature_engineering import FeatureEngineer
from vegas_inspections.model_training import ModelTrainer


CATEGORIES = ["Restaurant", "Bar / Tavern", "Snack Bar", "Buffet", "Special Kitchen"]
CITIES = ["Las Vegas", "Henderson", "North Las Vegas"]
INSPECTION_TYPES = ["Routine Inspection", "Re-inspection"]
VIOLATION_TYPES = ["Critical", "Major", "Non-Major", "Imminent Health Hazard"]

SMALL_GRID = {
    'mtry': [3, 6],
    'min_node_size': [1, 5],
    'replace': [True, False],
    'sample_fraction': [0.632],
}


def make_raw_inspections(n_rows: int, seed: int = 0, with_target: bool = True) -> pd.DataFrame:
    """Build a complete raw inspection table with standardized column names."""
    rng = np.random.default_rng(seed)

    demerits = rng.integers(0, 40, n_rows)
    violations = rng.integers(0, 12, n_rows)
    latitude = rng.uniform(35.9, 36.3, n_rows)
    longitude = rng.uniform(114.9, 115.3, n_rows)
    # Half the rows carry the correct western sign, half the sign-entry error
    signs = np.where(np.arange(n_rows) % 2 == 0, "-", "")
    months = rng.integers(1, 13, n_rows)
    days = rng.integers(1, 29, n_rows)
    years = rng.integers(2010, 2015, n_rows)
    hours = rng.integers(6, 23, n_rows)
    minutes = rng.integers(0, 60, n_rows)
    zips = rng.choice(["89109", "89101", "89123-4567", "89052", "89031-1122"], n_rows)

    df = pd.DataFrame({
        'restaurant_serial_number': [f"DA{100000 + i}" for i in range(n_rows)],
        'restaurant_permit_number': [f"PR{200000 + i}" for i in range(n_rows)],
        'restaurant_name': [f"Restaurant {i}" for i in range(n_rows)],
        'restaurant_location': [f"Location {i}" for i in range(n_rows)],
        'restaurant_category': rng.choice(CATEGORIES, n_rows),
        'address': [f"{100 + i} Fremont St" for i in range(n_rows)],
        'city': rng.choice(CITIES, n_rows),
        'state': "Nevada",
        'zip': zips,
        'current_demerits': rng.integers(0, 20, n_rows),
        'current_grade': rng.choice(["A", "B", "C"], n_rows),
        'employee_count': rng.integers(1, 80, n_rows),
        'median_employee_age': rng.uniform(20, 50, n_rows).round(1),
        'median_employee_tenure': rng.uniform(0, 10, n_rows).round(2),
        'inspection_time': [
            f"{m:02d}/{d:02d}/{y} {h:02d}:{mi:02d}"
            for m, d, y, h, mi in zip(months, days, years, hours, minutes)
        ],
        'inspection_type': rng.choice(INSPECTION_TYPES, n_rows),
        'inspection_demerits': demerits,
        'violations_raw': [f"{200 + v},{210 + v}" for v in violations],
        'record_updated': "02/21/2015 10:05",
        'lat_long_raw': [
            f"({lat:.5f}, {sign}{lon:.5f})"
            for lat, sign, lon in zip(latitude, signs, longitude)
        ],
        'first_violation': rng.integers(200, 230, n_rows),
        'second_violation': rng.integers(200, 230, n_rows),
        'third_violation': rng.integers(200, 230, n_rows),
        'first_violation_type': rng.choice(VIOLATION_TYPES, n_rows),
        'second_violation_type': rng.choice(VIOLATION_TYPES, n_rows),
        'third_violation_type': rng.choice(VIOLATION_TYPES, n_rows),
        'number_of_violations': violations,
    })

    if with_target:
        noise = rng.normal(0, 6, n_rows)
        df[TARGET_COLUMN] = (demerits + noise > 25).astype(int)

    return df


@pytest.fixture(scope="module")
def config(tmp_path_factory) -> PipelineConfig:
    output_dir = tmp_path_factory.mktemp("outputs")
    return PipelineConfig(
        train_source="unused-train.csv",
        test_source="unused-test.csv",
        trees_per_feature=2,
        grid={k: list(v) for k, v in SMALL_GRID.items()},
        n_repeats=3,
        n_jobs=1,
        predictions_path=str(output_dir / "predictions.csv"),
        assets_dir=str(output_dir / "assets"),
    )

@pytest.fixture(scope="module")
def loader(config):
    return InspectionDataLoader(config)

@pytest.fixture(scope="module")
def raw_train_df():
    return make_raw_inspections(240, seed=1)

@pytest.fixture(scope="module")
def raw_test_df():
    return make_raw_inspections(40, seed=2, with_target=False)

@pytest.fixture(scope="module")
def model_data(loader, raw_train_df, raw_test_df):
    train_clean, _ = loader.clean_data(raw_train_df)
    test_clean, _ = loader.clean_data(raw_test_df)
    return FeatureEngineer().prepare_model_data(train_clean, test_clean)

@pytest.fixture(scope="module")
def trainer(config):
    return ModelTrainer(
        random_state=config.random_state,
        trees_per_feature=config.trees_per_feature,
        n_jobs=config.n_jobs
    )

@pytest.fixture(scope="module")
def default_model(trainer, model_data):
    X_train, y_train, _, _ = model_data
    return trainer.train(X_train, y_train)

@pytest.fixture(scope="module")
def make_inspections():
    return make_raw_inspections
