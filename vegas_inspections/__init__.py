"""
Las Vegas Restaurant Inspection Forest
======================================

Predicts whether a restaurant's next inspection will land at grade C or
below, using a random forest tuned by grid search on its out-of-bag error.

Modules:
- config: Paths, data sources and model-selection settings
- data_loader: Data ingestion, field normalization and row filtering
- feature_engineering: Feature selection and ordered categorical encoding
- model_training: Forest training, grid search, repeated fits and scoring
- pipeline: The end-to-end batch run
- utils: Helper functions

Example usage:
    from vegas_inspections.config import DEFAULT_GRID
    from vegas_inspections.data_loader import InspectionDataLoader
    from vegas_inspections.feature_engineering import FeatureEngineer
    from vegas_inspections.model_training import ModelTrainer

    # Load and clean data
    loader = InspectionDataLoader()
    train_clean, _ = loader.clean_data(loader.load_train())
    test_clean, _ = loader.clean_data(loader.load_test())

    # Select features
    fe = FeatureEngineer()
    X_train, y_train, X_test, test_ids = fe.prepare_model_data(train_clean, test_clean)

    # Train, tune and score
    trainer = ModelTrainer()
    default_model = trainer.train(X_train, y_train)
    search = trainer.grid_search(X_train, y_train, DEFAULT_GRID, default_model.oob_error)
    final_model = trainer.train(X_train, y_train, search.best)
    predictions = trainer.predict(final_model, X_test, test_ids)
"""

__version__ = "1.0.0"
__author__ = "[Shril Patel]"

from .config import PipelineConfig, DEFAULT_GRID
from .data_loader import InspectionDataLoader, DropReport
from .feature_engineering import FeatureEngineer, OrderedCategoryEncoder
from .model_training import (
    ModelTrainer,
    HyperparameterConfig,
    TrainedModel,
    GridSearchResult,
    build_grid,
    rank_configurations
)
from .pipeline import run_pipeline, PipelineResult
from .utils import percent_gain, threshold_labels, Timer

__all__ = [
    'PipelineConfig',
    'DEFAULT_GRID',
    'InspectionDataLoader',
    'DropReport',
    'FeatureEngineer',
    'OrderedCategoryEncoder',
    'ModelTrainer',
    'HyperparameterConfig',
    'TrainedModel',
    'GridSearchResult',
    'build_grid',
    'rank_configurations',
    'run_pipeline',
    'PipelineResult',
    'percent_gain',
    'threshold_labels',
    'Timer'
]
