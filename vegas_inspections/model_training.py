"""
Model Training Module
=====================
Trains random forests on the next-inspection outcome and selects their
hyperparameters.

Includes:
- Forest training with out-of-bag (OOB) error
- Exhaustive grid search over forest hyperparameters
- Repeated unseeded refits to measure run-to-run variance
- Test-set scoring
- Feature importance and error distribution plots
- Model persistence

The forest is a regression forest on the 0/1 label, so its averaged output
is the probability of the next inspection landing at grade C or below, and
the OOB error is a root-mean-square error on that probability.

Author: [Shril Patel]
Date: [Oct 18, 2026]
"""

import pandas as pd
import numpy as np
from pathlib import Path
from dataclasses import dataclass, asdict, replace as dc_replace
from itertools import product
from typing import Optional, Dict, Any, List
import logging
import joblib
from datetime import datetime

# ML Libraries
from sklearn.ensemble import BaggingRegressor
from sklearn.tree import DecisionTreeRegressor

# Visualization
import matplotlib.pyplot as plt
import seaborn as sns

from .config import MODELS_DIR, ID_COLUMN, DEFAULT_GRID
from .feature_engineering import OrderedCategoryEncoder
from .utils import percent_gain, threshold_labels, Timer

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Order of the grid dimensions, also the enumeration order
GRID_DIMENSIONS = list(DEFAULT_GRID)


@dataclass(frozen=True)
class HyperparameterConfig:
    """
    One forest configuration.

    mtry: features sampled at each split (None = a third of the features)
    min_node_size: minimum rows in a terminal node
    replace: draw each tree's rows with replacement
    sample_fraction: share of rows drawn for each tree
    """
    mtry: Optional[int] = None
    min_node_size: int = 5
    replace: bool = True
    sample_fraction: float = 1.0

    def __post_init__(self):
        # scikit-learn reads an int max_samples/min_samples_leaf as a row
        # count and a float as a share, so the types are pinned here
        if self.mtry is not None:
            object.__setattr__(self, 'mtry', int(self.mtry))
        object.__setattr__(self, 'min_node_size', int(self.min_node_size))
        object.__setattr__(self, 'replace', bool(self.replace))
        object.__setattr__(self, 'sample_fraction', float(self.sample_fraction))

    def resolve(self, n_features: int) -> "HyperparameterConfig":
        """
        Fill in the default mtry and check the values against the data.

        Args:
            n_features: Number of feature columns

        Returns:
            Config with a concrete mtry
        """
        mtry = self.mtry if self.mtry is not None else max(1, n_features // 3)

        if not 1 <= mtry <= n_features:
            raise ValueError(f"mtry must be between 1 and {n_features}, got {mtry}")
        if self.min_node_size < 1:
            raise ValueError(f"min_node_size must be at least 1, got {self.min_node_size}")
        if not 0 < self.sample_fraction <= 1:
            raise ValueError(f"sample_fraction must be in (0, 1], got {self.sample_fraction}")
        if not self.replace and self.sample_fraction == 1:
            raise ValueError("Sampling all rows without replacement leaves no out-of-bag rows")

        return dc_replace(self, mtry=int(mtry))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: pd.Series) -> "HyperparameterConfig":
        """Build a config from a grid search results row."""
        return cls(
            mtry=row['mtry'],
            min_node_size=row['min_node_size'],
            replace=row['replace'],
            sample_fraction=row['sample_fraction']
        )


@dataclass
class TrainedModel:
    """
    A fitted forest together with everything needed to score new rows.
    """
    estimator: BaggingRegressor
    encoder: OrderedCategoryEncoder
    feature_names: List[str]
    config: HyperparameterConfig
    oob_error: float

    @property
    def n_trees(self) -> int:
        return len(self.estimator.estimators_)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Score rows.

        Args:
            X: Feature DataFrame with the training feature columns

        Returns:
            Array of probabilities in [0, 1]
        """
        X_encoded = self.encoder.transform(X)
        return np.clip(self.estimator.predict(X_encoded.to_numpy()), 0.0, 1.0)

    def feature_importances(self) -> pd.DataFrame:
        """
        Mean impurity decrease per feature, averaged over the trees.

        Returns:
            DataFrame with features sorted by importance
        """
        importances = np.zeros(len(self.feature_names))
        for tree, features in zip(self.estimator.estimators_, self.estimator.estimators_features_):
            importances[features] += tree.feature_importances_
        importances /= self.n_trees

        importance_df = pd.DataFrame({
            'feature': self.feature_names,
            'importance': importances
        }).sort_values('importance', ascending=False, kind='mergesort')

        return importance_df.reset_index(drop=True)


@dataclass
class GridSearchResult:
    """
    results: every configuration in enumeration order with its OOB error
    ranking: top configurations, lowest error first, with pct_gain
    best: the first ranked configuration
    """
    results: pd.DataFrame
    ranking: pd.DataFrame
    best: HyperparameterConfig
    default_error: float


def build_grid(grid: Dict[str, List[Any]]) -> List[HyperparameterConfig]:
    """
    Enumerate the Cartesian product of the grid values.

    Args:
        grid: Mapping of mtry, min_node_size, replace and sample_fraction
            to their candidate values

    Returns:
        Configurations, last dimension varying fastest
    """
    missing = [dim for dim in GRID_DIMENSIONS if dim not in grid]
    if missing:
        raise ValueError(f"Grid is missing dimensions: {missing}")

    value_lists = [list(grid[dim]) for dim in GRID_DIMENSIONS]
    return [
        HyperparameterConfig(**dict(zip(GRID_DIMENSIONS, combo)))
        for combo in product(*value_lists)
    ]


def rank_configurations(
    results: pd.DataFrame,
    default_error: float,
    top_n: Optional[int] = 10
) -> pd.DataFrame:
    """
    Rank grid search results by OOB error.

    The sort is stable, so configurations with equal error keep their
    enumeration order and the first row is always the same one.

    Args:
        results: Grid search results with an 'oob_rmse' column
        default_error: OOB error of the default configuration
        top_n: Number of rows to keep (None keeps all)

    Returns:
        Ranked DataFrame with a pct_gain column
    """
    ranked = results.sort_values('oob_rmse', kind='mergesort').copy()
    ranked['pct_gain'] = percent_gain(default_error, ranked['oob_rmse'])

    if top_n is not None:
        ranked = ranked.head(top_n)

    return ranked.reset_index(drop=True)


def oob_rmse(estimator: BaggingRegressor, X: np.ndarray, y: np.ndarray) -> float:
    """
    Root-mean-square error of the out-of-bag predictions.

    Each row is scored by the trees that did not draw it; rows drawn by
    every tree are left out of the average.

    Args:
        estimator: Fitted bagging ensemble
        X: Encoded feature matrix used for fitting
        y: Target used for fitting

    Returns:
        OOB RMSE
    """
    n_rows = len(y)
    prediction_sum = np.zeros(n_rows)
    prediction_count = np.zeros(n_rows)

    for tree, samples, features in zip(
        estimator.estimators_,
        estimator.estimators_samples_,
        estimator.estimators_features_
    ):
        oob_mask = np.ones(n_rows, dtype=bool)
        oob_mask[samples] = False
        if not oob_mask.any():
            continue
        prediction_sum[oob_mask] += tree.predict(X[oob_mask][:, features])
        prediction_count[oob_mask] += 1

    scored = prediction_count > 0
    if not scored.any():
        raise ValueError("No row was out of bag for any tree; OOB error is undefined")

    oob_prediction = prediction_sum[scored] / prediction_count[scored]
    return float(np.sqrt(np.mean((oob_prediction - y[scored]) ** 2)))


class ModelTrainer:
    """
    Trains, tunes, and applies forests for inspection prediction.

    Example:
        trainer = ModelTrainer()
        default_model = trainer.train(X_train, y_train)
        search = trainer.grid_search(X_train, y_train, DEFAULT_GRID, default_model.oob_error)
        errors = trainer.repeated_fit(X_train, y_train, search.best)
    """

    def __init__(
        self,
        random_state: int = 42,
        trees_per_feature: int = 10,
        n_jobs: Optional[int] = -1
    ):
        """
        Initialize the trainer.

        Args:
            random_state: Random seed for seeded (reproducible) fits
            trees_per_feature: Trees grown per feature column
            n_jobs: Parallel jobs used inside a single forest fit
        """
        self.random_state = random_state
        self.trees_per_feature = trees_per_feature
        self.n_jobs = n_jobs

    def train(
        self,
        X: pd.DataFrame,
        y: pd.Series,
        config: Optional[HyperparameterConfig] = None,
        seeded: bool = True
    ) -> TrainedModel:
        """
        Fit one forest and compute its OOB error.

        Args:
            X: Feature DataFrame (categorical columns still as text)
            y: Binary target
            config: Hyperparameters (defaults when omitted)
            seeded: Use the trainer's random_state; unseeded fits differ run to run

        Returns:
            TrainedModel
        """
        config = (config or HyperparameterConfig()).resolve(X.shape[1])
        n_trees = self.trees_per_feature * X.shape[1]

        encoder = OrderedCategoryEncoder().fit(X, y)
        X_encoded = encoder.transform(X).to_numpy()
        y_values = np.asarray(y, dtype=float)

        tree = DecisionTreeRegressor(
            max_features=config.mtry,
            min_samples_leaf=config.min_node_size
        )
        estimator = BaggingRegressor(
            estimator=tree,
            n_estimators=n_trees,
            max_samples=config.sample_fraction,
            bootstrap=config.replace,
            n_jobs=self.n_jobs,
            random_state=self.random_state if seeded else None
        )
        estimator.fit(X_encoded, y_values)

        error = oob_rmse(estimator, X_encoded, y_values)
        logger.debug(f"Trained {n_trees} trees with {config}: OOB RMSE {error:.4f}")

        return TrainedModel(
            estimator=estimator,
            encoder=encoder,
            feature_names=list(X.columns),
            config=config,
            oob_error=error
        )

    def grid_search(
        self,
        X: pd.DataFrame,
        y: pd.Series,
        grid: Dict[str, List[Any]],
        default_error: float,
        top_n: Optional[int] = 10
    ) -> GridSearchResult:
        """
        Train one seeded forest per grid configuration and rank them.

        Args:
            X: Feature DataFrame
            y: Binary target
            grid: Candidate values per hyperparameter
            default_error: OOB error of the default configuration
            top_n: Number of configurations kept in the ranking

        Returns:
            GridSearchResult
        """
        configs = build_grid(grid)
        logger.info(f"Grid search over {len(configs)} configurations...")

        rows = []
        with Timer(f"Grid search ({len(configs)} fits)"):
            for config_id, config in enumerate(configs):
                model = self.train(X, y, config, seeded=True)
                rows.append({
                    'config_id': config_id,
                    **model.config.to_dict(),
                    'oob_rmse': model.oob_error
                })

        results = pd.DataFrame(rows)
        ranking = rank_configurations(results, default_error, top_n)
        best = HyperparameterConfig.from_row(ranking.iloc[0])

        logger.info(f"Best configuration: {best}")
        logger.info(
            f"  OOB RMSE {ranking['oob_rmse'].iloc[0]:.4f} "
            f"({ranking['pct_gain'].iloc[0]:.2f}% better than default {default_error:.4f})"
        )

        return GridSearchResult(
            results=results,
            ranking=ranking,
            best=best,
            default_error=default_error
        )

    def repeated_fit(
        self,
        X: pd.DataFrame,
        y: pd.Series,
        config: HyperparameterConfig,
        n_repeats: int = 100
    ) -> pd.Series:
        """
        Refit one configuration without a seed to sample its OOB error spread.

        Args:
            X: Feature DataFrame
            y: Binary target
            config: Configuration to refit
            n_repeats: Number of fits

        Returns:
            Series of OOB errors, one per fit
        """
        errors = []
        with Timer(f"Repeated fit ({n_repeats} fits)"):
            for _ in range(n_repeats):
                errors.append(self.train(X, y, config, seeded=False).oob_error)

        errors = pd.Series(errors, name='oob_rmse')
        logger.info(
            f"OOB RMSE over {n_repeats} fits: mean {errors.mean():.4f}, "
            f"std {errors.std():.4f}, range [{errors.min():.4f}, {errors.max():.4f}]"
        )
        return errors

    def predict(
        self,
        model: TrainedModel,
        X: pd.DataFrame,
        ids: pd.Series,
        threshold: float = 0.5,
        id_col: str = ID_COLUMN
    ) -> pd.DataFrame:
        """
        Score a cleaned test table.

        Args:
            model: Trained model
            X: Test feature DataFrame
            ids: Restaurant identifiers aligned with X
            threshold: Probability above which the label is 1
            id_col: Name of the identifier column in the output

        Returns:
            DataFrame with identifier, probability and prediction columns
        """
        if len(ids) != len(X):
            raise ValueError(f"Got {len(ids)} identifiers for {len(X)} rows")

        probabilities = model.predict(X)
        predictions = pd.DataFrame({
            id_col: np.asarray(ids),
            'probability': probabilities,
            'prediction': threshold_labels(probabilities, threshold)
        })

        logger.info(
            f"Scored {len(predictions):,} rows, "
            f"{predictions['prediction'].mean():.1%} predicted C or below"
        )
        return predictions

    def plot_feature_importance(
        self,
        model: TrainedModel,
        top_n: int = 20,
        save_path: Optional[str] = None
    ):
        """Plot feature importance."""

        importance_df = model.feature_importances().head(top_n)

        fig, ax = plt.subplots(figsize=(10, 8))
        sns.barplot(
            data=importance_df,
            x='importance',
            y='feature',
            color='steelblue',
            ax=ax
        )
        ax.set_title(f'Top {len(importance_df)} Feature Importances')
        ax.set_xlabel('Importance')
        ax.set_ylabel('Feature')

        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            logger.info(f"Saved feature importance plot to {save_path}")

        plt.close(fig)
        return fig

    def plot_error_distribution(
        self,
        errors: pd.Series,
        default_error: Optional[float] = None,
        save_path: Optional[str] = None
    ):
        """Plot the histogram of OOB errors from repeated fits."""

        fig, ax = plt.subplots(figsize=(10, 6))
        sns.histplot(errors, bins=20, ax=ax)

        if default_error is not None:
            ax.axvline(default_error, color='k', linestyle='--', label='Default configuration')
            ax.legend(loc='upper right')

        ax.set_xlabel('OOB RMSE')
        ax.set_ylabel('Fits')
        ax.set_title(f'OOB Error over {len(errors)} Unseeded Fits')

        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            logger.info(f"Saved error distribution to {save_path}")

        plt.close(fig)
        return fig

    def save_model(self, model: TrainedModel, name: str = "forest", models_dir: Optional[Path] = None) -> Path:
        """Save a trained model to disk."""

        models_dir = Path(models_dir) if models_dir is not None else MODELS_DIR
        models_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = models_dir / f"{name}_{timestamp}.joblib"
        joblib.dump(model, filename)
        logger.info(f"Saved {name} to {filename}")

        return filename

    def load_model(self, model_path: str) -> TrainedModel:
        """Load a saved model."""
        return joblib.load(model_path)

    def save_predictions(self, predictions: pd.DataFrame, output_path: str) -> Path:
        """Write predictions as CSV."""

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        predictions.to_csv(output_path, index=False)
        logger.info(f"Saved {len(predictions):,} predictions to {output_path}")

        return output_path

    def print_grid_table(self, search: GridSearchResult):
        """Print the ranked grid search configurations."""

        print("\n" + "="*70)
        print(f"TOP CONFIGURATIONS (default OOB RMSE {search.default_error:.4f})")
        print("="*70)
        print(f"{'mtry':<6} {'node':<6} {'replace':<9} {'fraction':<10} {'OOB RMSE':<10} {'Gain %':<8}")
        print("-"*70)

        for _, row in search.ranking.iterrows():
            print(f"{int(row['mtry']):<6} "
                  f"{int(row['min_node_size']):<6} "
                  f"{str(bool(row['replace'])):<9} "
                  f"{row['sample_fraction']:<10.3f} "
                  f"{row['oob_rmse']:<10.4f} "
                  f"{row['pct_gain']:<8.2f}")

        print("="*70)
