"""
Feature Engineering Module
==========================
Turns cleaned inspection tables into model-ready feature tables.

Two pieces live here:
1. Feature selection - drop identifiers, free text, and raw fields that
   the normalizer has already replaced with derived columns
2. Ordered categorical encoding - text levels become integer ranks,
   ordered by how often the level leads to a C grade or below

Author: [Shril Patel]
Date: [Oct 18, 2026]
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Tuple, Dict
import logging

from sklearn.base import BaseEstimator, TransformerMixin

from .config import ID_COLUMN, TARGET_COLUMN

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Rank given to levels never seen while fitting
UNSEEN_LEVEL = -1


class OrderedCategoryEncoder(BaseEstimator, TransformerMixin):
    """
    Encodes non-numeric columns as ranks ordered by mean target.

    For each categorical column, levels are sorted ascending by the share of
    positive labels among the rows holding that level (ties by level name)
    and replaced with their position in that order. Numeric columns pass
    through untouched.

    Example:
        encoder = OrderedCategoryEncoder()
        X_train_enc = encoder.fit_transform(X_train, y_train)
        X_test_enc = encoder.transform(X_test)
    """

    def fit(self, X: pd.DataFrame, y: pd.Series):
        """
        Learn the level order of each categorical column.

        Args:
            X: Feature DataFrame
            y: Binary target aligned with X

        Returns:
            self
        """
        y = pd.Series(np.asarray(y, dtype=float), index=X.index)

        self.feature_names_in_ = np.array(X.columns, dtype=object)
        self.categorical_columns_ = [
            col for col in X.columns
            if not pd.api.types.is_numeric_dtype(X[col])
        ]
        self.level_ranks_ = {}

        for col in self.categorical_columns_:
            positive_rate = y.groupby(X[col].astype(str)).mean()
            ordered = sorted(positive_rate.items(), key=lambda kv: (kv[1], kv[0]))
            self.level_ranks_[col] = {
                level: rank for rank, (level, _) in enumerate(ordered)
            }

        logger.info(f"Ordered {len(self.categorical_columns_)} categorical columns by target rate")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """
        Replace categorical levels with their learned ranks.

        Args:
            X: Feature DataFrame with the columns seen in fit

        Returns:
            Numeric DataFrame with columns in fit order
        """
        columns = list(self.feature_names_in_)
        missing = [col for col in columns if col not in X.columns]
        if missing:
            raise ValueError(f"Missing feature columns: {missing}")

        X = X[columns].copy()
        for col in self.categorical_columns_:
            X[col] = (
                X[col].astype(str)
                .map(self.level_ranks_[col])
                .fillna(UNSEEN_LEVEL)
                .astype(int)
            )

        return X.astype(float)

    def get_level_order(self, col: str) -> List[str]:
        """Return the levels of a categorical column from lowest to highest rank."""
        ranks = self.level_ranks_[col]
        return sorted(ranks, key=ranks.get)


class FeatureEngineer:
    """
    Selects the feature columns used by the forest.

    Example:
        fe = FeatureEngineer()
        X_train, y_train, X_test, test_ids = fe.prepare_model_data(train_clean, test_clean)
    """

    # Columns never used as features
    EXCLUDE_COLUMNS = [
        # Identifiers
        ID_COLUMN, 'restaurant_permit_number',
        # Free text
        'restaurant_name', 'restaurant_location', 'address', 'violations_raw',
        # Raw fields replaced by derived columns
        'lat_long_raw', 'zip', 'inspection_time', 'inspection_date', 'record_updated',
        # Single value across the county
        'state',
        # Demerits and violations already carry the grade's signal
        'current_grade',
    ]

    # Category of each known feature, for reporting
    FEATURE_GROUPS = {
        'restaurant': [
            'restaurant_category', 'city', 'employee_count',
            'median_employee_age', 'median_employee_tenure'
        ],
        'inspection': [
            'inspection_type', 'current_demerits', 'inspection_demerits',
            'number_of_violations'
        ],
        'violation': [
            'first_violation', 'second_violation', 'third_violation',
            'first_violation_type', 'second_violation_type', 'third_violation_type'
        ],
        'geographic': ['latitude', 'longitude', 'zip5'],
        'temporal': ['inspection_year', 'inspection_month', 'inspection_hour'],
    }

    def __init__(
        self,
        target_col: str = TARGET_COLUMN,
        id_col: str = ID_COLUMN,
        exclude_cols: Optional[List[str]] = None
    ):
        """
        Initialize the feature engineer.

        Args:
            target_col: Name of the label column
            id_col: Name of the restaurant identifier column
            exclude_cols: Override for the excluded column list
        """
        self.target_col = target_col
        self.id_col = id_col
        self.exclude_cols = list(exclude_cols) if exclude_cols is not None else list(self.EXCLUDE_COLUMNS)
        self.feature_cols = None

    def select_features(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, Optional[pd.Series]]:
        """
        Split a cleaned table into features and target.

        Args:
            df: Cleaned DataFrame

        Returns:
            Tuple of (feature DataFrame, target Series or None if absent)
        """
        drop = [col for col in self.exclude_cols + [self.target_col] if col in df.columns]
        X = df.drop(columns=drop)
        y = df[self.target_col].astype(int) if self.target_col in df.columns else None

        return X, y

    def prepare_model_data(
        self,
        train_df: pd.DataFrame,
        test_df: pd.DataFrame
    ) -> Tuple[pd.DataFrame, pd.Series, pd.DataFrame, pd.Series]:
        """
        Prepare training and test feature tables.

        The test table is restricted to the training feature columns; its
        label column is never read even if present.

        Args:
            train_df: Cleaned training DataFrame
            test_df: Cleaned test DataFrame

        Returns:
            X_train, y_train, X_test, test_ids
        """
        if self.target_col not in train_df.columns:
            raise ValueError(f"Training table has no '{self.target_col}' column")

        X_train, y_train = self.select_features(train_df)
        self.feature_cols = list(X_train.columns)

        missing = [col for col in self.feature_cols if col not in test_df.columns]
        if missing:
            raise ValueError(f"Test table is missing feature columns: {missing}")

        X_test = test_df[self.feature_cols].copy()
        test_ids = test_df[self.id_col].copy()

        logger.info(f"Using {len(self.feature_cols)} features for modeling")
        logger.info(f"Train set: {len(X_train):,} samples ({y_train.mean():.1%} positive)")
        logger.info(f"Test set: {len(X_test):,} samples")

        return X_train, y_train, X_test, test_ids

    def get_feature_list(self) -> Dict[str, List[str]]:
        """
        Group the selected feature columns by category.

        Columns without a category are listed under 'other'.

        Returns:
            Mapping of category to the selected columns in that category
        """
        if self.feature_cols is None:
            raise ValueError("No features selected yet; call prepare_model_data first")

        category_of = {
            col: group for group, cols in self.FEATURE_GROUPS.items() for col in cols
        }
        groups = {group: [] for group in self.FEATURE_GROUPS}
        groups['other'] = []
        for col in self.feature_cols:
            groups[category_of.get(col, 'other')].append(col)

        return {group: cols for group, cols in groups.items() if cols}
