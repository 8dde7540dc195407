"""
Data Loader Module
==================
Handles data ingestion of the Las Vegas restaurant inspection tables from
local or remote CSV files, derives structured fields from the raw composite
columns, and drops rows that cannot be used for modeling.

Author: [Shril Patel]
Date: [Oct 18, 2026]
"""

import pandas as pd
from dataclasses import dataclass, asdict
from typing import Optional, Tuple, List
import logging

from .config import PipelineConfig, DATA_PROCESSED, ID_COLUMN
from .utils import safe_divide

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Raw timestamp layout, e.g. "01/15/2011 10:30"
TIMESTAMP_FORMAT = "%m/%d/%Y %H:%M"

# "(36.17, 115.14)" -> ("36.17", "115.14")
COORDINATE_PATTERN = r"^\s*\(?\s*([^,()]*?)\s*,\s*([^,()]*?)\s*\)?\s*$"


@dataclass
class DropReport:
    """
    Row accounting for one cleaning run.

    Every dropped row is counted under exactly one reason, checked in this
    order: zero latitude, unparseable timestamp, missing or non-binary
    label, any other missing value.
    """
    rows_in: int = 0
    invalid_coordinates: int = 0
    unparseable_timestamps: int = 0
    invalid_label: int = 0
    other_missing: int = 0
    rows_out: int = 0

    @property
    def dropped(self) -> int:
        return (self.invalid_coordinates + self.unparseable_timestamps
                + self.invalid_label + self.other_missing)

    def to_dict(self) -> dict:
        return asdict(self)


class InspectionDataLoader:
    """
    Loads and cleans the restaurant inspection tables.

    Can load from:
    - Local CSV file
    - Remote CSV over HTTP(S)

    Example:
        loader = InspectionDataLoader()
        df = loader.load_train()
        df_clean, report = loader.clean_data(df)
    """

    # Expected columns in the dataset (after standardizing names)
    EXPECTED_COLUMNS = [
        'restaurant_serial_number', 'restaurant_permit_number', 'restaurant_name',
        'restaurant_location', 'restaurant_category', 'address', 'city', 'state',
        'zip', 'current_demerits', 'current_grade', 'employee_count',
        'median_employee_age', 'median_employee_tenure', 'inspection_time',
        'inspection_type', 'inspection_demerits', 'violations_raw',
        'record_updated', 'lat_long_raw', 'first_violation', 'second_violation',
        'third_violation', 'first_violation_type', 'second_violation_type',
        'third_violation_type', 'number_of_violations'
    ]

    # Columns the normalizer cannot work without
    REQUIRED_COLUMNS = [ID_COLUMN, 'lat_long_raw', 'zip', 'inspection_time']

    # Columns that must stay strings when read
    STRING_COLUMNS = ['ZIP', 'INSPECTION_TIME', 'LAT_LONG_RAW', 'RECORD_UPDATED']

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        Initialize the data loader.

        Args:
            config: Pipeline settings; defaults are used when omitted
        """
        self.config = config or PipelineConfig()
        self.target_col = self.config.target_column

    def load_table(self, source: str) -> pd.DataFrame:
        """
        Load a table from a local path or an HTTP(S) URL.

        Args:
            source: Path or URL of the CSV file

        Returns:
            Raw DataFrame with standardized column names
        """
        logger.info(f"Loading data from {source}")

        df = pd.read_csv(
            source,
            low_memory=False,
            dtype={col: str for col in self.STRING_COLUMNS}
        )

        # Standardize column names
        df.columns = df.columns.str.strip().str.lower().str.replace(' ', '_')

        logger.info(f"Loaded {len(df):,} rows and {len(df.columns)} columns")
        return df

    def load_train(self) -> pd.DataFrame:
        """Load the labelled training table."""
        return self.load_table(self.config.train_source)

    def load_test(self) -> pd.DataFrame:
        """Load the unlabelled test table."""
        return self.load_table(self.config.test_source)

    def normalize_fields(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Derive structured fields from the raw composite columns.

        Adds latitude, longitude, zip5, inspection_date, inspection_year,
        inspection_month and inspection_hour. Longitude is always negative
        (western hemisphere). Rows with a latitude of exactly 0 are removed;
        the raw data uses it for a missing coordinate.

        Args:
            df: Raw DataFrame

        Returns:
            New DataFrame with the derived columns
        """
        missing = [col for col in self.REQUIRED_COLUMNS if col not in df.columns]
        if missing:
            raise ValueError(f"Cannot normalize table, missing columns: {missing}")

        df = df.copy()

        # 1. Coordinates
        raw = df['lat_long_raw'].astype(object)
        raw = raw.where(raw.isna(), raw.astype(str))
        parts = raw.str.extract(COORDINATE_PATTERN)
        df['latitude'] = pd.to_numeric(parts[0], errors='coerce')
        df['longitude'] = -pd.to_numeric(parts[1], errors='coerce').abs()

        # 2. Postal code prefix
        zipcode = df['zip'].astype(object)
        df['zip5'] = zipcode.where(zipcode.isna(), zipcode.astype(str).str[:5])

        # 3. Timestamp parts
        stamp = pd.to_datetime(df['inspection_time'], format=TIMESTAMP_FORMAT, errors='coerce')
        df['inspection_date'] = stamp.dt.normalize()
        df['inspection_year'] = stamp.dt.strftime('%Y')
        df['inspection_month'] = stamp.dt.strftime('%m')
        df['inspection_hour'] = stamp.dt.strftime('%H')

        # 4. Binary label
        if self.target_col in df.columns:
            label = pd.to_numeric(df[self.target_col], errors='coerce')
            df[self.target_col] = label.where(label.isin([0, 1]))

        # 5. Zero-latitude sentinel
        df = df[df['latitude'] != 0]

        return df.reset_index(drop=True)

    def drop_incomplete(
        self,
        df: pd.DataFrame,
        columns: Optional[List[str]] = None
    ) -> pd.DataFrame:
        """
        Keep only rows with no missing value.

        Args:
            df: Normalized DataFrame
            columns: Restrict the check to these columns (default: all)

        Returns:
            DataFrame of complete rows
        """
        initial_rows = len(df)
        df = df.dropna(subset=columns).reset_index(drop=True)

        dropped = initial_rows - len(df)
        pct = safe_divide(dropped, initial_rows) * 100
        logger.info(f"Removed {dropped:,} incomplete rows ({pct:.1f}%)")

        return df

    def clean_data(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, DropReport]:
        """
        Run the normalizer and the completeness filter.

        Steps:
        1. Derive coordinates, postal code and timestamp fields
        2. Drop zero-latitude rows
        3. Drop rows with any missing value

        Args:
            df: Raw DataFrame

        Returns:
            Tuple of (cleaned DataFrame, DropReport)
        """
        logger.info("Starting data cleaning...")
        report = DropReport(rows_in=len(df))

        df = self.normalize_fields(df)
        report.invalid_coordinates = report.rows_in - len(df)
        logger.info(f"Removed {report.invalid_coordinates:,} rows with invalid coordinates")

        bad_stamp = df['inspection_date'].isna()
        if self.target_col in df.columns:
            bad_label = df[self.target_col].isna() & ~bad_stamp
        else:
            bad_label = pd.Series(False, index=df.index)
        other = df.isna().any(axis=1) & ~bad_stamp & ~bad_label

        report.unparseable_timestamps = int(bad_stamp.sum())
        report.invalid_label = int(bad_label.sum())
        report.other_missing = int(other.sum())

        if report.unparseable_timestamps:
            logger.info(f"Found {report.unparseable_timestamps:,} rows with unparseable timestamps")
        if report.invalid_label:
            logger.info(f"Found {report.invalid_label:,} rows with a missing or non-binary label")
        if report.other_missing:
            logger.info(f"Found {report.other_missing:,} rows with other missing values")

        df = self.drop_incomplete(df)

        if self.target_col in df.columns:
            df[self.target_col] = df[self.target_col].astype(int)

        report.rows_out = len(df)
        pct_kept = safe_divide(report.rows_out, report.rows_in) * 100
        logger.info(f"Cleaning complete. {report.rows_out:,} rows remaining ({pct_kept:.1f}%)")

        return df, report

    def validate_data(self, df: pd.DataFrame, require_target: bool = False) -> Tuple[bool, list]:
        """
        Validate a raw table for common issues.

        Args:
            df: Raw DataFrame
            require_target: Whether the label column must be present

        Returns:
            Tuple of (is_valid, list of issues found)
        """
        issues = []

        required = list(self.REQUIRED_COLUMNS)
        if require_target:
            required.append(self.target_col)
        missing_cols = [col for col in required if col not in df.columns]
        if missing_cols:
            issues.append(f"Missing required columns: {missing_cols}")

        unexpected = [col for col in self.EXPECTED_COLUMNS if col not in df.columns]
        if unexpected and not missing_cols:
            logger.warning(f"Columns absent from table: {unexpected}")

        if len(df) == 0:
            issues.append("Table is empty")

        is_valid = len(issues) == 0
        return is_valid, issues

    def get_data_summary(self, df: pd.DataFrame) -> dict:
        """
        Generate a summary of the dataset.

        Args:
            df: DataFrame to summarize

        Returns:
            Dictionary with summary statistics
        """
        summary = {
            'total_rows': len(df),
            'total_columns': len(df.columns),
            'unique_restaurants': df[ID_COLUMN].nunique() if ID_COLUMN in df.columns else None,
            'label_rate': None,
            'date_range': None,
            'grades': None,
            'top_categories': None,
            'missing_values': df.isnull().sum().to_dict()
        }

        if self.target_col in df.columns and len(df):
            summary['label_rate'] = float(pd.to_numeric(df[self.target_col], errors='coerce').mean())

        if 'inspection_date' in df.columns and df['inspection_date'].notna().any():
            summary['date_range'] = {
                'min': str(df['inspection_date'].min()),
                'max': str(df['inspection_date'].max())
            }

        if 'current_grade' in df.columns:
            summary['grades'] = df['current_grade'].value_counts().to_dict()

        if 'restaurant_category' in df.columns:
            summary['top_categories'] = df['restaurant_category'].value_counts().head(10).to_dict()

        return summary


def main():
    """Main function to run data loading pipeline."""

    loader = InspectionDataLoader()
    df = loader.load_train()

    is_valid, issues = loader.validate_data(df, require_target=True)
    if not is_valid:
        raise ValueError(f"Data validation issues: {issues}")

    # Clean the data
    df_clean, report = loader.clean_data(df)

    # Print summary
    summary = loader.get_data_summary(df_clean)
    print("\n" + "="*50)
    print("DATA SUMMARY")
    print("="*50)
    print(f"Total Records: {summary['total_rows']:,}")
    print(f"Unique Restaurants: {summary['unique_restaurants']:,}")
    print(f"Next inspection C or below: {summary['label_rate']:.1%}")
    print(f"\nRows dropped:")
    for reason, count in report.to_dict().items():
        print(f"  {reason}: {count:,}")

    # Save cleaned data
    DATA_PROCESSED.mkdir(parents=True, exist_ok=True)
    output_path = DATA_PROCESSED / "inspections_cleaned.csv"
    df_clean.to_csv(output_path, index=False)
    logger.info(f"Saved cleaned data to {output_path}")


if __name__ == "__main__":
    main()
