"""
Configuration Module
====================
Project paths, data source locations, and the model-selection settings
shared by every stage of the pipeline.

Data sources default to local copies under data/raw/. Either may point at a
remote CSV instead through the INSPECTIONS_TRAIN_SOURCE and
INSPECTIONS_TEST_SOURCE environment variables.

Author: [Shril Patel]
Date: [Oct 18, 2026]
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_RAW = PROJECT_ROOT / "data" / "raw"
DATA_PROCESSED = PROJECT_ROOT / "data" / "processed"
MODELS_DIR = PROJECT_ROOT / "models"
ASSETS_DIR = PROJECT_ROOT / "assets"
DEFAULT_CONFIG_FILE = PROJECT_ROOT / "configs" / "pipeline.yaml"

# Column names
ID_COLUMN = "restaurant_serial_number"
TARGET_COLUMN = "next_inspection_grade_c_or_below"

# Reference grid: 5 x 4 x 2 x 3 = 120 configurations
DEFAULT_GRID = {
    'mtry': [3, 5, 7, 9, 11],
    'min_node_size': [1, 3, 5, 10],
    'replace': [True, False],
    'sample_fraction': [0.5, 0.632, 0.8],
}


def _source_from_env(var: str, default: Path) -> str:
    return os.environ.get(var) or str(default)


@dataclass
class PipelineConfig:
    """
    Settings for one batch run.

    Example:
        config = PipelineConfig.from_yaml("configs/pipeline.yaml")
        result = run_pipeline(config)
    """

    train_source: str = field(
        default_factory=lambda: _source_from_env(
            "INSPECTIONS_TRAIN_SOURCE", DATA_RAW / "TrainSet.csv"
        )
    )
    test_source: str = field(
        default_factory=lambda: _source_from_env(
            "INSPECTIONS_TEST_SOURCE", DATA_RAW / "TestSet.csv"
        )
    )
    id_column: str = ID_COLUMN
    target_column: str = TARGET_COLUMN
    random_state: int = 42
    trees_per_feature: int = 10
    grid: Dict[str, List[Any]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_GRID.items()}
    )
    top_n: int = 10
    n_repeats: int = 100
    threshold: float = 0.5
    n_jobs: Optional[int] = -1
    predictions_path: str = str(DATA_PROCESSED / "predictions.csv")
    assets_dir: str = str(ASSETS_DIR)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "PipelineConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")

        config = cls(**values)
        missing_dims = [k for k in DEFAULT_GRID if k not in config.grid]
        if missing_dims:
            raise ValueError(f"Grid is missing dimensions: {missing_dims}")
        return config

    @classmethod
    def from_yaml(cls, file_path: str) -> "PipelineConfig":
        """
        Load a config from a YAML file. Keys not present keep their defaults.

        Args:
            file_path: Path to the YAML file

        Returns:
            PipelineConfig
        """
        with open(file_path, "r") as f:
            values = yaml.safe_load(f) or {}
        return cls.from_dict(values)
