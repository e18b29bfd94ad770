"""
Shared Data Preprocessing
Load competition CSVs, recode factor levels, impute by group.
"""

import pandas as pd

from kaggle_reports.config import competition_paths


def load_competition_data(competition, data_dir=None, **read_kwargs):
    """
    Load train and test CSVs for one competition.

    Args:
        competition: Folder name under the data directory (see config)
        data_dir: Optional data root overriding config.DATA_DIR
        read_kwargs: Passed through to pandas.read_csv

    Returns:
        (train, test) DataFrames
    """
    train_path, test_path = competition_paths(competition, data_dir)
    print(f"Loading {train_path} and {test_path}...")
    train = pd.read_csv(train_path, **read_kwargs)
    test = pd.read_csv(test_path, **read_kwargs)
    print(f"Loaded train: {train.shape}, test: {test.shape}")
    return train, test


def recode_levels(series, mapping, default=None):
    """
    Map factor levels through a dict.

    Levels missing from the mapping (including NaN) become `default`;
    when default is None they are left as they were.
    """
    recoded = series.map(mapping)
    if default is None:
        return recoded.where(series.map(lambda v: v in mapping), series)
    return recoded.fillna(default)


def fill_group_median(frame, column, by, fallback=None):
    """
    Fill NaNs in `column` with the median of its `by` group.

    Groups with no observed values fall back to the column median (or
    `fallback` when given). Returns a new Series.
    """
    group_median = frame.groupby(by)[column].transform('median')
    filled = frame[column].fillna(group_median)
    if fallback is None:
        fallback = frame[column].median()
    return filled.fillna(fallback)


def missing_summary(frame, top=10):
    """Columns with missing values, sorted by missing count."""
    counts = frame.isnull().sum()
    counts = counts[counts > 0].sort_values(ascending=False)
    return pd.DataFrame({
        'missing': counts,
        'pct': counts / len(frame),
    }).head(top)
