"""
Submission Writer
Writes one row per expected id, in the expected order, or fails loudly.
"""

import csv
import os
from pathlib import Path

import pandas as pd

from kaggle_reports.spans import Selection


class MissingSelectionError(ValueError):
    """Raised when an expected submission id has no prediction."""

    def __init__(self, missing_ids):
        self.missing_ids = list(missing_ids)
        preview = ', '.join(str(i) for i in self.missing_ids[:10])
        more = '' if len(self.missing_ids) <= 10 else f' (+{len(self.missing_ids) - 10} more)'
        super().__init__(
            f"{len(self.missing_ids)} expected id(s) have no prediction: {preview}{more}"
        )


def _as_mapping(predictions):
    if isinstance(predictions, dict):
        return predictions
    if isinstance(predictions, pd.Series):
        return predictions.to_dict()
    mapping = {}
    for item in predictions:
        if isinstance(item, Selection):
            mapping[item.source_id] = item.chosen_span
        else:
            key, value = item
            mapping[key] = value
    return mapping


def build_submission(predictions, expected_ids, columns):
    """
    Order predictions by expected_ids.

    Args:
        predictions: Mapping id -> value, Series, or iterable of Selection / (id, value)
        expected_ids: Ids in the order the submission must list them
        columns: (id column name, value column name)

    Returns:
        Two-column DataFrame in expected_ids order
    """
    mapping = _as_mapping(predictions)
    expected_ids = list(expected_ids)

    missing = [i for i in expected_ids if i not in mapping]
    if missing:
        raise MissingSelectionError(missing)

    extra = len(set(mapping) - set(expected_ids))
    if extra:
        print(f"⚠️ Ignoring {extra} prediction(s) for ids not in the expected list")

    id_col, value_col = columns
    return pd.DataFrame({
        id_col: expected_ids,
        value_col: [mapping[i] for i in expected_ids],
    })


def write_submission(predictions, expected_ids, path, columns, quote_values=False):
    """
    Write a Kaggle submission file.

    The header is written unquoted. With quote_values every data value is
    quoted (csv.QUOTE_ALL); otherwise pandas' minimal quoting applies.
    """
    submission = build_submission(predictions, expected_ids, columns)

    path = Path(path)
    os.makedirs(path.parent, exist_ok=True)
    if quote_values:
        with open(path, 'w', newline='', encoding='utf-8') as fh:
            fh.write(','.join(columns) + '\n')
            submission.to_csv(fh, header=False, index=False, quoting=csv.QUOTE_ALL)
    else:
        submission.to_csv(path, index=False)

    return submission
