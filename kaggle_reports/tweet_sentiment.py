"""
Tweet Sentiment Extraction Report
- Records: malformed tweets (missing / blank text) are excluded, not fatal
- Candidates: every contiguous word span with its fixed-schema features
- Scorers: LightGBM + XGBoost regressors on the span's Jaccard with the
  selected text, averaged; optionally blended with the transformer span model
- Selection: best score per tweet, ties to the shortest span
"""

import os
from typing import Protocol

import joblib
import numpy as np
import pandas as pd
from lightgbm import LGBMRegressor, early_stopping, log_evaluation
from sklearn.metrics import mean_squared_error
from sklearn.model_selection import GroupShuffleSplit
from xgboost import XGBRegressor

from kaggle_reports.config import MODEL_DIR, RANDOM_STATE, SUBMISSION_DIR, TWEET_DIR, VAL_SIZE
from kaggle_reports.preprocessing import load_competition_data
from kaggle_reports.span_features import FEATURE_COLUMNS, build_candidate_frame
from kaggle_reports.spans import Selection, TextRecord, mean_jaccard, select_spans
from kaggle_reports.submission import write_submission

ID_COL = 'textID'
TEXT_COL = 'text'
SENTIMENT_COL = 'sentiment'
SELECTED_COL = 'selected_text'
SUBMISSION_COLUMNS = (ID_COL, SELECTED_COL)

# Ids stay strings; only truly empty cells become NaN ("null", "NA" are real tweets)
READ_KWARGS = {'dtype': {ID_COL: str}, 'keep_default_na': False, 'na_values': ['']}


class CandidateScorer(Protocol):
    def predict(self, candidates: pd.DataFrame) -> np.ndarray:
        ...


class FeatureModelScorer:
    """Wraps any fitted regressor exposing predict(X) over FEATURE_COLUMNS."""

    def __init__(self, model, feature_columns=None, name=None):
        self.model = model
        self.feature_columns = list(feature_columns or FEATURE_COLUMNS)
        self.name = name or type(model).__name__

    def predict(self, candidates):
        return np.asarray(self.model.predict(candidates[self.feature_columns]), dtype=float)


class EnsembleScorer:
    """Weighted average of several scorers' outputs (equal weights by default)."""

    def __init__(self, scorers, weights=None):
        if not scorers:
            raise ValueError("EnsembleScorer needs at least one scorer")
        self.scorers = list(scorers)
        if weights is None:
            weights = np.ones(len(self.scorers))
        self.weights = np.asarray(weights, dtype=float)
        if len(self.weights) != len(self.scorers):
            raise ValueError(
                f"Got {len(self.weights)} weights for {len(self.scorers)} scorers"
            )

    def predict(self, candidates):
        predictions = np.array([s.predict(candidates) for s in self.scorers])
        return np.average(predictions, axis=0, weights=self.weights)


def load_tweets(path):
    """Load a tweet CSV; text columns are kept as strings, NaN stays NaN."""
    return pd.read_csv(path, **READ_KWARGS)


def is_malformed(text):
    return not isinstance(text, str) or not text.strip()


def to_records(frame):
    """
    Turn a tweet frame into TextRecords.

    Returns:
        (records, dropped_ids): malformed rows are left out and their ids returned
    """
    records, dropped = [], []
    for row in frame[[ID_COL, TEXT_COL, SENTIMENT_COL]].itertuples(index=False):
        record_id, text, sentiment = row
        if is_malformed(text):
            dropped.append(record_id)
            continue
        sentiment = sentiment if isinstance(sentiment, str) else None
        records.append(TextRecord(id=record_id, raw_text=text, sentiment_label=sentiment))
    return records, dropped


def selected_mapping(frame):
    """Record id -> ground-truth selected span ('' when missing)."""
    return dict(zip(frame[ID_COL], frame[SELECTED_COL].fillna('')))


def split_by_source(candidates, val_size=VAL_SIZE, random_state=RANDOM_STATE):
    """Hold out whole tweets so no tweet has candidates on both sides."""
    splitter = GroupShuffleSplit(n_splits=1, test_size=val_size, random_state=random_state)
    train_idx, val_idx = next(splitter.split(candidates, groups=candidates['source_id']))
    return candidates.iloc[train_idx], candidates.iloc[val_idx]


def evaluate_selections(selections, truths):
    """Mean Jaccard of chosen spans against ground truth, over selected ids."""
    ids = list(selections)
    return mean_jaccard(
        [truths.get(i, '') for i in ids],
        [selections[i].chosen_span for i in ids],
    )


def train_candidate_scorers(candidates, truths=None, n_estimators=2000, model_dir=None):
    """
    Fit LightGBM and XGBoost on candidate Jaccard targets.

    Args:
        candidates: Training candidate frame with 'target'
        truths: Optional record id -> selected_text, for validation Jaccard
        n_estimators: Boosting rounds (early stopping on held-out tweets)
        model_dir: Where fitted models are saved with joblib

    Returns:
        EnsembleScorer averaging both regressors
    """
    print("\n" + "=" * 60)
    print("TRAINING CANDIDATE SCORERS")
    print("=" * 60)

    model_dir = model_dir or MODEL_DIR
    train_part, val_part = split_by_source(candidates)
    X_train, y_train = train_part[FEATURE_COLUMNS], train_part['target']
    X_val, y_val = val_part[FEATURE_COLUMNS], val_part['target']
    print(f"Train candidates: {len(train_part)}, Val candidates: {len(val_part)}")

    print("\n[1/3] Training LightGBM...")
    lgb_model = LGBMRegressor(
        n_estimators=n_estimators,
        learning_rate=0.05,
        num_leaves=63,
        subsample=0.8,
        subsample_freq=1,
        colsample_bytree=0.8,
        random_state=RANDOM_STATE,
        verbose=-1,
    )
    lgb_model.fit(
        X_train, y_train,
        eval_set=[(X_val, y_val)],
        eval_metric='l2',
        callbacks=[early_stopping(50, verbose=False), log_evaluation(200)],
    )

    print("\n[2/3] Training XGBoost...")
    xgb_model = XGBRegressor(
        n_estimators=n_estimators,
        learning_rate=0.05,
        max_depth=7,
        subsample=0.8,
        colsample_bytree=0.8,
        tree_method='hist',
        n_jobs=-1,
        random_state=RANDOM_STATE,
        verbosity=0,
        early_stopping_rounds=50,
    )
    xgb_model.fit(X_train, y_train, eval_set=[(X_val, y_val)], verbose=200)

    scorers = [
        FeatureModelScorer(lgb_model, name='LightGBM'),
        FeatureModelScorer(xgb_model, name='XGBoost'),
    ]
    ensemble = EnsembleScorer(scorers)

    print("\n[3/3] Evaluating on held-out tweets...")
    for scorer in scorers + [ensemble]:
        name = getattr(scorer, 'name', 'Ensemble')
        preds = scorer.predict(val_part)
        line = f"  {name}: MSE {mean_squared_error(y_val, preds):.5f}"
        if truths is not None:
            selections = select_spans(val_part, preds)
            line += f", Jaccard {evaluate_selections(selections, truths):.4f}"
        print(line)

    os.makedirs(model_dir, exist_ok=True)
    joblib.dump(lgb_model, os.path.join(model_dir, 'tweet_lightgbm.pkl'))
    joblib.dump(xgb_model, os.path.join(model_dir, 'tweet_xgboost.pkl'))
    print(f"✅ Scorers saved to {model_dir}")

    return ensemble


def load_candidate_scorers(model_dir=None):
    """Load the regressors saved by train_candidate_scorers."""
    model_dir = model_dir or MODEL_DIR
    return EnsembleScorer([
        FeatureModelScorer(joblib.load(os.path.join(model_dir, 'tweet_lightgbm.pkl')), name='LightGBM'),
        FeatureModelScorer(joblib.load(os.path.join(model_dir, 'tweet_xgboost.pkl')), name='XGBoost'),
    ])


def predict_selections(records, dropped_ids, scorer, n_jobs=1, max_words=None):
    """
    Score every candidate and pick one span per record.

    Malformed (dropped) ids get an explicit empty selection so the
    submission still lists them.
    """
    candidates = build_candidate_frame(records, n_jobs=n_jobs, max_words=max_words)
    if len(candidates):
        selections = select_spans(candidates, scorer.predict(candidates))
    else:
        selections = {}
    for record_id in dropped_ids:
        selections[record_id] = Selection(source_id=record_id, chosen_span='')
    return selections


def run_tweet_report(data_dir=None, submission_path=None, model_dir=None, sample_frac=None,
                     n_jobs=-1, max_words=None, retrain=False, transformer_path=None,
                     transformer_weight=0.5):
    """
    Full tweet span pipeline:
    1. Load train and test tweets
    2. Build training candidates (optionally on a sample of tweets)
    3. Train or load candidate scorers
    4. Build test candidates, score, select
    5. Write submission in test id order
    """
    print("=" * 60)
    print("TWEET SENTIMENT EXTRACTION REPORT")
    print("=" * 60)

    model_dir = model_dir or MODEL_DIR

    print("\n[1/5] Loading data...")
    train, test = load_competition_data(TWEET_DIR, data_dir, **READ_KWARGS)
    train_records, train_dropped = to_records(train)
    test_records, test_dropped = to_records(test)
    print(f"  Excluded malformed tweets: train {len(train_dropped)}, test {len(test_dropped)}")

    have_models = os.path.exists(os.path.join(model_dir, 'tweet_lightgbm.pkl'))
    if have_models and not retrain:
        print("\n[2/5] ✓ Candidate scorers already exist. Skipping candidate build.")
        print("\n[3/5] Loading candidate scorers...")
        scorer = load_candidate_scorers(model_dir)
    else:
        print("\n[2/5] Building training candidates...")
        if sample_frac is not None:
            rng = np.random.default_rng(RANDOM_STATE)
            keep = rng.random(len(train_records)) < sample_frac
            train_records = [r for r, k in zip(train_records, keep) if k]
            if not train_records:
                raise ValueError(
                    f"sample_frac={sample_frac} left no training tweets; use a larger fraction"
                )
        truths = selected_mapping(train)
        candidates = build_candidate_frame(
            train_records, selected=truths, n_jobs=n_jobs, max_words=max_words
        )
        print(f"✅ {len(candidates)} candidates from {len(train_records)} tweets")

        print("\n[3/5] Training candidate scorers...")
        scorer = train_candidate_scorers(candidates, truths, model_dir=model_dir)

    if transformer_path is not None:
        from kaggle_reports.span_transformer import TransformerCandidateScorer
        print(f"  Blending with transformer span model ({transformer_path})")
        transformer = TransformerCandidateScorer.from_checkpoint(transformer_path)
        scorer = EnsembleScorer([scorer, transformer],
                                weights=[1 - transformer_weight, transformer_weight])

    print("\n[4/5] Scoring test candidates...")
    selections = predict_selections(
        test_records, test_dropped, scorer, n_jobs=n_jobs, max_words=max_words
    )
    print(f"✅ {len(selections)} selections")

    print("\n[5/5] Writing submission...")
    if submission_path is None:
        submission_path = os.path.join(SUBMISSION_DIR, 'tweet_submission.csv')
    submission = write_submission(
        selections.values(), test[ID_COL], submission_path,
        columns=SUBMISSION_COLUMNS, quote_values=True,
    )

    print("\n✅ TWEET SUBMISSION CREATED!")
    print(f"  File: {submission_path}")
    print(f"  Shape: {submission.shape}")

    return submission
