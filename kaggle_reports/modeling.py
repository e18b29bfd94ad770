"""
Modeling Wrapper
Named models with fixed hyperparameters, trained through sklearn pipelines:
- Out-of-fold (OOF) predictions for honest validation and blend fitting
- Final fit on all training rows for test predictions
"""

from collections import namedtuple

import numpy as np
from sklearn.base import clone, is_classifier
from sklearn.model_selection import KFold, StratifiedKFold
from sklearn.pipeline import Pipeline

from kaggle_reports.config import N_FOLDS, RANDOM_STATE

# build() returns a fresh, unfitted estimator
ModelSpec = namedtuple('ModelSpec', ['name', 'build'])


def make_pipeline(preprocessor, estimator):
    """Preprocessor + estimator as a single sklearn Pipeline."""
    return Pipeline([('pre', clone(preprocessor)), ('model', estimator)])


def _predict(model, X):
    if is_classifier(model) and hasattr(model, 'predict_proba'):
        return model.predict_proba(X)[:, 1]
    return model.predict(X)


def get_oof_predictions(model, X, y, n_splits=N_FOLDS, random_state=RANDOM_STATE):
    """
    Out-of-fold predictions: every row is predicted by a model that never saw it.

    Classifiers get StratifiedKFold and positive-class probabilities;
    regressors get KFold and raw predictions.
    """
    if is_classifier(model):
        splitter = StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    else:
        splitter = KFold(n_splits=n_splits, shuffle=True, random_state=random_state)

    oof = np.zeros(len(X))
    for train_idx, val_idx in splitter.split(X, y):
        fold_model = clone(model)
        fold_model.fit(X.iloc[train_idx], y.iloc[train_idx])
        oof[val_idx] = _predict(fold_model, X.iloc[val_idx])
    return oof


def fit_models(specs, preprocessor, X, y, X_test, score_fn, n_splits=N_FOLDS):
    """
    Train every model spec: OOF validation, then a final fit on all rows.

    Args:
        specs: List of ModelSpec
        preprocessor: Unfitted sklearn transformer applied before each model
        X, y: Training features and target
        X_test: Test features
        score_fn: Callable (y_true, oof_pred) -> float, printed per model
        n_splits: CV folds

    Returns:
        (oof_predictions, test_predictions, scores), each a dict keyed by model name
    """
    oof_predictions = {}
    test_predictions = {}
    scores = {}

    for i, spec in enumerate(specs, 1):
        print(f"\n[Model {i}/{len(specs)}] {spec.name}")
        pipeline = make_pipeline(preprocessor, spec.build())

        oof = get_oof_predictions(pipeline, X, y, n_splits=n_splits)
        scores[spec.name] = float(score_fn(y, oof))
        print(f"  OOF score: {scores[spec.name]:.4f}")

        pipeline.fit(X, y)
        oof_predictions[spec.name] = oof
        test_predictions[spec.name] = _predict(pipeline, X_test)
        print(f"✅ {spec.name} fitted on all {len(X)} rows")

    return oof_predictions, test_predictions, scores
