import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.metrics import accuracy_score
from sklearn.preprocessing import StandardScaler

from kaggle_reports.modeling import ModelSpec, fit_models, get_oof_predictions, make_pipeline


def _frame(n=60, seed=0):
    rng = np.random.default_rng(seed)
    X = pd.DataFrame({'a': rng.normal(size=n), 'b': rng.normal(size=n)})
    return X


def test_oof_classifier_probabilities():
    X = _frame()
    y = pd.Series((X['a'] > 0).astype(int))
    model = make_pipeline(StandardScaler(), LogisticRegression())

    oof = get_oof_predictions(model, X, y, n_splits=3)

    assert oof.shape == (len(X),)
    assert ((oof >= 0) & (oof <= 1)).all()
    assert accuracy_score(y, oof >= 0.5) > 0.8


def test_oof_regressor_predictions():
    X = _frame()
    y = 2 * X['a'] - X['b']
    oof = get_oof_predictions(make_pipeline(StandardScaler(), LinearRegression()), X, y, n_splits=3)
    np.testing.assert_allclose(oof, y, atol=1e-6)


def test_fit_models_returns_per_model_results():
    X = _frame()
    y = pd.Series((X['a'] + X['b'] > 0).astype(int))
    X_test = _frame(10, seed=1)
    specs = [
        ModelSpec('lr', lambda: LogisticRegression()),
        ModelSpec('lr_strong', lambda: LogisticRegression(C=0.01)),
    ]

    oof, test_preds, scores = fit_models(
        specs, StandardScaler(), X, y, X_test,
        lambda t, p: accuracy_score(t, p >= 0.5), n_splits=3,
    )

    assert set(oof) == set(test_preds) == set(scores) == {'lr', 'lr_strong'}
    assert test_preds['lr'].shape == (10,)
    assert 0.0 <= scores['lr'] <= 1.0
