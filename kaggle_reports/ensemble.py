"""
Ensemble Module
- Plain averaging of model predictions (probabilities or scores)
- Weighted linear blends
- Blend-weight optimization on OOF predictions (SLSQP, weights on the simplex)
"""

import numpy as np
from scipy.optimize import minimize
from sklearn.metrics import mean_squared_error


def average_predictions(predictions_list):
    """Equal-weight average of aligned prediction arrays."""
    if len(predictions_list) == 0:
        raise ValueError("average_predictions() needs at least one prediction array")
    return np.mean(np.asarray(predictions_list, dtype=float), axis=0)


def blend_predictions(predictions_list, weights):
    """Weighted average; weights are normalized to sum to 1."""
    weights = np.asarray(weights, dtype=float)
    if len(weights) != len(predictions_list):
        raise ValueError(
            f"Got {len(weights)} weights for {len(predictions_list)} prediction arrays"
        )
    if weights.sum() <= 0:
        raise ValueError("Blend weights must have a positive sum")
    return np.average(np.asarray(predictions_list, dtype=float), axis=0, weights=weights)


def rmse(y_true, y_pred):
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def optimize_blend_weights(predictions_list, y_true, loss=rmse, model_names=None, restarts=5):
    """
    Optimize blend weights on out-of-fold predictions.

    Args:
        predictions_list: List of OOF prediction arrays from different models
        y_true: True target values
        loss: Callable (y_true, y_pred) -> float to minimize
        model_names: Names for display
        restarts: Random Dirichlet restarts after the equal-weight start

    Returns:
        Optimal weights array (non-negative, sums to 1)
    """
    print("\n[Optimizing Ensemble Weights]")

    predictions_array = np.asarray(predictions_list, dtype=float)
    n_models = len(predictions_array)

    def objective(weights):
        return loss(y_true, np.dot(weights, predictions_array))

    # Constraints: weights sum to 1, all weights >= 0
    constraints = {'type': 'eq', 'fun': lambda w: np.sum(w) - 1}
    bounds = [(0, 1) for _ in range(n_models)]

    x0 = np.ones(n_models) / n_models
    rng = np.random.default_rng(0)

    best_result = None
    best_loss = float('inf')

    for attempt in range(restarts):
        init = x0 if attempt == 0 else rng.dirichlet(np.ones(n_models))
        result = minimize(
            objective,
            init,
            method='SLSQP',
            bounds=bounds,
            constraints=constraints
        )
        if result.fun < best_loss:
            best_loss = result.fun
            best_result = result

    optimal_weights = np.clip(best_result.x, 0, None)
    optimal_weights = optimal_weights / optimal_weights.sum()

    if model_names is None:
        model_names = [f'Model {i}' for i in range(n_models)]

    print("Optimized Weights:")
    for name, weight in zip(model_names, optimal_weights):
        print(f"  {name}: {weight:.4f}")
    print(f"\nEnsemble loss: {best_loss:.5f}")

    return optimal_weights
