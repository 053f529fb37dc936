"""Default regularization sequences.

lambda.1 runs geometrically from the smallest value that zeroes every
penalized coefficient down to a fraction of it. lambda.2 (network penalty
only) defaults to a short fixed grid; for the other penalties it is the
singleton {0}.
"""
from __future__ import annotations
from typing import Optional
import logging
import numpy as np

from regnet.config import GridConfig
from regnet.solver import Loss

logger = logging.getLogger("regnet.lambdas")


def lambda_max(loss: Loss, unpenalized: Optional[np.ndarray] = None) -> float:
    """Smallest lambda.1 at which all penalized coefficients are zero.

    For a penalty whose slope at zero equals lambda.1 (lasso, MCP and the
    network penalty alike) this is the largest absolute gradient of the loss
    at beta = 0 with the intercept at its null value.
    """
    grad = np.abs(loss.null_gradient())
    if unpenalized is not None and len(unpenalized):
        grad[np.asarray(unpenalized, dtype=int)] = 0.0
    return float(grad.max()) if grad.size else 0.0


def lambda1_sequence(loss: Loss, config: Optional[GridConfig] = None,
                     unpenalized: Optional[np.ndarray] = None) -> np.ndarray:
    """Build the default decreasing lambda.1 sequence.

    Args:
        loss: Loss bound to the full standardized data
        config: Grid settings (number of values and smallest ratio)
        unpenalized: Predictors excluded from the penalty

    Returns:
        Strictly decreasing array of ``config.n_lambda1`` values

    Example:
        >>> seq = lambda1_sequence(make_loss(X_std, response))
        >>> bool(np.all(np.diff(seq) < 0))
        True
    """
    config = config or GridConfig()
    ratio = config.lambda_min_ratio
    if ratio is None:
        ratio = 0.01 if loss.n > loss.p else 0.05
    top = lambda_max(loss, unpenalized)
    if not np.isfinite(top) or top <= np.finfo(float).eps:
        logger.warning(
            "Null gradient is zero; falling back to a unit-scale lambda.1 sequence"
        )
        top = 1.0
    if config.n_lambda1 == 1:
        return np.array([top])
    return np.geomspace(top, top * ratio, num=config.n_lambda1)


def lambda2_sequence(penalty: str, config: Optional[GridConfig] = None) -> np.ndarray:
    """Default lambda.2 sequence: the configured grid for network, {0} otherwise."""
    if penalty != "network":
        return np.array([0.0])
    config = config or GridConfig()
    return np.asarray(config.lambda2, dtype=float)
