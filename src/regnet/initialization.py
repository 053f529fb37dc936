"""Initial coefficient vectors for the coordinate-descent solver.

``initiation="elnet"`` (default) starts the solver from an elastic-net fit
with mixing parameter ``alpha_init``; ``initiation="zero"`` starts from the
null model. Initial values live on the standardized scale and are computed
once per training set, then shared by every lambda pair fitted on it.
"""
from __future__ import annotations
from typing import Optional, Tuple
import logging
import numpy as np
from sklearn.linear_model import ElasticNetCV, SGDClassifier
from sksurv.linear_model import CoxnetSurvivalAnalysis

from regnet.data import Response, kaplan_meier_weights

logger = logging.getLogger("regnet.initialization")

MIN_L1_RATIO = 0.01


def _cv_folds(n: int) -> int:
    return 3 if n >= 6 else 2


def _elnet_continuous(X, y, l1_ratio, sample_weight=None):
    model = ElasticNetCV(l1_ratio=l1_ratio, cv=_cv_folds(len(y)), max_iter=5000)
    model.fit(X, y, sample_weight=sample_weight)
    return np.asarray(model.coef_, dtype=float), float(model.intercept_)


def _elnet_binary(X, y, l1_ratio, random_state):
    if np.unique(y).size < 2:
        logger.debug("Single class in training data; elastic-net start skipped")
        return np.zeros(X.shape[1]), None
    model = SGDClassifier(
        loss="log_loss",
        penalty="elasticnet",
        l1_ratio=l1_ratio,
        alpha=1.0 / len(y),
        max_iter=1000,
        tol=1e-4,
        random_state=0 if random_state is None else random_state,
    )
    model.fit(X, y)
    return np.asarray(model.coef_[0], dtype=float), float(model.intercept_[0])


def _elnet_cox(X, response: Response, l1_ratio):
    if response.status.sum() == 0:
        logger.debug("No events in training data; elastic-net start skipped")
        return np.zeros(X.shape[1]), None
    model = CoxnetSurvivalAnalysis(
        l1_ratio=l1_ratio,
        n_alphas=20,
        alpha_min_ratio=0.05,
        max_iter=10_000,
    )
    try:
        model.fit(X, response.to_structured())
    except ArithmeticError as exc:
        logger.warning(f"Coxnet start failed ({exc}); starting from zero")
        return np.zeros(X.shape[1]), None
    return np.asarray(model.coef_[:, -1], dtype=float), None


def _elnet_lad(X, response: Response, l1_ratio):
    weights = kaplan_meier_weights(response.time, response.status)
    active = weights > 0
    if active.sum() < 2 * _cv_folds(int(active.sum())):
        logger.debug("Too few events for an elastic-net start; starting from zero")
        return np.zeros(X.shape[1]), None
    return _elnet_continuous(
        X[active], np.log(response.time[active]), l1_ratio, sample_weight=weights[active]
    )


def initial_coefficients(
    X: np.ndarray,
    response: Response,
    initiation: str = "elnet",
    alpha_init: float = 1.0,
    robust: bool = False,
    random_state: Optional[int] = None,
) -> Tuple[np.ndarray, Optional[float]]:
    """Compute the starting point of the solver.

    Args:
        X: Standardized design matrix
        response: Validated response
        initiation: "elnet" or "zero"
        alpha_init: Elastic-net mixing parameter (1 = lasso, 0 = ridge)
        robust: Whether the robust (LAD) survival loss will be fitted
        random_state: Seed for the stochastic binary elastic net

    Returns:
        Tuple of (coefficients, intercept). The intercept is None when the
        solver should start from the intercept-only fit.
    """
    p = X.shape[1]
    if initiation == "zero":
        return np.zeros(p), None

    # scikit-learn cannot build an alpha path for a pure ridge mix
    l1_ratio = max(float(alpha_init), MIN_L1_RATIO)
    if response.kind == "continuous":
        return _elnet_continuous(X, response.y, l1_ratio)
    if response.kind == "binary":
        return _elnet_binary(X, response.y, l1_ratio, random_state)
    if robust:
        return _elnet_lad(X, response, l1_ratio)
    return _elnet_cox(X, response, l1_ratio)
