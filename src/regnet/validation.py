from __future__ import annotations
from typing import List, Optional, Tuple
import logging
import numpy as np
from sklearn.model_selection import KFold, StratifiedKFold
from sklearn.metrics import mean_squared_error, zero_one_loss

from regnet.data import Response, kaplan_meier_weights
from regnet.exceptions import InvalidInputError
from regnet.solver import breslow_cumulative_hazard

logger = logging.getLogger("regnet.validation")


def make_folds(
    response: Response,
    folds: int,
    random_state: Optional[int] = None,
    stratify_survival: bool = True,
) -> np.ndarray:
    """Assign every observation to one of ``folds`` groups.

    Survival responses are balanced on the censoring status so that every
    fold holds a similar share of events. Group sizes differ by at most one
    in either case.

    Args:
        response: Validated response
        folds: Number of groups (2 <= folds <= n)
        random_state: Seed for the random assignment
        stratify_survival: Stratify survival responses on status

    Returns:
        Integer array of shape (n,) with values in 0..folds-1

    Example:
        >>> foldid = make_folds(response, folds=5, random_state=42)
        >>> np.bincount(foldid)
        array([20, 20, 20, 20, 20])
    """
    n = len(response)
    placeholder = np.zeros(n)
    splits = None
    if response.kind == "survival" and stratify_survival:
        status = response.status.astype(int)
        counts = np.bincount(status, minlength=2)
        if counts[counts > 0].min() >= folds:
            skf = StratifiedKFold(n_splits=folds, shuffle=True, random_state=random_state)
            splits = skf.split(placeholder, status)
        else:
            logger.debug(
                f"Status classes too small for {folds} strata; using unstratified folds"
            )
    if splits is None:
        splits = KFold(n_splits=folds, shuffle=True, random_state=random_state).split(placeholder)

    foldid = np.empty(n, dtype=int)
    for k, (_, test_idx) in enumerate(splits):
        foldid[test_idx] = k
    return foldid


def check_foldid(foldid, n_samples: int) -> Tuple[np.ndarray, int]:
    """Validate a user-supplied fold assignment.

    Returns:
        Tuple of (fold assignment, number of folds)
    """
    foldid = np.asarray(foldid)
    if foldid.shape != (n_samples,):
        raise InvalidInputError("foldid must have one entry per row of X")
    if not np.issubdtype(foldid.dtype, np.integer):
        raise InvalidInputError("foldid must contain integer fold labels")
    folds = int(foldid.max()) + 1 if foldid.size else 0
    if foldid.min() < 0 or np.any(np.bincount(foldid, minlength=folds) == 0):
        raise InvalidInputError("foldid labels must cover 0..folds-1 without gaps")
    if folds < 2:
        raise InvalidInputError("incorrect value of folds")
    return foldid.astype(int), folds


def fold_indices(foldid: np.ndarray, folds: int) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Train/test index pairs of every fold, in fold order."""
    return [
        (np.flatnonzero(foldid != k), np.flatnonzero(foldid == k))
        for k in range(folds)
    ]


def misclassification_rate(y: np.ndarray, eta: np.ndarray) -> float:
    """Share of observations whose predicted class (probability > 0.5) is wrong."""
    return float(zero_one_loss(y.astype(int), (eta > 0).astype(int)))


def predicted_median_time(eta_test, eta_train, time_train, status_train) -> np.ndarray:
    """Median survival time implied by a Cox fit and its Breslow baseline.

    A curve that never drops to one half is capped at the largest training time.
    """
    times, hazard = breslow_cumulative_hazard(eta_train, time_train, status_train)
    target = np.log(2.0) * np.exp(-np.clip(eta_test, -50.0, 50.0))
    idx = np.searchsorted(hazard, target, side="left")
    return times[np.minimum(idx, len(times) - 1)]


def prediction_error(
    response_test: Response,
    X_test: np.ndarray,
    coefficients: np.ndarray,
    intercept: float,
    robust: bool = False,
    X_train: Optional[np.ndarray] = None,
    response_train: Optional[Response] = None,
) -> float:
    """Held-out error of one fitted model.

    - binary: misclassification rate
    - continuous: mean squared error
    - survival: Kaplan-Meier weighted squared error of log time against the
      log predicted median time of the Cox fit (training data supply the
      baseline hazard)
    - survival, robust: Kaplan-Meier weighted absolute error of log time

    Args:
        response_test: Held-out response
        X_test: Held-out design matrix on the original scale
        coefficients: Fitted coefficients on the original scale
        intercept: Fitted intercept
        robust: Whether the LAD survival loss was fitted
        X_train: Training design matrix (Cox only)
        response_train: Training response (Cox only)

    Returns:
        Error value; NaN if the fit produced non-finite predictions
    """
    eta = intercept + X_test @ coefficients
    if not np.isfinite(eta).all():
        return float("nan")

    if response_test.kind == "binary":
        return misclassification_rate(response_test.y, eta)
    if response_test.kind == "continuous":
        return float(mean_squared_error(response_test.y, eta))

    weights = kaplan_meier_weights(response_test.time, response_test.status)
    log_time = np.log(response_test.time)
    if robust:
        return float(np.sum(weights * np.abs(log_time - eta)))

    if X_train is None or response_train is None:
        raise ValueError("Cox prediction error needs the training data")
    eta_train = X_train @ coefficients
    median = predicted_median_time(
        eta, eta_train, response_train.time, response_train.status
    )
    return float(np.sum(weights * (log_time - np.log(median)) ** 2))
