"""Input validation and response containers.

Every public entry point funnels its arguments through the ``check_*``
helpers below before any fitting work starts, so malformed input always
fails fast with an :class:`~regnet.exceptions.InvalidInputError` naming the
offending argument.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Tuple, List
import logging
import warnings
import numpy as np
import pandas as pd
from sksurv.util import Surv

from regnet.exceptions import InvalidInputError, IncompatibleOptionWarning

logger = logging.getLogger("regnet.data")

ResponseKind = Literal["binary", "continuous", "survival"]
PenaltyKind = Literal["network", "mcp", "lasso"]

RESPONSE_KINDS = ("binary", "continuous", "survival")
PENALTY_KINDS = ("network", "mcp", "lasso")
INITIATIONS = ("elnet", "zero")
TIME_COL = "time"
STATUS_COL = "status"


@dataclass
class Response:
    """Validated response of one regnet problem.

    Attributes:
        kind: Response type ("binary", "continuous" or "survival")
        y: Response vector for binary and continuous responses
        time: Survival times (strictly positive) for survival responses
        status: Event indicator (1 = event, 0 = censored) for survival responses
    """
    kind: str
    y: Optional[np.ndarray] = None
    time: Optional[np.ndarray] = None
    status: Optional[np.ndarray] = None

    def __len__(self) -> int:
        if self.kind == "survival":
            return len(self.time)
        return len(self.y)

    def subset(self, index: np.ndarray) -> "Response":
        """Return the response restricted to the observations in ``index``."""
        if self.kind == "survival":
            return Response(self.kind, time=self.time[index], status=self.status[index])
        return Response(self.kind, y=self.y[index])

    def to_structured(self) -> np.ndarray:
        """Create a scikit-survival structured array from a survival response.

        Returns:
            Structured array with dtype=[('event', bool), ('time', float)]
        """
        if self.kind != "survival":
            raise TypeError("only survival responses convert to structured arrays")
        return Surv.from_arrays(event=self.status.astype(bool), time=self.time)


def check_design_matrix(X) -> Tuple[np.ndarray, List[str]]:
    """Convert the design matrix to a float array and collect predictor names.

    Args:
        X: DataFrame or 2-D array-like of shape (n_samples, n_predictors)

    Returns:
        Tuple of the float array and the predictor names (column names of a
        DataFrame, ``V1..Vp`` otherwise)

    Raises:
        InvalidInputError: If X is not 2-D, is empty or contains non-finite values
    """
    if isinstance(X, pd.DataFrame):
        names = [str(c) for c in X.columns]
        values = X.to_numpy(dtype=float)
    else:
        try:
            values = np.asarray(X, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"X must be a numeric matrix: {exc}") from exc
        names = None
    if values.ndim != 2:
        raise InvalidInputError(f"X must be a 2-D matrix, got {values.ndim} dimension(s)")
    if values.shape[0] == 0 or values.shape[1] == 0:
        raise InvalidInputError("X must have at least one row and one column")
    if not np.isfinite(values).all():
        raise InvalidInputError("X contains missing or non-finite values")
    if names is None:
        names = [f"V{j + 1}" for j in range(values.shape[1])]
    return values, names


def _survival_columns(Y) -> Tuple[np.ndarray, np.ndarray]:
    if isinstance(Y, pd.DataFrame):
        if Y.shape[1] != 2:
            raise InvalidInputError("Y should be a two-column matrix")
        if set(map(str, Y.columns)) != {TIME_COL, STATUS_COL}:
            raise InvalidInputError(
                "Y should be a two-column matrix with columns named 'time' and 'status'"
            )
        return Y[TIME_COL].to_numpy(), Y[STATUS_COL].to_numpy()

    Y = np.asarray(Y)
    if Y.dtype.names is not None:
        if len(Y.dtype.names) != 2:
            raise InvalidInputError("Y should be a two-column matrix")
        if set(Y.dtype.names) != {TIME_COL, STATUS_COL}:
            raise InvalidInputError(
                "Y should be a two-column matrix with columns named 'time' and 'status'"
            )
        return Y[TIME_COL], Y[STATUS_COL]

    if Y.ndim != 2 or Y.shape[1] != 2:
        raise InvalidInputError("Y should be a two-column matrix")
    raise InvalidInputError(
        "Y should be a two-column matrix with columns named 'time' and 'status'"
    )


def make_response(Y, kind: str, n_samples: int) -> Response:
    """Validate the response against its kind and the number of rows of X.

    Args:
        Y: Response. A vector for binary/continuous responses; a DataFrame or
            structured array with fields 'time' and 'status' for survival
        kind: One of "binary", "continuous", "survival"
        n_samples: Number of rows of the design matrix

    Returns:
        Validated Response

    Raises:
        InvalidInputError: On a shape, naming, or value violation

    Example:
        >>> y = pd.DataFrame({"time": [3.0, 5.5], "status": [1, 0]})
        >>> make_response(y, "survival", 2).status
        array([1., 0.])
    """
    if kind not in RESPONSE_KINDS:
        raise InvalidInputError(
            f"response must be one of {RESPONSE_KINDS}, got {kind!r}"
        )

    if kind == "survival":
        time, status = _survival_columns(Y)
        try:
            time = np.asarray(time, dtype=float)
            status = np.asarray(status, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"survival response must be numeric: {exc}") from exc
        if not np.isfinite(time).all() or np.any(time <= 0):
            raise InvalidInputError("survival times need to be positive")
        if len(time) != n_samples:
            raise InvalidInputError(
                "the number of rows of Y does not match the number of rows of X"
            )
        if not np.isin(status, (0.0, 1.0)).all():
            raise InvalidInputError("status has to be a binary variable of 1 and 0")
        return Response(kind, time=time, status=status)

    if isinstance(Y, (pd.Series, pd.DataFrame)):
        Y = Y.to_numpy()
    y = np.asarray(Y)
    if y.ndim == 2 and y.shape[1] == 1:
        y = y.ravel()
    if y.ndim != 1:
        raise InvalidInputError("Y must be a vector for binary and continuous responses")
    if len(y) != n_samples:
        raise InvalidInputError("length of Y does not match the number of rows of X")
    try:
        y = y.astype(float)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Y must be numeric: {exc}") from exc
    if not np.isfinite(y).all():
        raise InvalidInputError("Y contains missing or non-finite values")
    if kind == "binary" and not np.isin(y, (0.0, 1.0)).all():
        raise InvalidInputError("Y must be a binary variable of 1 and 0")
    return Response(kind, y=y)


def check_penalty(penalty: str, n_predictors: int) -> str:
    """Validate the penalty kind; the network penalty needs at least 3 predictors."""
    if penalty not in PENALTY_KINDS:
        raise InvalidInputError(f"penalty must be one of {PENALTY_KINDS}, got {penalty!r}")
    if penalty == "network" and n_predictors < 3:
        raise InvalidInputError("too few variables for network penalty")
    return penalty


def check_shape_r(r: Optional[float], response: str, penalty: str) -> float:
    """Validate the MCP shape parameter, defaulting to 5."""
    r = 5.0 if r is None else float(r)
    if penalty == "lasso":
        return r
    if not np.isfinite(r) or r <= 1:
        raise InvalidInputError(f"r must be larger than 1, got {r}")
    if response == "binary" and r <= 4:
        raise InvalidInputError(f"r must be larger than 4 for binary response, got {r}")
    return r


def check_alpha_init(alpha_init: float) -> float:
    try:
        alpha_init = float(alpha_init)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"alpha.i must be a number, got {alpha_init!r}") from exc
    if not 0.0 <= alpha_init <= 1.0:
        raise InvalidInputError("alpha.i should be between 0 and 1")
    return alpha_init


def _as_int(value, name: str) -> int:
    try:
        as_int = int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidInputError(f"{name} must be an integer, got {value!r}") from exc
    if as_int != value:
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    return as_int


def check_folds(folds, n_samples: int) -> int:
    """Validate the number of folds against the sample size."""
    folds = _as_int(folds, "folds")
    if folds < 2:
        raise InvalidInputError("incorrect value of folds")
    if n_samples < folds:
        raise InvalidInputError(
            f"sample size too small for {folds}-fold cross-validation."
        )
    return folds


def check_cores(cores) -> int:
    cores = _as_int(cores, "cores")
    if cores < 1:
        raise InvalidInputError("incorrect value of ncores")
    return cores


def check_initiation(initiation: Optional[str]) -> str:
    initiation = "elnet" if initiation is None else str(initiation).lower()
    if initiation not in INITIATIONS:
        raise InvalidInputError(
            f"initiation must be one of {INITIATIONS}, got {initiation!r}"
        )
    return initiation


def check_robust(robust: bool, response: str) -> bool:
    """Downgrade ``robust`` to False for non-survival responses with a notice."""
    if robust and response != "survival":
        message = f"robust methods are not available for {response} response."
        warnings.warn(message, IncompatibleOptionWarning, stacklevel=3)
        logger.info(message)
        return False
    return bool(robust)


def check_clv(clv, n_predictors: int, response: str) -> np.ndarray:
    """Validate the indices of predictors excluded from the penalty.

    Indices are zero-based. They only apply to continuous and survival
    responses; for a binary response they are ignored with a notice.

    Returns:
        Sorted unique integer array (empty when nothing is excluded)
    """
    if clv is None:
        return np.array([], dtype=int)
    index = np.unique(np.atleast_1d(np.asarray(clv)))
    if index.size == 0:
        return np.array([], dtype=int)
    if not np.issubdtype(index.dtype, np.integer):
        raise InvalidInputError("clv must contain integer column indices")
    if index.min() < 0 or index.max() >= n_predictors:
        raise InvalidInputError(
            f"clv indices must lie in [0, {n_predictors - 1}], got {index.tolist()}"
        )
    if response == "binary":
        message = "clv only works for continuous and survival responses; ignored."
        warnings.warn(message, IncompatibleOptionWarning, stacklevel=3)
        logger.info(message)
        return np.array([], dtype=int)
    return index.astype(int)


def check_lambdas(values: Optional[Sequence[float]], name: str) -> Optional[np.ndarray]:
    """Validate a user-supplied lambda sequence; None passes through."""
    if values is None:
        return None
    arr = np.atleast_1d(np.asarray(values, dtype=float))
    if arr.ndim != 1 or arr.size == 0:
        raise InvalidInputError(f"{name} must be a non-empty sequence")
    if not np.isfinite(arr).all() or np.any(arr < 0):
        raise InvalidInputError(f"{name} must contain non-negative finite values")
    return arr


def check_adjacency(adjacency, n_predictors: int) -> Optional[np.ndarray]:
    if adjacency is None:
        return None
    W = np.asarray(adjacency, dtype=float)
    if W.shape != (n_predictors, n_predictors):
        raise InvalidInputError(
            f"adjacency must have shape ({n_predictors}, {n_predictors}), got {W.shape}"
        )
    if not np.isfinite(W).all():
        raise InvalidInputError("adjacency contains non-finite values")
    W = (W + W.T) / 2.0
    np.fill_diagonal(W, 0.0)
    return W


def standardize(X: np.ndarray, strict: bool = True) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Center and scale columns by their population standard deviation.

    Args:
        X: Design matrix
        strict: Raise on constant columns. When False (training folds), a
            constant column is centered to zero with scale 1 and its
            coefficient stays at zero in the solver.

    Returns:
        Tuple of (standardized X, column means, column scales)

    Raises:
        InvalidInputError: If ``strict`` and a column is constant
    """
    center = X.mean(axis=0)
    scale = X.std(axis=0)
    constant = scale <= 1e-12 * np.maximum(1.0, np.abs(center))
    if np.any(constant):
        if strict:
            raise InvalidInputError(
                f"X has constant columns {np.flatnonzero(constant).tolist()}; "
                "they cannot be standardized"
            )
        scale = np.where(constant, 1.0, scale)
    return (X - center) / scale, center, scale


def kaplan_meier_weights(time: np.ndarray, status: np.ndarray) -> np.ndarray:
    """Kaplan-Meier (Stute) weights of right-censored observations.

    The weight of an observation is the jump of the Kaplan-Meier estimator
    at its time; censored observations get zero weight. Ties are broken by
    placing events before censorings.

    Args:
        time: Observed times, shape (n,)
        status: Event indicators (1 = event), shape (n,)

    Returns:
        Array of shape (n,) in the original observation order

    Example:
        >>> kaplan_meier_weights(np.array([1.0, 2.0, 3.0]), np.array([1, 1, 1]))
        array([0.33333333, 0.33333333, 0.33333333])
    """
    time = np.asarray(time, dtype=float)
    status = np.asarray(status, dtype=float)
    n = len(time)
    order = np.lexsort((1.0 - status, time))
    d = status[order]
    i = np.arange(1, n + 1, dtype=float)
    factors = ((n - i) / (n - i + 1.0)) ** d
    prefix = np.concatenate(([1.0], np.cumprod(factors[:-1])))
    weights = np.empty(n)
    weights[order] = d / (n - i + 1.0) * prefix
    return weights
