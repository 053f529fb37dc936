"""Cyclic coordinate descent for penalized GLMs.

One solver invocation fits a single (lambda.1, lambda.2) pair for one
response likelihood on a standardized design matrix:

- binary: logistic log-likelihood, majorized with the curvature bound 1/4
- continuous: least squares
- survival: Cox partial likelihood (Breslow ties), one diagonal quadratic
  approximation per sweep
- survival, robust: Kaplan-Meier weighted least absolute deviation on the
  log-time scale

The penalty arrives as a strategy object from :mod:`regnet.penalties`, so
the loss classes below contain no penalty-specific branches. Every loss
shares the same contract: ``fit(penalty, beta, intercept) -> SolverResult``.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Type
import logging
import numpy as np
from scipy.special import expit

from regnet.config import SolverConfig
from regnet.data import Response, kaplan_meier_weights
from regnet.penalties import Penalty

logger = logging.getLogger("regnet.solver")

_TINY = 1e-10
_MAX_ETA = 50.0


@dataclass
class SolverResult:
    """Outcome of one coordinate-descent fit.

    Attributes:
        coefficients: Coefficient vector on the scale of the design matrix
        intercept: Intercept (0.0 for the Cox model)
        converged: Whether the tolerance was reached within the sweep budget
        n_iter: Number of sweeps performed
    """
    coefficients: np.ndarray
    intercept: float
    converged: bool
    n_iter: int


def weighted_median(values: np.ndarray, weights: np.ndarray) -> float:
    """Lower weighted median of ``values``."""
    order = np.argsort(values)
    cum = np.cumsum(weights[order])
    k = int(np.searchsorted(cum, 0.5 * cum[-1]))
    return float(values[order][min(k, len(values) - 1)])


def l1_quadratic_argmin(points: np.ndarray, weights: np.ndarray, q: float = 0.0, m: float = 0.0) -> float:
    """Minimize ``sum_i weights_i |b - points_i| + q (b - m)^2`` over scalar b.

    The objective is convex and piecewise quadratic, so its minimizer is the
    root of the monotone subgradient. With ``q = 0`` this is a weighted median.

    Args:
        points: Breakpoints of the absolute-value terms
        weights: Non-negative weights of the absolute-value terms
        q: Non-negative curvature of the quadratic term
        m: Center of the quadratic term
    """
    order = np.argsort(points)
    z = points[order]
    c = weights[order]
    cum = np.cumsum(c)
    total = cum[-1]
    below = np.concatenate(([0.0], cum[:-1]))
    right = 2.0 * cum - total + 2.0 * q * (z - m)
    left = 2.0 * below - total + 2.0 * q * (z - m)

    k = int(np.searchsorted(right >= 0.0, True))
    if k == len(z):
        # subgradient still negative past the last breakpoint
        return m - total / (2.0 * q)
    if left[k] <= 0.0:
        return float(z[k])
    # root lies strictly between z[k-1] and z[k], where the slope is constant
    slope = 2.0 * below[k] - total
    return m - slope / (2.0 * q)


class Loss:
    """Common state of a loss: design matrix, response and stopping rules."""

    has_intercept = True

    def __init__(self, X: np.ndarray, response: Response, config: Optional[SolverConfig] = None):
        self.X = X
        self.response = response
        self.config = config or SolverConfig()
        self.n, self.p = X.shape

    def null_intercept(self) -> float:
        raise NotImplementedError

    def null_gradient(self) -> np.ndarray:
        """Gradient of the loss w.r.t. each coefficient at beta = 0."""
        raise NotImplementedError

    def fit(self, penalty: Penalty, beta: Optional[np.ndarray] = None,
            intercept: Optional[float] = None) -> SolverResult:
        raise NotImplementedError

    def _start(self, beta, intercept):
        beta = np.zeros(self.p) if beta is None else np.array(beta, dtype=float, copy=True)
        if intercept is None or not self.has_intercept:
            intercept = self.null_intercept() if self.has_intercept else 0.0
        return beta, float(intercept)

    def _sweep(self, penalty: Penalty, beta: np.ndarray, resid: np.ndarray,
               weights: np.ndarray, curvature: np.ndarray) -> float:
        """One cyclic pass over coordinates of a weighted least-squares surrogate.

        ``resid`` is the working residual (working response minus linear
        predictor) and is updated in place along with ``beta``.
        """
        max_change = 0.0
        for j in range(self.p):
            a = curvature[j]
            xj = self.X[:, j]
            if a <= _TINY:
                if beta[j] != 0.0:
                    resid += beta[j] * xj
                    beta[j] = 0.0
                continue
            g = (weights * xj) @ resid / self.n + a * beta[j]
            new = penalty.update(j, g, a, beta)
            delta = new - beta[j]
            if delta != 0.0:
                resid -= delta * xj
                beta[j] = new
                max_change = max(max_change, abs(delta))
        return max_change

    def _result(self, beta, intercept, converged, n_iter):
        if not converged:
            logger.debug(
                f"{type(self).__name__} stopped after {n_iter} sweeps without converging"
            )
        return SolverResult(beta, intercept, converged, n_iter)


class GaussianLoss(Loss):
    """Squared-error loss ``(1 / 2n) * sum (y - b0 - X beta)^2``."""

    def null_intercept(self):
        return float(self.response.y.mean())

    def null_gradient(self):
        return self.X.T @ (self.response.y - self.response.y.mean()) / self.n

    def fit(self, penalty, beta=None, intercept=None):
        beta, b0 = self._start(beta, intercept)
        resid = self.response.y - b0 - self.X @ beta
        weights = np.ones(self.n)
        curvature = (self.X**2).mean(axis=0)
        converged = False
        it = 0
        while it < self.config.max_iter:
            it += 1
            shift = resid.mean()
            b0 += shift
            resid -= shift
            change = max(abs(shift), self._sweep(penalty, beta, resid, weights, curvature))
            if not np.isfinite(change):
                break
            if change < self.config.tol:
                converged = True
                break
        return self._result(beta, b0, converged, it)


class LogisticLoss(Loss):
    """Negative logistic log-likelihood divided by n.

    Each sweep majorizes the loss by a quadratic with the global curvature
    bound 1/4, which keeps every coordinate update a descent step.
    """

    _BOUND = 0.25

    def null_intercept(self):
        ybar = float(np.clip(self.response.y.mean(), 1e-6, 1.0 - 1e-6))
        return float(np.log(ybar / (1.0 - ybar)))

    def null_gradient(self):
        return self.X.T @ (self.response.y - self.response.y.mean()) / self.n

    def fit(self, penalty, beta=None, intercept=None):
        beta, b0 = self._start(beta, intercept)
        y = self.response.y
        weights = np.full(self.n, self._BOUND)
        curvature = self._BOUND * (self.X**2).mean(axis=0)
        converged = False
        it = 0
        while it < self.config.max_iter:
            it += 1
            eta = np.clip(b0 + self.X @ beta, -_MAX_ETA, _MAX_ETA)
            resid = (y - expit(eta)) / self._BOUND
            shift = resid.mean()
            b0 += shift
            resid -= shift
            change = max(abs(shift), self._sweep(penalty, beta, resid, weights, curvature))
            if not np.isfinite(change):
                break
            if change < self.config.tol:
                converged = True
                break
        return self._result(beta, b0, converged, it)


def cox_derivatives(eta: np.ndarray, time: np.ndarray, status: np.ndarray):
    """Gradient and diagonal Hessian of the Cox log partial likelihood in eta.

    Ties are handled with the Breslow approximation.

    Returns:
        Tuple of (gradient, negative diagonal Hessian), each of shape (n,)
    """
    order = np.argsort(time, kind="mergesort")
    t = time[order]
    d = status[order]
    e = np.exp(np.clip(eta[order], -_MAX_ETA, _MAX_ETA))

    # risk-set sums: S0_i = sum_{k: t_k >= t_i} exp(eta_k)
    first = np.searchsorted(t, t, side="left")
    last = np.searchsorted(t, t, side="right") - 1
    s0 = np.cumsum(e[::-1])[::-1][first]

    # sums over events at or before each time
    c1 = np.cumsum(d / s0)[last]
    c2 = np.cumsum(d / s0**2)[last]

    grad = np.empty_like(eta)
    hess = np.empty_like(eta)
    grad[order] = d - e * c1
    hess[order] = e * c1 - e**2 * c2
    return grad, hess


def breslow_cumulative_hazard(eta: np.ndarray, time: np.ndarray, status: np.ndarray):
    """Breslow estimate of the baseline cumulative hazard.

    Returns:
        Tuple of (event times in increasing order, cumulative hazard at each)
    """
    order = np.argsort(time, kind="mergesort")
    t = time[order]
    d = status[order]
    e = np.exp(np.clip(eta[order], -_MAX_ETA, _MAX_ETA))
    first = np.searchsorted(t, t, side="left")
    s0 = np.cumsum(e[::-1])[::-1][first]
    hazard = np.cumsum(d / s0)
    return t, hazard


class CoxLoss(Loss):
    """Negative Cox log partial likelihood divided by n (no intercept)."""

    has_intercept = False

    def null_intercept(self):
        return 0.0

    def null_gradient(self):
        grad, _ = cox_derivatives(np.zeros(self.n), self.response.time, self.response.status)
        return self.X.T @ grad / self.n

    def fit(self, penalty, beta=None, intercept=None):
        beta, _ = self._start(beta, None)
        time, status = self.response.time, self.response.status
        converged = False
        it = 0
        while it < self.config.max_iter:
            it += 1
            eta = self.X @ beta
            grad, hess = cox_derivatives(eta, time, status)
            weights = np.maximum(hess, self.config.min_weight)
            resid = grad / weights
            curvature = weights @ self.X**2 / self.n
            change = self._sweep(penalty, beta, resid, weights, curvature)
            if not np.isfinite(change) or not np.isfinite(beta).all():
                break
            if change < self.config.tol:
                converged = True
                break
        return self._result(beta, 0.0, converged, it)


class LADLoss(Loss):
    """Kaplan-Meier weighted absolute deviation of log survival time.

    Censored observations receive zero weight, so only events enter the
    loss. Each coordinate update is the exact minimizer of the weighted
    absolute deviations plus the linearized sparsity term and the network
    quadratic term.
    """

    def __init__(self, X, response, config=None):
        super().__init__(X, response, config)
        self.y = np.log(response.time)
        self.w = kaplan_meier_weights(response.time, response.status)
        self.active = self.w > 0

    def null_intercept(self):
        if not self.active.any():
            return 0.0
        return weighted_median(self.y[self.active], self.w[self.active])

    def null_gradient(self):
        sign = np.sign(self.y - self.null_intercept())
        return self.X.T @ (self.w * sign)

    def fit(self, penalty, beta=None, intercept=None):
        beta, b0 = self._start(beta, intercept)
        if not self.active.any():
            return SolverResult(np.zeros(self.p), 0.0, True, 0)
        X = self.X[self.active]
        y = self.y[self.active]
        w = self.w[self.active]
        resid = y - b0 - X @ beta
        converged = False
        it = 0
        while it < self.config.max_iter:
            it += 1
            new_b0 = weighted_median(resid + b0, w)
            resid -= new_b0 - b0
            max_change = abs(new_b0 - b0)
            b0 = new_b0
            for j in range(self.p):
                xj = X[:, j]
                nz = np.abs(xj) > _TINY
                if not nz.any():
                    continue
                partial = resid + xj * beta[j]
                points = partial[nz] / xj[nz]
                weights = w[nz] * np.abs(xj[nz])
                slope = penalty.lla_weight(j, beta[j])
                if slope > 0.0:
                    points = np.append(points, 0.0)
                    weights = np.append(weights, slope)
                quad = penalty.quadratic(j, beta)
                q, m = quad if quad is not None else (0.0, 0.0)
                new = l1_quadratic_argmin(points, weights, q, m)
                delta = new - beta[j]
                if delta != 0.0:
                    resid -= delta * xj
                    beta[j] = new
                    max_change = max(max_change, abs(delta))
            if not np.isfinite(max_change):
                break
            if max_change < self.config.tol:
                converged = True
                break
        return self._result(beta, b0, converged, it)


LOSSES: Dict[str, Type[Loss]] = {
    "binary": LogisticLoss,
    "continuous": GaussianLoss,
    "survival": CoxLoss,
    "survival_robust": LADLoss,
}


def make_loss(X: np.ndarray, response: Response, robust: bool = False,
              config: Optional[SolverConfig] = None) -> Loss:
    """Select the loss variant for a response kind and robustness setting."""
    key = response.kind
    if key == "survival" and robust:
        key = "survival_robust"
    return LOSSES[key](X, response, config)


def solve(
    X: np.ndarray,
    response: Response,
    penalty: Penalty,
    beta: Optional[np.ndarray] = None,
    intercept: Optional[float] = None,
    robust: bool = False,
    config: Optional[SolverConfig] = None,
) -> SolverResult:
    """Fit one penalized model by cyclic coordinate descent.

    Args:
        X: Standardized design matrix of shape (n_samples, n_predictors)
        response: Validated response
        penalty: Penalty strategy for one (lambda.1, lambda.2) pair
        beta: Initial coefficients (zeros if None)
        intercept: Initial intercept (intercept-only fit if None)
        robust: Use the LAD loss for survival responses
        config: Stopping rules

    Returns:
        SolverResult with the final iterate; ``converged`` is False if the
        sweep budget ran out first
    """
    return make_loss(X, response, robust, config).fit(penalty, beta, intercept)
