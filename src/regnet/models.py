from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, List
import logging
import numpy as np
import pandas as pd
from scipy.special import expit

from regnet.config import GridConfig, SolverConfig
from regnet.data import (
    Response,
    check_adjacency,
    check_alpha_init,
    check_clv,
    check_design_matrix,
    check_initiation,
    check_penalty,
    check_robust,
    check_shape_r,
    make_response,
    standardize as standardize_columns,
)
from regnet.exceptions import InvalidInputError
from regnet.initialization import initial_coefficients
from regnet.logging_config import capture_warnings
from regnet.network import adjacency_matrix
from regnet.penalties import make_penalty
from regnet.solver import solve

logger = logging.getLogger("regnet.models")


@dataclass
class FitProblem:
    """Training data prepared once and shared by every lambda pair.

    Attributes:
        X: Standardized design matrix
        center: Column means removed from X
        scale: Column scales X was divided by
        response: Training response
        beta0: Initial coefficients on the standardized scale
        intercept0: Initial intercept (None = intercept-only start)
        adjacency: Predictor network (network penalty only)
        unpenalized: Predictors excluded from the penalty
        robust: Fit the LAD survival loss
    """
    X: np.ndarray
    center: np.ndarray
    scale: np.ndarray
    response: Response
    beta0: np.ndarray
    intercept0: Optional[float]
    adjacency: Optional[np.ndarray]
    unpenalized: np.ndarray
    robust: bool = False


def prepare_problem(
    X: np.ndarray,
    response: Response,
    penalty: str,
    initiation: str = "elnet",
    alpha_init: float = 1.0,
    robust: bool = False,
    unpenalized: Optional[np.ndarray] = None,
    adjacency: Optional[np.ndarray] = None,
    grid_config: Optional[GridConfig] = None,
    standardize: bool = True,
    strict: bool = True,
    random_state: Optional[int] = None,
) -> FitProblem:
    """Standardize the training data, build the network and the starting point.

    Args:
        X: Training design matrix on the original scale
        response: Training response
        penalty: Penalty kind
        initiation: "elnet" or "zero"
        alpha_init: Elastic-net mixing parameter for the starting point
        robust: Fit the LAD survival loss
        unpenalized: Predictors excluded from the penalty
        adjacency: User-supplied predictor network; built from X if None
        grid_config: Source of the default network power
        standardize: Center and scale the columns of X
        strict: Reject constant columns instead of freezing them at zero
        random_state: Seed for stochastic initializers

    Returns:
        FitProblem ready for :func:`fit_problem`
    """
    grid_config = grid_config or GridConfig()
    if standardize:
        X_std, center, scale = standardize_columns(X, strict=strict)
    else:
        X_std, center, scale = X, np.zeros(X.shape[1]), np.ones(X.shape[1])

    network = None
    if penalty == "network":
        network = adjacency if adjacency is not None else adjacency_matrix(
            X, power=grid_config.adjacency_power
        )

    beta0, intercept0 = initial_coefficients(
        X_std, response, initiation, alpha_init, robust, random_state
    )
    unpenalized = np.array([], dtype=int) if unpenalized is None else unpenalized
    return FitProblem(
        X=X_std,
        center=center,
        scale=scale,
        response=response,
        beta0=beta0,
        intercept0=intercept0,
        adjacency=network,
        unpenalized=unpenalized,
        robust=robust,
    )


@dataclass
class RegnetFit:
    """A fitted regnet model on the original predictor scale.

    Attributes:
        coefficients: Coefficient vector, one entry per predictor
        intercept: Intercept (0.0 for the Cox model)
        converged: Whether the solver reached its tolerance
        n_iter: Number of coordinate sweeps performed
        response: Response kind
        penalty: Penalty kind
        lamb1: Sparsity strength
        lamb2: Smoothness strength (0 unless the network penalty is used)
        robust: Whether the LAD survival loss was fitted
        feature_names: Predictor names
    """
    coefficients: np.ndarray
    intercept: float
    converged: bool
    n_iter: int
    response: str
    penalty: str
    lamb1: float
    lamb2: float = 0.0
    robust: bool = False
    feature_names: List[str] = field(default_factory=list)

    def linear_predictor(self, X) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        return self.intercept + X @ self.coefficients

    def predict(self, X) -> np.ndarray:
        """Predict from a new design matrix.

        Returns:
            Event probabilities for a binary response, the fitted mean for a
            continuous response, the log-time prediction for robust survival
            and the log relative hazard for the Cox model
        """
        eta = self.linear_predictor(X)
        if self.response == "binary":
            return expit(eta)
        return eta

    def to_series(self) -> pd.Series:
        """Coefficients labelled by predictor name."""
        names = self.feature_names or [f"V{j + 1}" for j in range(len(self.coefficients))]
        return pd.Series(self.coefficients, index=names, name="coefficient")

    def as_dict(self) -> dict:
        return {
            "b0": float(self.intercept),
            "coeff": self.to_series().to_dict(),
            "converged": bool(self.converged),
            "n_iter": int(self.n_iter),
            "lamb.1": float(self.lamb1),
            "lamb.2": float(self.lamb2),
        }


def fit_problem(
    problem: FitProblem,
    penalty: str,
    lamb1: float,
    lamb2: float = 0.0,
    r: float = 5.0,
    solver_config: Optional[SolverConfig] = None,
    feature_names: Optional[List[str]] = None,
) -> RegnetFit:
    """Fit one (lambda.1, lambda.2) pair and map coefficients back to the original scale."""
    if penalty != "network":
        lamb2 = 0.0
    pen = make_penalty(
        penalty,
        lamb1,
        lamb2,
        problem.X.shape[1],
        r=r,
        unpenalized=problem.unpenalized,
        adjacency=problem.adjacency,
    )
    result = solve(
        problem.X,
        problem.response,
        pen,
        beta=problem.beta0,
        intercept=problem.intercept0,
        robust=problem.robust,
        config=solver_config,
    )
    coefficients = result.coefficients / problem.scale
    intercept = result.intercept - float(coefficients @ problem.center)
    if problem.response.kind == "survival" and not problem.robust:
        intercept = 0.0
    return RegnetFit(
        coefficients=coefficients,
        intercept=intercept,
        converged=result.converged,
        n_iter=result.n_iter,
        response=problem.response.kind,
        penalty=penalty,
        lamb1=float(lamb1),
        lamb2=float(lamb2),
        robust=problem.robust,
        feature_names=list(feature_names or []),
    )


def regnet(
    X,
    Y,
    response: str = "binary",
    penalty: str = "network",
    lamb1: float = 0.1,
    lamb2: float = 0.0,
    r: Optional[float] = None,
    clv=None,
    initiation: Optional[str] = None,
    alpha_init: float = 1.0,
    robust: bool = False,
    standardize: bool = True,
    adjacency=None,
    solver_config: Optional[SolverConfig] = None,
    grid_config: Optional[GridConfig] = None,
    random_state: Optional[int] = None,
) -> RegnetFit:
    """Fit a network-, MCP- or lasso-penalized model for one lambda pair.

    Args:
        X: Design matrix (DataFrame or 2-D array) of shape (n, p)
        Y: Response. A 0/1 vector (binary), a numeric vector (continuous) or
            a two-column DataFrame / structured array with fields 'time' and
            'status' (survival)
        response: "binary", "continuous" or "survival"
        penalty: "network", "mcp" or "lasso"
        lamb1: Sparsity strength
        lamb2: Smoothness strength; ignored unless penalty is "network"
        r: MCP shape parameter (default 5; must exceed 4 for binary response)
        clv: Zero-based indices of predictors excluded from the penalty
            (continuous and survival responses only)
        initiation: Starting point, "elnet" (default) or "zero"
        alpha_init: Elastic-net mixing parameter for the starting point
        robust: LAD loss for survival responses
        standardize: Standardize predictors before fitting
        adjacency: Predictor network of shape (p, p); defaults to the
            correlation network of X
        solver_config: Solver stopping rules
        grid_config: Network settings
        random_state: Seed for stochastic initializers

    Returns:
        RegnetFit with coefficients on the original scale

    Raises:
        InvalidInputError: On invalid arguments, before any fitting

    Example:
        >>> fit = regnet(X, y, "continuous", "mcp", lamb1=0.2)
        >>> fit.to_series().ne(0).sum()
        4
    """
    X, names = check_design_matrix(X)
    n, p = X.shape
    resp = make_response(Y, response, n)
    check_penalty(penalty, p)
    robust = check_robust(robust, response)
    alpha_init = check_alpha_init(alpha_init)
    r = check_shape_r(r, response, penalty)
    initiation = check_initiation(initiation)
    unpenalized = check_clv(clv, p, response)
    adjacency = check_adjacency(adjacency, p)
    if not np.isfinite(lamb1) or lamb1 < 0:
        raise InvalidInputError(f"lamb1 must be a non-negative number, got {lamb1}")
    if penalty == "network" and (not np.isfinite(lamb2) or lamb2 < 0):
        raise InvalidInputError(f"lamb2 must be a non-negative number, got {lamb2}")

    # Initializer warnings (scikit-learn convergence notices) go to the log
    with capture_warnings(logger):
        problem = prepare_problem(
            X,
            resp,
            penalty,
            initiation=initiation,
            alpha_init=alpha_init,
            robust=robust,
            unpenalized=unpenalized,
            adjacency=adjacency,
            grid_config=grid_config,
            standardize=standardize,
            random_state=random_state,
        )
        fit = fit_problem(
            problem, penalty, lamb1, lamb2, r=r,
            solver_config=solver_config, feature_names=names,
        )
    logger.debug(
        f"regnet fit: response={response}, penalty={penalty}, lamb1={lamb1}, "
        f"lamb2={fit.lamb2}, nonzero={int(np.count_nonzero(fit.coefficients))}, "
        f"converged={fit.converged}"
    )
    return fit
