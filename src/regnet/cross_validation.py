"""k-fold cross-validation over the (lambda.1, lambda.2) grid.

The sweep is organised as independent tasks, one per
(fold, lambda.1, lambda.2) cell, which run either in-process or on a joblib
worker pool. Each task owns its coefficient vector; the per-fold training
data (standardized design, predictor network and starting point) are built
once before the sweep and only read by the tasks.

After all tasks return, fold errors are averaged into the CV error grid and
every pair that attains the minimum is reported, so exact ties (common for
the misclassification rate of a binary response) yield several optima.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging
import warnings
import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from regnet.config import ExecutionConfig, RegnetConfig, SolverConfig
from regnet.data import (
    Response,
    check_adjacency,
    check_alpha_init,
    check_clv,
    check_cores,
    check_design_matrix,
    check_folds,
    check_initiation,
    check_lambdas,
    check_penalty,
    check_robust,
    check_shape_r,
    make_response,
    standardize as standardize_columns,
)
from regnet.exceptions import ConvergenceWarning
from regnet.lambdas import lambda1_sequence, lambda2_sequence
from regnet.logging_config import ProgressLogger, capture_warnings, log_performance
from regnet.models import FitProblem, fit_problem, prepare_problem
from regnet.solver import make_loss
from regnet.timing import Timer
from regnet.validation import check_foldid, fold_indices, make_folds, prediction_error

logger = logging.getLogger("regnet.cv")


@dataclass
class CVResult:
    """Outcome of :func:`cross_validate`.

    Attributes:
        lambda_: Optimal pair(s), one row each, with column ``lambda1`` (and
            ``lambda2`` for the network penalty), ordered by increasing
            lambda.1 then lambda.2
        mcvm: Cross-validated error at the optimum
        cvm: Mean CV error grid; index = lambda.1 values, columns = lambda.2 values
        response: Response kind
        penalty: Penalty kind
        folds: Number of folds
        robust: Whether the LAD survival loss was fitted
        fold_errors: Held-out error of every (lambda.1, lambda.2, fold) cell (debug only)
        converged: Solver convergence flag of every cell (debug only)
        foldid: Fold assignment used (debug only)
    """
    lambda_: pd.DataFrame
    mcvm: float
    cvm: pd.DataFrame
    response: str
    penalty: str
    folds: int
    robust: bool = False
    fold_errors: Optional[np.ndarray] = None
    converged: Optional[np.ndarray] = None
    foldid: Optional[np.ndarray] = None

    @property
    def lambda1(self) -> np.ndarray:
        """lambda.1 sequence actually used (rows of ``cvm``)."""
        return self.cvm.index.to_numpy(dtype=float)

    @property
    def lambda2(self) -> np.ndarray:
        """lambda.2 sequence actually used (columns of ``cvm``)."""
        return self.cvm.columns.to_numpy(dtype=float)

    def as_dict(self) -> dict:
        """Return a dictionary with the lambda / mcvm / CVM components."""
        result = {
            "lambda": self.lambda_,
            "mcvm": float(self.mcvm),
            "CVM": self.cvm,
        }
        if self.fold_errors is not None:
            result["fold_errors"] = self.fold_errors
            result["converged"] = self.converged
            result["foldid"] = self.foldid
        return result


def select_optimal(
    cvm: np.ndarray,
    lambda1: np.ndarray,
    lambda2: np.ndarray,
) -> Tuple[List[Tuple[float, float]], float]:
    """Find every (lambda.1, lambda.2) pair attaining the minimum CV error.

    NaN cells are ignored. Pairs are returned in increasing order of
    lambda.1, then lambda.2.

    Returns:
        Tuple of (optimal pairs, minimum error); ([], nan) if every cell is NaN

    Example:
        >>> cvm = np.array([[0.2], [0.1], [0.1]])
        >>> select_optimal(cvm, np.array([0.3, 0.2, 0.1]), np.array([0.0]))
        ([(0.1, 0.0), (0.2, 0.0)], 0.1)
    """
    finite = np.isfinite(cvm)
    if not finite.any():
        return [], float("nan")
    best = float(np.min(cvm[finite]))
    rows, cols = np.nonzero(finite & (cvm == best))
    pairs = sorted({(float(lambda1[i]), float(lambda2[j])) for i, j in zip(rows, cols)})
    return pairs, best


def _prepare_fold(X, response, train_idx, penalty, initiation, alpha_init, robust,
                  unpenalized, adjacency, grid_config, random_state) -> FitProblem:
    return prepare_problem(
        X[train_idx],
        response.subset(train_idx),
        penalty,
        initiation=initiation,
        alpha_init=alpha_init,
        robust=robust,
        unpenalized=unpenalized,
        adjacency=adjacency,
        grid_config=grid_config,
        strict=False,
        random_state=random_state,
    )


def _fit_cell(
    problem: FitProblem,
    X_train: np.ndarray,
    X_test: np.ndarray,
    response_test: Response,
    fold_idx: int,
    i: int,
    j: int,
    penalty: str,
    lamb1: float,
    lamb2: float,
    r: float,
    solver_config: SolverConfig,
) -> Tuple[int, int, int, float, bool]:
    """Fit one (fold, lambda.1, lambda.2) cell and score it on the held-out fold."""
    fit = fit_problem(problem, penalty, lamb1, lamb2, r=r, solver_config=solver_config)
    error = prediction_error(
        response_test,
        X_test,
        fit.coefficients,
        fit.intercept,
        robust=problem.robust,
        X_train=X_train,
        response_train=problem.response,
    )
    return fold_idx, i, j, error, fit.converged


def cross_validate(
    X,
    Y,
    response: str = "binary",
    penalty: str = "network",
    lamb1: Optional[Sequence[float]] = None,
    lamb2: Optional[Sequence[float]] = None,
    folds: Optional[int] = None,
    r: Optional[float] = None,
    clv=None,
    initiation: Optional[str] = None,
    alpha_init: float = 1.0,
    robust: bool = False,
    cores: Optional[int] = None,
    verbose: bool = False,
    debug: bool = False,
    foldid=None,
    random_state: Optional[int] = None,
    adjacency=None,
    config: Optional[RegnetConfig] = None,
) -> CVResult:
    """k-fold cross-validation for regnet; returns the optimal lambda(s).

    Args:
        X: Design matrix (DataFrame or 2-D array) of shape (n, p)
        Y: Response. A 0/1 vector (binary), a numeric vector (continuous) or
            a two-column DataFrame / structured array with fields 'time' and
            'status' (survival)
        response: "binary", "continuous" or "survival"
        penalty: "network", "mcp" or "lasso"
        lamb1: lambda.1 sequence; computed from the data if None
        lamb2: lambda.2 sequence for the network penalty; a default grid if
            None. Forced to {0} for the other penalties
        folds: Number of folds (default from ``config``, 5)
        r: MCP shape parameter (default 5; must exceed 4 for binary response)
        clv: Zero-based indices of predictors excluded from the penalty
            (continuous and survival responses only)
        initiation: Starting point, "elnet" (default) or "zero"
        alpha_init: Elastic-net mixing parameter of the starting point, in [0, 1]
        robust: LAD loss for survival responses; ignored with a warning otherwise
        cores: Number of worker processes (default from ``config``, 1)
        verbose: Log progress at INFO and surface non-converged fits as a
            ConvergenceWarning
        debug: Attach per-fold errors, convergence flags and the fold
            assignment to the result (also surfaces non-converged fits)
        foldid: Fixed fold assignment (integers 0..k-1); overrides ``folds``
        random_state: Seed for the fold assignment
        adjacency: Predictor network of shape (p, p) for the network penalty
        config: Solver, grid, fold and execution settings

    Returns:
        CVResult with the optimal pair(s), their error and the full error grid

    Raises:
        InvalidInputError: On invalid arguments, before any fitting

    Example:
        >>> out = cross_validate(X, y, response="binary", penalty="network", r=4.5)
        >>> out.lambda_
           lambda1  lambda2
        0   0.0412      1.0
    """
    config = config or RegnetConfig()

    # Validation: everything below raises InvalidInputError before any fit
    X, _ = check_design_matrix(X)
    n, p = X.shape
    resp = make_response(Y, response, n)
    check_penalty(penalty, p)
    robust = check_robust(robust, response)
    if foldid is not None:
        foldid, folds = check_foldid(foldid, n)
    else:
        folds = check_folds(config.cv.folds if folds is None else folds, n)
    alpha_init = check_alpha_init(alpha_init)
    r = check_shape_r(r, response, penalty)
    cores = check_cores(config.execution.cores if cores is None else cores)
    initiation = check_initiation(initiation)
    unpenalized = check_clv(clv, p, response)
    adjacency = check_adjacency(adjacency, p)
    lambda1 = check_lambdas(lamb1, "lamb1")
    lambda2 = check_lambdas(lamb2, "lamb2") if penalty == "network" else np.array([0.0])
    X_std, _, _ = standardize_columns(X)

    if lambda1 is None:
        lambda1 = lambda1_sequence(
            make_loss(X_std, resp, robust, config.solver), config.grid, unpenalized
        )
    if lambda2 is None:
        lambda2 = lambda2_sequence(penalty, config.grid)

    seed = random_state if random_state is not None else config.cv.random_state
    if foldid is None:
        foldid = make_folds(resp, folds, seed, config.cv.stratify_survival)
    splits = fold_indices(foldid, folds)

    execution = ExecutionConfig(
        cores=cores,
        backend=config.execution.backend,
        verbose=config.execution.verbose,
    )
    n_cells = len(lambda1) * len(lambda2) * folds
    progress_level = logging.INFO if verbose else logging.DEBUG
    logger.log(
        progress_level,
        f"Cross-validating {response}/{penalty}{' (robust)' if robust else ''}: "
        f"{len(lambda1)} x {len(lambda2)} lambda grid, {folds} folds, {execution}",
    )

    with capture_warnings(logger):
        with Timer(logger, "Fold preparation"):
            fold_args = [
                (X, resp, tr, penalty, initiation, alpha_init, robust,
                 unpenalized, adjacency, config.grid, seed)
                for tr, _ in splits
            ]
            if execution.is_parallel():
                problems = Parallel(
                    n_jobs=min(execution.cores, folds),
                    backend=execution.backend,
                    verbose=execution.verbose,
                )(delayed(_prepare_fold)(*args) for args in fold_args)
            else:
                problems = [_prepare_fold(*args) for args in fold_args]

        tasks = [
            (problems[k], X[tr], X[te], resp.subset(te), k, i, j,
             penalty, float(l1), float(l2), r, config.solver)
            for k, (tr, te) in enumerate(splits)
            for i, l1 in enumerate(lambda1)
            for j, l2 in enumerate(lambda2)
        ]

        with Timer(logger, f"CV sweep over {n_cells} fits"):
            if execution.is_parallel():
                outcomes = Parallel(
                    n_jobs=execution.cores,
                    backend=execution.backend,
                    verbose=execution.verbose,
                )(delayed(_fit_cell)(*task) for task in tasks)
            else:
                progress = ProgressLogger(
                    logger, total=n_cells, desc="CV fits",
                    log_interval=max(1, n_cells // 10), level=progress_level,
                )
                outcomes = []
                for task in tasks:
                    outcomes.append(_fit_cell(*task))
                    progress.update(1)

    fold_errors = np.full((len(lambda1), len(lambda2), folds), np.nan)
    converged = np.zeros((len(lambda1), len(lambda2), folds), dtype=bool)
    for k, i, j, error, ok in outcomes:
        fold_errors[i, j, k] = error if np.isfinite(error) else np.nan
        converged[i, j, k] = ok

    cvm = fold_errors.mean(axis=2)
    pairs, mcvm = select_optimal(cvm, lambda1, lambda2)

    n_failed = int((~converged).sum())
    if n_failed:
        message = (
            f"{n_failed} of {n_cells} fits did not converge within "
            f"{config.solver.max_iter} iterations; best-effort coefficients were used"
        )
        if verbose or debug:
            logger.warning(message)
            warnings.warn(message, ConvergenceWarning, stacklevel=2)
        else:
            logger.debug(message)

    if not pairs:
        logger.warning("Every cell of the CV error grid is NaN; no lambda selected")
    elif len(pairs) > 1:
        logger.log(progress_level, f"{len(pairs)} lambda values tie at the minimum CV error")

    columns = ["lambda1", "lambda2"] if penalty == "network" else ["lambda1"]
    selected = pd.DataFrame(
        [pair[: len(columns)] for pair in pairs], columns=columns, dtype=float
    )
    cvm_frame = pd.DataFrame(
        cvm,
        index=pd.Index(lambda1, name="lambda1"),
        columns=pd.Index(lambda2, name="lambda2"),
    )
    log_performance(logger, "Cross-validation finished", cells=n_cells, mcvm=mcvm,
                    n_optimal=len(pairs), not_converged=n_failed)

    result = CVResult(
        lambda_=selected,
        mcvm=mcvm,
        cvm=cvm_frame,
        response=response,
        penalty=penalty,
        folds=folds,
        robust=robust,
    )
    if debug:
        result.fold_errors = fold_errors
        result.converged = converged
        result.foldid = foldid
    return result


cv_regnet = cross_validate
