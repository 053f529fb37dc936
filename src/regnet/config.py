"""Configuration for the regnet solver, lambda grids and cross-validation.

This module groups every tunable of a regnet run into dataclasses:
- SolverConfig: convergence tolerance and iteration budget of coordinate descent
- GridConfig: default lambda.1 / lambda.2 sequences and the predictor network
- CVConfig: fold partitioning
- ExecutionConfig: parallel fitting through joblib
- RegnetConfig: master configuration, serializable to JSON
"""
from __future__ import annotations
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import os
import json
import logging


logger = logging.getLogger("regnet.config")


class ExecutionMode(str, Enum):
    """Execution mode for the cross-validation sweep.

    Attributes:
        SEQUENTIAL: All (fold, lambda) fits run in the calling process
        MULTIPROCESSING: Fits are dispatched to a joblib worker pool
    """
    SEQUENTIAL = "sequential"
    MULTIPROCESSING = "mp"


@dataclass
class ExecutionConfig:
    """Configuration for parallel execution of the cross-validation sweep.

    Attributes:
        cores: Number of workers (at least 1), 1 means sequential
        backend: Joblib backend ('loky', 'threading', 'multiprocessing')
        verbose: Verbosity level for joblib (0=silent, 10=progress bar, 50=detailed)

    Example:
        >>> # Default configuration (sequential)
        >>> config = ExecutionConfig()

        >>> # Four worker processes
        >>> config = ExecutionConfig(cores=4)
        >>> config.mode
        <ExecutionMode.MULTIPROCESSING: 'mp'>
    """
    cores: int = 1
    backend: str = "loky"
    verbose: int = 0

    def __post_init__(self):
        """Validate and normalize configuration."""
        if self.cores < 1:
            raise ValueError(f"cores must be positive, got {self.cores}")

    @property
    def mode(self) -> ExecutionMode:
        """Execution mode implied by the number of cores."""
        if self.cores > 1:
            return ExecutionMode.MULTIPROCESSING
        return ExecutionMode.SEQUENTIAL

    def is_parallel(self) -> bool:
        """Check if parallel execution is enabled.

        Returns:
            True if more than one worker is requested
        """
        return self.mode == ExecutionMode.MULTIPROCESSING

    def __str__(self) -> str:
        """String representation of configuration."""
        return (
            f"ExecutionConfig(mode={self.mode.value}, "
            f"cores={self.cores}, "
            f"backend={self.backend})"
        )


@dataclass
class SolverConfig:
    """Stopping rules of the coordinate-descent solver.

    Attributes:
        tol: Convergence tolerance on the largest coefficient change of a sweep
        max_iter: Maximum number of full coordinate sweeps
        min_weight: Floor for the working weights of the Cox approximation
    """
    tol: float = 1e-4
    """Largest absolute coefficient change (standardized scale) that ends the loop."""

    max_iter: int = 1000
    """Maximum number of full sweeps over all coefficients.

    A fit that exhausts the budget returns its last iterate with
    ``converged=False``.
    """

    min_weight: float = 1e-5
    """Lower bound for the diagonal Hessian weights of the partial likelihood."""

    def __post_init__(self):
        if self.tol <= 0:
            raise ValueError(f"tol must be positive, got {self.tol}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be positive, got {self.max_iter}")


@dataclass
class GridConfig:
    """Default regularization grids and predictor network settings.

    Attributes:
        n_lambda1: Number of lambda.1 values in the default sequence
        lambda_min_ratio: Ratio of smallest to largest lambda.1
        lambda2: Default lambda.2 sequence for the network penalty
        adjacency_power: Exponent applied to correlations in the default network
    """
    n_lambda1: int = 20
    """Number of values in the auto-generated lambda.1 sequence."""

    lambda_min_ratio: Optional[float] = None
    """Smallest lambda.1 as a fraction of the largest.

    None picks 0.01 when there are more observations than predictors and
    0.05 otherwise.
    """

    lambda2: tuple[float, ...] = (0.1, 1.0, 10.0)
    """Default smoothness strengths used when the network penalty is requested."""

    adjacency_power: float = 5.0
    """Power applied to absolute correlations when building the default network."""

    def __post_init__(self):
        if self.n_lambda1 < 1:
            raise ValueError(f"n_lambda1 must be positive, got {self.n_lambda1}")
        if self.lambda_min_ratio is not None and not 0 < self.lambda_min_ratio < 1:
            raise ValueError(
                f"lambda_min_ratio must lie in (0, 1), got {self.lambda_min_ratio}"
            )
        self.lambda2 = tuple(float(v) for v in self.lambda2)


@dataclass
class CVConfig:
    """Configuration for fold partitioning.

    Attributes:
        folds: Number of cross-validation folds
        random_state: Seed for the fold assignment (None = fresh randomness)
        stratify_survival: Balance censoring status across folds for survival data
    """
    folds: int = 5
    random_state: Optional[int] = None
    stratify_survival: bool = True


@dataclass
class RegnetConfig:
    """Master configuration for a regnet cross-validation run.

    Example:
        >>> config = RegnetConfig(cv=CVConfig(folds=10, random_state=1))
        >>> config.save("configs/cv10.json")
        >>> loaded = RegnetConfig.load("configs/cv10.json")
        >>> loaded.cv.folds
        10
    """
    solver: SolverConfig = field(default_factory=SolverConfig)
    grid: GridConfig = field(default_factory=GridConfig)
    cv: CVConfig = field(default_factory=CVConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)

    description: str = ""
    """Optional description of this configuration."""

    def to_dict(self) -> dict:
        """Convert configuration to dictionary for serialization.

        Returns:
            Dictionary representation of configuration
        """
        def _dataclass_to_dict(obj):
            """Recursively convert dataclass to dict."""
            if hasattr(obj, '__dataclass_fields__'):
                return {
                    k: _dataclass_to_dict(v)
                    for k, v in obj.__dict__.items()
                }
            elif isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, tuple):
                return list(obj)
            else:
                return obj

        return _dataclass_to_dict(self)

    def save(self, path: str) -> None:
        """Save configuration to JSON file.

        Args:
            path: Path to output JSON file
        """
        config_dict = self.to_dict()
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(config_dict, f, indent=2)

        logger.info(f"Configuration saved to {path}")

    @classmethod
    def load(cls, path: str) -> "RegnetConfig":
        """Load configuration from JSON file.

        Args:
            path: Path to input JSON file

        Returns:
            RegnetConfig instance
        """
        with open(path) as f:
            data = json.load(f)

        return cls(
            solver=SolverConfig(**data['solver']),
            grid=GridConfig(**data['grid']),
            cv=CVConfig(**data['cv']),
            execution=ExecutionConfig(**data['execution']),
            description=data.get('description', '')
        )
