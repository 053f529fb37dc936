"""Network-, MCP- and lasso-penalized regression with k-fold cross-validation."""
from regnet.config import CVConfig, ExecutionConfig, GridConfig, RegnetConfig, SolverConfig
from regnet.cross_validation import CVResult, cross_validate, cv_regnet
from regnet.exceptions import ConvergenceWarning, IncompatibleOptionWarning, InvalidInputError
from regnet.models import RegnetFit, regnet
from regnet.network import adjacency_matrix

__version__ = "0.1.0"

__all__ = [
    "CVConfig",
    "CVResult",
    "ConvergenceWarning",
    "ExecutionConfig",
    "GridConfig",
    "IncompatibleOptionWarning",
    "InvalidInputError",
    "RegnetConfig",
    "RegnetFit",
    "SolverConfig",
    "adjacency_matrix",
    "cross_validate",
    "cv_regnet",
    "regnet",
]
