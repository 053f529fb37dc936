"""MLflow tracking of cross-validation runs.

Tracking is optional and never fatal: every MLflow call goes through
:func:`_guarded`, which logs a warning and reports failure instead of
raising. The CSV files written by :mod:`regnet.utils` remain the primary
record of a run.
"""
from __future__ import annotations
import os
import json
import logging
import tempfile
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING
import mlflow
import mlflow.exceptions

if TYPE_CHECKING:
    from regnet.cross_validation import CVResult

EXPERIMENT_NAME = "regnet"

logger = logging.getLogger("regnet.tracking")


def start_run(run_name: str, tags: Dict[str, str] | None = None):
    """Start an MLflow run under the regnet experiment.

    Example:
        >>> with start_run("survival_network_20250123_143052"):
        ...     track_cv_result(result, {"response": "survival"})
    """
    mlflow.set_experiment(EXPERIMENT_NAME)
    return mlflow.start_run(run_name=run_name, tags=tags)


def _guarded(what: str, action: Callable[[], Any]) -> bool:
    try:
        action()
        return True
    except mlflow.exceptions.MlflowException as e:
        logger.warning(f"MLflow {what} logging failed: {e}", extra={"category": "mlflow_error"})
    except OSError as e:
        logger.error(f"MLflow {what} logging failed: {e}", extra={"category": "mlflow_error"})
    return False


def safe_log_params(params: Dict[str, Any]) -> bool:
    """Log parameters; values MLflow cannot store are stringified."""
    return _guarded("params", lambda: mlflow.log_params({k: str(v) for k, v in params.items()}))


def safe_log_metrics(metrics: Dict[str, float], step: Optional[int] = None) -> bool:
    """Log metrics, skipping NaN values."""
    finite = {k: float(v) for k, v in metrics.items() if v == v}
    return _guarded("metrics", lambda: mlflow.log_metrics(finite, step=step))


def safe_log_artifact(path: str) -> bool:
    if not os.path.exists(path):
        logger.warning(f"Artifact not found, skipping: {path}")
        return False
    return _guarded(f"artifact {path}", lambda: mlflow.log_artifact(path))


def log_dict(name: str, d: Dict[str, Any]) -> bool:
    """Log a dictionary as ``<name>.json``."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, f"{name}.json")
        with open(path, "w") as f:
            json.dump(d, f, indent=2, default=str)
        return safe_log_artifact(path)


def track_cv_result(
    result: "CVResult",
    params: Dict[str, Any],
    artifact_paths: Optional[Dict[str, str]] = None,
) -> bool:
    """Record one cross-validation run in the active MLflow run.

    Logged items:
        - ``params`` as run parameters
        - ``mcvm`` and ``n_optimal``
        - ``selected_lambda1`` / ``selected_lambda2``, one step per tied optimum
        - ``cv_error_min_over_lambda2``, one step per lambda.1 value
        - the files in ``artifact_paths`` and the grid as ``cv_error_grid.json``

    Returns:
        True if every MLflow call succeeded
    """
    ok = safe_log_params(params)
    ok &= safe_log_metrics({"mcvm": result.mcvm, "n_optimal": float(len(result.lambda_))})
    for step, row in enumerate(result.lambda_.itertuples(index=False)):
        ok &= safe_log_metrics({f"selected_{k}": v for k, v in row._asdict().items()}, step=step)
    for step, error in enumerate(result.cvm.min(axis=1, skipna=True).to_numpy()):
        ok &= safe_log_metrics({"cv_error_min_over_lambda2": error}, step=step)
    for path in (artifact_paths or {}).values():
        ok &= safe_log_artifact(path)
    grid = {str(l1): {str(l2): v for l2, v in row.items()} for l1, row in result.cvm.iterrows()}
    ok &= log_dict("cv_error_grid", grid)
    return bool(ok)
