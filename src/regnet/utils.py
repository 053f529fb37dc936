from __future__ import annotations
import os
import datetime as dt
from typing import Dict, Optional, TYPE_CHECKING
import pandas as pd

if TYPE_CHECKING:
    from regnet.cross_validation import CVResult
    from regnet.models import RegnetFit


def ensure_dir(path: str):
    """Create directory (and parents) if it doesn't exist."""
    os.makedirs(path, exist_ok=True)


def versioned_name(base: str, prefix: Optional[str] = None) -> str:
    """Generate a timestamped name for run outputs.

    Args:
        base: Base name without extension
        prefix: Optional prefix such as the response kind

    Returns:
        Name in format "[prefix_]base_YYYYMMDD_HHMMSS"

    Example:
        >>> versioned_name("cv", prefix="survival")
        'survival_cv_20250123_143052'
    """
    ts = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    if prefix:
        return f"{prefix}_{base}_{ts}"
    return f"{base}_{ts}"


def cv_error_long(result: "CVResult") -> pd.DataFrame:
    """CV error grid in long format, one row per (lambda1, lambda2) cell."""
    grid = result.cvm.copy()
    grid.columns = grid.columns.astype(float).rename(None)
    return grid.reset_index().melt(
        id_vars="lambda1", var_name="lambda2", value_name="cv_error"
    )


def save_cv_results(result: "CVResult", outdir: str) -> Dict[str, str]:
    """Write the CV error grid and the selected lambda(s) to CSV.

    Files written:
        - cv_error_grid.csv: lambda1 rows by lambda2 columns
        - selected_lambda.csv: optimal pair(s) and the minimum error

    Args:
        result: Output of :func:`regnet.cross_validate`
        outdir: Output directory (created if missing)

    Returns:
        Dictionary mapping "cv_error_grid" / "selected_lambda" to file paths
    """
    ensure_dir(outdir)
    paths = {
        "cv_error_grid": os.path.join(outdir, "cv_error_grid.csv"),
        "selected_lambda": os.path.join(outdir, "selected_lambda.csv"),
    }
    result.cvm.to_csv(paths["cv_error_grid"])
    selected = result.lambda_.copy()
    selected["mcvm"] = result.mcvm
    selected.to_csv(paths["selected_lambda"], index=False)
    return paths


def save_coefficients(fit: "RegnetFit", outdir: str, name: str = "coefficients") -> str:
    """Write fitted coefficients (with the intercept first) to CSV."""
    ensure_dir(outdir)
    path = os.path.join(outdir, f"{name}.csv")
    coef = fit.to_series()
    table = pd.concat([pd.Series({"(Intercept)": fit.intercept}), coef])
    table.rename("coefficient").to_frame().to_csv(path, index_label="predictor")
    return path
