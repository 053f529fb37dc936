"""Pytest configuration and shared fixtures for regnet tests.

Synthetic data sets with a few strong predictors and several noise
predictors, one per response type, plus helpers for temporary output.
"""
import logging
import pytest
import pandas as pd
import numpy as np
from scipy.special import expit


@pytest.fixture
def continuous_data():
    """Linear model with 3 active predictors out of 8.

    Returns:
        Tuple of (X DataFrame, y array, true coefficients)
    """
    rng = np.random.default_rng(11)
    n, p = 80, 8
    X = rng.normal(size=(n, p))
    beta = np.array([1.5, -1.0, 0.8, 0.0, 0.0, 0.0, 0.0, 0.0])
    y = 0.5 + X @ beta + rng.normal(scale=0.5, size=n)
    return pd.DataFrame(X, columns=[f"g{j}" for j in range(p)]), y, beta


@pytest.fixture
def binary_data():
    """Logistic model with 2 active predictors out of 6.

    Returns:
        Tuple of (X array, y array of 0/1)
    """
    rng = np.random.default_rng(7)
    n, p = 100, 6
    X = rng.normal(size=(n, p))
    beta = np.array([2.0, -2.0, 0.0, 0.0, 0.0, 0.0])
    y = rng.binomial(1, expit(X @ beta)).astype(float)
    return X, y


@pytest.fixture
def survival_data():
    """Proportional hazards data with 2 active predictors and ~25% censoring.

    Returns:
        Tuple of (X array, Y DataFrame with 'time' and 'status' columns)
    """
    rng = np.random.default_rng(3)
    n, p = 90, 6
    X = rng.normal(size=(n, p))
    beta = np.array([1.0, -1.0, 0.0, 0.0, 0.0, 0.0])
    event_time = rng.exponential(scale=np.exp(-X @ beta))
    censor_time = rng.exponential(scale=3.0, size=n)
    time = np.minimum(event_time, censor_time) + 1e-3
    status = (event_time <= censor_time).astype(int)
    return X, pd.DataFrame({"time": time, "status": status})


@pytest.fixture
def aft_data():
    """Uncensored log-linear survival times for the robust loss.

    Returns:
        Tuple of (X array, Y DataFrame, true coefficients)
    """
    rng = np.random.default_rng(5)
    n, p = 80, 4
    X = rng.normal(size=(n, p))
    beta = np.array([1.0, -0.8, 0.0, 0.0])
    time = np.exp(1.0 + X @ beta + rng.laplace(scale=0.1, size=n))
    Y = pd.DataFrame({"time": time, "status": np.ones(n, dtype=int)})
    return X, Y, beta


@pytest.fixture
def temp_output_dir(tmp_path):
    """Create temporary directory for written results."""
    output_dir = tmp_path / "outputs"
    output_dir.mkdir(exist_ok=True)
    return output_dir


@pytest.fixture(autouse=True)
def reset_regnet_logger():
    """Undo handler changes made by setup_logging so caplog keeps working."""
    yield
    logger = logging.getLogger("regnet")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def cleanup_mlflow_runs():
    """Close any MLflow run a test left open and reset the tracking URI."""
    import mlflow
    yield
    if mlflow.active_run() is not None:
        mlflow.end_run()
    mlflow.set_tracking_uri(None)
