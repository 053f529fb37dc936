"""Predictor network used by the network penalty.

The network is a signed, weighted adjacency matrix over predictors. Its
absolute entries weight the smoothness term and its signs decide whether
two connected coefficients are pulled towards each other (positive
correlation) or towards opposite values (negative correlation).
"""
from __future__ import annotations
import numpy as np


def adjacency_matrix(X: np.ndarray, power: float = 5.0) -> np.ndarray:
    """Build the default predictor network from pairwise correlations.

    Args:
        X: Design matrix of shape (n_samples, n_predictors)
        power: Exponent applied to the absolute correlation. Larger values
            keep only strongly correlated pairs effectively connected

    Returns:
        Symmetric array of shape (n_predictors, n_predictors) with entries
        ``sign(r_jk) * |r_jk| ** power`` and a zero diagonal

    Example:
        >>> W = adjacency_matrix(X, power=5)
        >>> np.allclose(W, W.T)
        True
    """
    X = np.asarray(X, dtype=float)
    with np.errstate(invalid="ignore", divide="ignore"):
        corr = np.corrcoef(X, rowvar=False)
    corr = np.atleast_2d(np.nan_to_num(corr, nan=0.0))
    W = np.sign(corr) * np.abs(corr) ** power
    np.fill_diagonal(W, 0.0)
    return W


def network_degrees(W: np.ndarray) -> np.ndarray:
    """Total absolute edge weight of every predictor."""
    return np.abs(W).sum(axis=1)


def restrict_network(W: np.ndarray, excluded: np.ndarray) -> np.ndarray:
    """Disconnect the predictors in ``excluded`` from the network."""
    W = np.array(W, dtype=float, copy=True)
    if excluded.size:
        W[excluded, :] = 0.0
        W[:, excluded] = 0.0
    return W
