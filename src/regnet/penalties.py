"""Penalty families and their coordinate-wise update rules.

Each penalty solves the one-dimensional problem

    minimize_b  (a / 2) * b**2 - g * b + P_j(b)

where ``a`` is the curvature and ``g`` the linear coefficient of the
current local quadratic approximation of the loss for coordinate ``j``.
The solver never branches on penalty kind; it looks the strategy up in
:data:`PENALTIES` once and calls it for every coordinate.

For the least-absolute-deviation loss the sparsity term is linearized
(``lla_weight``) and the network term exposed as a quadratic
(``quadratic``), so the robust solver can minimize the exact piecewise
linear objective.
"""
from __future__ import annotations
from typing import Dict, Optional, Tuple, Type
import numpy as np

from regnet.network import network_degrees, restrict_network


def soft_threshold(value: float, threshold: float) -> float:
    """Soft-thresholding operator S(z, t) = sign(z) * max(|z| - t, 0)."""
    if value > threshold:
        return value - threshold
    if value < -threshold:
        return value + threshold
    return 0.0


def mcp_value(b: np.ndarray, lamb: float, r: float) -> np.ndarray:
    """Minimax concave penalty evaluated elementwise."""
    b = np.abs(b)
    inner = lamb * b - b**2 / (2.0 * r)
    return np.where(b <= r * lamb, inner, r * lamb**2 / 2.0)


def mcp_update(g: float, a: float, lamb: float, r: float) -> float:
    """Closed-form minimizer of ``(a/2) b^2 - g b + MCP(b; lamb, r)``.

    Inside the concave region the update is a soft-threshold rescaled by
    ``a - 1/r``; beyond ``r * lamb`` the penalty is flat and the update is
    the unpenalized one.
    """
    # curvature must exceed 1/r for the one-dimensional problem to be convex
    a = max(a, (1.0 + 1e-2) / r)
    if abs(g) <= a * r * lamb:
        return soft_threshold(g, lamb) / (a - 1.0 / r)
    return g / a


class Penalty:
    """Base penalty: knows which coordinates are exempt from shrinkage."""

    name = "base"

    def __init__(self, lamb1: float, n_predictors: int, unpenalized: Optional[np.ndarray] = None):
        self.lamb1 = float(lamb1)
        self.lamb2 = 0.0
        self.penalized = np.ones(n_predictors, dtype=bool)
        if unpenalized is not None and len(unpenalized):
            self.penalized[np.asarray(unpenalized, dtype=int)] = False

    def update(self, j: int, g: float, a: float, beta: np.ndarray) -> float:
        if not self.penalized[j]:
            return g / a
        return self._shrink(g, a)

    def _shrink(self, g: float, a: float) -> float:
        raise NotImplementedError

    def lla_weight(self, j: int, b: float) -> float:
        """Slope of the sparsity term at ``|b|`` (0 for exempt coordinates)."""
        if not self.penalized[j]:
            return 0.0
        return self._slope(abs(b))

    def _slope(self, b: float) -> float:
        raise NotImplementedError

    def quadratic(self, j: int, beta: np.ndarray) -> Optional[Tuple[float, float]]:
        """Quadratic smoothness term ``q (b - m)^2`` for coordinate ``j``, if any."""
        return None

    def value(self, beta: np.ndarray) -> float:
        raise NotImplementedError


class LassoPenalty(Penalty):
    name = "lasso"

    def _shrink(self, g, a):
        return soft_threshold(g, self.lamb1) / a

    def _slope(self, b):
        return self.lamb1

    def value(self, beta):
        return float(self.lamb1 * np.abs(beta[self.penalized]).sum())


class MCPPenalty(Penalty):
    name = "mcp"

    def __init__(self, lamb1, n_predictors, unpenalized=None, r: float = 5.0):
        super().__init__(lamb1, n_predictors, unpenalized)
        self.r = float(r)

    def _shrink(self, g, a):
        return mcp_update(g, a, self.lamb1, self.r)

    def _slope(self, b):
        return max(self.lamb1 - b / self.r, 0.0)

    def value(self, beta):
        return float(mcp_value(beta[self.penalized], self.lamb1, self.r).sum())


class NetworkPenalty(MCPPenalty):
    """MCP sparsity plus a quadratic smoothness term over the predictor network.

    The smoothness term is ``(lamb2 / 2) * sum_{j != k} |w_jk| (b_j - s_jk b_k)^2``
    with ``s_jk = sign(w_jk)``. Predictors exempt from the penalty are
    disconnected from the network.
    """

    name = "network"

    def __init__(self, lamb1, n_predictors, unpenalized=None, r: float = 5.0,
                 lamb2: float = 0.0, adjacency: Optional[np.ndarray] = None):
        super().__init__(lamb1, n_predictors, unpenalized, r)
        if adjacency is None:
            raise ValueError("network penalty requires an adjacency matrix")
        self.lamb2 = float(lamb2)
        self.adjacency = restrict_network(adjacency, np.flatnonzero(~self.penalized))
        self.degrees = network_degrees(self.adjacency)

    def update(self, j, g, a, beta):
        if not self.penalized[j]:
            return g / a
        link = self.adjacency[j] @ beta
        return mcp_update(
            g + 2.0 * self.lamb2 * link,
            a + 2.0 * self.lamb2 * self.degrees[j],
            self.lamb1,
            self.r,
        )

    def quadratic(self, j, beta):
        if not self.penalized[j] or self.degrees[j] == 0.0:
            return None
        return self.lamb2 * self.degrees[j], (self.adjacency[j] @ beta) / self.degrees[j]

    def value(self, beta):
        sparsity = super().value(beta)
        signs = np.sign(self.adjacency)
        diff = beta[:, None] - signs * beta[None, :]
        smooth = 0.5 * self.lamb2 * float((np.abs(self.adjacency) * diff**2).sum())
        return sparsity + smooth


PENALTIES: Dict[str, Type[Penalty]] = {
    "lasso": LassoPenalty,
    "mcp": MCPPenalty,
    "network": NetworkPenalty,
}


def make_penalty(
    kind: str,
    lamb1: float,
    lamb2: float,
    n_predictors: int,
    r: float = 5.0,
    unpenalized: Optional[np.ndarray] = None,
    adjacency: Optional[np.ndarray] = None,
) -> Penalty:
    """Instantiate the penalty strategy for one (lambda.1, lambda.2) pair.

    ``lamb2`` and ``adjacency`` are only consulted for the network penalty.

    Example:
        >>> pen = make_penalty("mcp", 0.1, 0.0, n_predictors=5, r=3.0)
        >>> pen.update(0, g=1.0, a=1.0, beta=np.zeros(5))
        1.0
    """
    cls = PENALTIES[kind]
    if cls is NetworkPenalty:
        return cls(lamb1, n_predictors, unpenalized, r=r, lamb2=lamb2, adjacency=adjacency)
    if cls is MCPPenalty:
        return cls(lamb1, n_predictors, unpenalized, r=r)
    return cls(lamb1, n_predictors, unpenalized)
