"""Unit tests for regnet.penalties and regnet.network modules."""
import pytest
import numpy as np
from regnet.network import adjacency_matrix, network_degrees, restrict_network
from regnet.penalties import (
    PENALTIES,
    LassoPenalty,
    MCPPenalty,
    NetworkPenalty,
    make_penalty,
    mcp_update,
    mcp_value,
    soft_threshold,
)


class TestScalarOperators:
    """Tests for soft_threshold, mcp_value and mcp_update."""

    @pytest.mark.parametrize("value,threshold,expected", [
        (2.0, 0.5, 1.5),
        (-2.0, 0.5, -1.5),
        (0.3, 0.5, 0.0),
        (-0.5, 0.5, 0.0),
    ])
    def test_soft_threshold(self, value, threshold, expected):
        assert soft_threshold(value, threshold) == pytest.approx(expected)

    def test_mcp_value_flat_beyond_threshold(self):
        """Test MCP is constant r * lamb^2 / 2 beyond r * lamb."""
        vals = mcp_value(np.array([0.0, 0.5, 10.0, -10.0]), lamb=0.5, r=3.0)
        np.testing.assert_allclose(vals, [0.0, 0.5 * 0.5 - 0.25 / 6.0, 0.375, 0.375])

    def test_mcp_update_zero_region(self):
        """Test small gradients are thresholded to zero."""
        assert mcp_update(0.4, 1.0, 0.5, 3.0) == 0.0

    def test_mcp_update_concave_region(self):
        """Test the rescaled soft-threshold inside r * lamb."""
        assert mcp_update(1.0, 1.0, 0.5, 3.0) == pytest.approx(0.5 / (1.0 - 1.0 / 3.0))

    def test_mcp_update_unbiased_region(self):
        """Test large gradients are not shrunk."""
        assert mcp_update(10.0, 1.0, 0.5, 3.0) == pytest.approx(10.0)

    def test_mcp_update_small_curvature_finite(self):
        """Test the update stays finite when curvature is below 1/r."""
        value = mcp_update(0.2, 0.1, 0.1, 3.0)
        assert np.isfinite(value)
        assert value > 0


class TestPenaltyStrategies:
    """Tests for the penalty classes."""

    def test_registry(self):
        assert set(PENALTIES) == {"lasso", "mcp", "network"}

    def test_make_penalty_types(self):
        W = np.ones((4, 4)) - np.eye(4)
        assert isinstance(make_penalty("lasso", 0.1, 0.0, 4), LassoPenalty)
        assert isinstance(make_penalty("mcp", 0.1, 0.0, 4, r=3.0), MCPPenalty)
        pen = make_penalty("network", 0.1, 2.0, 4, r=3.0, adjacency=W)
        assert isinstance(pen, NetworkPenalty)
        assert pen.lamb2 == 2.0

    def test_network_requires_adjacency(self):
        with pytest.raises(ValueError, match="adjacency"):
            make_penalty("network", 0.1, 1.0, 4)

    def test_unpenalized_coordinate(self):
        """Test exempt coordinates get the unpenalized update."""
        pen = LassoPenalty(10.0, 3, unpenalized=np.array([1]))
        beta = np.zeros(3)

        assert pen.update(0, 2.0, 1.0, beta) == 0.0
        assert pen.update(1, 2.0, 1.0, beta) == pytest.approx(2.0)
        assert pen.lla_weight(1, 0.0) == 0.0

    def test_lasso_value(self):
        pen = LassoPenalty(0.5, 3, unpenalized=np.array([2]))
        assert pen.value(np.array([1.0, -2.0, 5.0])) == pytest.approx(1.5)

    def test_mcp_lla_weight(self):
        """Test the linearized MCP slope vanishes beyond r * lamb."""
        pen = MCPPenalty(0.5, 2, r=3.0)
        assert pen.lla_weight(0, 0.0) == pytest.approx(0.5)
        assert pen.lla_weight(0, 0.75) == pytest.approx(0.25)
        assert pen.lla_weight(0, 5.0) == 0.0

    def test_network_without_smoothing_matches_mcp(self):
        """Test lamb2 = 0 reduces the network update to MCP."""
        rng = np.random.default_rng(0)
        W = adjacency_matrix(rng.normal(size=(30, 4)), power=1.0)
        beta = rng.normal(size=4)
        net = NetworkPenalty(0.2, 4, r=3.0, lamb2=0.0, adjacency=W)
        mcp = MCPPenalty(0.2, 4, r=3.0)

        for j in range(4):
            assert net.update(j, 0.7, 1.0, beta) == pytest.approx(mcp.update(j, 0.7, 1.0, beta))

    def test_network_update_minimizes_coordinate_objective(self):
        """Test the network update is the minimizer of the 1-D objective."""
        W = np.array([[0.0, 0.5, -0.2], [0.5, 0.0, 0.1], [-0.2, 0.1, 0.0]])
        beta = np.array([0.3, 0.8, -0.4])
        pen = NetworkPenalty(0.1, 3, r=4.0, lamb2=1.5, adjacency=W)
        g, a = 0.6, 1.0

        def objective(b):
            trial = beta.copy()
            trial[0] = b
            return 0.5 * a * b**2 - g * b + pen.value(trial)

        best = pen.update(0, g, a, beta)
        grid = np.linspace(best - 0.5, best + 0.5, 2001)
        values = np.array([objective(b) for b in grid])
        assert objective(best) <= values.min() + 1e-9

    def test_network_value(self):
        """Test the smoothness term against an explicit double sum."""
        W = np.array([[0.0, 0.5, -0.2], [0.5, 0.0, 0.1], [-0.2, 0.1, 0.0]])
        beta = np.array([0.3, 0.8, -0.4])
        pen = NetworkPenalty(0.0, 3, r=4.0, lamb2=2.0, adjacency=W)
        expected = 0.0
        for j in range(3):
            for k in range(3):
                if j != k:
                    expected += abs(W[j, k]) * (beta[j] - np.sign(W[j, k]) * beta[k]) ** 2
        assert pen.value(beta) == pytest.approx(0.5 * 2.0 * expected)

    def test_network_quadratic(self):
        """Test the quadratic form exposed for the robust loss."""
        W = np.array([[0.0, 0.5, -0.2], [0.5, 0.0, 0.1], [-0.2, 0.1, 0.0]])
        beta = np.array([0.3, 0.8, -0.4])
        pen = NetworkPenalty(0.1, 3, r=4.0, lamb2=2.0, adjacency=W)
        q, m = pen.quadratic(0, beta)

        assert q == pytest.approx(2.0 * 0.7)
        assert m == pytest.approx((0.5 * 0.8 + 0.2 * 0.4) / 0.7)

    def test_network_excludes_unpenalized(self):
        """Test unpenalized predictors are disconnected from the network."""
        W = np.ones((3, 3)) - np.eye(3)
        pen = NetworkPenalty(0.1, 3, unpenalized=np.array([0]), r=4.0, lamb2=1.0, adjacency=W)

        assert np.all(pen.adjacency[0] == 0.0)
        assert np.all(pen.adjacency[:, 0] == 0.0)
        assert pen.degrees.tolist() == [0.0, 1.0, 1.0]
        assert pen.quadratic(0, np.zeros(3)) is None


class TestNetwork:
    """Tests for the default predictor network."""

    def test_symmetric_zero_diagonal(self, binary_data):
        X, _ = binary_data
        W = adjacency_matrix(X)

        np.testing.assert_allclose(W, W.T)
        assert np.all(np.diag(W) == 0.0)
        assert np.all(np.abs(W) <= 1.0)

    def test_signs_and_power(self):
        """Test sign(r) * |r|^power on exactly (anti-)correlated columns."""
        rng = np.random.default_rng(1)
        x = rng.normal(size=50)
        X = np.column_stack([x, 2 * x + 1, -x, rng.normal(size=50)])
        W = adjacency_matrix(X, power=5)

        assert W[0, 1] == pytest.approx(1.0)
        assert W[0, 2] == pytest.approx(-1.0)
        corr = np.corrcoef(X[:, 0], X[:, 3])[0, 1]
        assert W[0, 3] == pytest.approx(np.sign(corr) * abs(corr) ** 5)

    def test_constant_column_disconnected(self):
        """Test a constant column has no edges instead of NaN."""
        rng = np.random.default_rng(2)
        X = np.column_stack([rng.normal(size=20), np.ones(20), rng.normal(size=20)])
        W = adjacency_matrix(X)

        assert np.isfinite(W).all()
        assert np.all(W[1] == 0.0)

    def test_degrees_and_restrict(self):
        W = np.array([[0.0, -0.5, 0.25], [-0.5, 0.0, 0.0], [0.25, 0.0, 0.0]])
        np.testing.assert_allclose(network_degrees(W), [0.75, 0.5, 0.25])

        R = restrict_network(W, np.array([2]))
        np.testing.assert_allclose(network_degrees(R), [0.5, 0.5, 0.0])
        assert W[0, 2] == 0.25
