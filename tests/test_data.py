"""Unit tests for regnet.data module.

Tests argument validation, response containers, standardization and
Kaplan-Meier weights.
"""
import pytest
import warnings
import numpy as np
import pandas as pd
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
    kaplan_meier_weights,
    make_response,
    standardize,
)
from regnet.exceptions import IncompatibleOptionWarning, InvalidInputError


class TestCheckDesignMatrix:
    """Tests for check_design_matrix function."""

    def test_dataframe_names(self):
        """Test that DataFrame column names become predictor names."""
        X = pd.DataFrame({"a": [1.0, 2.0], "b": [3.0, 4.0]})
        values, names = check_design_matrix(X)

        assert names == ["a", "b"]
        assert values.dtype == float

    def test_array_default_names(self):
        """Test V1..Vp names for plain arrays."""
        _, names = check_design_matrix(np.ones((3, 3)))
        assert names == ["V1", "V2", "V3"]

    def test_rejects_one_dimensional(self):
        """Test that a vector is not accepted as design matrix."""
        with pytest.raises(InvalidInputError, match="2-D"):
            check_design_matrix(np.ones(5))

    def test_rejects_nan(self):
        """Test that missing values are rejected."""
        X = np.ones((4, 2))
        X[1, 1] = np.nan
        with pytest.raises(InvalidInputError, match="non-finite"):
            check_design_matrix(X)


class TestMakeResponse:
    """Tests for make_response function."""

    def test_binary_valid(self):
        """Test a valid 0/1 response."""
        resp = make_response([0, 1, 1, 0], "binary", 4)
        assert resp.kind == "binary"
        assert len(resp) == 4

    def test_binary_rejects_other_values(self):
        """Test that a response with values other than 0/1 is rejected."""
        with pytest.raises(InvalidInputError, match="binary variable of 1 and 0"):
            make_response([0, 1, 2, 0], "binary", 4)

    def test_length_mismatch(self):
        """Test that Y must have one entry per row of X."""
        with pytest.raises(InvalidInputError, match="length of Y"):
            make_response([0.1, 0.2, 0.3], "continuous", 4)

    def test_unknown_kind(self):
        """Test that unknown response kinds are rejected."""
        with pytest.raises(InvalidInputError, match="response must be one of"):
            make_response([1.0, 2.0], "poisson", 2)

    def test_survival_dataframe(self):
        """Test survival response from a DataFrame in any column order."""
        Y = pd.DataFrame({"status": [1, 0, 1], "time": [2.0, 3.5, 1.0]})
        resp = make_response(Y, "survival", 3)

        np.testing.assert_array_equal(resp.time, [2.0, 3.5, 1.0])
        np.testing.assert_array_equal(resp.status, [1.0, 0.0, 1.0])

    def test_survival_structured_array(self):
        """Test survival response from a structured array."""
        Y = np.array([(2.0, 1), (3.0, 0)], dtype=[("time", float), ("status", int)])
        resp = make_response(Y, "survival", 2)
        assert resp.status.tolist() == [1.0, 0.0]

    def test_survival_missing_status(self):
        """Test that a survival response without a status column is rejected."""
        Y = pd.DataFrame({"time": [1.0, 2.0], "event": [1, 0]})
        with pytest.raises(InvalidInputError, match="'time' and 'status'"):
            make_response(Y, "survival", 2)

    def test_survival_single_column(self):
        """Test that a survival response must have two columns."""
        with pytest.raises(InvalidInputError, match="two-column"):
            make_response(pd.DataFrame({"time": [1.0, 2.0]}), "survival", 2)

    def test_survival_unnamed_matrix(self):
        """Test that an unnamed two-column matrix is rejected."""
        with pytest.raises(InvalidInputError, match="'time' and 'status'"):
            make_response(np.array([[1.0, 1], [2.0, 0]]), "survival", 2)

    def test_survival_bad_status(self):
        """Test that status values other than 0/1 are rejected."""
        Y = pd.DataFrame({"time": [1.0, 2.0], "status": [1, 2]})
        with pytest.raises(InvalidInputError, match="status has to be a binary"):
            make_response(Y, "survival", 2)

    @pytest.mark.parametrize("bad_time", [0.0, -1.0])
    def test_survival_non_positive_time(self, bad_time):
        """Test that survival times must be strictly positive."""
        Y = pd.DataFrame({"time": [1.0, bad_time], "status": [1, 0]})
        with pytest.raises(InvalidInputError, match="positive"):
            make_response(Y, "survival", 2)

    def test_survival_row_mismatch(self):
        """Test that survival rows must match X."""
        Y = pd.DataFrame({"time": [1.0, 2.0], "status": [1, 0]})
        with pytest.raises(InvalidInputError, match="number of rows"):
            make_response(Y, "survival", 3)

    def test_subset_and_structured(self):
        """Test subsetting a survival response and converting it for scikit-survival."""
        resp = Response("survival", time=np.array([1.0, 2.0, 3.0]), status=np.array([1.0, 0.0, 1.0]))
        sub = resp.subset(np.array([0, 2]))
        y = sub.to_structured()

        assert len(sub) == 2
        assert y["event"].tolist() == [True, True]


class TestArgumentChecks:
    """Tests for the scalar argument checks."""

    def test_alpha_init_out_of_range(self):
        """Test that alpha_init must lie in [0, 1]."""
        with pytest.raises(InvalidInputError, match="alpha.i should be between 0 and 1"):
            check_alpha_init(1.5)

    def test_network_needs_three_predictors(self):
        """Test that the network penalty needs at least 3 predictors."""
        with pytest.raises(InvalidInputError, match="too few variables for network penalty"):
            check_penalty("network", 2)
        assert check_penalty("mcp", 2) == "mcp"

    def test_unknown_penalty(self):
        with pytest.raises(InvalidInputError):
            check_penalty("ridge", 5)

    def test_folds_larger_than_sample(self):
        """Test that folds may not exceed the sample size."""
        with pytest.raises(InvalidInputError, match="sample size too small for 11-fold"):
            check_folds(11, 10)

    def test_folds_equal_sample_size(self):
        """Test leave-one-out folds are accepted."""
        assert check_folds(10, 10) == 10

    @pytest.mark.parametrize("folds", [0, 1])
    def test_folds_too_small(self, folds):
        with pytest.raises(InvalidInputError, match="incorrect value of folds"):
            check_folds(folds, 10)

    @pytest.mark.parametrize("cores", [0, -1])
    def test_cores(self, cores):
        """Test that cores must be at least 1."""
        assert check_cores(2) == 2
        with pytest.raises(InvalidInputError, match="incorrect value of ncores"):
            check_cores(cores)

    @pytest.mark.parametrize("folds", [float("nan"), "five", None, 2.5])
    def test_folds_not_an_integer(self, folds):
        """Test a non-integer folds value names the argument."""
        with pytest.raises(InvalidInputError, match="folds must be an integer"):
            check_folds(folds, 10)

    @pytest.mark.parametrize("cores", [float("nan"), "two", None])
    def test_cores_not_an_integer(self, cores):
        with pytest.raises(InvalidInputError, match="cores must be an integer"):
            check_cores(cores)

    def test_alpha_init_not_a_number(self):
        with pytest.raises(InvalidInputError, match="alpha.i must be a number"):
            check_alpha_init("lasso")

    def test_shape_r_binary(self):
        """Test that binary MCP needs r > 4."""
        with pytest.raises(InvalidInputError, match="larger than 4"):
            check_shape_r(4.0, "binary", "mcp")
        assert check_shape_r(4.5, "binary", "network") == 4.5

    def test_shape_r_default_and_lasso(self):
        """Test default r and that lasso ignores it."""
        assert check_shape_r(None, "continuous", "mcp") == 5.0
        assert check_shape_r(0.5, "binary", "lasso") == 0.5
        with pytest.raises(InvalidInputError, match="larger than 1"):
            check_shape_r(1.0, "continuous", "mcp")

    def test_initiation(self):
        assert check_initiation(None) == "elnet"
        assert check_initiation("Zero") == "zero"
        with pytest.raises(InvalidInputError):
            check_initiation("random")

    def test_robust_non_survival_warns(self):
        """Test that robust is ignored with a warning for non-survival responses."""
        with pytest.warns(IncompatibleOptionWarning, match="not available for binary"):
            assert check_robust(True, "binary") is False

    def test_robust_survival(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert check_robust(True, "survival") is True

    def test_clv_valid(self):
        """Test clv indices are deduplicated and sorted."""
        np.testing.assert_array_equal(check_clv([3, 1, 3], 5, "continuous"), [1, 3])

    def test_clv_out_of_range(self):
        with pytest.raises(InvalidInputError, match="clv indices"):
            check_clv([5], 5, "survival")

    def test_clv_binary_ignored(self):
        """Test that clv is ignored with a warning for binary responses."""
        with pytest.warns(IncompatibleOptionWarning, match="clv"):
            assert check_clv([0], 5, "binary").size == 0

    def test_lambdas(self):
        """Test lambda sequence validation."""
        assert check_lambdas(None, "lamb1") is None
        np.testing.assert_array_equal(check_lambdas(0.5, "lamb1"), [0.5])
        with pytest.raises(InvalidInputError, match="non-negative"):
            check_lambdas([0.1, -0.1], "lamb1")
        with pytest.raises(InvalidInputError, match="non-empty"):
            check_lambdas([], "lamb2")

    def test_adjacency_symmetrized(self):
        """Test that the adjacency is symmetrized with a zero diagonal."""
        W = check_adjacency([[1.0, 0.2, 0.0], [0.4, 1.0, 0.0], [0.0, 0.0, 1.0]], 3)

        np.testing.assert_allclose(W, W.T)
        assert np.all(np.diag(W) == 0.0)
        assert W[0, 1] == pytest.approx(0.3)

    def test_adjacency_wrong_shape(self):
        with pytest.raises(InvalidInputError, match="shape"):
            check_adjacency(np.zeros((2, 2)), 3)


class TestStandardize:
    """Tests for standardize function."""

    def test_zero_mean_unit_variance(self, binary_data):
        """Test columns are centered and scaled by the population sd."""
        X, _ = binary_data
        Z, center, scale = standardize(X)

        np.testing.assert_allclose(Z.mean(axis=0), 0.0, atol=1e-12)
        np.testing.assert_allclose(Z.std(axis=0), 1.0)
        np.testing.assert_allclose(Z * scale + center, X)

    def test_constant_column_strict(self):
        """Test that constant columns are rejected in strict mode."""
        X = np.column_stack([np.arange(5.0), np.full(5, 2.0)])
        with pytest.raises(InvalidInputError, match="constant columns \\[1\\]"):
            standardize(X)

    def test_constant_column_lenient(self):
        """Test that constant columns become zero columns in lenient mode."""
        X = np.column_stack([np.arange(5.0), np.full(5, 2.0)])
        Z, _, scale = standardize(X, strict=False)

        assert scale[1] == 1.0
        assert np.all(Z[:, 1] == 0.0)


class TestKaplanMeierWeights:
    """Tests for kaplan_meier_weights function."""

    def test_uncensored_equal_weights(self):
        """Test that without censoring every observation gets 1/n."""
        w = kaplan_meier_weights(np.array([3.0, 1.0, 2.0, 5.0]), np.ones(4))
        np.testing.assert_allclose(w, 0.25)

    def test_censored_weights(self):
        """Test weights equal the jumps of the Kaplan-Meier estimator."""
        time = np.array([4.0, 2.0, 1.0, 3.0])
        status = np.array([1, 0, 1, 1])
        w = kaplan_meier_weights(time, status)

        np.testing.assert_allclose(w, [0.375, 0.0, 0.25, 0.375])
        assert w.sum() == pytest.approx(1.0)

    def test_last_censored_mass_lost(self):
        """Test that mass is lost when the largest time is censored."""
        w = kaplan_meier_weights(np.array([1.0, 2.0, 3.0]), np.array([1, 1, 0]))
        assert w[2] == 0.0
        assert w.sum() < 1.0
