"""Unit tests for prior and support-state range factors."""

import numpy as np
import pytest

from gpslam.errors import JacobianRequestError, NumericalDegeneracyError
from gpslam.estimators import GaussianNoiseModel, Values
from gpslam.geometry import Pose2
from gpslam.slam import PriorFactorPoint2, PriorFactorPose2, PriorFactorVector, RangeFactorPose2
from gpslam.utils import numerical_factor_jacobians


class TestPriorFactorPose2:
    model = GaussianNoiseModel.from_sigma(3, 0.1)

    def test_zero_at_prior(self):
        factor = PriorFactorPose2("x1", Pose2(1.0, 2.0, 0.3), self.model)
        np.testing.assert_allclose(
            factor.evaluate_error(np.array([1.0, 2.0, 0.3])), np.zeros(3), atol=1e-12
        )

    def test_residual_in_prior_frame(self):
        factor = PriorFactorPose2("x1", np.array([0.0, 0.0, np.pi / 2]), self.model)
        # 1 m along world +y is 1 m along the prior's body x-axis
        e = factor.evaluate_error(np.array([0.0, 1.0, np.pi / 2]))
        np.testing.assert_allclose(e, [1.0, 0.0, 0.0], atol=1e-12)

    def test_residual_wraps_angle(self):
        factor = PriorFactorPose2("x1", np.array([0.0, 0.0, np.pi - 0.05]), self.model)
        e = factor.evaluate_error(np.array([0.0, 0.0, -np.pi + 0.05]))
        np.testing.assert_allclose(e, [0.0, 0.0, 0.1], atol=1e-12)

    @pytest.mark.parametrize(
        "prior, pose",
        [
            (np.array([1.0, -1.0, 0.2]), np.array([1.3, -0.8, 0.5])),
            (np.array([0.0, 0.0, 3.0]), np.array([0.5, -0.5, -3.0])),
        ],
    )
    def test_jacobian(self, prior, pose):
        factor = PriorFactorPose2("x1", prior, self.model)
        request = {"pose": None}
        factor.evaluate_error(pose, jacobians=request)
        numerical = numerical_factor_jacobians(factor, [pose], ["pose2"])
        np.testing.assert_allclose(request["pose"], numerical["pose"], atol=1e-6)

    def test_requires_3d_noise(self):
        with pytest.raises(ValueError):
            PriorFactorPose2("x1", np.zeros(3), GaussianNoiseModel.from_sigma(2, 0.1))

    def test_prior_is_read_only(self):
        factor = PriorFactorPose2("x1", np.zeros(3), self.model)
        with pytest.raises(ValueError):
            factor.prior[0] = 1.0


class TestPriorFactorVector:
    def test_error_and_jacobian(self):
        factor = PriorFactorVector(
            "v1", np.array([10.0, 0.0, 0.0]), GaussianNoiseModel.from_sigma(3, 0.01)
        )
        request = {"value": None}
        e = factor.evaluate_error(np.array([9.8, 0.0, 0.2]), jacobians=request)
        np.testing.assert_allclose(e, [-0.2, 0.0, 0.2], atol=1e-12)
        np.testing.assert_array_equal(request["value"], np.eye(3))

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            PriorFactorVector("v1", np.zeros(2), GaussianNoiseModel.from_sigma(3, 0.01))

    def test_graph_error(self):
        factor = PriorFactorVector("v1", np.zeros(3), GaussianNoiseModel.from_sigma(3, 0.5))
        values = Values()
        values.insert("v1", np.array([1.0, 0.0, 0.0]))
        assert factor.error(values) == pytest.approx(2.0)


class TestPriorFactorPoint2:
    def test_error(self):
        factor = PriorFactorPoint2(
            "l1", np.array([2.4, 3.2]), GaussianNoiseModel.from_sigma(2, 0.1)
        )
        np.testing.assert_allclose(
            factor.evaluate_error(np.array([2.3, 3.1])), [-0.1, -0.1], atol=1e-12
        )

    def test_requires_2d(self):
        with pytest.raises(ValueError):
            PriorFactorPoint2("l1", np.zeros(3), GaussianNoiseModel.from_sigma(3, 0.1))


class TestRangeFactorPose2:
    model = GaussianNoiseModel.from_sigma(1, 0.1)

    def test_error(self):
        factor = RangeFactorPose2("x1", "l1", 5.0, self.model)
        e = factor.evaluate_error(np.array([0.0, 0.0, 1.0]), np.array([3.0, 4.0]))
        np.testing.assert_allclose(e, [0.0], atol=1e-12)

    def test_jacobians(self):
        factor = RangeFactorPose2("x1", "l1", 4.0, self.model)
        args = [np.array([0.5, -1.0, 0.7]), np.array([3.0, 2.0])]
        request = {"pose": None, "point": None}
        factor.evaluate_error(*args, jacobians=request)
        numerical = numerical_factor_jacobians(factor, args, ["pose2", "vector"])
        for slot in factor.slots:
            np.testing.assert_allclose(request[slot], numerical[slot], atol=1e-6)

    def test_zero_distance(self):
        factor = RangeFactorPose2("x1", "l1", 1.0, self.model)
        with pytest.raises(NumericalDegeneracyError):
            factor.evaluate_error(np.array([1.0, 1.0, 0.0]), np.array([1.0, 1.0]),
                                  jacobians={"point": None})

    def test_unknown_slot(self):
        factor = RangeFactorPose2("x1", "l1", 1.0, self.model)
        with pytest.raises(JacobianRequestError):
            factor.evaluate_error(np.zeros(3), np.ones(2), jacobians={"vel1": None})

    def test_requires_1d_noise(self):
        with pytest.raises(ValueError):
            RangeFactorPose2("x1", "l1", 1.0, GaussianNoiseModel.from_sigma(2, 0.1))
