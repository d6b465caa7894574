"""
Unit tests for GPInterpolatedRangeFactorPose2.

Residuals are checked on constant-velocity scenarios where the interpolated
pose is known, Jacobians against central differences, and the factor is
exercised end-to-end in a small range-only SLAM graph.
"""

import numpy as np
import pytest

import gpslam.geometry.se2 as se2_module
import gpslam.gp.interpolator as interpolator_module
from gpslam.config import OptimizerParams
from gpslam.errors import GPConfigurationError, JacobianRequestError, NumericalDegeneracyError
from gpslam.estimators import FactorGraph, GaussianNoiseModel, Values, symbol
from gpslam.geometry import Pose2, se2_local, se2_range
from gpslam.gp import GaussianProcessPriorPose2
from gpslam.slam import (
    GPInterpolatedRangeFactorPose2,
    PriorFactorPoint2,
    PriorFactorPose2,
    PriorFactorVector,
)
from gpslam.utils import numerical_factor_jacobians

QC = 0.001 * np.eye(3)
DELTA_T = 0.1
TAU = 0.04
RANGE_MODEL = GaussianNoiseModel.from_sigma(1, 0.1)
MANIFOLDS = ["pose2", "vector", "pose2", "vector", "vector"]


def make_factor(measurement, qc=QC, delta_t=DELTA_T, tau=TAU):
    return GPInterpolatedRangeFactorPose2(
        measurement, RANGE_MODEL, qc, "x1", "v1", "x2", "v2", "l1", delta_t, tau
    )


def check_factor(factor, args, expected_error=None, delta=1e-6, atol=1e-6):
    request = {slot: None for slot in factor.slots}
    error = factor.evaluate_error(*args, jacobians=request)
    if expected_error is not None:
        np.testing.assert_allclose(error, [expected_error], atol=1e-6)

    numerical = numerical_factor_jacobians(factor, args, MANIFOLDS, delta=delta)
    for slot in factor.slots:
        np.testing.assert_allclose(
            request[slot], numerical[slot], atol=atol, err_msg=f"{slot} mismatch"
        )
    return error, request


# Scenarios: (pose1, vel1, pose2, vel2, landmark, measurement, numerical step)
ZERO_RESIDUAL_SCENARIOS = {
    "zero_motion": (
        np.zeros(3), np.zeros(3), np.zeros(3), np.zeros(3),
        np.array([0.0, 10.0]), 10.0, 1e-6,
    ),
    "forward": (
        np.array([-0.04, 0.0, 0.0]), np.array([1.0, 0.0, 0.0]),
        np.array([0.06, 0.0, 0.0]), np.array([1.0, 0.0, 0.0]),
        np.array([0.0, 10.0]), 10.0, 1e-4,
    ),
    "rotate": (
        np.array([0.0, 0.0, -0.04]), np.array([0.0, 0.0, 1.0]),
        np.array([0.0, 0.0, 0.06]), np.array([0.0, 0.0, 1.0]),
        np.array([0.0, 10.0]), 10.0, 1e-6,
    ),
    "fast_forward": (
        np.zeros(3), np.array([15.0, 0.0, 0.0]),
        np.array([1.5, 0.0, 0.0]), np.array([15.0, 0.0, 0.0]),
        np.array([3.4, 1.2]), se2_range(np.array([0.6, 0.0, 0.0]), np.array([3.4, 1.2])), 1e-4,
    ),
}


class TestRangeFactorScenarios:
    @pytest.mark.parametrize("name", sorted(ZERO_RESIDUAL_SCENARIOS))
    def test_zero_residual_and_jacobians(self, name):
        p1, v1, p2, v2, land, meas, delta = ZERO_RESIDUAL_SCENARIOS[name]
        factor = make_factor(meas)
        check_factor(factor, [p1, v1, p2, v2, land], expected_error=0.0, delta=delta)

    def test_random_state_jacobians(self):
        factor = make_factor(10.0)
        args = [
            np.array([5.34, 7.1, -4.32]),
            np.array([15.0, 21.3, 32.0]),
            np.array([1.5, -2.2, 3.0]),
            np.array([-15.0, 4.2, -30.0]),
            np.array([3.4, 1.2]),
        ]
        _, request = check_factor(factor, args)
        assert request["pose1"].shape == (1, 3)
        assert request["vel2"].shape == (1, 3)
        assert request["point"].shape == (1, 2)

    @pytest.mark.parametrize("tau", [0.0, DELTA_T])
    def test_boundary_tau_matches_support_pose(self, tau):
        p1 = np.array([0.3, -0.2, 0.4])
        p2 = np.array([0.5, 0.1, 0.5])
        land = np.array([3.0, 2.0])
        factor = make_factor(0.0, tau=tau)
        support = p1 if tau == 0.0 else p2
        error = factor.evaluate_error(p1, np.ones(3), p2, np.ones(3), land)
        assert error[0] == se2_range(support, land)
        check_factor(factor, [p1, np.ones(3), p2, np.ones(3), land])

    def test_nonzero_residual(self):
        factor = make_factor(9.5)
        v = np.array([1.0, 0.0, 0.0])
        error = factor.evaluate_error(
            np.array([-0.04, 0.0, 0.0]), v, np.array([0.06, 0.0, 0.0]), v, np.array([0.0, 10.0])
        )
        np.testing.assert_allclose(error, [0.5], atol=1e-12)


class TestRangeFactorContract:
    def test_only_requested_blocks_filled(self):
        factor = make_factor(10.0)
        request = {"point": None}
        factor.evaluate_error(np.zeros(3), np.zeros(3), np.zeros(3), np.zeros(3),
                              np.array([0.0, 10.0]), jacobians=request)
        assert list(request) == ["point"]
        np.testing.assert_allclose(request["point"], [[0.0, 1.0]])

    def test_residual_and_point_only_skip_interpolation_jacobians(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("interpolation Jacobian computed")

        monkeypatch.setattr(se2_module, "se2_expmap_derivative", fail)
        monkeypatch.setattr(interpolator_module, "se2_adjoint", fail)

        factor = make_factor(10.0)
        v = np.array([1.0, 0.0, 0.0])
        args = (np.array([-0.04, 0.0, 0.0]), v, np.array([0.06, 0.0, 0.0]), v,
                np.array([0.0, 10.0]))
        np.testing.assert_allclose(factor.evaluate_error(*args), [0.0], atol=1e-12)

        request = {"point": None}
        error = factor.evaluate_error(*args, jacobians=request)
        np.testing.assert_allclose(error, [0.0], atol=1e-12)
        np.testing.assert_allclose(request["point"], [[0.0, 1.0]], atol=1e-12)

    def test_unknown_slot_raises(self):
        factor = make_factor(10.0)
        with pytest.raises(JacobianRequestError):
            factor.evaluate_error(np.zeros(3), np.zeros(3), np.zeros(3), np.zeros(3),
                                  np.array([0.0, 10.0]), jacobians={"landmark": None})

    def test_zero_distance_with_jacobians_raises(self):
        factor = make_factor(1.0)
        with pytest.raises(NumericalDegeneracyError):
            factor.evaluate_error(np.zeros(3), np.zeros(3), np.zeros(3), np.zeros(3),
                                  np.zeros(2), jacobians={"pose1": None})

    def test_zero_distance_without_jacobians_is_finite(self):
        factor = make_factor(1.0)
        error = factor.evaluate_error(np.zeros(3), np.zeros(3), np.zeros(3), np.zeros(3),
                                      np.zeros(2))
        np.testing.assert_array_equal(error, [-1.0])

    @pytest.mark.parametrize("delta_t, tau", [(0.1, 0.2), (0.1, -0.1), (0.0, 0.0)])
    def test_invalid_interval(self, delta_t, tau):
        with pytest.raises(GPConfigurationError):
            make_factor(10.0, delta_t=delta_t, tau=tau)

    def test_invalid_qc(self):
        with pytest.raises(GPConfigurationError):
            make_factor(10.0, qc=np.zeros((3, 3)))

    def test_qc_noise_model_accepted(self):
        factor = make_factor(10.0, qc=GaussianNoiseModel.from_covariance(QC))
        np.testing.assert_allclose(factor.interpolator.qc, QC, atol=1e-15)

    def test_range_noise_must_be_scalar(self):
        with pytest.raises(ValueError):
            GPInterpolatedRangeFactorPose2(
                10.0, GaussianNoiseModel.from_sigma(2, 0.1), QC,
                "x1", "v1", "x2", "v2", "l1", DELTA_T, TAU,
            )

    def test_keys_and_parameters(self):
        factor = make_factor(10.0)
        assert factor.keys == ("x1", "v1", "x2", "v2", "l1")
        assert factor.dim == 1
        assert factor.delta_t == DELTA_T
        assert factor.tau == TAU
        assert factor.measurement == 10.0


class TestRangeFactorOptimization:
    """Two support states, three interpolated range measurements, one landmark."""

    delta_t = 0.5
    qc = 0.01 * np.eye(3)
    land = np.array([2.4, 3.2])
    p1 = np.array([0.0, 0.0, 0.0])
    p2 = np.array([5.0, 0.0, 0.0])
    v = np.array([10.0, 0.0, 0.0])

    def build(self):
        pose_model = GaussianNoiseModel.from_sigma(3, 0.01)
        graph = FactorGraph()
        graph.add(PriorFactorPose2(symbol("x", 1), self.p1, pose_model))
        graph.add(PriorFactorPose2(symbol("x", 2), self.p2, pose_model))
        graph.add(PriorFactorPoint2(symbol("l", 1), self.land,
                                    GaussianNoiseModel.from_sigma(2, 0.1)))
        graph.add(PriorFactorVector(symbol("v", 1), self.v, pose_model))
        graph.add(PriorFactorVector(symbol("v", 2), self.v, pose_model))
        graph.add(GaussianProcessPriorPose2("x1", "v1", "x2", "v2", self.delta_t, self.qc))

        range_model = GaussianNoiseModel.from_sigma(1, 0.1)
        for tau, cam_x in ((0.05, 0.5), (0.25, 2.5), (0.45, 4.5)):
            meas = se2_range(np.array([cam_x, 0.0, 0.0]), self.land)
            graph.add(GPInterpolatedRangeFactorPose2(
                meas, range_model, self.qc, "x1", "v1", "x2", "v2", "l1", self.delta_t, tau
            ))

        initial = Values()
        initial.insert("x1", Pose2(0.1, 0.1, -0.1))
        initial.insert("v1", np.array([9.8, 0.0, 0.2]))
        initial.insert("x2", Pose2(5.1, -0.1, 0.1))
        initial.insert("v2", np.array([10.2, 0.0, -0.1]))
        initial.insert("l1", np.array([2.3, 3.1]))
        return graph, initial

    @pytest.mark.parametrize("method", ["gauss_newton", "levenberg_marquardt"])
    def test_converges_to_ground_truth(self, method):
        graph, initial = self.build()
        assert graph.error(initial) > 1.0

        result = graph.optimize(initial, OptimizerParams(method=method))
        values = result.values

        assert result.converged
        assert graph.error(values) == pytest.approx(0.0, abs=1e-4)
        np.testing.assert_allclose(se2_local(self.p1, values.at("x1")), np.zeros(3), atol=1e-4)
        np.testing.assert_allclose(se2_local(self.p2, values.at("x2")), np.zeros(3), atol=1e-4)
        np.testing.assert_allclose(values.at("v1"), self.v, atol=1e-4)
        np.testing.assert_allclose(values.at("v2"), self.v, atol=1e-4)
        np.testing.assert_allclose(values.at("l1"), self.land, atol=1e-4)

    def test_ground_truth_has_zero_error(self):
        graph, _ = self.build()
        truth = Values()
        truth.insert("x1", Pose2.from_array(self.p1))
        truth.insert("v1", self.v)
        truth.insert("x2", Pose2.from_array(self.p2))
        truth.insert("v2", self.v)
        truth.insert("l1", self.land)
        assert graph.error(truth) == pytest.approx(0.0, abs=1e-20)
