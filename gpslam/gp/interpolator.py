"""
Gaussian Process interpolation of SE(2) support states.

Given two support states (pose1, vel1) at t = 0 and (pose2, vel2) at t = Δt,
the pose and velocity at an intermediate offset τ are the conditional mean of
the white-noise-on-acceleration GP, computed in the tangent space anchored at
pose1:

    r     = Log(pose1⁻¹ · pose2)
    A     = [0; vel1],   B = [r; vel2]
    [ξ; velτ] = Λ(τ) A + Ψ(τ) B
    poseτ = pose1 · Exp(ξ)

Λ(τ), Ψ(τ) depend only on Qc, Δt and τ and are computed once at construction
(see gpslam.gp.kernels). All Jacobians are with respect to right
perturbations of the poses and additive perturbations of the velocities.
"""

from typing import Dict, NamedTuple, Optional, Union

import numpy as np

from ..errors import JacobianRequestError
from ..estimators.noise_model import GaussianNoiseModel
from ..geometry.se2 import (
    se2_adjoint,
    se2_compose,
    se2_expmap,
    se2_inverse,
    se2_logmap,
    se2_relative,
)
from ..geometry.types import Pose2, Velocity2, as_pose_array, as_vector
from .kernels import DOF, calc_lambda_psi, validate_interval, validate_qc

INTERPOLATION_SLOTS = ("pose1", "vel1", "pose2", "vel2")


class InterpolationJacobian(NamedTuple):
    """Derivatives of the interpolated state with respect to one input."""

    pose: np.ndarray  # ∂poseτ/∂input, 3×3
    velocity: np.ndarray  # ∂velτ/∂input, 3×3


class InterpolationResult(NamedTuple):
    """Interpolated state at τ and its Jacobians with respect to each input.

    The J_* fields are None when the result was computed without Jacobians.
    """

    pose: np.ndarray
    velocity: np.ndarray
    J_pose1: Optional[InterpolationJacobian] = None
    J_vel1: Optional[InterpolationJacobian] = None
    J_pose2: Optional[InterpolationJacobian] = None
    J_vel2: Optional[InterpolationJacobian] = None


class GaussianProcessInterpolatorPose2:
    """
    Interpolate pose and velocity between two SE(2) support states.

    Args:
        qc: Power spectral density Qc (3×3, symmetric positive-definite) or a
            GaussianNoiseModel whose covariance is Qc.
        delta_t: Time between the two support states (Δt > 0).
        tau: Query offset from the first support state (0 ≤ τ ≤ Δt).

    Raises:
        GPConfigurationError: If Δt, τ or Qc are invalid.
        NumericalDegeneracyError: If Q(Δt) cannot be inverted.

    Examples:
        >>> interp = GaussianProcessInterpolatorPose2(0.001 * np.eye(3), 0.1, 0.04)
        >>> v = np.array([1.0, 0.0, 0.0])
        >>> result = interp.interpolate(np.array([-0.04, 0.0, 0.0]), v,
        ...                             np.array([0.06, 0.0, 0.0]), v)
        >>> np.round(result.pose, 12)
        array([0., 0., 0.])
    """

    def __init__(
        self,
        qc: Union[np.ndarray, GaussianNoiseModel],
        delta_t: float,
        tau: float,
    ):
        validate_interval(delta_t, tau)
        self.qc = validate_qc(qc)
        self.delta_t = float(delta_t)
        self.tau = float(tau)

        lam, psi = calc_lambda_psi(self.qc, self.delta_t, self.tau)
        lam.setflags(write=False)
        psi.setflags(write=False)
        self.Lambda = lam
        self.Psi = psi

    @property
    def at_start(self) -> bool:
        """True when τ = 0, i.e. the query coincides with the first state."""
        return self.tau == 0.0

    @property
    def at_end(self) -> bool:
        """True when τ = Δt, i.e. the query coincides with the second state."""
        return self.tau == self.delta_t

    def interpolate(
        self,
        pose1: Union[np.ndarray, Pose2],
        vel1: Velocity2,
        pose2: Union[np.ndarray, Pose2],
        vel2: Velocity2,
        compute_jacobians: bool = True,
    ) -> InterpolationResult:
        """
        Interpolated pose and velocity at τ, optionally with all Jacobians.

        Args:
            compute_jacobians: If False, only the state is computed and the
                J_* fields of the result are None.

        Returns:
            InterpolationResult (pose, velocity, J_pose1, J_vel1, J_pose2,
            J_vel2); each J_* is an InterpolationJacobian pair of 3×3 blocks.
        """
        pose1 = as_pose_array(pose1, "pose1")
        pose2 = as_pose_array(pose2, "pose2")
        vel1 = as_vector(vel1, DOF, "vel1")
        vel2 = as_vector(vel2, DOF, "vel2")

        if self.at_start:
            return self._boundary_result(pose1, vel1, True, compute_jacobians)
        if self.at_end:
            return self._boundary_result(pose2, vel2, False, compute_jacobians)

        # Weight blocks: p = pose rows, v = velocity rows; r / v columns act
        # on the relative pose and the velocity of a boundary state
        lam_pv = self.Lambda[:DOF, DOF:]
        lam_vv = self.Lambda[DOF:, DOF:]
        psi_pr = self.Psi[:DOF, :DOF]
        psi_pv = self.Psi[:DOF, DOF:]
        psi_vr = self.Psi[DOF:, :DOF]
        psi_vv = self.Psi[DOF:, DOF:]

        if compute_jacobians:
            between, H_between_1, _ = se2_relative(pose1, pose2, return_jacobians=True)
            r, H_log = se2_logmap(between, return_jacobian=True)
        else:
            r = se2_logmap(se2_relative(pose1, pose2))

        xi = lam_pv @ vel1 + psi_pr @ r + psi_pv @ vel2
        vel_tau = lam_vv @ vel1 + psi_vr @ r + psi_vv @ vel2

        if not compute_jacobians:
            return InterpolationResult(se2_compose(pose1, se2_expmap(xi)), vel_tau)

        dr_dpose1 = H_log @ H_between_1
        dr_dpose2 = H_log
        exp_xi, H_exp = se2_expmap(xi, return_jacobian=True)
        pose_tau = se2_compose(pose1, exp_xi)

        # ∂(pose1 · Exp(ξ))/∂pose1 at fixed ξ
        H_compose_1 = se2_adjoint(se2_inverse(exp_xi))

        J_pose1 = InterpolationJacobian(
            pose=H_compose_1 + H_exp @ psi_pr @ dr_dpose1,
            velocity=psi_vr @ dr_dpose1,
        )
        J_vel1 = InterpolationJacobian(pose=H_exp @ lam_pv, velocity=lam_vv.copy())
        J_pose2 = InterpolationJacobian(
            pose=H_exp @ psi_pr @ dr_dpose2,
            velocity=psi_vr @ dr_dpose2,
        )
        J_vel2 = InterpolationJacobian(pose=H_exp @ psi_pv, velocity=psi_vv.copy())

        return InterpolationResult(pose_tau, vel_tau, J_pose1, J_vel1, J_pose2, J_vel2)

    @staticmethod
    def _boundary_result(
        pose: np.ndarray, vel: np.ndarray, first: bool, compute_jacobians: bool
    ) -> InterpolationResult:
        if not compute_jacobians:
            return InterpolationResult(pose.copy(), vel.copy())

        def block(pose_part: bool, vel_part: bool) -> InterpolationJacobian:
            return InterpolationJacobian(
                pose=np.eye(DOF) if pose_part else np.zeros((DOF, DOF)),
                velocity=np.eye(DOF) if vel_part else np.zeros((DOF, DOF)),
            )

        own = (block(True, False), block(False, True))
        other = (block(False, False), block(False, False))
        if first:
            return InterpolationResult(pose.copy(), vel.copy(), *own, *other)
        return InterpolationResult(pose.copy(), vel.copy(), *other, *own)

    @staticmethod
    def _fill(
        request: Optional[Dict[str, Optional[np.ndarray]]],
        result: InterpolationResult,
        part: str,
    ) -> None:
        if not request:
            return
        unknown = [s for s in request if s not in INTERPOLATION_SLOTS]
        if unknown:
            raise JacobianRequestError(
                f"Unknown interpolation inputs {unknown}; valid inputs are "
                f"{INTERPOLATION_SLOTS}"
            )
        by_slot = {
            "pose1": result.J_pose1,
            "vel1": result.J_vel1,
            "pose2": result.J_pose2,
            "vel2": result.J_vel2,
        }
        for slot in request:
            request[slot] = getattr(by_slot[slot], part)

    def interpolate_pose(
        self,
        pose1: Union[np.ndarray, Pose2],
        vel1: Velocity2,
        pose2: Union[np.ndarray, Pose2],
        vel2: Velocity2,
        jacobians: Optional[Dict[str, Optional[np.ndarray]]] = None,
    ) -> np.ndarray:
        """
        Interpolated pose at τ.

        Args:
            jacobians: Optional request dict keyed by "pose1", "vel1",
                "pose2", "vel2"; each present key receives ∂poseτ/∂input.

        Raises:
            JacobianRequestError: If the request names an unknown input.
        """
        result = self.interpolate(pose1, vel1, pose2, vel2, compute_jacobians=bool(jacobians))
        self._fill(jacobians, result, "pose")
        return result.pose

    def interpolate_velocity(
        self,
        pose1: Union[np.ndarray, Pose2],
        vel1: Velocity2,
        pose2: Union[np.ndarray, Pose2],
        vel2: Velocity2,
        jacobians: Optional[Dict[str, Optional[np.ndarray]]] = None,
    ) -> np.ndarray:
        """Interpolated velocity at τ; jacobians as in interpolate_pose."""
        result = self.interpolate(pose1, vel1, pose2, vel2, compute_jacobians=bool(jacobians))
        self._fill(jacobians, result, "velocity")
        return result.velocity

    def __repr__(self) -> str:
        return (
            f"GaussianProcessInterpolatorPose2(delta_t={self.delta_t}, "
            f"tau={self.tau}, qc_diag={np.diag(self.qc)})"
        )
