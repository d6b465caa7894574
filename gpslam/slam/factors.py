"""Prior and range factors on support-state variables.

These anchor the graph and provide the measurement model at the support
states themselves:
    - PriorFactorPose2: absolute pose prior (e.g. initial pose, GNSS fix)
    - PriorFactorVector: prior on a vector variable (velocity)
    - PriorFactorPoint2: prior on a landmark position
    - RangeFactorPose2: range from a support pose to a landmark

Together with gpslam.gp.prior.GaussianProcessPriorPose2 and
gpslam.slam.range_factor.GPInterpolatedRangeFactorPose2 they form a complete
range-only SLAM graph.
"""

from typing import Dict, Hashable, Optional, Union

import numpy as np

from ..estimators.factor_graph import Factor
from ..estimators.noise_model import GaussianNoiseModel
from ..geometry.se2 import se2_logmap, se2_range, se2_relative
from ..geometry.types import Point2, Pose2, as_pose_array, as_vector


class PriorFactorPose2(Factor):
    """
    Prior on a single SE(2) pose.

    Residual:
        r = Log(prior⁻¹ · pose)
    with Jacobian Jr⁻¹(r) for a right perturbation of pose.

    Examples:
        >>> model = GaussianNoiseModel.from_sigma(3, 0.01)
        >>> factor = PriorFactorPose2('x1', Pose2(0.0, 0.0, 0.0), model)
    """

    slots = ("pose",)

    def __init__(
        self,
        key: Hashable,
        prior: Union[np.ndarray, Pose2],
        noise_model: GaussianNoiseModel,
    ):
        super().__init__((key,), noise_model)
        if self.noise_model.dim != 3:
            raise ValueError(f"Pose prior noise must be 3D, got dim={self.noise_model.dim}")
        self.prior = as_pose_array(prior, "prior").copy()
        self.prior.setflags(write=False)

    def evaluate_error(
        self,
        pose: np.ndarray,
        jacobians: Optional[Dict[str, Optional[np.ndarray]]] = None,
    ) -> np.ndarray:
        self._check_request(jacobians)
        r, H_log = se2_logmap(se2_relative(self.prior, pose), return_jacobian=True)
        if jacobians:
            jacobians["pose"] = H_log
        return r


class PriorFactorVector(Factor):
    """
    Prior on a vector-valued variable such as a velocity.

    Residual:
        r = value - prior,   ∂r/∂value = I
    """

    slots = ("value",)

    def __init__(self, key: Hashable, prior: np.ndarray, noise_model: GaussianNoiseModel):
        super().__init__((key,), noise_model)
        prior = np.array(prior, dtype=np.float64)
        if prior.shape != (self.noise_model.dim,):
            raise ValueError(
                f"prior must have shape ({self.noise_model.dim},) to match the "
                f"noise model, got {prior.shape}"
            )
        prior.setflags(write=False)
        self.prior = prior

    def evaluate_error(
        self,
        value: np.ndarray,
        jacobians: Optional[Dict[str, Optional[np.ndarray]]] = None,
    ) -> np.ndarray:
        self._check_request(jacobians)
        value = as_vector(value, self.prior.shape[0], "value")
        if jacobians:
            jacobians["value"] = np.eye(self.prior.shape[0])
        return value - self.prior


class PriorFactorPoint2(PriorFactorVector):
    """Prior on a 2D landmark position: r = point - prior."""

    def __init__(self, key: Hashable, prior: Point2, noise_model: GaussianNoiseModel):
        if noise_model.dim != 2:
            raise ValueError(f"Point prior noise must be 2D, got dim={noise_model.dim}")
        super().__init__(key, prior, noise_model)


class RangeFactorPose2(Factor):
    """
    Range from a support pose to a landmark, without interpolation.

    Residual:
        r = ‖point - t(pose)‖ - measurement

    Raises:
        NumericalDegeneracyError: On linearization when the pose position
            coincides with the landmark.
    """

    slots = ("pose", "point")

    def __init__(
        self,
        pose_key: Hashable,
        point_key: Hashable,
        measurement: float,
        noise_model: GaussianNoiseModel,
    ):
        super().__init__((pose_key, point_key), noise_model)
        if self.noise_model.dim != 1:
            raise ValueError(
                f"Range noise model must be 1D, got dim={self.noise_model.dim}"
            )
        self.measurement = float(measurement)

    def evaluate_error(
        self,
        pose: np.ndarray,
        point: Point2,
        jacobians: Optional[Dict[str, Optional[np.ndarray]]] = None,
    ) -> np.ndarray:
        self._check_request(jacobians)
        if not jacobians:
            return np.array([se2_range(pose, point) - self.measurement])

        r, H_pose, H_point = se2_range(pose, point, return_jacobians=True)
        if "pose" in jacobians:
            jacobians["pose"] = H_pose
        if "point" in jacobians:
            jacobians["point"] = H_point
        return np.array([r - self.measurement])
