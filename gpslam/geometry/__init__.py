"""Planar pose algebra for GP-interpolated factor graphs.

Main components:
    - Pose2: SE(2) pose dataclass
    - se2_compose, se2_inverse, se2_relative: group operations with Jacobians
    - se2_expmap, se2_logmap and their derivatives
    - se2_range: pose-to-landmark range with Jacobians

Example usage:
    >>> from gpslam.geometry import se2_compose, se2_logmap
    >>> import numpy as np
    >>> p = se2_compose(np.array([1.0, 0.0, 0.0]), np.array([1.0, 0.0, 0.0]))
    >>> se2_logmap(p)
    array([2., 0., 0.])
"""

from .se2 import (
    se2_adjoint,
    se2_compose,
    se2_expmap,
    se2_expmap_derivative,
    se2_inverse,
    se2_local,
    se2_logmap,
    se2_logmap_derivative,
    se2_range,
    se2_relative,
    se2_retract,
    wrap_angle,
)
from .types import Point2, Pose2, Velocity2, as_pose_array, as_vector

__all__ = [
    # Core types
    "Pose2",
    "Point2",
    "Velocity2",
    "as_pose_array",
    "as_vector",
    # SE(2) operations
    "se2_adjoint",
    "se2_compose",
    "se2_inverse",
    "se2_relative",
    "se2_expmap",
    "se2_logmap",
    "se2_expmap_derivative",
    "se2_logmap_derivative",
    "se2_retract",
    "se2_local",
    "se2_range",
    "wrap_angle",
]
