"""Range-only SLAM factors for GP-interpolated SE(2) trajectories.

Main components:
    - GPInterpolatedRangeFactorPose2: range measured between support states
    - RangeFactorPose2: range measured at a support state
    - PriorFactorPose2, PriorFactorVector, PriorFactorPoint2: priors
"""

from gpslam.slam.factors import (
    PriorFactorPoint2,
    PriorFactorPose2,
    PriorFactorVector,
    RangeFactorPose2,
)
from gpslam.slam.range_factor import GPInterpolatedRangeFactorPose2

__all__ = [
    "GPInterpolatedRangeFactorPose2",
    "RangeFactorPose2",
    "PriorFactorPose2",
    "PriorFactorVector",
    "PriorFactorPoint2",
]
