"""Type definitions for planar poses, velocities and landmarks.

Poses are carried through the numerical code as NumPy arrays [x, y, yaw]
of shape (3,). The Pose2 dataclass is a convenience wrapper for building
and inspecting poses; inserting a Pose2 into a Values container also marks
that variable as living on the SE(2) manifold.

Key types:
    - Pose2: SE(2) pose representation [x, y, yaw]
    - Velocity2: type alias for a body-frame twist [vx, vy, omega]
    - Point2: type alias for a 2D landmark position [x, y]
"""

from dataclasses import dataclass

import numpy as np


# Type aliases for clarity and documentation
Velocity2 = np.ndarray  # Shape (3,), body-frame twist [vx, vy, omega]
Point2 = np.ndarray  # Shape (2,), landmark position (meters)


@dataclass(frozen=True)
class Pose2:
    """
    SE(2) pose representation.

    Represents a rigid transformation in the plane: position (x, y) and
    orientation (yaw angle).

    Attributes:
        x: Position in x-axis (meters).
        y: Position in y-axis (meters).
        yaw: Heading angle (radians), measured counter-clockwise from the
             positive x-axis.

    Examples:
        >>> p = Pose2(x=10.0, y=5.0, yaw=np.pi/2)
        >>> p.to_array()
        array([10.        ,  5.        ,  1.57079633])
        >>> Pose2.from_array(np.array([1.0, 2.0, 0.0]))
        Pose2(x=1.0000, y=2.0000, yaw=0.0000)
    """

    x: float
    y: float
    yaw: float

    def __post_init__(self) -> None:
        """Validate pose values after initialization."""
        if not np.isfinite(self.x):
            raise ValueError(f"x must be finite, got {self.x}")
        if not np.isfinite(self.y):
            raise ValueError(f"y must be finite, got {self.y}")
        if not np.isfinite(self.yaw):
            raise ValueError(f"yaw must be finite, got {self.yaw}")

    def to_array(self) -> np.ndarray:
        """Convert pose to NumPy array [x, y, yaw] of shape (3,)."""
        return np.array([self.x, self.y, self.yaw], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Pose2":
        """
        Create Pose2 from NumPy array [x, y, yaw].

        Raises:
            ValueError: If array does not have exactly 3 elements.
        """
        arr = np.asarray(arr, dtype=np.float64)
        if arr.shape != (3,):
            raise ValueError(f"Array must have shape (3,), got {arr.shape}")
        return cls(x=float(arr[0]), y=float(arr[1]), yaw=float(arr[2]))

    @classmethod
    def identity(cls) -> "Pose2":
        """Create identity pose (origin with zero rotation)."""
        return cls(x=0.0, y=0.0, yaw=0.0)

    def __repr__(self) -> str:
        """Readable string representation."""
        return f"Pose2(x={self.x:.4f}, y={self.y:.4f}, yaw={self.yaw:.4f})"


def as_pose_array(p, name: str = "pose") -> np.ndarray:
    """Convert a Pose2 or array-like [x, y, yaw] to a float array of shape (3,)."""
    if isinstance(p, Pose2):
        return p.to_array()
    p = np.asarray(p, dtype=np.float64)
    if p.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {p.shape}")
    return p


def as_vector(v, dim: int, name: str) -> np.ndarray:
    """Convert array-like to a float vector of shape (dim,)."""
    v = np.asarray(v, dtype=np.float64)
    if v.shape != (dim,):
        raise ValueError(f"{name} must have shape ({dim},), got {v.shape}")
    return v
