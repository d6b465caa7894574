"""SE(2) operations with analytic Jacobians (Special Euclidean Group in 2D).

This module implements the pose algebra used by the GP interpolator and the
factors built on top of it: group composition, inversion, the relative pose
(between), the exponential and logarithm maps, their derivatives, the adjoint
map and the range from a pose to a landmark.

Conventions:
    - Poses are NumPy arrays [x, y, yaw] of shape (3,) or Pose2 instances.
    - Tangent vectors are [vx, vy, omega] (translation first).
    - Jacobians are taken with respect to right-multiplicative perturbations:
          f(p · Exp(δ)) ≈ f(p) ⊞ J δ
      which is also how se2_retract updates a pose during optimization.

Key functions:
    - se2_compose, se2_inverse, se2_relative: group operations
    - se2_expmap, se2_logmap: exponential / logarithm maps
    - se2_expmap_derivative, se2_logmap_derivative: right Jacobian and inverse
    - se2_adjoint: adjoint map Ad(p)
    - se2_range: Euclidean distance from pose position to a 2D point
    - se2_retract, se2_local: manifold update and local coordinates
"""

from typing import Tuple, Union

import numpy as np

from ..errors import NumericalDegeneracyError
from .types import Pose2, as_pose_array, as_vector

# Below this |omega| Exp/Log fall back to the pure-translation formula.
_EXPMAP_EPS = 1e-10
# Below this |omega| the right Jacobian uses its Taylor expansion.
_SERIES_EPS = 1e-4


def wrap_angle(theta: float) -> float:
    """
    Normalize angle to the range [-π, π].

    Args:
        theta: Angle in radians (can be any real value).

    Returns:
        Normalized angle in [-π, π].

    Examples:
        >>> wrap_angle(3 * np.pi)
        3.141592653589793
        >>> wrap_angle(np.pi + 0.1)
        -3.0415926535897927

    Notes:
        Uses the formula: θ_wrapped = atan2(sin(θ), cos(θ))
    """
    return float(np.arctan2(np.sin(theta), np.cos(theta)))


def se2_adjoint(p: Union[np.ndarray, Pose2]) -> np.ndarray:
    """
    Adjoint map of an SE(2) pose.

    Maps a tangent vector expressed at p into the identity frame:
        p · Exp(ξ) = Exp(Ad(p) ξ) · p

    Args:
        p: Pose [x, y, yaw] or Pose2 instance.

    Returns:
        Adjoint matrix of shape (3, 3):
            [[cos, -sin,  y],
             [sin,  cos, -x],
             [  0,    0,  1]]
    """
    x, y, yaw = as_pose_array(p, "p")
    c = np.cos(yaw)
    s = np.sin(yaw)
    return np.array(
        [[c, -s, y], [s, c, -x], [0.0, 0.0, 1.0]],
        dtype=np.float64,
    )


def se2_compose(
    p1: Union[np.ndarray, Pose2],
    p2: Union[np.ndarray, Pose2],
    return_jacobians: bool = False,
):
    """
    Compose two SE(2) poses: p_result = p1 ⊕ p2.

    The composition formula for SE(2):
        x_result = x1 + x2*cos(yaw1) - y2*sin(yaw1)
        y_result = y1 + x2*sin(yaw1) + y2*cos(yaw1)
        yaw_result = yaw1 + yaw2  (wrapped to [-π, π])

    Args:
        p1: First pose, array [x1, y1, yaw1] or Pose2 instance.
        p2: Second pose, array [x2, y2, yaw2] or Pose2 instance.
        return_jacobians: If True, also return ∂result/∂p1 and ∂result/∂p2.

    Returns:
        Composed pose as array [x, y, yaw] of shape (3,), or a tuple
        (pose, H1, H2) with H1 = Ad(p2⁻¹) and H2 = I when return_jacobians
        is set.

    Raises:
        ValueError: If poses do not have shape (3,).

    Examples:
        >>> p1 = np.array([0, 0, np.pi/2])  # 90° rotation
        >>> p2 = np.array([1, 0, 0])  # 1m forward
        >>> result = se2_compose(p1, p2)
        >>> np.allclose(result, [0, 1, np.pi/2], atol=1e-10)
        True
    """
    p1 = as_pose_array(p1, "p1")
    p2 = as_pose_array(p2, "p2")

    x1, y1, yaw1 = p1
    x2, y2, yaw2 = p2

    cos_yaw1 = np.cos(yaw1)
    sin_yaw1 = np.sin(yaw1)

    x_result = x1 + x2 * cos_yaw1 - y2 * sin_yaw1
    y_result = y1 + x2 * sin_yaw1 + y2 * cos_yaw1
    yaw_result = wrap_angle(yaw1 + yaw2)

    result = np.array([x_result, y_result, yaw_result], dtype=np.float64)
    if not return_jacobians:
        return result

    H1 = se2_adjoint(se2_inverse(p2))
    H2 = np.eye(3)
    return result, H1, H2


def se2_inverse(p: Union[np.ndarray, Pose2], return_jacobians: bool = False):
    """
    Compute the inverse of an SE(2) pose: p_inv = p⁻¹.

    The inverse formula for SE(2):
        x_inv = -(x*cos(yaw) + y*sin(yaw))
        y_inv = -(-x*sin(yaw) + y*cos(yaw))
        yaw_inv = -yaw  (wrapped to [-π, π])

    Args:
        p: Pose to invert, array [x, y, yaw] or Pose2 instance.
        return_jacobians: If True, also return ∂p⁻¹/∂p = -Ad(p).

    Returns:
        Inverted pose as array [x, y, yaw] of shape (3,), or (pose, H).

    Raises:
        ValueError: If pose does not have shape (3,).

    Examples:
        >>> p = np.array([1, 2, np.pi/4])
        >>> np.allclose(se2_compose(p, se2_inverse(p)), [0, 0, 0], atol=1e-10)
        True
    """
    p = as_pose_array(p, "p")

    x, y, yaw = p
    cos_yaw = np.cos(yaw)
    sin_yaw = np.sin(yaw)

    x_inv = -(x * cos_yaw + y * sin_yaw)
    y_inv = -(-x * sin_yaw + y * cos_yaw)
    yaw_inv = wrap_angle(-yaw)

    result = np.array([x_inv, y_inv, yaw_inv], dtype=np.float64)
    if not return_jacobians:
        return result
    return result, -se2_adjoint(p)


def se2_relative(
    p_from: Union[np.ndarray, Pose2],
    p_to: Union[np.ndarray, Pose2],
    return_jacobians: bool = False,
):
    """
    Compute relative pose between two global poses: p_from⁻¹ ⊕ p_to.

    Args:
        p_from: Starting pose [x, y, yaw] or Pose2 instance.
        p_to: Target pose [x, y, yaw] or Pose2 instance.
        return_jacobians: If True, also return the Jacobians with respect to
            p_from (-Ad(result⁻¹)) and p_to (I).

    Returns:
        Relative pose as array [x, y, yaw], or (pose, H_from, H_to).

    Examples:
        >>> p1 = np.array([0, 0, 0])
        >>> p2 = np.array([1, 1, np.pi/2])
        >>> np.allclose(se2_relative(p1, p2), [1, 1, np.pi/2], atol=1e-10)
        True
    """
    result = se2_compose(se2_inverse(p_from), p_to)
    if not return_jacobians:
        return result
    H_from = -se2_adjoint(se2_inverse(result))
    H_to = np.eye(3)
    return result, H_from, H_to


def se2_expmap(xi: np.ndarray, return_jacobian: bool = False):
    """
    Exponential map from the tangent space to SE(2).

    For ξ = [vx, vy, ω] with ω ≠ 0:
        yaw = ω
        t = V(ω) [vx, vy],  V(ω) = (1/ω) [[sin ω, -(1 - cos ω)],
                                          [1 - cos ω, sin ω]]
    For ω ≈ 0 the map reduces to a pure translation.

    Args:
        xi: Tangent vector [vx, vy, omega] of shape (3,).
        return_jacobian: If True, also return the right Jacobian Jr(ξ).

    Returns:
        Pose [x, y, yaw], or (pose, Jr).
    """
    xi = as_vector(xi, 3, "xi")
    vx, vy, w = xi

    if abs(w) < _EXPMAP_EPS:
        pose = np.array([vx, vy, w], dtype=np.float64)
    else:
        s = np.sin(w)
        # 1 - cos(w) written with the half angle to keep precision near zero
        one_minus_c = 2.0 * np.sin(0.5 * w) ** 2
        a = s / w
        b = one_minus_c / w
        pose = np.array(
            [a * vx - b * vy, b * vx + a * vy, wrap_angle(w)], dtype=np.float64
        )

    if not return_jacobian:
        return pose
    return pose, se2_expmap_derivative(xi)


def se2_logmap(p: Union[np.ndarray, Pose2], return_jacobian: bool = False):
    """
    Logarithm map from SE(2) to the tangent space (inverse of se2_expmap).

    Args:
        p: Pose [x, y, yaw] or Pose2 instance.
        return_jacobian: If True, also return the inverse right Jacobian
            Jr⁻¹(ξ) evaluated at the result.

    Returns:
        Tangent vector [vx, vy, omega] with omega in [-π, π], or (ξ, Jr⁻¹).
    """
    x, y, yaw = as_pose_array(p, "p")
    w = wrap_angle(yaw)

    if abs(w) < _EXPMAP_EPS:
        xi = np.array([x, y, w], dtype=np.float64)
    else:
        half = 0.5 * w
        a = half / np.tan(half)
        xi = np.array([a * x + half * y, -half * x + a * y, w], dtype=np.float64)

    if not return_jacobian:
        return xi
    return xi, se2_logmap_derivative(xi)


def _right_jacobian_terms(w: float) -> Tuple[float, float, float, float]:
    """
    Scalar coefficients of the SE(2) right Jacobian.

    Returns (sin ω / ω, (1 - cos ω) / ω, (ω - sin ω) / ω², (1 - cos ω) / ω²).
    """
    if abs(w) < _SERIES_EPS:
        w2 = w * w
        return 1.0 - w2 / 6.0, 0.5 * w - w * w2 / 24.0, w / 6.0, 0.5 - w2 / 24.0
    s = np.sin(w)
    one_minus_c = 2.0 * np.sin(0.5 * w) ** 2
    return s / w, one_minus_c / w, (w - s) / (w * w), one_minus_c / (w * w)


def se2_expmap_derivative(xi: np.ndarray) -> np.ndarray:
    """
    Right Jacobian of the exponential map, Jr(ξ).

    Satisfies Exp(ξ + δ) ≈ Exp(ξ) · Exp(Jr(ξ) δ) for small δ.

    Args:
        xi: Tangent vector [vx, vy, omega].

    Returns:
        Matrix of shape (3, 3).
    """
    rho1, rho2, w = as_vector(xi, 3, "xi")
    a, b, c1, c2 = _right_jacobian_terms(w)
    return np.array(
        [
            [a, b, rho1 * c1 - rho2 * c2],
            [-b, a, rho1 * c2 + rho2 * c1],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )


def se2_logmap_derivative(xi: np.ndarray) -> np.ndarray:
    """
    Inverse right Jacobian, Jr⁻¹(ξ), i.e. the derivative of Log at Exp(ξ).

    Jr is block upper-triangular [[A, b], [0, 1]] with A a scaled rotation,
    so the inverse is formed in closed form as [[A⁻¹, -A⁻¹ b], [0, 1]].
    """
    J = se2_expmap_derivative(xi)
    a = J[0, 0]
    b = J[0, 1]
    det = a * a + b * b
    A_inv = np.array([[a, -b], [b, a]], dtype=np.float64) / det

    J_inv = np.eye(3)
    J_inv[:2, :2] = A_inv
    J_inv[:2, 2] = -A_inv @ J[:2, 2]
    return J_inv


def se2_retract(p: Union[np.ndarray, Pose2], delta: np.ndarray) -> np.ndarray:
    """Move a pose along a tangent vector: p · Exp(δ)."""
    return se2_compose(p, se2_expmap(delta))


def se2_local(p: Union[np.ndarray, Pose2], q: Union[np.ndarray, Pose2]) -> np.ndarray:
    """Local coordinates of q around p: Log(p⁻¹ · q). Inverse of se2_retract."""
    return se2_logmap(se2_relative(p, q))


def se2_range(
    p: Union[np.ndarray, Pose2],
    point: np.ndarray,
    return_jacobians: bool = False,
):
    """
    Euclidean distance from the position of a pose to a 2D point.

    Args:
        p: Pose [x, y, yaw] or Pose2 instance.
        point: Landmark position [x, y] of shape (2,).
        return_jacobians: If True, also return ∂range/∂p (1×3, with respect
            to a right perturbation of p) and ∂range/∂point (1×2).

    Returns:
        Range as float, or (range, H_pose, H_point).

    Raises:
        ValueError: If point does not have shape (2,).
        NumericalDegeneracyError: If Jacobians are requested and the point
            coincides with the pose position (gradient undefined).

    Examples:
        >>> se2_range(np.array([0.0, 0.0, 0.0]), np.array([0.0, 10.0]))
        10.0
    """
    p = as_pose_array(p, "p")
    point = np.asarray(point, dtype=np.float64)
    if point.shape != (2,):
        raise ValueError(f"point must have shape (2,), got {point.shape}")

    d = point - p[:2]
    r = float(np.hypot(d[0], d[1]))
    if not return_jacobians:
        return r

    if r == 0.0:
        raise NumericalDegeneracyError(
            f"Range Jacobian undefined: point {point} coincides with pose "
            f"position {p[:2]}"
        )

    c = np.cos(p[2])
    s = np.sin(p[2])
    # Offset to the point expressed in the pose's body frame
    d_body = np.array([c * d[0] + s * d[1], -s * d[0] + c * d[1]])

    H_pose = np.array([[-d_body[0] / r, -d_body[1] / r, 0.0]])
    H_point = np.array([[d[0] / r, d[1] / r]])
    return r, H_pose, H_point
