"""
Central-difference numerical derivatives on vector spaces and SE(2).

Used to validate the analytic Jacobians of the pose algebra, the GP
interpolator and the factors. Perturbations follow the same convention as the
analytic Jacobians: poses are perturbed on the right, p · Exp(δ), and pose
outputs are compared in local coordinates, Log(y₀⁻¹ · y).
"""

from typing import Callable, Dict, Sequence

import numpy as np

from ..geometry.se2 import se2_local, se2_retract

POSE2 = "pose2"
VECTOR = "vector"


def _perturb(x: np.ndarray, d: np.ndarray, manifold: str) -> np.ndarray:
    if manifold == POSE2:
        return se2_retract(x, d)
    if manifold == VECTOR:
        return x + d
    raise ValueError(f"Unknown manifold: {manifold}")


def numerical_derivative(
    f: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    input_manifold: str = VECTOR,
    output_manifold: str = VECTOR,
    delta: float = 1e-6,
) -> np.ndarray:
    """
    Compute ∂f/∂x numerically using central differences.

    Args:
        f: Function of a single array argument. Scalar outputs are treated as
            1-vectors.
        x: Point at which to differentiate.
        input_manifold: "vector" (x + δ) or "pose2" (x · Exp(δ)).
        output_manifold: "vector" (y - y₀) or "pose2" (Log(y₀⁻¹ · y)).
        delta: Step size.

    Returns:
        Numerical Jacobian, shape (len(y), len(x)).

    Examples:
        >>> J = numerical_derivative(lambda v: 2.0 * v, np.array([1.0, 2.0]))
        >>> np.round(J, 6)
        array([[2., 0.],
               [0., 2.]])
    """
    if delta <= 0:
        raise ValueError(f"delta must be positive, got {delta}")
    x = np.asarray(x, dtype=np.float64)
    y0 = np.atleast_1d(np.asarray(f(x), dtype=np.float64))

    J = np.zeros((y0.shape[0], x.shape[0]))
    for i in range(x.shape[0]):
        d = np.zeros(x.shape[0])
        d[i] = delta
        y_plus = np.atleast_1d(f(_perturb(x, d, input_manifold)))
        y_minus = np.atleast_1d(f(_perturb(x, -d, input_manifold)))

        if output_manifold == POSE2:
            diff = se2_local(y0, y_plus) - se2_local(y0, y_minus)
        else:
            diff = y_plus - y_minus
        J[:, i] = diff / (2.0 * delta)

    return J


def numerical_factor_jacobians(
    factor,
    args: Sequence[np.ndarray],
    manifolds: Sequence[str],
    delta: float = 1e-6,
) -> Dict[str, np.ndarray]:
    """
    Numerical Jacobians of factor.evaluate_error with respect to every slot.

    Args:
        factor: Factor instance.
        args: Variable values in the factor's slot order.
        manifolds: Manifold of each argument ("pose2" or "vector").
        delta: Step size.

    Returns:
        Dict slot name → Jacobian of shape (factor.dim, slot_dim).
    """
    if len(args) != len(factor.slots) or len(manifolds) != len(factor.slots):
        raise ValueError(
            f"Expected {len(factor.slots)} arguments and manifolds for slots "
            f"{factor.slots}"
        )
    args = [np.asarray(a, dtype=np.float64) for a in args]
    jacobians = {}
    for i, slot in enumerate(factor.slots):

        def f(x, i=i):
            perturbed = list(args)
            perturbed[i] = x
            return factor.evaluate_error(*perturbed)

        jacobians[slot] = numerical_derivative(
            f, args[i], input_manifold=manifolds[i], delta=delta
        )
    return jacobians
