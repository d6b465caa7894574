"""
White-noise-on-acceleration GP kernel matrices.

The motion model between two support states is the linear time-invariant SDE

    d/dt [ξ; ξ̇] = A [ξ; ξ̇] + F w(t),   w(t) ~ GP(0, Qc δ(t - t'))

expressed in the tangent space anchored at the first pose, where
A = [[0, I], [0, 0]] and F = [0; I]. Its transition matrix and integrated
process covariance over an interval of length t are

    Φ(t) = [[I, t·I],
            [0,   I]]

    Q(t) = [[t³/3·Qc, t²/2·Qc],
            [t²/2·Qc,   t·Qc ]]

with closed-form inverse

    Q(t)⁻¹ = [[ 12/t³·Qc⁻¹, -6/t²·Qc⁻¹],
              [ -6/t²·Qc⁻¹,  4/t·Qc⁻¹ ]]

GP conditional-mean interpolation at τ ∈ [0, Δt] uses the weights

    Ψ(τ) = Q(τ) Φ(Δt - τ)ᵀ Q(Δt)⁻¹
    Λ(τ) = Φ(τ) - Ψ(τ) Φ(Δt)

so that the interpolated state is Λ(τ)·x(0) + Ψ(τ)·x(Δt).

References:
    - Barfoot, Tong, Sarkka, "Batch Continuous-Time Trajectory Estimation as
      Exactly Sparse Gaussian Process Regression", RSS 2014.
    - Anderson, Barfoot, "Full STEAM Ahead", IROS 2015.
"""

from typing import Optional, Tuple, Union

import numpy as np
from scipy import linalg

from ..errors import GPConfigurationError, NumericalDegeneracyError
from ..estimators.noise_model import GaussianNoiseModel

DOF = 3  # tangent dimension of SE(2)


def validate_qc(qc: Union[np.ndarray, GaussianNoiseModel]) -> np.ndarray:
    """
    Check a process noise specification and return it as a 3×3 array.

    Args:
        qc: Power spectral density matrix Qc (3×3), or a Gaussian noise model
            whose covariance is Qc.

    Returns:
        Read-only float array of shape (3, 3).

    Raises:
        GPConfigurationError: If Qc is not 3×3, not finite, not symmetric or
            not positive-definite.
    """
    if isinstance(qc, GaussianNoiseModel):
        qc = qc.covariance
    qc = np.array(qc, dtype=np.float64)

    if qc.shape != (DOF, DOF):
        raise GPConfigurationError(f"Qc must have shape (3, 3), got {qc.shape}")
    if not np.all(np.isfinite(qc)):
        raise GPConfigurationError("Qc must be finite")
    if not np.allclose(qc, qc.T):
        raise GPConfigurationError("Qc must be symmetric")
    try:
        linalg.cholesky(qc, lower=True)
    except linalg.LinAlgError as e:
        raise GPConfigurationError(
            f"Qc must be positive-definite, got eigenvalues {np.linalg.eigvalsh(qc)}"
        ) from e

    qc.setflags(write=False)
    return qc


def validate_interval(delta_t: float, tau: Optional[float] = None) -> None:
    """
    Check interval parameters Δt > 0 and, if given, 0 ≤ τ ≤ Δt.

    Raises:
        GPConfigurationError: On any violation.
    """
    if not np.isfinite(delta_t) or delta_t <= 0:
        raise GPConfigurationError(f"delta_t must be positive, got {delta_t}")
    if tau is None:
        return
    if not np.isfinite(tau) or tau < 0 or tau > delta_t:
        raise GPConfigurationError(
            f"tau must lie in [0, delta_t] = [0, {delta_t}], got {tau}"
        )


def calc_phi(t: float) -> np.ndarray:
    """State transition matrix Φ(t) of the constant-velocity model (6×6)."""
    I = np.eye(DOF)
    Z = np.zeros((DOF, DOF))
    return np.block([[I, t * I], [Z, I]])


def calc_q(qc: np.ndarray, t: float) -> np.ndarray:
    """Integrated process covariance Q(t) over an interval of length t (6×6)."""
    return np.block(
        [
            [t**3 / 3.0 * qc, t**2 / 2.0 * qc],
            [t**2 / 2.0 * qc, t * qc],
        ]
    )


def calc_q_inv(qc: np.ndarray, t: float) -> np.ndarray:
    """
    Closed-form inverse of Q(t) (6×6).

    Raises:
        NumericalDegeneracyError: If the inverse is not finite, which happens
            when t underflows or Qc is numerically singular.
    """
    qc_inv = linalg.cho_solve(linalg.cho_factor(qc, lower=True), np.eye(DOF))
    # numpy scalar so that an underflowing t³ divides to inf instead of raising
    t = np.float64(t)
    with np.errstate(divide="ignore", over="ignore", invalid="ignore", under="ignore"):
        q_inv = np.block(
            [
                [12.0 / t**3 * qc_inv, -6.0 / t**2 * qc_inv],
                [-6.0 / t**2 * qc_inv, 4.0 / t * qc_inv],
            ]
        )
    if not np.all(np.isfinite(q_inv)):
        raise NumericalDegeneracyError(f"Q(t) is singular for t={t}")
    return q_inv


def calc_lambda_psi(
    qc: np.ndarray, delta_t: float, tau: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    GP interpolation weights Λ(τ) and Ψ(τ) (each 6×6).

    At the boundaries the weights are set exactly: τ = 0 gives Λ = I, Ψ = 0,
    τ = Δt gives Λ = 0, Ψ = I.

    Args:
        qc: Validated process noise matrix (3×3).
        delta_t: Interval length Δt > 0.
        tau: Query offset in [0, Δt].

    Returns:
        Tuple (Lambda, Psi).
    """
    if tau == 0.0:
        return np.eye(2 * DOF), np.zeros((2 * DOF, 2 * DOF))
    if tau == delta_t:
        return np.zeros((2 * DOF, 2 * DOF)), np.eye(2 * DOF)

    psi = calc_q(qc, tau) @ calc_phi(delta_t - tau).T @ calc_q_inv(qc, delta_t)
    lam = calc_phi(tau) - psi @ calc_phi(delta_t)
    return lam, psi
