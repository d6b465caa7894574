"""
Gaussian noise models for whitening factor residuals.

A factor with residual r and covariance Σ contributes ½‖r‖²_Σ = ½ rᵀ Σ⁻¹ r to
the graph error. Writing Σ⁻¹ = Rᵀ R with R the square-root information
matrix, the whitened residual R r has unit covariance, so the optimizer can
accumulate ½‖R r‖² and (R J)ᵀ (R J) directly.
"""

from typing import Dict, Optional

import numpy as np
from scipy import linalg

from ..errors import GPConfigurationError


class GaussianNoiseModel:
    """
    Zero-mean Gaussian noise with full covariance.

    Use the constructors from_sigma, from_sigmas, from_covariance or
    from_information rather than __init__.

    Attributes:
        sqrt_information: Triangular R with Rᵀ R = Σ⁻¹ (dim × dim).

    Examples:
        >>> model = GaussianNoiseModel.from_sigma(1, 0.1)
        >>> model.whiten(np.array([0.2]))
        array([2.])
        >>> Qc = 0.001 * np.eye(3)
        >>> GaussianNoiseModel.from_covariance(Qc).dim
        3
    """

    def __init__(self, sqrt_information: np.ndarray):
        R = np.array(sqrt_information, dtype=np.float64)
        if R.ndim != 2 or R.shape[0] != R.shape[1]:
            raise GPConfigurationError(
                f"sqrt_information must be square, got shape {R.shape}"
            )
        R.setflags(write=False)
        self.sqrt_information = R

    @classmethod
    def from_sigma(cls, dim: int, sigma: float) -> "GaussianNoiseModel":
        """Isotropic noise with the same standard deviation on every axis."""
        if dim < 1:
            raise GPConfigurationError(f"dim must be >= 1, got {dim}")
        return cls.from_sigmas(np.full(dim, sigma, dtype=np.float64))

    @classmethod
    def from_sigmas(cls, sigmas: np.ndarray) -> "GaussianNoiseModel":
        """Diagonal noise from per-axis standard deviations."""
        sigmas = np.atleast_1d(np.asarray(sigmas, dtype=np.float64))
        if sigmas.ndim != 1:
            raise GPConfigurationError(f"sigmas must be 1D, got shape {sigmas.shape}")
        if np.any(~np.isfinite(sigmas)) or np.any(sigmas <= 0):
            raise GPConfigurationError(f"sigmas must be positive, got {sigmas}")
        return cls(np.diag(1.0 / sigmas))

    @classmethod
    def from_covariance(cls, covariance: np.ndarray) -> "GaussianNoiseModel":
        """
        Noise with full covariance Σ.

        Raises:
            GPConfigurationError: If Σ is not symmetric positive-definite.
        """
        cov = np.atleast_2d(np.asarray(covariance, dtype=np.float64))
        if cov.shape[0] != cov.shape[1]:
            raise GPConfigurationError(f"covariance must be square, got {cov.shape}")
        if not np.allclose(cov, cov.T):
            raise GPConfigurationError("covariance must be symmetric")
        try:
            L = linalg.cholesky(cov, lower=True)
        except linalg.LinAlgError as e:
            raise GPConfigurationError("covariance must be positive-definite") from e
        # Σ = L Lᵀ  ⇒  Σ⁻¹ = L⁻ᵀ L⁻¹, so R = L⁻¹ (lower) also satisfies Rᵀ R = Σ⁻¹
        R = linalg.solve_triangular(L, np.eye(cov.shape[0]), lower=True)
        return cls(R)

    @classmethod
    def from_information(cls, information: np.ndarray) -> "GaussianNoiseModel":
        """Noise given by its information matrix Λ = Σ⁻¹."""
        info = np.atleast_2d(np.asarray(information, dtype=np.float64))
        try:
            R = linalg.cholesky(info, lower=False)
        except linalg.LinAlgError as e:
            raise GPConfigurationError("information must be positive-definite") from e
        return cls(R)

    @property
    def dim(self) -> int:
        """Residual dimension."""
        return self.sqrt_information.shape[0]

    @property
    def information(self) -> np.ndarray:
        """Information matrix Λ = Rᵀ R."""
        return self.sqrt_information.T @ self.sqrt_information

    @property
    def covariance(self) -> np.ndarray:
        """Covariance matrix Σ = Λ⁻¹."""
        R_inv = linalg.inv(self.sqrt_information)
        return R_inv @ R_inv.T

    def whiten(self, v: np.ndarray) -> np.ndarray:
        """Whiten a residual vector: R v."""
        v = np.asarray(v, dtype=np.float64)
        if v.shape != (self.dim,):
            raise ValueError(f"Expected residual of shape ({self.dim},), got {v.shape}")
        return self.sqrt_information @ v

    def whiten_jacobians(
        self, jacobians: Dict[object, Optional[np.ndarray]]
    ) -> Dict[object, Optional[np.ndarray]]:
        """Whiten every Jacobian block in a mapping: R J. None entries are kept."""
        return {
            k: (None if J is None else self.sqrt_information @ J)
            for k, J in jacobians.items()
        }

    def distance(self, v: np.ndarray) -> float:
        """Squared Mahalanobis distance vᵀ Σ⁻¹ v."""
        w = self.whiten(v)
        return float(w @ w)

    def __repr__(self) -> str:
        sigmas = np.sqrt(np.diag(self.covariance))
        return f"GaussianNoiseModel(dim={self.dim}, sigmas={np.array2string(sigmas, precision=4)})"
