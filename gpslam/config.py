"""Configuration dataclasses for GP priors and the factor-graph optimizer.

Both classes are frozen and validate their fields in __post_init__, so an
invalid configuration fails where it is built rather than inside a solver
iteration.
"""

import json
import warnings
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np

from .errors import GPConfigurationError

SUPPORTED_METHODS = ("gauss_newton", "levenberg_marquardt")


@dataclass(frozen=True)
class GPPriorConfig:
    """White-noise-on-acceleration prior shared by GP factors.

    Attributes:
        delta_t: Interval between consecutive support states (seconds).
        qc_diag: Diagonal of the power spectral density Qc for
            [x, y, yaw] accelerations.

    Example:
        >>> cfg = GPPriorConfig(delta_t=0.5, qc_diag=(0.01, 0.01, 0.01))
        >>> cfg.qc
        array([[0.01, 0.  , 0.  ],
               [0.  , 0.01, 0.  ],
               [0.  , 0.  , 0.01]])
    """

    delta_t: float
    qc_diag: tuple = (0.01, 0.01, 0.01)

    def __post_init__(self) -> None:
        if not isinstance(self.delta_t, (float, int)):
            raise TypeError(f"delta_t must be numeric, got {type(self.delta_t)}")
        if self.delta_t <= 0:
            raise GPConfigurationError(f"delta_t must be positive, got {self.delta_t}")
        if len(self.qc_diag) != 3:
            raise GPConfigurationError(
                f"qc_diag must have 3 entries, got {len(self.qc_diag)}"
            )
        if any(q <= 0 for q in self.qc_diag):
            raise GPConfigurationError(f"qc_diag must be positive, got {self.qc_diag}")

    @property
    def qc(self) -> np.ndarray:
        """Qc as a 3×3 diagonal matrix."""
        return np.diag(np.asarray(self.qc_diag, dtype=np.float64))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GPPriorConfig":
        return cls(delta_t=float(data["delta_t"]), qc_diag=tuple(data["qc_diag"]))


@dataclass(frozen=True)
class OptimizerParams:
    """Parameters for FactorGraph.optimize.

    Attributes:
        method: "gauss_newton" or "levenberg_marquardt".
        max_iterations: Iteration budget.
        relative_error_tol: Stop when the relative error decrease falls below.
        absolute_error_tol: Stop when the absolute error decrease falls below.
        error_tol: Stop when the total error falls below.
        initial_lambda: Initial LM damping μ.
        verbose: Print per-iteration error.
    """

    method: str = "gauss_newton"
    max_iterations: int = 100
    relative_error_tol: float = 1e-5
    absolute_error_tol: float = 1e-5
    error_tol: float = 0.0
    initial_lambda: float = 1e-3
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.method not in SUPPORTED_METHODS:
            raise ValueError(
                f"Unknown method: {self.method}. Expected one of {SUPPORTED_METHODS}"
            )
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.initial_lambda <= 0:
            raise ValueError(f"initial_lambda must be positive, got {self.initial_lambda}")
        if self.relative_error_tol < 0 or self.absolute_error_tol < 0:
            raise ValueError("error tolerances must be non-negative")
        if self.max_iterations > 10000:
            warnings.warn(
                f"max_iterations={self.max_iterations} is unusually large for "
                f"Gauss-Newton style solvers.",
                UserWarning,
            )


@dataclass(frozen=True)
class ExperimentConfig:
    """Bundle of configs loaded from a JSON file by the example scripts."""

    gp: GPPriorConfig
    optimizer: OptimizerParams = field(default_factory=OptimizerParams)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ExperimentConfig":
        """
        Load from a JSON file with "gp" and optional "optimizer" sections.

        Example file:
            {"gp": {"delta_t": 0.5, "qc_diag": [0.01, 0.01, 0.01]},
             "optimizer": {"method": "levenberg_marquardt"}}
        """
        with open(path) as f:
            data = json.load(f)
        gp = GPPriorConfig.from_dict(data["gp"])
        optimizer = OptimizerParams(**data.get("optimizer", {}))
        return cls(gp=gp, optimizer=optimizer)

    def to_dict(self) -> Dict[str, Any]:
        return {"gp": asdict(self.gp), "optimizer": asdict(self.optimizer)}
