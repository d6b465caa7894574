"""
Least-squares estimation over factor graphs.

Available components:
    - GaussianNoiseModel: whitening of residuals and Jacobians
    - Factor, FactorGraph: nonlinear factor graph on manifold-valued variables
    - Values: variable assignment with per-variable manifold (vector / pose2)
    - Gauss-Newton and Levenberg-Marquardt via FactorGraph.optimize
"""

from gpslam.estimators.noise_model import GaussianNoiseModel
from gpslam.estimators.factor_graph import (
    POSE2,
    VECTOR,
    Factor,
    FactorGraph,
    OptimizationResult,
    Values,
    symbol,
)

__all__ = [
    # Noise models
    "GaussianNoiseModel",
    # Factor graph
    "Factor",
    "FactorGraph",
    "Values",
    "OptimizationResult",
    "symbol",
    "POSE2",
    "VECTOR",
]
