"""Numerical helpers."""

from gpslam.utils.numerical import numerical_derivative, numerical_factor_jacobians

__all__ = ["numerical_derivative", "numerical_factor_jacobians"]
