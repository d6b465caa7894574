"""
gpslam: Gaussian Process interpolated range factors for planar SLAM.

Subpackages:
    - geometry: SE(2) pose algebra with analytic Jacobians
    - gp: GP kernel matrices, interpolator and motion prior factor
    - estimators: noise models and factor-graph optimization
    - slam: range and prior factors
    - utils: numerical differentiation
"""

__version__ = "0.1.0"
