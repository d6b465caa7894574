"""GP-interpolated range-only SLAM examples.

Examples:
    - example_gp_range_slam.py: two support states, three range measurements
      taken between them, one landmark

Key Concepts Demonstrated:
    - GP interpolation of poses between support states
    - Range factors at interpolated poses
    - Constant-velocity GP motion prior
    - Factor graph optimization (Gauss-Newton / Levenberg-Marquardt)

Dependencies:
    - gpslam: geometry, GP factors, factor graph
    - matplotlib: Visualization
    - numpy: Numerical operations
"""

__version__ = "0.1.0"

__all__ = []
