"""Exception types raised by gpslam factors and solvers.

Three kinds of failure are distinguished:

    - GPConfigurationError: a factor or interpolator was constructed with
      invalid fixed parameters (Δt ≤ 0, τ outside [0, Δt], a process noise
      matrix Qc that is not symmetric positive-definite, non-positive sigmas).
      Raised at construction time and never retried.
    - NumericalDegeneracyError: an evaluation hit a point where the residual
      or its derivative is undefined (zero-distance range, singular Q(Δt)).
      Raised at evaluation time; recovery is left to the caller.
    - JacobianRequestError: a caller asked for a Jacobian block for a slot or
      variable that the factor does not couple.

GPConfigurationError derives from ValueError so that callers which already
guard construction with ``except ValueError`` keep working.
"""


class GPConfigurationError(ValueError):
    """Invalid construction-time parameter for an interpolator or factor."""


class NumericalDegeneracyError(ArithmeticError):
    """Residual or Jacobian is undefined at the evaluation point."""


class JacobianRequestError(KeyError):
    """Jacobian requested for a variable the factor does not couple."""
