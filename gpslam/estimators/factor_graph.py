"""
Factor Graph Optimization over manifold-valued variables.

A factor graph holds factors, each coupling a few variables through a residual
r(x) with Gaussian noise. The MAP estimate minimizes

    E(X) = Σᵢ ½ ‖Rᵢ rᵢ(X)‖²

where Rᵢ is the square-root information matrix of factor i. Variables are
either plain vectors (velocities, landmark positions) or SE(2) poses; both are
updated through a retraction

    vector:  x ← x + δ
    pose2:   p ← p · Exp(δ)

so each factor's Jacobians are taken with respect to the same local
perturbation δ.

Implements:
    - Gauss-Newton: (JᵀJ) δ = -Jᵀr on the whitened system
    - Levenberg-Marquardt: (JᵀJ + μI) δ = -Jᵀr with gain-ratio damping update
"""

import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from scipy import linalg

from ..config import OptimizerParams
from ..errors import JacobianRequestError
from ..geometry.se2 import se2_local, se2_retract, wrap_angle
from ..geometry.types import Pose2
from .noise_model import GaussianNoiseModel

POSE2 = "pose2"
VECTOR = "vector"


def symbol(char: str, index: int) -> str:
    """
    Build a readable variable key such as "x1" or "l3".

    Examples:
        >>> symbol('x', 1)
        'x1'
    """
    if len(char) != 1 or not char.isalpha():
        raise ValueError(f"char must be a single letter, got {char!r}")
    if index < 0:
        raise ValueError(f"index must be non-negative, got {index}")
    return f"{char}{index}"


class Values:
    """
    Assignment of values to variable keys.

    Each value is stored as a read-only float array together with the manifold
    it lives on. Inserting a Pose2 marks the variable as an SE(2) pose; arrays
    are treated as vectors unless manifold="pose2" is given.

    Examples:
        >>> values = Values()
        >>> values.insert('x1', Pose2(0.0, 0.0, 0.0))
        >>> values.insert('v1', np.array([1.0, 0.0, 0.0]))
        >>> values.manifold('x1'), values.manifold('v1')
        ('pose2', 'vector')
    """

    def __init__(self):
        self._values: Dict[Hashable, np.ndarray] = {}
        self._manifolds: Dict[Hashable, str] = {}

    def insert(self, key: Hashable, value, manifold: Optional[str] = None) -> None:
        """
        Add a new variable.

        Raises:
            KeyError: If the key already exists.
            ValueError: If the manifold is unknown or a pose has wrong shape.
        """
        if key in self._values:
            raise KeyError(f"Variable {key!r} already in values")
        if isinstance(value, Pose2):
            manifold = POSE2
        elif manifold is None:
            manifold = VECTOR
        if manifold not in (POSE2, VECTOR):
            raise ValueError(f"Unknown manifold: {manifold}")
        self._manifolds[key] = manifold
        self._values[key] = self._to_array(value, manifold)

    def update(self, key: Hashable, value) -> None:
        """Replace the value of an existing variable, keeping its manifold."""
        if key not in self._values:
            raise KeyError(f"Variable {key!r} not in values")
        self._values[key] = self._to_array(value, self._manifolds[key])

    @staticmethod
    def _to_array(value, manifold: str) -> np.ndarray:
        if isinstance(value, Pose2):
            arr = value.to_array()
        else:
            arr = np.array(value, dtype=np.float64)
        if arr.ndim != 1:
            raise ValueError(f"Values must be 1D, got shape {arr.shape}")
        if manifold == POSE2:
            if arr.shape != (3,):
                raise ValueError(f"Pose must have shape (3,), got {arr.shape}")
            arr[2] = wrap_angle(arr[2])
        arr.setflags(write=False)
        return arr

    def at(self, key: Hashable) -> np.ndarray:
        """Value of a variable as a read-only array."""
        return self._values[key]

    def at_pose2(self, key: Hashable) -> Pose2:
        if self._manifolds[key] != POSE2:
            raise TypeError(f"Variable {key!r} is not a pose")
        return Pose2.from_array(self._values[key])

    def manifold(self, key: Hashable) -> str:
        return self._manifolds[key]

    def dim(self, key: Hashable) -> int:
        """Tangent-space dimension of a variable."""
        return self._values[key].shape[0]

    def keys(self) -> List[Hashable]:
        return list(self._values.keys())

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._values)

    def copy(self) -> "Values":
        new = Values()
        new._values = dict(self._values)
        new._manifolds = dict(self._manifolds)
        return new

    def retract(self, delta: Dict[Hashable, np.ndarray]) -> "Values":
        """
        Return new Values moved along per-variable tangent vectors.

        Variables missing from delta are unchanged.
        """
        new = self.copy()
        for key, d in delta.items():
            if self._manifolds[key] == POSE2:
                updated = se2_retract(self._values[key], d)
            else:
                updated = self._values[key] + d
            updated.setflags(write=False)
            new._values[key] = updated
        return new

    def local(self, other: "Values") -> Dict[Hashable, np.ndarray]:
        """Tangent vectors taking self to other, per shared variable."""
        delta = {}
        for key in self._values:
            if key not in other:
                continue
            if self._manifolds[key] == POSE2:
                delta[key] = se2_local(self._values[key], other.at(key))
            else:
                delta[key] = other.at(key) - self._values[key]
        return delta

    def __repr__(self) -> str:
        items = ", ".join(
            f"{k!r}: {np.array2string(v, precision=4)}" for k, v in self._values.items()
        )
        return f"Values({{{items}}})"


class Factor(ABC):
    """
    Base class for all factors.

    Subclasses name their variable slots in `slots` (e.g. ("pose1", "vel1",
    "pose2", "vel2", "point")), bind one key per slot at construction and
    implement evaluate_error. Jacobians are optional outputs: callers pass a
    dict whose keys are the requested slot names and the factor fills in only
    those entries.

    Attributes:
        keys: Variable keys, one per slot, in slot order.
        noise_model: Gaussian noise model used to whiten residual/Jacobians.
    """

    slots: Tuple[str, ...] = ()

    def __init__(self, keys: Sequence[Hashable], noise_model: GaussianNoiseModel):
        if len(keys) != len(self.slots):
            raise ValueError(
                f"{type(self).__name__} couples {len(self.slots)} variables "
                f"{self.slots}, got {len(keys)} keys"
            )
        if not isinstance(noise_model, GaussianNoiseModel):
            raise TypeError(
                f"noise_model must be a GaussianNoiseModel, got {type(noise_model)}"
            )
        self.keys = tuple(keys)
        self.noise_model = noise_model

    @property
    def dim(self) -> int:
        """Residual dimension."""
        return self.noise_model.dim

    @abstractmethod
    def evaluate_error(
        self, *values: np.ndarray, jacobians: Optional[Dict[str, Optional[np.ndarray]]] = None
    ) -> np.ndarray:
        """
        Unwhitened residual at the given variable values (in slot order).

        Args:
            *values: One array per slot.
            jacobians: Optional request dict keyed by slot name. Each present
                key is overwritten with ∂r/∂(slot) of shape (dim, slot_dim).

        Raises:
            JacobianRequestError: If the request names an unknown slot.
        """

    def _check_request(self, jacobians: Optional[Dict[str, Optional[np.ndarray]]]) -> None:
        if jacobians is None:
            return
        unknown = [s for s in jacobians if s not in self.slots]
        if unknown:
            raise JacobianRequestError(
                f"{type(self).__name__} has no slots {unknown}; valid slots are {self.slots}"
            )

    def unwhitened_error(
        self, values: Values, jacobians: Optional[Dict[Hashable, Optional[np.ndarray]]] = None
    ) -> np.ndarray:
        """
        Residual looked up from a Values container.

        Args:
            values: Current variable assignment.
            jacobians: Optional request dict keyed by variable key; requested
                entries are filled with ∂r/∂(variable).

        Raises:
            JacobianRequestError: If a requested key is not coupled by this factor.
        """
        args = [values.at(k) for k in self.keys]
        if jacobians is None:
            return self.evaluate_error(*args)

        not_coupled = [k for k in jacobians if k not in self.keys]
        if not_coupled:
            raise JacobianRequestError(
                f"{type(self).__name__} does not couple variables {not_coupled}"
            )
        request = {s: None for s, k in zip(self.slots, self.keys) if k in jacobians}
        r = self.evaluate_error(*args, jacobians=request)

        for key in jacobians:
            # A key bound to several slots receives the sum of its blocks
            blocks = [request[s] for s, k in zip(self.slots, self.keys) if k == key]
            jacobians[key] = sum(blocks[1:], blocks[0])
        return r

    def whitened_error(self, values: Values) -> np.ndarray:
        return self.noise_model.whiten(self.unwhitened_error(values))

    def error(self, values: Values) -> float:
        """Factor error ½‖R r‖²."""
        return 0.5 * self.noise_model.distance(self.unwhitened_error(values))

    def linearize(self, values: Values) -> Tuple[np.ndarray, Dict[Hashable, np.ndarray]]:
        """
        Whitened residual and whitened Jacobians for every coupled variable.

        Returns:
            Tuple (b, jacobians) with b = R r and jacobians[key] = R ∂r/∂key.
        """
        jacobians = {k: None for k in self.keys}
        r = self.unwhitened_error(values, jacobians)
        return self.noise_model.whiten(r), self.noise_model.whiten_jacobians(jacobians)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(keys={self.keys}, noise={self.noise_model})"


@dataclass
class OptimizationResult:
    """Result container for factor graph optimization.

    Attributes:
        values: Optimized variable assignment.
        error_history: Total graph error before the first and after every
            iteration.
        iterations: Number of iterations performed.
        converged: Whether a convergence criterion was met.
    """

    values: Values
    error_history: List[float] = field(default_factory=list)
    iterations: int = 0
    converged: bool = False

    @property
    def final_error(self) -> float:
        return self.error_history[-1]


class FactorGraph:
    """
    Nonlinear factor graph with Gauss-Newton / Levenberg-Marquardt solvers.

    Examples:
        >>> graph = FactorGraph()
        >>> graph.add(PriorFactorPose2('x1', np.zeros(3), model))
        >>> result = graph.optimize(initial_values)
        >>> result.values.at('x1')
    """

    def __init__(self):
        self.factors: List[Factor] = []

    def add(self, factor: Factor) -> None:
        if not isinstance(factor, Factor):
            raise TypeError(f"Expected a Factor, got {type(factor)}")
        self.factors.append(factor)

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[Factor]:
        return iter(self.factors)

    def keys(self) -> List[Hashable]:
        """Distinct variable keys referenced by the factors, in first-use order."""
        seen: Dict[Hashable, None] = {}
        for factor in self.factors:
            for key in factor.keys:
                seen.setdefault(key, None)
        return list(seen)

    def error(self, values: Values) -> float:
        """Total error Σ ½‖Rᵢ rᵢ‖²."""
        return float(sum(factor.error(values) for factor in self.factors))

    def _ordering(self, values: Values) -> List[Hashable]:
        ordering = self.keys()
        missing = [k for k in ordering if k not in values]
        if missing:
            raise ValueError(f"Variables {missing} not in values")
        return ordering

    def linearize(
        self, values: Values, ordering: Optional[List[Hashable]] = None
    ) -> Tuple[np.ndarray, np.ndarray, List[Hashable]]:
        """
        Build the normal equations H δ = g about the current values.

        H = Σ JᵢᵀJᵢ (Gauss-Newton Hessian approximation)
        g = -Σ Jᵢᵀbᵢ (negative gradient)
        with Jᵢ and bᵢ whitened.

        Returns:
            Tuple (H, g, ordering) where ordering lists the variable keys in
            the stacking order of δ.
        """
        if ordering is None:
            ordering = self._ordering(values)

        var_indices = {}
        current_idx = 0
        for key in ordering:
            dim = values.dim(key)
            var_indices[key] = (current_idx, current_idx + dim)
            current_idx += dim

        H = np.zeros((current_idx, current_idx))
        g = np.zeros(current_idx)

        for factor in self.factors:
            b, jacobians = factor.linearize(values)
            for key_i, J_i in jacobians.items():
                start_i, end_i = var_indices[key_i]
                g[start_i:end_i] -= J_i.T @ b
                for key_j, J_j in jacobians.items():
                    start_j, end_j = var_indices[key_j]
                    H[start_i:end_i, start_j:end_j] += J_i.T @ J_j

        return H, g, ordering

    @staticmethod
    def _split_delta(
        delta_x: np.ndarray, ordering: List[Hashable], values: Values
    ) -> Dict[Hashable, np.ndarray]:
        delta = {}
        current_idx = 0
        for key in ordering:
            dim = values.dim(key)
            delta[key] = delta_x[current_idx : current_idx + dim]
            current_idx += dim
        return delta

    @staticmethod
    def _solve(H: np.ndarray, g: np.ndarray) -> np.ndarray:
        try:
            return linalg.cho_solve(linalg.cho_factor(H), g)
        except linalg.LinAlgError:
            warnings.warn(
                "Normal equations are not positive-definite (under-constrained "
                "graph?); falling back to least-squares solve.",
                RuntimeWarning,
            )
            return np.linalg.lstsq(H, g, rcond=None)[0]

    @staticmethod
    def _check_convergence(
        previous_error: float, current_error: float, params: OptimizerParams
    ) -> bool:
        if current_error <= params.error_tol:
            return True
        absolute_decrease = previous_error - current_error
        relative_decrease = absolute_decrease / previous_error if previous_error > 0 else 0.0
        return (0 <= absolute_decrease < params.absolute_error_tol) or (
            0 <= relative_decrease < params.relative_error_tol
        )

    def optimize(
        self, initial: Values, params: Optional[OptimizerParams] = None
    ) -> OptimizationResult:
        """
        Optimize the graph starting from initial values.

        Args:
            initial: Initial assignment for every variable referenced by the
                factors. Not modified.
            params: Solver parameters (defaults to Gauss-Newton).

        Returns:
            OptimizationResult.

        Raises:
            ValueError: If a factor references a variable missing from initial.
        """
        if params is None:
            params = OptimizerParams()
        self._ordering(initial)

        if params.method == "gauss_newton":
            result = self._gauss_newton(initial, params)
        else:
            result = self._levenberg_marquardt(initial, params)

        if not result.converged:
            warnings.warn(
                f"{params.method} stopped after {result.iterations} iterations "
                f"without converging (error {result.final_error:.6e})",
                RuntimeWarning,
            )
        return result

    def _gauss_newton(self, initial: Values, params: OptimizerParams) -> OptimizationResult:
        """
        Gauss-Newton optimization.

        Solves (JᵀJ) δ = -Jᵀb at each iteration and retracts: x ← x ⊞ δ.
        """
        values = initial.copy()
        result = OptimizationResult(values=values, error_history=[self.error(values)])
        if result.error_history[0] <= params.error_tol:
            result.converged = True
            return result

        for iteration in range(params.max_iterations):
            H, g, ordering = self.linearize(values)
            delta_x = self._solve(H, g)
            values = values.retract(self._split_delta(delta_x, ordering, values))

            current_error = self.error(values)
            result.error_history.append(current_error)
            result.iterations = iteration + 1
            if params.verbose:
                print(f"  GN iteration {iteration + 1}: error = {current_error:.6e}")

            if self._check_convergence(
                result.error_history[-2], current_error, params
            ):
                result.converged = True
                break

        result.values = values
        return result

    def _levenberg_marquardt(
        self, initial: Values, params: OptimizerParams
    ) -> OptimizationResult:
        """
        Levenberg-Marquardt optimization.

        Solves (JᵀJ + μI) δ = -Jᵀb and accepts the step when the gain ratio
            ρ = (E(x) - E(x ⊞ δ)) / (½ δᵀ(μδ + g))
        is positive, then shrinks μ by max(1/3, 1 - (2ρ - 1)³); rejected steps
        grow μ by ν and double ν.
        """
        values = initial.copy()
        result = OptimizationResult(values=values, error_history=[self.error(values)])
        if result.error_history[0] <= params.error_tol:
            result.converged = True
            return result

        mu = params.initial_lambda
        nu = 2.0
        current_error = result.error_history[0]

        for iteration in range(params.max_iterations):
            H, g, ordering = self.linearize(values)
            result.iterations = iteration + 1

            d_lm = self._solve(H + mu * np.eye(H.shape[0]), g)
            candidate = values.retract(self._split_delta(d_lm, ordering, values))
            new_error = self.error(candidate)

            actual_reduction = current_error - new_error
            predicted_reduction = 0.5 * np.dot(d_lm, mu * d_lm + g)
            gain = actual_reduction / predicted_reduction if predicted_reduction > 0 else 0.0

            if gain > 0:
                values = candidate
                previous_error, current_error = current_error, new_error
                result.error_history.append(current_error)
                mu *= max(1.0 / 3.0, 1.0 - (2.0 * gain - 1.0) ** 3)
                nu = 2.0
                if params.verbose:
                    print(
                        f"  LM iteration {iteration + 1}: error = {current_error:.6e}, "
                        f"mu = {mu:.3e}"
                    )
                if self._check_convergence(previous_error, current_error, params):
                    result.converged = True
                    break
            else:
                mu *= nu
                nu *= 2.0
                if params.verbose:
                    print(f"  LM iteration {iteration + 1}: rejected, mu = {mu:.3e}")
                if mu > 1e16:
                    break

        result.values = values
        return result
