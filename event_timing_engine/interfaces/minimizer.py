"""Minimizer interface consumed by the curve fitter."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

ResidualFn = Callable[[np.ndarray], np.ndarray]
JacobianFn = Callable[[np.ndarray], np.ndarray]


@dataclass
class MinimizerResult:
    params: np.ndarray
    covariance: np.ndarray
    iterations: int
    converged: bool
    residual_norm: float
    jacobian: Optional[np.ndarray] = None
    message: str = ""


class Minimizer(ABC):
    """Bounded nonlinear least-squares solver treated as a black box."""

    name: str = "minimizer"

    @abstractmethod
    def minimize(
        self,
        residual_fn: ResidualFn,
        initial: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        max_iterations: int,
        jacobian_fn: Optional[JacobianFn] = None,
    ) -> MinimizerResult:
        """Minimize ``sum(residual_fn(p)**2)`` inside the box [lower, upper]."""
