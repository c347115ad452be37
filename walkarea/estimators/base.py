"""
Common interface of the engine's recursive filters.

Both filters run a time update (``predict``) followed by a measurement
correction (``update``):
    - ScalarKalmanFilter smooths one noisy channel; its state is a float.
    - LocationFusionFilter propagates PDR steps and corrects with GPS fixes;
      its state and covariance are NumPy arrays.
``get_state()`` hands out copies so callers never alias the filter buffers.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple, Union

import numpy as np


StateLike = Union[float, np.ndarray]


class StateEstimator(ABC):
    """Predict/update contract shared by the scalar and fusion filters."""

    def __init__(self, state_dim: int):
        """
        Args:
            state_dim: Number of state components (1 for a scalar filter).
        """
        if state_dim < 1:
            raise ValueError(f"state_dim must be >= 1, got {state_dim}")
        self.state_dim = state_dim
        self.state: Optional[StateLike] = None
        self.covariance: Optional[StateLike] = None

    @abstractmethod
    def predict(self, u: Optional[np.ndarray] = None, dt: float = 0.0) -> None:
        """
        Advance the state by one step.

        Args:
            u: Step input, if the filter takes one.
            dt: Seconds since the previous step.
        """

    @abstractmethod
    def update(self, z) -> None:
        """Correct the state with measurement ``z``."""

    def get_state(self) -> Tuple[StateLike, StateLike]:
        """
        Current estimate and its uncertainty.

        Returns:
            (state, covariance); array-valued members are copies.

        Raises:
            RuntimeError: If the subclass never set a state.
        """
        if self.state is None or self.covariance is None:
            raise RuntimeError("Estimator has no state yet")
        if isinstance(self.state, np.ndarray):
            return self.state.copy(), np.array(self.covariance, copy=True)
        return self.state, self.covariance
