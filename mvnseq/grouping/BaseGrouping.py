# mvnseq/grouping/BaseGrouping.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import torch

from mvnseq.params import PopulationParams

DTYPE = torch.float64


class BaseGrouping(ABC):
    """
    How emission parameters are tied across groups (the M-step for means and covariances).

    Parameters
    ----------
    min_covar : float
        Added to the diagonal of every covariance an M-step produces.
    """

    #: smallest number of groups the strategy can estimate
    min_groups: int = 1

    def __init__(self, min_covar: float = 0.0):
        self.min_covar = float(min_covar)
        self.population: Optional[PopulationParams] = None

    def __repr__(self):
        return f"{self.__class__.__name__}(min_covar={self.min_covar})"

    def initialize(self, params: List[Any]) -> None:
        """Tie the per-group initial estimates together (no-op by default)."""

    @abstractmethod
    def m_step(self, ys: List[torch.Tensor], params: List[Any]) -> None:
        """Re-estimate means and covariances in place from each group's posterior."""
        raise NotImplementedError

    @abstractmethod
    def dof(self, n_states: int, n_features: int, n_groups: int) -> int:
        """Number of free emission parameters."""
        raise NotImplementedError

    def prior_log_likelihood(self, params: List[Any]) -> float:
        """Extra log-likelihood term contributed by the grouping (0 unless random effects)."""
        return 0.0

    def _regularize(self, covs: torch.Tensor) -> torch.Tensor:
        if self.min_covar:
            covs = covs + self.min_covar * torch.eye(covs.shape[-1], dtype=covs.dtype)
        return covs

    @staticmethod
    def n_cov_params(n_states: int, n_features: int) -> int:
        return n_states * n_features * (n_features + 1) // 2
