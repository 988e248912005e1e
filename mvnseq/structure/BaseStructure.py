# mvnseq/structure/BaseStructure.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import torch

from mvnseq.distributions import mvn
from mvnseq.params import MVNParams

DTYPE = torch.float64


class BaseStructure(ABC):
    """
    Temporal structure of the latent classes (the E-step half of EM).

    A structure knows how to build initial parameters for one sequence from
    hard labels, how to compute posterior class probabilities for that
    sequence together with its log-likelihood, and how to update the
    non-emission parameters (mixing fractions, initial/transition
    probabilities). Emission means and covariances are left to the grouping
    strategy.
    """

    #: keyword used by the fit drivers for the "share across groups" flag
    common_name: str = "common"

    @abstractmethod
    def initialize(self,
                   y: torch.Tensor,
                   labels: torch.Tensor,
                   n_states: int,
                   covariates: Optional[torch.Tensor] = None) -> Any:
        """Initial parameters for one sequence from zero-based hard labels."""
        raise NotImplementedError

    @abstractmethod
    def e_step(self, y: torch.Tensor, params: Any, covariates: Optional[torch.Tensor] = None) -> Any:
        """
        Update `params` in place with the posterior, log-likelihood and the
        non-emission parameters, and return it.
        """
        raise NotImplementedError

    @abstractmethod
    def dof(self, n_states: int, params: List[Any], common: bool) -> int:
        """Number of free non-emission parameters across all groups."""
        raise NotImplementedError

    def merge_common(self, params: List[Any], weights: torch.Tensor) -> None:
        """Replace every group's class probabilities by their size-weighted average."""
        shared = sum(w * p.weights for w, p in zip(weights, params))
        for p in params:
            p.weights = shared.clone()

    # ----------------------
    # Shared helpers
    # ----------------------
    @staticmethod
    def init_emissions(y: torch.Tensor, labels: torch.Tensor, n_states: int) -> MVNParams:
        means, covs = mvn.sample_moments(y, labels, n_states)
        return MVNParams(means, covs)

    @staticmethod
    def label_frequencies(labels: torch.Tensor, n_states: int) -> torch.Tensor:
        return torch.bincount(labels, minlength=n_states).to(DTYPE) / labels.numel()
