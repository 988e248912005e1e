# mvnseq/grouping/IndependentGrouping.py
from typing import Any, List

import torch

from mvnseq.distributions import weighted_stats
from mvnseq.grouping.BaseGrouping import BaseGrouping


class IndependentGrouping(BaseGrouping):
    """Every sequence has its own means and covariances (the single-sequence M-step)."""

    def m_step(self, ys: List[torch.Tensor], params: List[Any]) -> None:
        for y, p in zip(ys, params):
            stats = weighted_stats(y, p.posterior)
            p.mvn.means = stats.mean
            # population normalization: divide by the weight sum
            p.mvn.covs = self._regularize(stats.scatter / stats.weight.view(-1, 1, 1))

    def dof(self, n_states: int, n_features: int, n_groups: int) -> int:
        return n_groups * (n_states * n_features + self.n_cov_params(n_states, n_features))
