# mvnseq/grouping/SharedCovariance.py
from typing import Any, List

import torch

from mvnseq.distributions import weighted_stats
from mvnseq.grouping.BaseGrouping import BaseGrouping


class SharedCovariance(BaseGrouping):
    """
    Fixed effects: each group has its own component means, while each
    component's covariance is pooled over all groups.
    """

    def initialize(self, params: List[Any]) -> None:
        shared = torch.stack([p.mvn.covs for p in params]).mean(0)
        for p in params:
            p.mvn.covs = shared.clone()

    def m_step(self, ys: List[torch.Tensor], params: List[Any]) -> None:
        scatter, weight = 0.0, 0.0
        for y, p in zip(ys, params):
            stats = weighted_stats(y, p.posterior)
            p.mvn.means = stats.mean
            scatter = scatter + stats.scatter
            weight = weight + stats.weight

        shared = self._regularize(scatter / weight.view(-1, 1, 1))
        for p in params:
            p.mvn.covs = shared.clone()

    def dof(self, n_states: int, n_features: int, n_groups: int) -> int:
        return n_groups * n_states * n_features + self.n_cov_params(n_states, n_features)
