# mvnseq/grouping/RandomEffects.py
from typing import Any, List

import torch

from mvnseq.distributions import weighted_stats
from mvnseq.grouping.BaseGrouping import BaseGrouping
from mvnseq.params import PopulationParams
from mvnseq.utilities import constraints


class RandomEffects(BaseGrouping):
    """
    Random effects: group component means are draws from Normal(mu_k, U_k),
    observations scatter around their group mean with covariance V_k.

    The M-step replaces each group mean by its conditional (posterior) mean
    given the group's responsibility-weighted data, then re-estimates the
    population mean, U and V from expected sufficient statistics. U and V are
    accumulated as sums of outer products and conditional covariances, so
    they stay PSD.
    """

    min_groups = 2

    def initialize(self, params: List[Any]) -> None:
        n_groups = len(params)
        if n_groups < self.min_groups:
            raise constraints.IllPosedInputError(
                f"Random effects need at least {self.min_groups} groups, got {n_groups}"
            )
        mus = torch.stack([p.mvn.means for p in params])          # (G,K,q)
        mu = mus.mean(0)
        centered = mus - mu
        U = torch.einsum('gki,gkj->kij', centered, centered) / (n_groups - 1)
        V = torch.stack([p.mvn.covs for p in params]).mean(0)

        self.population = PopulationParams(means=mu, U=U, V=V)
        for p in params:
            p.mvn.covs = V.clone()

    def m_step(self, ys: List[torch.Tensor], params: List[Any]) -> None:
        pop = self.population
        mu = pop.means
        U_inv = constraints.safe_inverse(pop.U, "Between-group covariance U")
        V_inv = constraints.safe_inverse(pop.V, "Within-group covariance V")

        W = S_a = SS_a = SS_err = 0.0
        for y, p in zip(ys, params):
            stats = weighted_stats(y, p.posterior)
            w = stats.weight.view(-1, 1, 1)

            # Normal-Normal conjugate update of this group's means
            var_a = constraints.safe_inverse(U_inv + w * V_inv, "Random effect precision")
            resid = stats.total - stats.weight.unsqueeze(-1) * mu
            mu_a = mu + torch.einsum('kij,kjl,kl->ki', var_a, V_inv, resid)

            d_a = mu_a - mu
            d_err = stats.mean - mu_a
            W = W + stats.weight
            S_a = S_a + mu_a
            SS_a = SS_a + _outer(d_a) + var_a
            SS_err = SS_err + stats.scatter + w * (_outer(d_err) + var_a)
            p.mvn.means = mu_a

        n_groups = len(params)
        V = self._regularize(SS_err / W.view(-1, 1, 1))
        self.population = PopulationParams(means=S_a / n_groups, U=SS_a / n_groups, V=V)
        for p in params:
            p.mvn.covs = V.clone()

    def prior_log_likelihood(self, params: List[Any]) -> float:
        return float(sum(self.population.log_prob(p.mvn.means).sum() for p in params))

    def dof(self, n_states: int, n_features: int, n_groups: int) -> int:
        return n_states * n_features + 2 * self.n_cov_params(n_states, n_features)


def _outer(d: torch.Tensor) -> torch.Tensor:
    """Batched outer product d_k d_kᵀ for d of shape (K,q)."""
    return d.unsqueeze(-1) * d.unsqueeze(-2)
