# mvnseq/structure/MixtureStructure.py
from typing import List, Optional

import torch

from mvnseq.params import MixtureParams
from mvnseq.structure.BaseStructure import BaseStructure
from mvnseq.utilities import utils


class MixtureStructure(BaseStructure):
    """Finite mixture: observations are independent draws given their class."""

    common_name = "common_fractions"

    def initialize(self, y, labels, n_states, covariates=None) -> MixtureParams:
        return MixtureParams(
            mvn=self.init_emissions(y, labels, n_states),
            weights=self.label_frequencies(labels, n_states),
        )

    def e_step(self, y: torch.Tensor, params: MixtureParams, covariates: Optional[torch.Tensor] = None) -> MixtureParams:
        # Bayes rule in log space: log P[t,k] ∝ log f_k(y_t) + log w_k
        log_joint = params.mvn.log_prob(y) + params.weights.log()
        log_norm = torch.logsumexp(log_joint, dim=1)

        # log L at the weights that produced the posterior, not the updated ones
        params.log_likelihood = float(log_norm.sum())
        params.posterior = utils.log_normalize(log_joint, 1).exp()
        params.weights = params.posterior.mean(0)
        return params

    def dof(self, n_states: int, params: List[MixtureParams], common: bool) -> int:
        n_sets = 1 if common else len(params)
        return n_sets * (n_states - 1)
