# mvnseq/structure/LogisticMarkovStructure.py
from typing import List, Optional

import torch

from mvnseq.params import LogisticHMMParams
from mvnseq.regression import (SklearnBinomialRegression, TransitionRegression,
                               WeightedBinomialRegression, fit_stay_probability)
from mvnseq.structure.BaseStructure import BaseStructure, DTYPE
from mvnseq.structure.MarkovStructure import forward_backward
from mvnseq.utilities import constraints


class LogisticMarkovStructure(BaseStructure):
    """
    Two-state hidden Markov chain whose stay probabilities depend on covariates.

    P(s_{t+1}=0 | s_t=0) follows `regression1` and P(s_{t+1}=1 | s_t=1)
    follows `regression2`, both evaluated on the covariates at time t.
    Each M-step refits the two regressions with the smoothed joint
    transition probabilities as weights and targets.
    """

    N_STATES = 2

    def __init__(self,
                 regression1: TransitionRegression,
                 regression2: TransitionRegression,
                 regressor: Optional[WeightedBinomialRegression] = None):
        self.regression1 = regression1
        self.regression2 = regression2
        self.regressor = regressor if regressor is not None else SklearnBinomialRegression()

    def __repr__(self):
        return (f"{self.__class__.__name__}(regression1={self.regression1}, "
                f"regression2={self.regression2}, regressor={self.regressor})")

    def initialize(self, y, labels, n_states, covariates=None) -> LogisticHMMParams:
        self._check(n_states, covariates, y)
        n = labels.numel()

        # Empirical joint transition table, replicated for every transition
        table = torch.zeros((2, 2), dtype=DTYPE)
        table.index_put_((labels[:-1], labels[1:]), torch.ones(n - 1, dtype=DTYPE), accumulate=True)
        table /= n - 1
        joint = table.expand(n - 1, 2, 2)

        beta1, stay1, beta2, stay2 = self._fit_regressions(joint, covariates)
        return LogisticHMMParams(
            mvn=self.init_emissions(y, labels, n_states),
            pi=self.label_frequencies(labels, n_states),
            beta1=beta1, stay1=stay1,
            beta2=beta2, stay2=stay2,
        )

    def e_step(self, y, params: LogisticHMMParams, covariates=None) -> LogisticHMMParams:
        self._check(self.N_STATES, covariates, y)
        post = forward_backward(params.mvn.log_prob(y), params.pi, params.A)
        params.posterior = post.marginal
        params.log_likelihood = post.log_likelihood
        params.pi = post.marginal.mean(0)

        params.beta1, params.stay1, params.beta2, params.stay2 = self._fit_regressions(post.joint, covariates)
        return params

    def merge_common(self, params, weights) -> None:
        raise constraints.IllPosedInputError("Covariate-driven transitions cannot be shared across groups")

    def dof(self, n_states: int, params: List[LogisticHMMParams], common: bool) -> int:
        return len(params) * (n_states - 1) + sum(p.n_coef for p in params)

    # ----------------------
    # Helpers
    # ----------------------
    def _fit_regressions(self, joint: torch.Tensor, covariates: torch.Tensor):
        source = covariates[:-1]
        beta1, stay1 = fit_stay_probability(self.regressor, self.regression1.design_matrix(source), joint, 0)
        beta2, stay2 = fit_stay_probability(self.regressor, self.regression2.design_matrix(source), joint, 1)
        return beta1, stay1, beta2, stay2

    def _check(self, n_states: int, covariates: Optional[torch.Tensor], y: torch.Tensor):
        if n_states != self.N_STATES:
            raise constraints.IllPosedInputError(f"Covariate-driven transitions need exactly 2 states, got {n_states}")
        if covariates is None:
            raise constraints.IllPosedInputError("Covariate-driven transitions need a covariate table")
        if covariates.shape[0] != y.shape[0]:
            raise constraints.IllPosedInputError(
                f"Covariates have {covariates.shape[0]} rows but the sequence has {y.shape[0]}"
            )
        if y.shape[0] < 2:
            raise constraints.IllPosedInputError("Covariate-driven transitions need sequences of length 2 or more")
