# mvnseq/structure/MarkovStructure.py
import logging
from typing import List, NamedTuple, Optional

import torch

from mvnseq.params import HMMParams
from mvnseq.structure.BaseStructure import BaseStructure, DTYPE
from mvnseq.utilities import constraints

logger = logging.getLogger(__name__)


class Posteriors(NamedTuple):
    """Smoothed quantities of one sequence."""
    marginal: torch.Tensor        # (n, K)      P(s_t = k | Y)
    joint: torch.Tensor           # (n-1, K, K) P(s_t = i, s_{t+1} = j | Y)
    log_likelihood: float


def forward_backward(log_probs: torch.Tensor, pi: torch.Tensor, A: torch.Tensor) -> Posteriors:
    """
    Scaled forward-backward recursion.

    Parameters
    ----------
    log_probs : Tensor (n, K)
        Emission log-densities log p(y_t | s_t = k).
    pi : Tensor (K,)
        Initial state distribution.
    A : Tensor (K, K) or (n-1, K, K)
        Transition matrix, A[i, j] = P(s_{t+1} = j | s_t = i), optionally one per transition.

    Notes
    -----
    The forward pass stores, for every transition, the filtered joint
    distribution of (s_t, s_{t+1}) given y_1..y_{t+1}, normalized over all
    K² entries. The backward pass rescales each stored joint by the ratio of
    smoothed to filtered marginals of s_{t+1} (taken as 0 where the smoothed
    marginal is 0), which yields the joint given the whole sequence.
    Emission densities are used as exp(logF[t] - max_k logF[t]); the common
    factor cancels in every normalization.
    """
    n, K = log_probs.shape
    log_pi = pi.log()

    # t = 0: belief ∝ pi * f(y_0); the normalizer starts the log-likelihood
    log_alpha0 = log_pi + log_probs[0]
    log_likelihood = torch.logsumexp(log_alpha0, 0)
    if not torch.isfinite(log_likelihood):
        raise constraints.NumericError("First observation has zero probability under every state")
    belief0 = (log_alpha0 - log_likelihood).exp()

    if n == 1:
        return Posteriors(belief0.unsqueeze(0), torch.zeros((0, K, K), dtype=DTYPE), float(log_likelihood))

    trans = A if A.ndim == 3 else A.expand(n - 1, K, K)
    if trans.shape != (n - 1, K, K):
        raise ValueError(f"Expected transitions of shape {(n - 1, K, K)}, got {tuple(trans.shape)}")
    row_max = log_probs.max(1, keepdim=True).values
    if not torch.isfinite(row_max).all():
        bad = (~torch.isfinite(row_max.squeeze(1))).nonzero(as_tuple=True)[0].tolist()
        raise constraints.NumericError(f"Observations {bad} have zero density under every state")
    scaled_f = (log_probs - row_max).exp()

    # Forward recursion: filtered marginals
    beliefs = torch.empty((n, K), dtype=DTYPE)
    beliefs[0] = belief0
    for t in range(1, n):
        b = (beliefs[t - 1] @ trans[t - 1]) * scaled_f[t]
        total = b.sum()
        if not total > 0:
            raise constraints.NumericError(f"Observation {t} has zero probability under every reachable state")
        beliefs[t] = b / total

    # Filtered joints J[t, i, j] ∝ P(s_t=i | Y_t) Q[i, j] f_j(y_{t+1}), normalized over (i, j)
    J = beliefs[:-1].unsqueeze(-1) * trans * scaled_f[1:].unsqueeze(1)
    J = J / J.sum((1, 2), keepdim=True)

    # Log-likelihood increments: logsumexp_i(logF[t,i] + log Σ_j belief[j] Q[j,i])
    predicted = torch.einsum('tj,tji->ti', beliefs[:-1], trans)
    increments = torch.logsumexp(log_probs[1:] + predicted.log(), dim=1)
    log_likelihood = log_likelihood + increments.sum()

    # Backward recursion: smooth each stored joint
    marginal = torch.empty((n, K), dtype=DTYPE)
    joint = torch.empty_like(J)
    marginal[-1] = J[-1].sum(0)
    for t in range(n - 2, -1, -1):
        filtered = J[t].sum(0)
        smoothed = marginal[t + 1]
        ratio = torch.where(smoothed == 0, torch.zeros_like(smoothed),
                            smoothed / filtered.where(filtered > 0, torch.ones_like(filtered)))
        joint[t] = J[t] * ratio
        marginal[t] = joint[t].sum(1)

    return Posteriors(marginal, joint, float(log_likelihood))


class MarkovStructure(BaseStructure):
    """Hidden Markov chain with a constant transition matrix."""

    common_name = "common_transition"

    def initialize(self, y, labels, n_states, covariates=None) -> HMMParams:
        n = labels.numel()
        counts = torch.zeros((n_states, n_states), dtype=DTYPE)
        if n > 1:
            counts.index_put_((labels[:-1], labels[1:]), torch.ones(n - 1, dtype=DTYPE), accumulate=True)
            counts /= n - 1
        A, _ = constraints.row_normalize(counts)
        return HMMParams(
            mvn=self.init_emissions(y, labels, n_states),
            pi=self.label_frequencies(labels, n_states),
            A=A,
            A_counts=counts,
        )

    def e_step(self, y: torch.Tensor, params: HMMParams, covariates: Optional[torch.Tensor] = None) -> HMMParams:
        post = forward_backward(params.mvn.log_prob(y), params.pi, params.A)
        params.posterior = post.marginal
        params.log_likelihood = post.log_likelihood
        params.pi = post.marginal.mean(0)

        # M step for the chain: expected transition counts, row-normalized
        params.A_counts = post.joint.sum(0)
        if post.joint.shape[0]:
            params.A = self._normalize_counts(params.A_counts, params.A)
        return params

    def merge_common(self, params: List[HMMParams], weights: torch.Tensor) -> None:
        super().merge_common(params, weights)
        pooled = sum(p.A_counts for p in params)
        previous = sum(w * p.A for w, p in zip(weights, params))
        A = self._normalize_counts(pooled, previous)
        for p in params:
            p.A_counts = pooled.clone()
            p.A = A.clone()

    def dof(self, n_states: int, params: List[HMMParams], common: bool) -> int:
        n_sets = 1 if common else len(params)
        return n_sets * (n_states - 1) + n_sets * n_states * (n_states - 1)

    @staticmethod
    def _normalize_counts(counts: torch.Tensor, previous: torch.Tensor) -> torch.Tensor:
        A, empty = constraints.row_normalize(counts, fallback=previous)
        if empty.any():
            logger.warning("States %s had no expected outgoing transitions; keeping previous rows",
                           empty.nonzero(as_tuple=True)[0].tolist())
        return A
