# utilities/simulate.py
"""Synthetic observation generators for multivariate Normal mixtures and HMMs."""
from typing import Any, Optional, Tuple, Union

import torch

from .seed import SeedGenerator, as_generator
from .utils import as_tensor

DTYPE = torch.float64
SeedLike = Union[None, int, SeedGenerator, torch.Generator]


def _normal_draws(states: torch.Tensor, means: torch.Tensor, covs: torch.Tensor,
                  generator: torch.Generator) -> torch.Tensor:
    """One draw from Normal(means[s], covs[s]) for every entry s of `states`."""
    chol = torch.linalg.cholesky(covs)
    z = torch.randn((states.numel(), means.shape[-1]), dtype=DTYPE, generator=generator)
    return means[states] + torch.einsum("nij,nj->ni", chol[states], z)


def _markov_chain(n: int, pi: torch.Tensor, A: torch.Tensor, generator: torch.Generator) -> torch.Tensor:
    """State path of length n; `A` is (K,K) or transition-indexed (n-1,K,K)."""
    K = pi.shape[0]
    u = torch.rand(n, dtype=DTYPE, generator=generator)
    cum_pi = torch.cumsum(pi, 0)
    cum_A = torch.cumsum(A, -1)
    states = torch.empty(n, dtype=torch.int64)
    states[0] = torch.searchsorted(cum_pi, u[:1]).clamp(max=K - 1)[0]
    for t in range(1, n):
        row = cum_A[t - 1, states[t - 1]] if A.ndim == 3 else cum_A[states[t - 1]]
        states[t] = torch.searchsorted(row, u[t:t + 1]).clamp(max=K - 1)[0]
    return states


def sample_mixture(n: int, weights: Any, means: Any, covs: Any,
                   seed: SeedLike = None) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Draw n independent observations from a Normal mixture.

    Returns
    -------
    y : Tensor (n, q)
    labels : Tensor (n,)
        Zero-based component of each draw.
    """
    gen = as_generator(seed)
    weights, means, covs = as_tensor(weights), as_tensor(means), as_tensor(covs)
    labels = torch.multinomial(weights, n, replacement=True, generator=gen)
    return _normal_draws(labels, means, covs, gen), labels


def sample_hmm(n: int, pi: Any, A: Any, means: Any, covs: Any,
               seed: SeedLike = None) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Draw a length-n sequence from a Normal HMM.

    `A` may be a constant (K,K) transition matrix or transition-indexed (n-1,K,K).
    Returns the observations (n, q) and the hidden state path (n,).
    """
    gen = as_generator(seed)
    pi, A, means, covs = as_tensor(pi), as_tensor(A), as_tensor(means), as_tensor(covs)
    states = _markov_chain(n, pi, A, gen)
    return _normal_draws(states, means, covs, gen), states


def sample_grouped_hmm(n_groups: int, n: int, pi: Any, A: Any, means: Any, covs: Any,
                       U: Optional[Any] = None, uscale: float = 1.0,
                       seed: SeedLike = None):
    """
    Draw `n_groups` HMM sequences of length `n` whose state means vary by group.

    Group g uses means `means + uscale * L_U z_g` with `L_U` the Cholesky
    factor of the between-group covariance `U` (defaults to `covs`), so
    `uscale=0` gives every group the population means.

    Returns
    -------
    y : Tensor (n_groups * n, q)
    states : Tensor (n_groups * n,)
    groups : Tensor (n_groups * n,)
        Group index of each row; groups are stacked one after another.
    group_means : Tensor (n_groups, K, q)
    """
    if isinstance(seed, torch.Generator):
        seed = int(torch.randint(0, 2**62, (1,), generator=seed))
    seeds = seed if isinstance(seed, SeedGenerator) else SeedGenerator(seed)
    means, covs = as_tensor(means), as_tensor(covs)
    U = covs if U is None else as_tensor(U)

    ys, paths, group_means = [], [], []
    for gen in seeds.split(n_groups):
        mu_g = _normal_draws(torch.arange(means.shape[0]), torch.zeros_like(means), U, gen)
        mu_g = means + uscale * mu_g
        y_g, s_g = sample_hmm(n, pi, A, mu_g, covs, seed=gen)
        ys.append(y_g)
        paths.append(s_g)
        group_means.append(mu_g)

    groups = torch.arange(n_groups).repeat_interleave(n)
    return torch.cat(ys), torch.cat(paths), groups, torch.stack(group_means)


def sample_covariate_hmm(X1: Any, X2: Any, beta1: Any, beta2: Any, pi: Any, means: Any, covs: Any,
                         seed: SeedLike = None) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Draw a two-state HMM whose stay probabilities are logistic in covariates.

    `X1` and `X2` are the (n, p) design matrices of the two stay regressions;
    row t drives the transition from time t to t+1, so the last row is unused.
    """
    X1, X2 = as_tensor(X1), as_tensor(X2)
    stay1 = torch.sigmoid(X1[:-1] @ as_tensor(beta1))
    stay2 = torch.sigmoid(X2[:-1] @ as_tensor(beta2))
    A = torch.stack([
        torch.stack([stay1, 1.0 - stay1], dim=-1),
        torch.stack([1.0 - stay2, stay2], dim=-1),
    ], dim=-2)
    return sample_hmm(X1.shape[0], pi, A, means, covs, seed=seed)
