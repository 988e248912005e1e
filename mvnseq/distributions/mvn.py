# mvnseq/distributions/mvn.py
from typing import NamedTuple
import torch
from torch.distributions import MultivariateNormal

from mvnseq.utilities import constraints


def make_pdf(means: torch.Tensor, covs: torch.Tensor, label: str = "Covariance") -> MultivariateNormal:
    """
    Batched multivariate Normal over the leading dimension of `means`/`covs`.

    Raises NumericError when any covariance is not positive-definite.
    """
    constraints.check_finite(label, means, covs)
    chol, info = torch.linalg.cholesky_ex(covs)
    if info.any():
        bad = torch.atleast_1d(info).nonzero(as_tuple=True)[0].tolist()
        raise constraints.NumericError(f"{label} {bad} is singular or not positive-definite")
    return MultivariateNormal(means, scale_tril=chol, validate_args=False)


def log_prob(y: torch.Tensor, means: torch.Tensor, covs: torch.Tensor) -> torch.Tensor:
    """Per-state emission log-densities logF[t, k] = log N(y_t | mu_k, Sigma_k), shape (n, K)."""
    return make_pdf(means, covs).log_prob(y.unsqueeze(1))


class SufficientStats(NamedTuple):
    """Responsibility-weighted statistics of one sequence, per component."""
    weight: torch.Tensor      # (K,)      Σ_t P[t,k]
    total: torch.Tensor       # (K,q)     Σ_t P[t,k] y_t
    mean: torch.Tensor        # (K,q)     total / weight
    scatter: torch.Tensor     # (K,q,q)   Σ_t P[t,k] (y_t - mean_k)(y_t - mean_k)ᵀ


def weighted_stats(y: torch.Tensor, posterior: torch.Tensor) -> SufficientStats:
    """
    Weighted mean and centered cross-products of `y` for each column of `posterior`.

    The scatter is built as a weighted cross-product, so it is symmetric
    PSD up to rounding.
    """
    weight = posterior.sum(0)
    if (weight <= 0).any():
        empty = (weight <= 0).nonzero(as_tuple=True)[0].tolist()
        raise constraints.NumericError(f"Components {empty} have no responsibility mass")

    total = posterior.T @ y
    mean = total / weight.unsqueeze(-1)
    diff = y.unsqueeze(0) - mean.unsqueeze(1)                   # (K,n,q)
    weighted = posterior.T.unsqueeze(-1).sqrt() * diff
    scatter = weighted.transpose(-1, -2) @ weighted             # (K,q,q)
    return SufficientStats(weight, total, mean, scatter)


def sample_moments(y: torch.Tensor, labels: torch.Tensor, n_classes: int):
    """Per-class sample mean and sample covariance (divisor n_k - 1) from hard labels."""
    means, covs = [], []
    for k in range(n_classes):
        yk = y[labels == k]
        mu = yk.mean(0)
        centered = yk - mu
        means.append(mu)
        covs.append(centered.T @ centered / (yk.shape[0] - 1))
    return torch.stack(means), torch.stack(covs)
