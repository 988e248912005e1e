from typing import Tuple, Optional, Union
import math
import torch
from enum import Enum


class InformCriteria(Enum):
    AIC = "AIC"
    BIC = "BIC"
    HQC = "HQC"


# -------------------------------------------------------------------------
# Errors
# -------------------------------------------------------------------------
class MVNSeqError(Exception):
    """Base class for all errors raised while fitting."""


class IllPosedInputError(MVNSeqError, ValueError):
    """Input that leaves a mean or covariance undefined (empty class, short group, bad shapes)."""


class NumericError(MVNSeqError, ArithmeticError):
    """Singular matrix or non-finite value produced during an EM iteration."""


# -------------------------------------------------------------------------
# Information criteria
# -------------------------------------------------------------------------
def compute_information_criteria(
    samples: int, log_likelihood: float, dof: int, criterion: InformCriteria
) -> float:
    """Compute AIC, BIC, or HQC given log-likelihood and degrees of freedom."""
    n = float(samples)
    log_s = math.log(n)
    penalty = {
        InformCriteria.AIC: 2.0 * dof,
        InformCriteria.BIC: dof * log_s,
        InformCriteria.HQC: 2.0 * dof * math.log(log_s)
    }.get(criterion, None)
    if penalty is None:
        raise ValueError(f"Invalid information criterion: {criterion}")
    return -2.0 * float(log_likelihood) + penalty


# -------------------------------------------------------------------------
# Probability vector / transition matrix validation
# -------------------------------------------------------------------------
def is_valid_probs(probs: torch.Tensor, dim: int = -1, atol: float = 1e-9) -> bool:
    """Check that `probs` is non-negative, finite and sums to one along `dim`."""
    if not torch.isfinite(probs).all() or (probs < 0).any():
        return False
    total = probs.sum(dim)
    return torch.allclose(total, torch.ones_like(total), atol=atol)


def is_valid_A(probs: torch.Tensor, atol: float = 1e-9) -> bool:
    """Check if a (possibly transition-indexed) transition matrix is row-stochastic."""
    if probs.ndim not in (2, 3) or probs.shape[-1] != probs.shape[-2]:
        return False
    return is_valid_probs(probs, dim=-1, atol=atol)


# -------------------------------------------------------------------------
# Input validation
# -------------------------------------------------------------------------
def validate_observations(y: torch.Tensor) -> torch.Tensor:
    """Validate an observation matrix of shape (n_samples, n_features)."""
    if y.ndim != 2:
        raise IllPosedInputError(f"Observations must be 2-dimensional (n_samples, n_features), got {y.ndim}D")
    if y.shape[0] == 0 or y.shape[1] == 0:
        raise IllPosedInputError(f"Observations must be non-empty, got shape {tuple(y.shape)}")
    if not torch.isfinite(y).all():
        raise IllPosedInputError("Observations must not contain NaNs or infinities")
    return y


def validate_labels(labels: torch.Tensor,
                    n_classes: int,
                    n_samples: int,
                    min_count: int = 2,
                    where: str = "") -> torch.Tensor:
    """
    Validate a zero-based class label vector.

    Every class `0..n_classes-1` must own at least `min_count` observations,
    otherwise its sample covariance is undefined.
    """
    if labels.ndim != 1 or labels.shape[0] != n_samples:
        raise IllPosedInputError(f"Expected {n_samples} labels{where}, got shape {tuple(labels.shape)}")
    hint = ""
    if not where and labels.numel() and int(labels.min()) == 1:
        hint = "; labels are zero-based, pass `labels - 1` for classes numbered 1..K"
    if labels.numel() and (labels.min() < 0 or labels.max() >= n_classes):
        raise IllPosedInputError(f"Labels{where} must lie in 0..{n_classes - 1}{hint}")

    counts = torch.bincount(labels, minlength=n_classes)
    short = (counts < min_count).nonzero(as_tuple=True)[0]
    if short.numel():
        detail = ", ".join(f"class {int(k)}: {int(counts[k])}" for k in short)
        raise IllPosedInputError(
            f"Every class needs at least {min_count} observations{where} ({detail}){hint}"
        )
    return labels


def validate_covars(covars: torch.Tensor, n_states: int, n_features: int) -> torch.Tensor:
    """Validate a stack of full covariance matrices."""
    expected_shape = (n_states, n_features, n_features)
    if covars.shape != expected_shape:
        raise ValueError(f"covars must have shape {expected_shape}, got {tuple(covars.shape)}")
    for i, mat in enumerate(covars):
        _assert_psd(mat, label=f"Covariance {i}")
    return covars


def _assert_psd(matrix: torch.Tensor, label: str = "Matrix", atol: float = 1e-8):
    """Assert that a covariance matrix is symmetric positive semi-definite."""
    if not torch.allclose(matrix, matrix.T, atol=1e-6):
        raise NumericError(f"{label} is not symmetric")
    if torch.linalg.eigvalsh(matrix).min() < -atol:
        raise NumericError(f"{label} is not positive semi-definite")


# -------------------------------------------------------------------------
# Numeric guards
# -------------------------------------------------------------------------
def check_finite(label: str, *tensors: Optional[Union[torch.Tensor, float]]):
    """Raise NumericError if any of the given tensors/scalars holds NaN or Inf."""
    for value in tensors:
        if value is None:
            continue
        value = torch.as_tensor(value)
        if not torch.isfinite(value).all():
            raise NumericError(f"Non-finite values in {label}")


def safe_inverse(matrix: torch.Tensor, label: str = "Matrix") -> torch.Tensor:
    """Invert (a batch of) symmetric positive-definite matrices, raising NumericError if singular."""
    if not torch.isfinite(matrix).all():
        raise NumericError(f"Non-finite values in {label}")
    chol, info = torch.linalg.cholesky_ex(matrix)
    if info.any():
        raise NumericError(f"{label} is singular or not positive-definite")
    eye = torch.eye(matrix.shape[-1], dtype=matrix.dtype).expand_as(matrix)
    inverse = torch.cholesky_solve(eye, chol)
    return 0.5 * (inverse + inverse.transpose(-1, -2))


def row_normalize(matrix: torch.Tensor, fallback: Optional[torch.Tensor] = None) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Normalize the rows of a non-negative matrix to sum to one.

    Rows with zero mass are copied from `fallback` when given. Returns the
    normalized matrix and a boolean mask of the zero rows.
    """
    totals = matrix.sum(-1, keepdim=True)
    empty = (totals <= 0).squeeze(-1)
    normed = matrix / totals.where(totals > 0, torch.ones_like(totals))
    if empty.any():
        if fallback is None:
            raise NumericError("Cannot normalize a row with zero total mass")
        normed[empty] = fallback[empty]
    return normed, empty
