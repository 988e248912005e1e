# utilities/utils.py
from typing import Any, Hashable, List, Optional, Sequence, Union
from dataclasses import dataclass

import numpy as np
import torch

from . import constraints

DTYPE = torch.float64


@dataclass(frozen=False)
class Observations:
    """
    Observation sequences split by group, with their initial labels and covariates.

    Attributes
    ----------
    sequence : list[Tensor]
        One `(n_g, q)` tensor per group, rows in their original order.
    labels : list[Tensor]
        Zero-based initial class labels per group.
    indices : list[Tensor]
        Row positions of each group in the original observation matrix.
    keys : list
        Group identifiers, in order of first appearance.
    covariates : list[Tensor] | None
        Optional covariate rows aligned with `sequence`.

    Notes
    -----
    * Groups are formed by index selection, so a group need not be contiguous.
    * `scatter_rows` puts per-group row results back into the original row order.
    """

    sequence: List[torch.Tensor]
    labels: List[torch.Tensor]
    indices: List[torch.Tensor]
    keys: List[Hashable]
    covariates: Optional[List[torch.Tensor]] = None

    def __post_init__(self):
        if not self.sequence:
            raise constraints.IllPosedInputError("`sequence` cannot be empty")
        if not (len(self.sequence) == len(self.labels) == len(self.indices) == len(self.keys)):
            raise ValueError("`sequence`, `labels`, `indices` and `keys` must have the same length")
        if self.covariates is not None and len(self.covariates) != len(self.sequence):
            raise ValueError("`covariates` length must match `sequence` length")

    # ---------------------------------------------------------------------
    # Properties
    # ---------------------------------------------------------------------

    @property
    def n_groups(self) -> int:
        """Number of independent sequences."""
        return len(self.sequence)

    @property
    def lengths(self) -> List[int]:
        return [s.shape[0] for s in self.sequence]

    @property
    def total_length(self) -> int:
        """Sum of all sequence lengths (Σ_g n_g)."""
        return sum(self.lengths)

    @property
    def feature_dim(self) -> int:
        return self.sequence[0].shape[-1]

    @property
    def weights(self) -> torch.Tensor:
        """Share of all observations held by each group (n_g / N)."""
        lengths = torch.tensor(self.lengths, dtype=DTYPE)
        return lengths / lengths.sum()


def scatter_rows(per_group: Sequence[torch.Tensor], indices: Sequence[torch.Tensor]) -> torch.Tensor:
    """Reassemble per-group row blocks into a single tensor in original row order."""
    first = per_group[0]
    n_rows = sum(int(idx.numel()) for idx in indices)
    out = torch.empty((n_rows,) + tuple(first.shape[1:]), dtype=first.dtype)
    for idx, block in zip(indices, per_group):
        out[idx] = block
    return out


def as_tensor(x: Any, dtype: torch.dtype = DTYPE) -> torch.Tensor:
    """Convert array-likes (lists, numpy arrays, tensors) to a detached tensor."""
    if torch.is_tensor(x):
        return x.detach().to(dtype=dtype)
    return torch.as_tensor(np.asarray(x), dtype=dtype)


def to_observations(
    y: Any,
    labels: Any,
    groups: Optional[Any] = None,
    covariates: Optional[Any] = None,
    n_classes: Optional[int] = None,
) -> Observations:
    """
    Validate raw inputs and split them into per-group sequences.

    Raises
    ------
    IllPosedInputError
        If shapes disagree, a label is out of range, or a class has fewer
        than two observations inside any group.
    """
    y = constraints.validate_observations(as_tensor(y))
    n_samples = y.shape[0]
    labels = as_tensor(labels, dtype=torch.int64).reshape(-1)
    if n_classes is None:
        n_classes = int(labels.max()) + 1 if labels.numel() else 0
    constraints.validate_labels(labels, n_classes, n_samples)

    cov_t = None
    if covariates is not None:
        cov_t = as_tensor(covariates)
        if cov_t.ndim == 1:
            cov_t = cov_t.unsqueeze(-1)
        if cov_t.shape[0] != n_samples:
            raise constraints.IllPosedInputError(
                f"Covariates have {cov_t.shape[0]} rows but there are {n_samples} observations"
            )

    if groups is None:
        keys: List[Hashable] = [0]
        indices = [torch.arange(n_samples)]
    else:
        gr = np.asarray(groups).reshape(-1)
        if gr.shape[0] != n_samples:
            raise constraints.IllPosedInputError(
                f"Expected {n_samples} group ids, got {gr.shape[0]}"
            )
        _, first_pos, inverse = np.unique(gr, return_index=True, return_inverse=True)
        order = np.argsort(first_pos)
        keys = [_as_key(gr[first_pos[g]]) for g in order]
        indices = [torch.from_numpy(np.flatnonzero(inverse == g)) for g in order]

    seqs, labs, covs = [], [], []
    for key, idx in zip(keys, indices):
        where = f" in group {key!r}" if groups is not None else ""
        constraints.validate_labels(labels[idx], n_classes, idx.numel(), where=where)
        seqs.append(y[idx])
        labs.append(labels[idx])
        if cov_t is not None:
            covs.append(cov_t[idx])

    return Observations(
        sequence=seqs,
        labels=labs,
        indices=indices,
        keys=keys,
        covariates=covs if cov_t is not None else None,
    )


def _as_key(value: Any) -> Hashable:
    return value.item() if isinstance(value, np.generic) else value


def log_normalize(matrix: torch.Tensor, dim: Union[int, tuple] = 1) -> torch.Tensor:
    """Return log-normalized tensor (log_probs with logsumexp(...)=0)."""
    return matrix - torch.logsumexp(matrix, dim=dim, keepdim=True)
