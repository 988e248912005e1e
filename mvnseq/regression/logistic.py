# mvnseq/regression/logistic.py
from typing import Any, Protocol, Sequence, Tuple
from dataclasses import dataclass

import numpy as np
import torch
from sklearn.linear_model import LogisticRegression # type: ignore

from mvnseq.utilities import constraints

DTYPE = torch.float64

# Added to the weight denominator when turning smoothed joint probabilities
# into regression targets, so a source state with no occupancy gives target 0.
WEIGHT_EPS = 1.0e-6


@dataclass(frozen=True)
class TransitionRegression:
    """
    Linear predictor of a logistic model for one stay probability.

    Parameters
    ----------
    columns : sequence of int
        Covariate columns entering the linear predictor.
    intercept : bool
        Prepend a column of ones to the design matrix.
    """

    columns: Sequence[int] = ()
    intercept: bool = True

    def design_matrix(self, covariates: torch.Tensor) -> torch.Tensor:
        """Build the (n, p) design matrix from a covariate table of shape (n, c)."""
        n = covariates.shape[0]
        parts = [torch.ones((n, 1), dtype=DTYPE)] if self.intercept else []
        if len(self.columns):
            parts.append(covariates[:, list(self.columns)].to(DTYPE))
        if not parts:
            raise constraints.IllPosedInputError("A transition regression needs an intercept or at least one column")
        return torch.cat(parts, dim=1)


class WeightedBinomialRegression(Protocol):
    """Anything that fits P(success) from a design matrix, targets in [0,1] and row weights."""

    def fit(self, X: torch.Tensor, target: torch.Tensor, weights: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """Return (coefficients (p,), fitted probabilities (n,))."""
        ...


class SklearnBinomialRegression:
    """
    Weighted binomial GLM with logit link on top of sklearn's LogisticRegression.

    A fractional target q with weight w is the same binomial log-likelihood
    as a success row weighted w*q plus a failure row weighted w*(1-q), which
    is how the data are handed to sklearn. The fit is unpenalized.
    """

    def __init__(self, max_iter: int = 1000, tol: float = 1e-8, **kwargs: Any):
        self.max_iter = max_iter
        self.tol = tol
        self.kwargs = kwargs

    def __repr__(self):
        return f"{self.__class__.__name__}(max_iter={self.max_iter}, tol={self.tol})"

    def fit(self, X: torch.Tensor, target: torch.Tensor, weights: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        X_np = X.detach().cpu().numpy()
        q = np.clip(target.detach().cpu().numpy(), 0.0, 1.0)
        w = weights.detach().cpu().numpy()
        if X_np.shape[0] != q.shape[0] or q.shape[0] != w.shape[0]:
            raise ValueError(f"Design matrix rows {X_np.shape[0]} do not match targets {q.shape[0]} / weights {w.shape[0]}")
        if not np.all(np.isfinite(w)) or not np.all(np.isfinite(q)):
            raise constraints.NumericError("Non-finite regression targets or weights")

        X_aug = np.vstack([X_np, X_np])
        y_aug = np.concatenate([np.ones(len(q)), np.zeros(len(q))])
        sw = np.concatenate([w * q, w * (1.0 - q)])

        model = LogisticRegression(C=np.inf, fit_intercept=False,
                                   max_iter=self.max_iter, tol=self.tol, **self.kwargs)
        model.fit(X_aug, y_aug, sample_weight=sw)

        coef = torch.as_tensor(model.coef_.ravel(), dtype=DTYPE)
        fitted = torch.as_tensor(model.predict_proba(X_np)[:, 1], dtype=DTYPE)
        return coef, fitted


def fit_stay_probability(regressor: WeightedBinomialRegression,
                         X: torch.Tensor,
                         joint: torch.Tensor,
                         state: int) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Refit the stay probability of `state` from joint transition probabilities.

    `joint` has shape (n-1, 2, 2); row `state` of each matrix gives the
    weight (its sum) and the target (its diagonal share).
    """
    w = joint[:, state, 0] + joint[:, state, 1]
    q = joint[:, state, state] / (w + WEIGHT_EPS)
    return regressor.fit(X, q, w)
