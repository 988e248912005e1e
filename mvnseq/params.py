# mvnseq/params.py
from typing import Any, Hashable, List, Optional
from dataclasses import dataclass, field
import math

import torch

from mvnseq.distributions import mvn
from mvnseq.utilities import constraints, utils


@dataclass
class MVNParams:
    """Per-component multivariate Normal parameters: means (K,q) and covariances (K,q,q)."""

    means: torch.Tensor
    covs: torch.Tensor

    @property
    def n_components(self) -> int:
        return self.means.shape[0]

    @property
    def n_features(self) -> int:
        return self.means.shape[1]

    def log_prob(self, y: torch.Tensor) -> torch.Tensor:
        """Emission log-densities of shape (n_samples, K)."""
        return mvn.log_prob(y, self.means, self.covs)

    def check(self, label: str = "emission parameters"):
        constraints.check_finite(label, self.means, self.covs)
        constraints.validate_covars(self.covs, self.n_components, self.n_features)


@dataclass
class MixtureParams:
    """Parameters of one sequence under a finite mixture."""

    mvn: MVNParams
    weights: torch.Tensor
    posterior: Optional[torch.Tensor] = None
    log_likelihood: float = float("nan")

    def check(self):
        self.mvn.check()
        constraints.check_finite("mixing fractions", self.weights, self.posterior)
        if not constraints.is_valid_probs(self.weights):
            raise constraints.NumericError("Mixing fractions do not sum to one")


@dataclass
class HMMParams:
    """
    Parameters of one sequence under a hidden Markov model.

    `A_counts` are the expected joint transition counts from the last E-step
    (un-normalized); they are what gets pooled across groups.
    """

    mvn: MVNParams
    pi: torch.Tensor
    A: torch.Tensor
    A_counts: Optional[torch.Tensor] = None
    posterior: Optional[torch.Tensor] = None
    log_likelihood: float = float("nan")

    @property
    def weights(self) -> torch.Tensor:
        return self.pi

    @weights.setter
    def weights(self, value: torch.Tensor):
        self.pi = value

    def check(self):
        self.mvn.check()
        constraints.check_finite("initial/transition probabilities", self.pi, self.A, self.posterior)
        if not (constraints.is_valid_probs(self.pi) and constraints.is_valid_A(self.A)):
            raise constraints.NumericError("Initial or transition probabilities are not stochastic")


@dataclass
class LogisticHMMParams:
    """
    Two-state HMM whose stay probabilities are fitted logistic regressions.

    `stay1[t]` is P(s_{t+1}=0 | s_t=0) and `stay2[t]` is P(s_{t+1}=1 | s_t=1)
    for each transition t of the sequence.
    """

    mvn: MVNParams
    pi: torch.Tensor
    beta1: torch.Tensor
    stay1: torch.Tensor
    beta2: torch.Tensor
    stay2: torch.Tensor
    posterior: Optional[torch.Tensor] = None
    log_likelihood: float = float("nan")

    @property
    def weights(self) -> torch.Tensor:
        return self.pi

    @weights.setter
    def weights(self, value: torch.Tensor):
        self.pi = value

    @property
    def A(self) -> torch.Tensor:
        """Transition-indexed matrix of shape (n-1, 2, 2)."""
        return torch.stack([
            torch.stack([self.stay1, 1.0 - self.stay1], dim=-1),
            torch.stack([1.0 - self.stay2, self.stay2], dim=-1),
        ], dim=-2)

    @property
    def n_coef(self) -> int:
        return self.beta1.numel() + self.beta2.numel()

    def check(self):
        self.mvn.check()
        constraints.check_finite("transition regressions", self.pi, self.beta1, self.stay1,
                                 self.beta2, self.stay2, self.posterior)
        if not constraints.is_valid_probs(self.pi):
            raise constraints.NumericError("Initial probabilities do not sum to one")


@dataclass
class PopulationParams:
    """Random-effects population: mean, between-group U and within-group V per component."""

    means: torch.Tensor
    U: torch.Tensor
    V: torch.Tensor

    def log_prob(self, group_means: torch.Tensor) -> torch.Tensor:
        """Log-density of each group component mean under Normal(mean_k, U_k), shape (K,)."""
        return mvn.make_pdf(self.means, self.U, label="Between-group covariance").log_prob(group_means)

    def check(self):
        constraints.check_finite("population parameters", self.means, self.U, self.V)


@dataclass
class FitResult:
    """Converged (or iteration-capped) parameters and fit statistics."""

    n_components: int
    params: List[Any]
    groups: List[Hashable]
    indices: List[torch.Tensor] = field(repr=False)
    log_likelihood: float
    n_iter: int
    converged: bool
    dof: int
    n_samples: int
    population: Optional[PopulationParams] = field(default=None, repr=False)
    history: List[float] = field(default_factory=list, repr=False)
    title: str = "Normal Model"

    @property
    def aic(self) -> float:
        return self.ic(constraints.InformCriteria.AIC)

    @property
    def bic(self) -> float:
        return self.ic(constraints.InformCriteria.BIC)

    def ic(self, criterion: constraints.InformCriteria = constraints.InformCriteria.AIC) -> float:
        return constraints.compute_information_criteria(self.n_samples, self.log_likelihood, self.dof, criterion)

    @property
    def means(self) -> torch.Tensor:
        """Component means, (K,q) for one sequence or (G,K,q) for grouped fits."""
        return self._stack(lambda p: p.mvn.means)

    @property
    def covs(self) -> torch.Tensor:
        return self._stack(lambda p: p.mvn.covs)

    @property
    def posterior(self) -> torch.Tensor:
        """Posterior responsibilities (n_samples, K) in the original row order."""
        return utils.scatter_rows([p.posterior for p in self.params], self.indices)

    @property
    def labels(self) -> torch.Tensor:
        """Hard classification by maximum posterior probability."""
        return self.posterior.argmax(-1)

    def summary(self) -> str:
        """Fit statistics (components, log L, AIC, BIC) under the model title."""
        header = f"{'Components':>10} {'log L':>14} {'AIC':>14} {'BIC':>14}"
        row = f"{self.n_components:>10d} {self.log_likelihood:>14.4f} {self.aic:>14.4f} {self.bic:>14.4f}"
        return "\n".join([self.title, header, row])

    def _stack(self, getter):
        values = [getter(p) for p in self.params]
        return values[0] if len(values) == 1 else torch.stack(values)

    def __post_init__(self):
        if not math.isfinite(self.log_likelihood):
            raise constraints.NumericError("Fit finished with a non-finite log-likelihood")
