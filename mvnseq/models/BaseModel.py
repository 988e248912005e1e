# mvnseq/models/BaseModel.py
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

import torch

from mvnseq.grouping import BaseGrouping, IndependentGrouping, RandomEffects, SharedCovariance
from mvnseq.params import FitResult
from mvnseq.structure import BaseStructure
from mvnseq.utilities import constraints, utils, ConvergenceHandler

logger = logging.getLogger(__name__)


class BaseModel(ABC):
    """
    Base EM fit driver for multivariate Normal sequence models.
    ----------
    A model is the composition of a temporal structure (mixture, Markov
    chain, covariate-driven Markov chain) and a grouping strategy chosen at
    fit time: a single sequence, several groups sharing each component's
    covariance, or several groups whose component means are random effects.

    Parameters
    ----------
    n_states : int, optional
        Number of components/states. Defaults to max(labels) + 1.
    common : bool
        Share the class probabilities (mixing fractions or initial and
        transition probabilities) across groups.
    random_effects : bool
        Treat group component means as draws from a population Normal.
    min_covar : float
        Diagonal floor added to every re-estimated covariance.
    """

    #: model name used by FitResult.summary
    title_stem: str = "Normal Model"

    def __init__(self,
                 n_states: Optional[int] = None,
                 common: bool = False,
                 random_effects: bool = False,
                 min_covar: float = 0.0):
        self.n_states = n_states
        self.common = common
        self.random_effects = random_effects
        self.min_covar = min_covar

    def __repr__(self):
        return (f"{self.__class__.__name__}(n_states={self.n_states}, "
                f"{self.structure.common_name}={self.common}, "
                f"random_effects={self.random_effects}, min_covar={self.min_covar})")

    @property
    @abstractmethod
    def structure(self) -> BaseStructure:
        """Temporal structure used for the E-step."""
        pass

    @property
    def default_max_iter(self) -> int:
        return 100 if self.random_effects else 50

    def _title(self, n_groups: int) -> str:
        if self.random_effects:
            return "Grouped Random " + self.title_stem
        return ("Grouped " if n_groups > 1 else "") + self.title_stem

    def make_grouping(self, grouped: bool) -> BaseGrouping:
        if self.random_effects:
            if not grouped:
                raise constraints.IllPosedInputError("Random effects need a group vector")
            return RandomEffects(self.min_covar)
        if grouped:
            return SharedCovariance(self.min_covar)
        return IndependentGrouping(self.min_covar)

    def fit(self,
            y: Any,
            labels: Any,
            groups: Optional[Any] = None,
            covariates: Optional[Any] = None,
            min_iter: int = 10,
            max_iter: Optional[int] = None,
            tol: float = 1e-3,
            verbose: bool = False,
            callbacks: Optional[List[Callable[[int, float], None]]] = None) -> FitResult:
        """
        Fit the model by EM, starting from hard class labels.

        Iterates at least `min_iter` times and then until the absolute
        change in log-likelihood is at most `tol` or `max_iter` iterations
        have run. Hitting `max_iter` is reported through `converged=False`,
        not as an error.

        Raises
        ------
        IllPosedInputError
            If a class has fewer than two observations in any group, or the
            inputs have inconsistent shapes.
        NumericError
            If a covariance becomes singular or a parameter turns non-finite.
        """
        labels_t = utils.as_tensor(labels, dtype=torch.int64).reshape(-1)
        if labels_t.numel() == 0:
            raise constraints.IllPosedInputError("No class labels given")
        n_states = self.n_states if self.n_states is not None else int(labels_t.max()) + 1
        X = utils.to_observations(y, labels_t, groups, covariates, n_states)
        structure = self.structure
        grouping = self.make_grouping(groups is not None)
        covs = X.covariates if X.covariates is not None else [None] * X.n_groups

        logger.info("Fitting %s with %d states to %d observations in %d group(s)",
                    self.__class__.__name__, n_states, X.total_length, X.n_groups)

        params = [structure.initialize(y_g, l_g, n_states, c_g)
                  for y_g, l_g, c_g in zip(X.sequence, X.labels, covs)]
        grouping.initialize(params)

        conv = ConvergenceHandler(max_iter=max_iter if max_iter is not None else self.default_max_iter,
                                  min_iter=min_iter,
                                  tol=tol,
                                  verbose=verbose,
                                  callbacks=callbacks)

        log_likelihood = float("nan")
        while conv.keep_going:
            # E step for every group, then the cross-group merge
            for y_g, p, c_g in zip(X.sequence, params, covs):
                structure.e_step(y_g, p, c_g)
            if self.common:
                structure.merge_common(params, X.weights)

            log_likelihood = sum(p.log_likelihood for p in params) + grouping.prior_log_likelihood(params)
            for p in params:
                p.check()
            constraints.check_finite("log-likelihood", log_likelihood)
            conv.push_pull(log_likelihood)

            # M step for the emission means and covariances
            grouping.m_step(X.sequence, params)
            for p in params:
                p.mvn.check()
            if grouping.population is not None:
                grouping.population.check()

        dof = structure.dof(n_states, params, self.common) + grouping.dof(n_states, X.feature_dim, X.n_groups)
        if not conv.is_converged:
            logger.info("Stopped after %d iterations without reaching tol=%g", conv.iter, tol)

        return FitResult(
            n_components=n_states,
            params=params,
            groups=X.keys,
            indices=X.indices,
            log_likelihood=float(log_likelihood),
            n_iter=conv.iter,
            converged=bool(conv.is_converged),
            dof=dof,
            n_samples=X.total_length,
            population=grouping.population,
            history=conv.history,
            title=self._title(X.n_groups),
        )
