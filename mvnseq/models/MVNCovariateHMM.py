# mvnseq/models/MVNCovariateHMM.py
from typing import Any, Callable, List, Optional

from mvnseq.models.BaseModel import BaseModel
from mvnseq.params import FitResult
from mvnseq.regression import TransitionRegression, WeightedBinomialRegression
from mvnseq.structure import LogisticMarkovStructure


class MVNCovariateHMM(BaseModel):
    """
    Two-state multivariate Normal HMM with covariate-driven transitions
    ----------
    The probability of staying in state 0 (resp. 1) at each transition is a
    logistic regression on the covariates of the source time point.

    Parameters:
    ----------
    regression1 (TransitionRegression):
        Model for P(stay in state 0).
    regression2 (TransitionRegression):
        Model for P(stay in state 1).
    random_effects (bool):
        Model group state means as draws from Normal(population mean, U).
    regressor (Optional[WeightedBinomialRegression]):
        Weighted binomial regression used for the fits; sklearn-backed by default.
    min_covar (float):
        Diagonal floor added to re-estimated covariances.
    """

    title_stem = "Normal Covariate Hidden Markov Model"

    def __init__(self,
                 regression1: TransitionRegression,
                 regression2: TransitionRegression,
                 random_effects: bool = False,
                 regressor: Optional[WeightedBinomialRegression] = None,
                 min_covar: float = 0.0):
        super().__init__(LogisticMarkovStructure.N_STATES, False, random_effects, min_covar)
        self._structure = LogisticMarkovStructure(regression1, regression2, regressor)

    @property
    def structure(self) -> LogisticMarkovStructure:
        return self._structure

    def fit(self,
            y: Any,
            labels: Any,
            covariates: Any = None,
            groups: Optional[Any] = None,
            min_iter: int = 10,
            max_iter: Optional[int] = None,
            tol: float = 1e-3,
            verbose: bool = False,
            callbacks: Optional[List[Callable[[int, float], None]]] = None) -> FitResult:
        """Fit by EM; `covariates` is an (n, c) table aligned row by row with `y`."""
        return super().fit(y, labels, groups=groups, covariates=covariates,
                           min_iter=min_iter, max_iter=max_iter, tol=tol,
                           verbose=verbose, callbacks=callbacks)
