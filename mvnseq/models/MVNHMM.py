# mvnseq/models/MVNHMM.py
from typing import Optional

from mvnseq.models.BaseModel import BaseModel
from mvnseq.structure import MarkovStructure


class MVNHMM(BaseModel):
    """
    Multivariate Normal hidden Markov model
    ----------
    The state sequence is a Markov chain with a constant transition matrix;
    the posterior state probabilities come from the scaled forward-backward
    recursion. Grouped fits treat each group as an independent chain.

    Parameters:
    ----------
    n_states (Optional[int]):
        Number of hidden states. Defaults to max(labels) + 1.
    common_transition (bool):
        Use the same initial and transition probabilities in every group.
    random_effects (bool):
        Model group state means as draws from Normal(population mean, U).
    min_covar (float):
        Diagonal floor added to re-estimated covariances.
    """

    title_stem = "Normal Hidden Markov Model"

    def __init__(self,
                 n_states: Optional[int] = None,
                 common_transition: bool = False,
                 random_effects: bool = False,
                 min_covar: float = 0.0):
        super().__init__(n_states, common_transition, random_effects, min_covar)

    @property
    def structure(self) -> MarkovStructure:
        return MarkovStructure()
