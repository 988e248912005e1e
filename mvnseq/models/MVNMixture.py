# mvnseq/models/MVNMixture.py
from typing import Optional

from mvnseq.models.BaseModel import BaseModel
from mvnseq.structure import MixtureStructure


class MVNMixture(BaseModel):
    """
    Multivariate Normal mixture
    ----------
    Observations are independent draws from a K-component mixture. Given a
    group vector at fit time, a mixture is fitted to every group with
    group-specific means and a covariance per component shared by all
    groups; with `random_effects=True` the group means are shrunk towards a
    population mean.

    Parameters:
    ----------
    n_components (Optional[int]):
        Number of mixture components. Defaults to max(labels) + 1.
    common_fractions (bool):
        Use the same mixing fractions in every group.
    random_effects (bool):
        Model group means as draws from Normal(population mean, U).
    min_covar (float):
        Diagonal floor added to re-estimated covariances.
    """

    title_stem = "Normal Mixture Model"

    def __init__(self,
                 n_components: Optional[int] = None,
                 common_fractions: bool = False,
                 random_effects: bool = False,
                 min_covar: float = 0.0):
        super().__init__(n_components, common_fractions, random_effects, min_covar)

    @property
    def structure(self) -> MixtureStructure:
        return MixtureStructure()
