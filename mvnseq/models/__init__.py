from .BaseModel import BaseModel
from .MVNMixture import MVNMixture
from .MVNHMM import MVNHMM
from .MVNCovariateHMM import MVNCovariateHMM


__all__ = [
    'BaseModel',
    'MVNMixture',
    'MVNHMM',
    'MVNCovariateHMM',
]
