from .BaseGrouping import BaseGrouping
from .IndependentGrouping import IndependentGrouping
from .SharedCovariance import SharedCovariance
from .RandomEffects import RandomEffects


__all__ = [
    'BaseGrouping',
    'IndependentGrouping',
    'SharedCovariance',
    'RandomEffects',
]
