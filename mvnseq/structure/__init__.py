from .BaseStructure import BaseStructure
from .MixtureStructure import MixtureStructure
from .MarkovStructure import MarkovStructure, Posteriors, forward_backward
from .LogisticMarkovStructure import LogisticMarkovStructure


__all__ = [
    'BaseStructure',
    'MixtureStructure',
    'MarkovStructure',
    'LogisticMarkovStructure',
    'Posteriors',
    'forward_backward',
]
