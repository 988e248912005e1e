from . import constraints, utils
from .constraints import InformCriteria, MVNSeqError, IllPosedInputError, NumericError
from .convergence import ConvergenceHandler
from .seed import SeedGenerator
from .matching import best_permutation, best_permutation_accuracy
from .simulate import sample_mixture, sample_hmm, sample_grouped_hmm, sample_covariate_hmm


__all__ = [
    'constraints',
    'utils',
    'InformCriteria',
    'MVNSeqError',
    'IllPosedInputError',
    'NumericError',
    'ConvergenceHandler',
    'SeedGenerator',
    'best_permutation',
    'best_permutation_accuracy',
    'sample_mixture',
    'sample_hmm',
    'sample_grouped_hmm',
    'sample_covariate_hmm',
]
