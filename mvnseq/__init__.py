from .models import MVNMixture, MVNHMM, MVNCovariateHMM
from .params import FitResult, MVNParams, MixtureParams, HMMParams, LogisticHMMParams, PopulationParams
from .regression import TransitionRegression, SklearnBinomialRegression
from .structure import forward_backward
from .utilities import (
    InformCriteria,
    MVNSeqError,
    IllPosedInputError,
    NumericError,
    best_permutation,
    best_permutation_accuracy,
    sample_mixture,
    sample_hmm,
    sample_grouped_hmm,
    sample_covariate_hmm,
)

__version__ = "0.1.0"

__all__ = [
    'MVNMixture',
    'MVNHMM',
    'MVNCovariateHMM',
    'FitResult',
    'MVNParams',
    'MixtureParams',
    'HMMParams',
    'LogisticHMMParams',
    'PopulationParams',
    'TransitionRegression',
    'SklearnBinomialRegression',
    'forward_backward',
    'InformCriteria',
    'MVNSeqError',
    'IllPosedInputError',
    'NumericError',
    'best_permutation',
    'best_permutation_accuracy',
    'sample_mixture',
    'sample_hmm',
    'sample_grouped_hmm',
    'sample_covariate_hmm',
]
