from .logistic import (SklearnBinomialRegression, TransitionRegression, WeightedBinomialRegression,
                       fit_stay_probability, WEIGHT_EPS)


__all__ = [
    'SklearnBinomialRegression',
    'TransitionRegression',
    'WeightedBinomialRegression',
    'fit_stay_probability',
    'WEIGHT_EPS',
]
