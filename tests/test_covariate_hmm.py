import pytest
import torch

from mvnseq import (MVNCovariateHMM, IllPosedInputError, SklearnBinomialRegression,
                    TransitionRegression, sample_covariate_hmm)
from mvnseq.regression import WEIGHT_EPS, fit_stay_probability

DTYPE = torch.float64

BETA1 = torch.tensor([2.0, 1.0], dtype=DTYPE)
BETA2 = torch.tensor([1.5], dtype=DTYPE)


@pytest.fixture
def covariate_data(hmm2):
    x = torch.randn((2000, 1), dtype=DTYPE, generator=torch.Generator().manual_seed(5))
    reg1 = TransitionRegression(columns=(0,))
    reg2 = TransitionRegression()
    y, states = sample_covariate_hmm(reg1.design_matrix(x), reg2.design_matrix(x), BETA1, BETA2,
                                     hmm2["pi"], hmm2["means"], hmm2["covs"], seed=6)
    return y, states, x, reg1, reg2


class RecordingRegression:
    """Weighted binomial regression that counts its fits."""

    def __init__(self):
        self.inner = SklearnBinomialRegression()
        self.calls = 0

    def fit(self, X, target, weights):
        self.calls += 1
        return self.inner.fit(X, target, weights)


# ---------------------------------------------------------
# Design matrices and the binomial regression
# ---------------------------------------------------------
def test_design_matrix():
    cov = torch.tensor([[1.0, 10.0], [2.0, 20.0], [3.0, 30.0]], dtype=DTYPE)

    X = TransitionRegression(columns=(1,)).design_matrix(cov)
    assert torch.equal(X, torch.tensor([[1.0, 10.0], [1.0, 20.0], [1.0, 30.0]], dtype=DTYPE))

    X = TransitionRegression(columns=(0, 1), intercept=False).design_matrix(cov)
    assert torch.equal(X, cov)

    with pytest.raises(IllPosedInputError):
        TransitionRegression(intercept=False).design_matrix(cov)


def test_binomial_regression_fits_fractional_targets():
    x = torch.linspace(-3.0, 3.0, 200, dtype=DTYPE)
    X = torch.stack([torch.ones_like(x), x], dim=1)
    beta = torch.tensor([0.5, -1.2], dtype=DTYPE)
    q = torch.sigmoid(X @ beta)

    coef, fitted = SklearnBinomialRegression().fit(X, q, torch.ones_like(q))

    assert torch.allclose(coef, beta, atol=1e-3)
    assert torch.allclose(fitted, q, atol=1e-4)


def test_stay_probability_targets_from_joints():
    class Capture:
        def fit(self, X, target, weights):
            self.target, self.weights = target, weights
            return torch.zeros(1, dtype=DTYPE), target

    joint = torch.tensor([
        [[0.6, 0.2], [0.1, 0.1]],
        [[0.0, 0.0], [0.3, 0.7]],
    ], dtype=DTYPE)
    reg = Capture()
    fit_stay_probability(reg, torch.ones((2, 1), dtype=DTYPE), joint, 0)

    assert torch.allclose(reg.weights, torch.tensor([0.8, 0.0], dtype=DTYPE))
    assert torch.allclose(reg.target, torch.tensor([0.6 / (0.8 + WEIGHT_EPS), 0.0], dtype=DTYPE))


# ---------------------------------------------------------
# Fits
# ---------------------------------------------------------
def test_recovers_transition_regressions(hmm2, covariate_data, psd):
    y, states, x, reg1, reg2 = covariate_data
    result = MVNCovariateHMM(reg1, reg2).fit(y, states, x)
    params = result.params[0]

    assert torch.allclose(params.beta1, BETA1, atol=0.5)
    assert torch.allclose(params.beta2, BETA2, atol=0.4)
    assert torch.allclose(result.means, hmm2["means"], atol=0.15)
    assert psd(result.covs)

    A = params.A
    assert A.shape == (1999, 2, 2)
    assert torch.allclose(A.sum(-1), torch.ones((1999, 2), dtype=DTYPE))
    # (K-1) + coefficients + Kq + Kq(q+1)/2
    assert result.dof == 1 + 3 + 4 + 6


def test_log_likelihood_is_monotone(covariate_data, monotone):
    y, states, x, reg1, reg2 = covariate_data
    result = MVNCovariateHMM(reg1, reg2).fit(y, states, x, min_iter=15, max_iter=15)

    assert len(result.history) == 15
    # stay regressions come from an iterative solver
    assert monotone(result.history, rtol=1e-6)


def test_custom_regressor_is_used(covariate_data):
    y, states, x, reg1, reg2 = covariate_data
    regressor = RecordingRegression()

    result = MVNCovariateHMM(reg1, reg2, regressor=regressor).fit(y, states, x, min_iter=3, max_iter=3)

    # two fits at initialization, two per iteration
    assert regressor.calls == 2 + 2 * result.n_iter


def test_grouped_covariate_fit(covariate_data):
    y, states, x, reg1, reg2 = covariate_data
    groups = torch.arange(2).repeat_interleave(1000).numpy()

    result = MVNCovariateHMM(reg1, reg2).fit(y, states, x, groups=groups)

    assert len(result.params) == 2
    assert torch.equal(result.covs[0], result.covs[1])
    assert result.dof == 2 * 1 + 2 * 3 + 2 * 4 + 6


# ---------------------------------------------------------
# Input checks
# ---------------------------------------------------------
def test_requires_two_states_and_covariates(covariate_data):
    y, states, x, reg1, reg2 = covariate_data
    model = MVNCovariateHMM(reg1, reg2)

    with pytest.raises(IllPosedInputError):
        model.fit(y, states, None)
    with pytest.raises(IllPosedInputError):
        model.fit(y, states, x[:-1])

    three = states.clone()
    three[:5] = 2
    with pytest.raises(IllPosedInputError):
        model.fit(y, three, x)


def test_transitions_are_never_shared_across_groups(covariate_data):
    y, states, x, reg1, reg2 = covariate_data
    groups = torch.arange(2).repeat_interleave(1000).numpy()
    model = MVNCovariateHMM(reg1, reg2)
    model.common = True

    with pytest.raises(IllPosedInputError, match="shared across groups"):
        model.fit(y, states, x, groups=groups, min_iter=1, max_iter=1)
