import numpy as np
import pytest
import torch

from mvnseq import MVNHMM, best_permutation, best_permutation_accuracy, sample_hmm
from mvnseq.structure import MarkovStructure

DTYPE = torch.float64


@pytest.fixture
def hmm_data(hmm3, kmeans):
    y, states = sample_hmm(5000, hmm3["pi"], hmm3["A"], hmm3["means"], hmm3["covs"], seed=0)
    return y, states, kmeans(y, 3)


# ---------------------------------------------------------
# Initialization from hard labels
# ---------------------------------------------------------
def test_initialize_counts_adjacent_pairs():
    y = torch.tensor([[0.0, 1.0], [0.5, 0.2], [3.0, 3.1], [2.9, 2.5], [0.1, 0.4], [3.3, 2.8]], dtype=DTYPE)
    labels = torch.tensor([0, 0, 1, 1, 0, 1])

    params = MarkovStructure().initialize(y, labels, 2)

    # pairs: (0,0) (0,1) (1,1) (1,0) (0,1)
    expected_counts = torch.tensor([[1.0, 2.0], [1.0, 1.0]], dtype=DTYPE) / 5.0
    assert torch.allclose(params.A_counts, expected_counts)
    assert torch.allclose(params.A, torch.tensor([[1 / 3, 2 / 3], [0.5, 0.5]], dtype=DTYPE))
    assert torch.allclose(params.pi, torch.tensor([0.5, 0.5], dtype=DTYPE))
    assert torch.allclose(params.mvn.covs[1], torch.cov(y[labels == 1].T))


# ---------------------------------------------------------
# Known-answer recovery
# ---------------------------------------------------------
def test_recovers_generating_chain(hmm3, hmm_data):
    y, states, labels = hmm_data
    result = MVNHMM().fit(y, labels)

    order = best_permutation(states, result.labels, 3)
    A_hat = result.params[0].A[order][:, order]
    assert (A_hat - hmm3["A"]).abs().max() < 0.05

    std = hmm3["covs"].diagonal(dim1=-2, dim2=-1).sqrt()
    assert ((result.means[order] - hmm3["means"]).abs() < 0.1 * std).all()

    acc, _ = best_permutation_accuracy(states, result.labels, 3)
    assert acc > 0.98


def test_fit_invariants(hmm_data, psd):
    y, _, labels = hmm_data
    result = MVNHMM().fit(y, labels)
    params = result.params[0]

    assert torch.allclose(params.A.sum(-1), torch.ones(3, dtype=DTYPE))
    assert torch.allclose(params.pi.sum(), torch.tensor(1.0, dtype=DTYPE))
    assert torch.allclose(result.posterior.sum(-1), torch.ones(5000, dtype=DTYPE))
    assert (params.A >= 0).all() and (params.pi >= 0).all()
    assert psd(result.covs)
    assert np.isfinite(result.history).all()
    assert result.history[-1] > result.history[0]


def test_log_likelihood_is_monotone(hmm_data, monotone):
    y, _, labels = hmm_data
    result = MVNHMM().fit(y, labels, min_iter=30, max_iter=30)

    assert result.n_iter == 30
    assert monotone(result.history)


def test_parameter_count(hmm_data):
    y, _, labels = hmm_data
    result = MVNHMM().fit(y, labels, min_iter=2, max_iter=2)
    # (K-1) + K(K-1) + Kq + Kq(q+1)/2 with K=3, q=2
    assert result.dof == 2 + 6 + 6 + 9
    assert "Normal Hidden Markov Model" in result.summary()


def test_unvisited_state_keeps_previous_transition_row(caplog):
    structure = MarkovStructure()
    counts = torch.tensor([[3.0, 1.0], [0.0, 0.0]], dtype=DTYPE)
    previous = torch.tensor([[0.5, 0.5], [0.2, 0.8]], dtype=DTYPE)

    with caplog.at_level("WARNING", logger="mvnseq"):
        A = structure._normalize_counts(counts, previous)

    assert torch.allclose(A, torch.tensor([[0.75, 0.25], [0.2, 0.8]], dtype=DTYPE))
    assert any("no expected outgoing transitions" in r.getMessage() for r in caplog.records)
