import numpy as np
import pytest
import torch
from sklearn.cluster import KMeans

DTYPE = torch.float64


# ---------------------------------------------------------
# Initial labels via k-means
# ---------------------------------------------------------
@pytest.fixture
def kmeans():
    def _labels(y, n_clusters, seed=0):
        km = KMeans(n_clusters=n_clusters, n_init=10, random_state=seed)
        return km.fit_predict(np.asarray(y))
    return _labels


# ---------------------------------------------------------
# Generating parameters
# ---------------------------------------------------------
@pytest.fixture
def hmm3():
    """Three well-separated bivariate states with self-transition 0.95."""
    A = torch.full((3, 3), 0.025, dtype=DTYPE)
    A.fill_diagonal_(0.95)
    return dict(
        pi=torch.full((3,), 1.0 / 3.0, dtype=DTYPE),
        A=A,
        means=torch.tensor([[0.0, 0.0], [6.0, 0.0], [0.0, 6.0]], dtype=DTYPE),
        covs=torch.tensor([
            [[1.0, 0.3], [0.3, 1.0]],
            [[1.5, 0.0], [0.0, 0.5]],
            [[0.8, -0.2], [-0.2, 0.8]],
        ], dtype=DTYPE),
    )


@pytest.fixture
def mix3(hmm3):
    return dict(
        weights=torch.tensor([0.5, 0.3, 0.2], dtype=DTYPE),
        means=hmm3["means"],
        covs=hmm3["covs"],
    )


@pytest.fixture
def hmm2():
    """Two states for the grouped and random-effects fits."""
    return dict(
        pi=torch.tensor([0.5, 0.5], dtype=DTYPE),
        A=torch.tensor([[0.9, 0.1], [0.1, 0.9]], dtype=DTYPE),
        means=torch.tensor([[0.0, 0.0], [6.0, 6.0]], dtype=DTYPE),
        covs=torch.eye(2, dtype=DTYPE).expand(2, 2, 2).clone(),
    )


def is_psd(covs, atol=1e-10):
    covs = torch.as_tensor(covs)
    sym = torch.allclose(covs, covs.transpose(-1, -2), atol=1e-10)
    return sym and bool((torch.linalg.eigvalsh(covs) > -atol).all())


@pytest.fixture
def psd():
    return is_psd


def is_monotone(history, rtol=1e-8):
    """Log-likelihood never drops by more than rounding between EM iterations."""
    history = np.asarray(history)
    return bool((np.diff(history) >= -rtol * np.abs(history[1:])).all())


@pytest.fixture
def monotone():
    return is_monotone
