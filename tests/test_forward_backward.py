import itertools
import math

import pytest
import torch

from mvnseq import forward_backward, NumericError

DTYPE = torch.float64


# ---------------------------------------------------------
# Brute-force enumeration over all state paths
# ---------------------------------------------------------
def enumerate_paths(log_probs, pi, A):
    n, K = log_probs.shape
    f = log_probs.exp()
    trans = A if A.ndim == 3 else A.expand(max(n - 1, 0), K, K)
    marginal = torch.zeros((n, K), dtype=DTYPE)
    joint = torch.zeros((n - 1, K, K), dtype=DTYPE)
    total = 0.0
    for path in itertools.product(range(K), repeat=n):
        p = pi[path[0]] * f[0, path[0]]
        for t in range(1, n):
            p = p * trans[t - 1, path[t - 1], path[t]] * f[t, path[t]]
        total = total + p
        for t in range(n):
            marginal[t, path[t]] += p
        for t in range(n - 1):
            joint[t, path[t], path[t + 1]] += p
    return marginal / total, joint / total, math.log(float(total))


def random_chain(K, gen):
    pi = torch.rand(K, dtype=DTYPE, generator=gen) + 0.1
    A = torch.rand((K, K), dtype=DTYPE, generator=gen) + 0.1
    return pi / pi.sum(), A / A.sum(-1, keepdim=True)


@pytest.mark.parametrize("n,K", [(5, 2), (4, 3)])
def test_matches_enumeration(n, K):
    gen = torch.Generator().manual_seed(n * 10 + K)
    pi, A = random_chain(K, gen)
    log_probs = torch.randn((n, K), dtype=DTYPE, generator=gen)

    post = forward_backward(log_probs, pi, A)
    marginal, joint, log_likelihood = enumerate_paths(log_probs, pi, A)

    assert torch.allclose(post.marginal, marginal, atol=1e-12)
    assert torch.allclose(post.joint, joint, atol=1e-12)
    assert post.log_likelihood == pytest.approx(log_likelihood, abs=1e-10)


def test_transition_indexed_matrix_matches_enumeration():
    n, K = 5, 2
    gen = torch.Generator().manual_seed(7)
    pi, _ = random_chain(K, gen)
    A = torch.rand((n - 1, K, K), dtype=DTYPE, generator=gen) + 0.05
    A = A / A.sum(-1, keepdim=True)
    log_probs = torch.randn((n, K), dtype=DTYPE, generator=gen)

    post = forward_backward(log_probs, pi, A)
    marginal, joint, log_likelihood = enumerate_paths(log_probs, pi, A)

    assert torch.allclose(post.marginal, marginal, atol=1e-12)
    assert torch.allclose(post.joint, joint, atol=1e-12)
    assert post.log_likelihood == pytest.approx(log_likelihood, abs=1e-10)


def test_posteriors_are_normalized():
    gen = torch.Generator().manual_seed(3)
    pi, A = random_chain(3, gen)
    post = forward_backward(torch.randn((50, 3), dtype=DTYPE, generator=gen), pi, A)

    assert torch.allclose(post.marginal.sum(1), torch.ones(50, dtype=DTYPE))
    assert torch.allclose(post.joint.sum((1, 2)), torch.ones(49, dtype=DTYPE))
    # joints are consistent with the marginals on both sides
    assert torch.allclose(post.joint.sum(2), post.marginal[:-1], atol=1e-12)
    assert torch.allclose(post.joint.sum(1), post.marginal[1:], atol=1e-12)


# ---------------------------------------------------------
# Numerical edge cases
# ---------------------------------------------------------
def test_emission_underflow_only_shifts_log_likelihood():
    gen = torch.Generator().manual_seed(11)
    pi, A = random_chain(3, gen)
    log_probs = torch.randn((40, 3), dtype=DTYPE, generator=gen)

    ref = forward_backward(log_probs, pi, A)
    shifted = forward_backward(log_probs - 2000.0, pi, A)

    assert torch.allclose(shifted.marginal, ref.marginal, atol=1e-12)
    assert shifted.log_likelihood == pytest.approx(ref.log_likelihood - 2000.0 * 40, rel=1e-12)


def test_unreachable_state_has_zero_probability():
    pi = torch.tensor([1.0, 0.0], dtype=DTYPE)
    A = torch.tensor([[1.0, 0.0], [0.5, 0.5]], dtype=DTYPE)
    log_probs = torch.randn((5, 2), dtype=DTYPE, generator=torch.Generator().manual_seed(0))

    post = forward_backward(log_probs, pi, A)
    marginal, joint, log_likelihood = enumerate_paths(log_probs, pi, A)

    assert torch.isfinite(post.marginal).all() and torch.isfinite(post.joint).all()
    assert torch.equal(post.marginal[:, 1], torch.zeros(5, dtype=DTYPE))
    assert torch.allclose(post.joint, joint, atol=1e-12)
    assert post.log_likelihood == pytest.approx(log_likelihood, abs=1e-10)


def test_single_observation():
    pi = torch.tensor([0.25, 0.75], dtype=DTYPE)
    log_probs = torch.tensor([[0.0, math.log(3.0)]], dtype=DTYPE)

    post = forward_backward(log_probs, pi, torch.eye(2, dtype=DTYPE))

    assert torch.allclose(post.marginal, torch.tensor([[0.1, 0.9]], dtype=DTYPE))
    assert post.joint.shape == (0, 2, 2)
    assert post.log_likelihood == pytest.approx(math.log(0.25 + 2.25))


def test_impossible_observation_raises():
    pi = torch.tensor([0.5, 0.5], dtype=DTYPE)
    log_probs = torch.tensor([[0.0, 0.0], [-math.inf, -math.inf]], dtype=DTYPE)
    with pytest.raises(NumericError):
        forward_backward(log_probs, pi, torch.full((2, 2), 0.5, dtype=DTYPE))
