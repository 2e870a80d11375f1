"""
Tests for Weight Initializers
=============================
"""

from __future__ import annotations

import math

import pytest
import torch

from kerasdl.core.initializers import (
    Constant,
    GlorotNormal,
    GlorotUniform,
    HeNormal,
    HeUniform,
    LeCunNormal,
    Ones,
    RandomNormal,
    RandomUniform,
    TruncatedNormal,
    VarianceScaling,
    Zeros,
    compute_fans,
)


# ────────────────────────────────────────────────────────────────────
# Constant initializers
# ────────────────────────────────────────────────────────────────────
class TestConstant:
    def test_ones(self):
        W = Ones().initialize(2, 2, (2, 2))
        assert torch.equal(W, torch.ones(2, 2))

    def test_zeros(self):
        W = Zeros().initialize(3, 4, (3, 4))
        assert torch.equal(W, torch.zeros(3, 4))

    def test_constant_value_and_dtype(self):
        W = Constant(0.1).initialize(1, 5, (5,))
        assert W.dtype == torch.float32
        torch.testing.assert_close(W, torch.full((5,), 0.1))

    def test_equality(self):
        assert Constant(0.5) == Constant(0.5)
        assert Constant(0.5) != Constant(0.25)
        assert Zeros() != Constant(0.0)


# ────────────────────────────────────────────────────────────────────
# Random initializers
# ────────────────────────────────────────────────────────────────────
class TestRandom:
    def test_seeded_initializer_is_repeatable(self):
        init = GlorotNormal(seed=12)
        torch.testing.assert_close(init.initialize(10, 20, (10, 20)), init.initialize(10, 20, (10, 20)))

    def test_different_seeds_differ(self):
        a = RandomNormal(seed=1).initialize(1, 1, (50,))
        b = RandomNormal(seed=2).initialize(1, 1, (50,))
        assert not torch.equal(a, b)

    def test_random_uniform_bounds(self):
        W = RandomUniform(minval=-0.1, maxval=0.2, seed=0).initialize(1, 1, (1000,))
        assert W.min() >= -0.1 and W.max() <= 0.2

    def test_random_normal_moments(self):
        W = RandomNormal(mean=1.0, stddev=0.5, seed=0).initialize(1, 1, (20000,))
        assert abs(W.mean().item() - 1.0) < 0.02
        assert abs(W.std().item() - 0.5) < 0.02

    def test_truncated_normal_within_two_stddev(self):
        W = TruncatedNormal(mean=0.0, stddev=0.05, seed=0).initialize(1, 1, (5000,))
        assert W.abs().max() <= 0.1 + 1e-6


# ────────────────────────────────────────────────────────────────────
# Variance scaling family
# ────────────────────────────────────────────────────────────────────
class TestVarianceScaling:
    def test_compute_fans_dense(self):
        assert compute_fans((784, 128)) == (784, 128)

    def test_compute_fans_conv(self):
        assert compute_fans((5, 5, 3, 32)) == (75, 800)

    def test_compute_fans_bias(self):
        assert compute_fans((10,)) == (10, 10)

    def test_glorot_uniform_limit(self):
        W = GlorotUniform(seed=0).initialize(100, 50, (100, 50))
        limit = math.sqrt(6.0 / 150)
        assert W.abs().max() <= limit

    def test_he_uniform_limit(self):
        W = HeUniform(seed=0).initialize(64, 32, (64, 32))
        assert W.abs().max() <= math.sqrt(6.0 / 64)

    def test_he_normal_std(self):
        W = HeNormal(seed=0).initialize(200, 200, (200, 200))
        assert abs(W.std().item() - math.sqrt(2.0 / 200)) < 0.01

    def test_lecun_normal_truncated(self):
        W = LeCunNormal(seed=0).initialize(100, 100, (100, 100))
        stddev = math.sqrt(1.0 / 100) / 0.87962566103423978
        assert W.abs().max() <= 2 * stddev + 1e-6

    def test_glorot_normal_is_fan_avg(self):
        init = GlorotNormal()
        assert (init.scale, init.mode, init.distribution) == (1.0, "fan_avg", "truncated_normal")

    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="mode"):
            VarianceScaling(mode="fan_sum")

    def test_invalid_distribution(self):
        with pytest.raises(ValueError, match="distribution"):
            VarianceScaling(distribution="cauchy")

    def test_invalid_scale(self):
        with pytest.raises(ValueError):
            VarianceScaling(scale=0.0)
