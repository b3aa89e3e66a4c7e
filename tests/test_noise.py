from __future__ import annotations

import numpy as np
import pytest
import torch

from xai_attrib.analyzers.noise import Normal, Poisson, Uniform, as_distribution
from xai_attrib.core.errors import InvalidParameter
from xai_attrib.utils.seed import DEFAULT_SEED, make_generator


def test_zero_variance_normal_is_constant():
    sample = Normal(mean=0.0, std=0.0).sample((3, 4), make_generator(0), torch.float32)
    assert torch.count_nonzero(sample) == 0


def test_samples_follow_generator_state():
    a = Normal(std=1.0).sample((100,), make_generator(3), torch.float64)
    b = Normal(std=1.0).sample((100,), make_generator(3), torch.float64)
    assert torch.equal(a, b)
    assert a.dtype == torch.float64


def test_uniform_bounds():
    sample = Uniform(-0.5, 0.25).sample((1000,), make_generator(0), torch.float32)
    assert sample.min() >= -0.5
    assert sample.max() <= 0.25


def test_poisson_is_non_negative_integer_valued():
    sample = Poisson(0.5).sample((1000,), make_generator(0), torch.float32)
    assert (sample >= 0).all()
    assert torch.equal(sample, sample.round())


@pytest.mark.parametrize("build", [
    lambda: Normal(std=-1.0),
    lambda: Uniform(1.0, 0.0),
    lambda: Poisson(-0.5),
    lambda: Normal(mean=float("inf")),
])
def test_invalid_parameters(build):
    with pytest.raises(InvalidParameter):
        build()


def test_as_distribution():
    assert as_distribution(0.3) == Normal(0.0, 0.3)
    assert as_distribution({"name": "uniform", "low": -1, "high": 1}) == Uniform(-1, 1)
    assert as_distribution({"name": "Poisson", "rate": 2}) == Poisson(2)
    dist = Uniform(0.0, 1.0)
    assert as_distribution(dist) is dist
    with pytest.raises(InvalidParameter):
        as_distribution({"name": "normal", "sigma": 1.0})


def test_make_generator():
    gen = torch.Generator()
    assert make_generator(gen) is gen
    assert torch.equal(torch.rand(3, generator=make_generator()),
                       torch.rand(3, generator=make_generator(DEFAULT_SEED)))
    with pytest.raises(InvalidParameter):
        make_generator("seed")


def test_numpy_scalars_are_accepted():
    assert as_distribution(np.float64(0.3)) == Normal(0.0, 0.3)
    gen = make_generator(1)
    sample = Normal(np.float32(0.0), np.float32(0.5)).sample((3, 4), gen, torch.float32)
    assert isinstance(sample, torch.Tensor)
    assert sample.dtype == torch.float32
    assert Uniform(np.float32(-1), np.float32(1)).sample((10,), gen, torch.float32).abs().max() <= 1
