from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence, Union, runtime_checkable

import torch

from xai_attrib.core.errors import InvalidParameter


@runtime_checkable
class NoiseDistribution(Protocol):
    """Anything that can draw additive noise from an explicit torch.Generator."""

    def sample(self, shape: Sequence[int], generator: torch.Generator, dtype: torch.dtype) -> torch.Tensor:
        ...


def _check_finite(**values: float) -> None:
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
            raise InvalidParameter(f"{key} must be a finite number, got {value!r}")


@dataclass(frozen=True)
class Normal:
    """Gaussian noise. std=0 gives a zero-variance distribution (noise == mean)."""
    mean: float = 0.0
    std: float = 1.0

    def __post_init__(self) -> None:
        _check_finite(mean=self.mean, std=self.std)
        if self.std < 0:
            raise InvalidParameter(f"std must be >= 0, got {self.std}")

    def sample(self, shape: Sequence[int], generator: torch.Generator, dtype: torch.dtype) -> torch.Tensor:
        z = torch.randn(tuple(shape), generator=generator, dtype=dtype, device=generator.device)
        return z * float(self.std) + float(self.mean)


@dataclass(frozen=True)
class Uniform:
    """Uniform noise on [low, high)."""
    low: float = -1.0
    high: float = 1.0

    def __post_init__(self) -> None:
        _check_finite(low=self.low, high=self.high)
        if self.high < self.low:
            raise InvalidParameter(f"Uniform needs low <= high, got low={self.low}, high={self.high}")

    def sample(self, shape: Sequence[int], generator: torch.Generator, dtype: torch.dtype) -> torch.Tensor:
        u = torch.rand(tuple(shape), generator=generator, dtype=dtype, device=generator.device)
        return float(self.low) + float(self.high - self.low) * u


@dataclass(frozen=True)
class Poisson:
    """Poisson noise with the given rate (shot-noise-like, non-negative)."""
    rate: float = 1.0

    def __post_init__(self) -> None:
        _check_finite(rate=self.rate)
        if self.rate < 0:
            raise InvalidParameter(f"Poisson rate must be >= 0, got {self.rate}")

    def sample(self, shape: Sequence[int], generator: torch.Generator, dtype: torch.dtype) -> torch.Tensor:
        rates = torch.full(tuple(shape), float(self.rate), dtype=dtype, device=generator.device)
        return torch.poisson(rates, generator=generator)


DISTRIBUTIONS = {
    "normal": Normal,
    "gaussian": Normal,
    "uniform": Uniform,
    "poisson": Poisson,
}


def as_distribution(value: Union[float, int, NoiseDistribution, Mapping[str, Any]]) -> NoiseDistribution:
    """
    Accepts:
      - a number: standard deviation of zero-mean Gaussian noise
      - a distribution object (anything with a compatible .sample)
      - a mapping like {"name": "uniform", "low": -0.1, "high": 0.1}
    """
    if isinstance(value, Mapping):
        params = dict(value)
        name = str(params.pop("name", "normal")).lower()
        if name not in DISTRIBUTIONS:
            raise InvalidParameter(f"Unknown noise distribution: {name}. Known: {sorted(DISTRIBUTIONS)}")
        try:
            return DISTRIBUTIONS[name](**params)
        except TypeError as exc:
            raise InvalidParameter(f"Bad parameters for {name} noise: {params}") from exc
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return Normal(mean=0.0, std=float(value))
    if isinstance(value, NoiseDistribution):
        return value
    raise InvalidParameter(f"Cannot build a noise distribution from {value!r}")
