from __future__ import annotations

"""
Input augmentation wrappers.

Both wrappers take any Analyzer (including another wrapper) and average its
attributions over synthetic variants of the input:

  NoiseAugmentation          x + noise_k,                k = 1..n
  InterpolationAugmentation  ref + (k/n) * (x - ref),     k = 1..n

The output selection is resolved once, on the unperturbed input, and reused
for every variant.

With a Gradient inside, these are SmoothGrad and Integrated Gradients.
"""

import logging
from typing import Any, Callable, Mapping, Optional, Tuple, Union

import numpy as np
import torch

from xai_attrib.analyzers.base import Analyzer
from xai_attrib.analyzers.gradient import Gradient, Model
from xai_attrib.analyzers.noise import NoiseDistribution, as_distribution
from xai_attrib.core.errors import InvalidParameter, ShapeMismatch
from xai_attrib.core.explanation import Explanation, make_explanation
from xai_attrib.core.selection import OutputSelection, resolve_output_selection
from xai_attrib.core.validation import check_positive_int, check_same_shape
from xai_attrib.utils.seed import make_generator

logger = logging.getLogger(__name__)


def _repeat_batch(value: Any, count: int, batch_size: int) -> Any:
    """Tile per-sample tensors so they line up with `count` stacked trials."""
    if count > 1 and isinstance(value, torch.Tensor) and value.dim() >= 1 and value.shape[0] == batch_size:
        return value.repeat(count, *([1] * (value.dim() - 1)))
    return value


def _first_trial(value: Any, count: int, batch_size: int) -> Any:
    """Inverse of _repeat_batch for extras: keep the first trial's rows."""
    if count > 1 and isinstance(value, torch.Tensor) and value.dim() >= 1 and value.shape[0] == count * batch_size:
        return value[:batch_size]
    return value


class AugmentationWrapper(Analyzer):
    """
    Shared machinery of the two wrappers.

    chunk_size trials are concatenated along the batch axis and explained in a
    single inner call. The sum over trials runs in trial order, so results are
    deterministic for a given chunk_size; different chunk sizes can differ in
    the last floating-point bits because the additions are grouped differently.
    """

    def __init__(self, analyzer: Analyzer, n: int, chunk_size: int = 1, name: Optional[str] = None):
        if not isinstance(analyzer, Analyzer):
            raise InvalidParameter(f"Expected an Analyzer to wrap, got {type(analyzer).__name__}")
        self.analyzer = analyzer
        self.n = check_positive_int(n, "n")
        self.chunk_size = check_positive_int(chunk_size, "chunk_size")
        self.tag = name

    @property
    def name(self) -> str:
        # Innermost base analyzer's tag unless overridden
        return self.tag or self.analyzer.name

    @property
    def heatmap(self) -> str:
        return self.analyzer.heatmap

    def predict(self, input: torch.Tensor) -> torch.Tensor:
        return self.analyzer.predict(input)

    def _accumulate(
        self,
        input: torch.Tensor,
        selection: torch.Tensor,
        trial_input: Callable[[int], torch.Tensor],
        **kwargs: Any,
    ) -> Tuple[torch.Tensor, Explanation, int]:
        """
        Explain trial_input(k) for k = 0..n-1 with the fixed selection.

        Returns (sum of vals, explanation of the first inner call, trials in
        that first call). Any failing trial propagates: dropping it would bias
        the average.
        """
        batch_size = input.shape[0]
        total: Optional[torch.Tensor] = None
        first: Optional[Explanation] = None
        first_count = 0

        for start in range(0, self.n, self.chunk_size):
            count = min(self.chunk_size, self.n - start)
            batch = torch.cat([trial_input(k) for k in range(start, start + count)], dim=0)
            inner_kwargs = {k: _repeat_batch(v, count, batch_size) for k, v in kwargs.items()}

            expl = self.analyzer.explain(batch, selection.repeat(count), **inner_kwargs)
            if expl.val.shape[0] != count * batch_size:
                raise ShapeMismatch(
                    f"Inner analyzer returned batch {expl.val.shape[0]}, expected {count * batch_size}"
                )

            chunk_sum = expl.val.reshape(count, batch_size, *expl.val.shape[1:]).sum(dim=0)
            total = chunk_sum if total is None else total + chunk_sum
            if first is None:
                first, first_count = expl, count
            logger.debug("%s: trials %d-%d of %d done", type(self).__name__, start + 1, start + count, self.n)

        return total, first, first_count

    def _finish(
        self,
        val: torch.Tensor,
        output: torch.Tensor,
        selection: torch.Tensor,
        first: Explanation,
        first_count: int,
    ) -> Explanation:
        batch_size = output.shape[0]
        extras = {k: _first_trial(v, first_count, batch_size) for k, v in first.extras.items()}
        return make_explanation(
            val, output, selection,
            analyzer=self.tag or first.analyzer,
            heatmap=first.heatmap,
            extras=extras,
        )


class NoiseAugmentation(AugmentationWrapper):
    """
    Average an analyzer over n copies of the input with additive noise.

    Parameters:
      - analyzer: the Analyzer to wrap
      - n: number of noisy samples
      - distribution: noise std (zero-mean Gaussian), a distribution object
        from xai_attrib.analyzers.noise, or a mapping describing one. Default 1.0
      - rng: torch.Generator, int seed, or None. None means the wrapper owns a
        generator seeded with utils.seed.DEFAULT_SEED; successive calls keep
        drawing from it. All n trials of a call share the same generator.
      - chunk_size: trials per inner call
      - name: optional tag overriding the inner analyzer's name

    More samples give smoother maps at the cost of more backward passes.
    """

    def __init__(
        self,
        analyzer: Analyzer,
        n: int,
        distribution: Union[float, NoiseDistribution, Mapping[str, Any]] = 1.0,
        rng: Optional[Union[int, torch.Generator]] = None,
        chunk_size: int = 1,
        name: Optional[str] = None,
    ):
        super().__init__(analyzer, n, chunk_size=chunk_size, name=name)
        self.distribution = as_distribution(distribution)
        self.rng = make_generator(rng)

    def explain(self, input: torch.Tensor, output_selection: OutputSelection = None, **kwargs: Any) -> Explanation:
        output = self.predict(input)
        selection = resolve_output_selection(output, output_selection)

        def noisy(_: int) -> torch.Tensor:
            noise = self.distribution.sample(input.shape, self.rng, input.dtype)
            return input + noise.to(input.device)

        total, first, first_count = self._accumulate(input, selection, noisy, **kwargs)
        return self._finish(total / self.n, output, selection, first, first_count)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.analyzer!r}, n={self.n}, distribution={self.distribution})"


class InterpolationAugmentation(AugmentationWrapper):
    """
    Average an analyzer along the straight path from a reference input to the
    input, then scale by (input - reference).

    The reference defaults to zeros_like(input) and can be changed per call:

        analyzer(input, input_ref=torch.ones_like(input))

    With a Gradient inside this is a right Riemann sum (k = 1..n) of the
    path integral behind Integrated Gradients; accuracy is controlled by n only.
    """

    def __init__(self, analyzer: Analyzer, n: int = 50, chunk_size: int = 1, name: Optional[str] = None):
        super().__init__(analyzer, n, chunk_size=chunk_size, name=name)

    def explain(
        self,
        input: torch.Tensor,
        output_selection: OutputSelection = None,
        input_ref: Optional[Union[torch.Tensor, np.ndarray]] = None,
        **kwargs: Any,
    ) -> Explanation:
        if input_ref is None:
            ref = torch.zeros_like(input)
        else:
            ref = torch.as_tensor(input_ref, dtype=input.dtype, device=input.device)
            check_same_shape(ref, input.shape, "input_ref")

        output = self.predict(input)
        selection = resolve_output_selection(output, output_selection)
        diff = input - ref

        def interpolated(k: int) -> torch.Tensor:
            return ref + ((k + 1) / self.n) * diff

        total, first, first_count = self._accumulate(input, selection, interpolated, **kwargs)
        return self._finish(total / self.n * diff, output, selection, first, first_count)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.analyzer!r}, n={self.n})"


class SmoothGrad(NoiseAugmentation):
    """
    SmoothGrad: Gradient averaged over Gaussian-noised copies of the input.

    Reference: Smilkov et al., SmoothGrad: removing noise by adding noise
    """

    def __init__(
        self,
        model: Model,
        n: int = 50,
        std: float = 0.1,
        rng: Optional[Union[int, torch.Generator]] = None,
        chunk_size: int = 1,
    ):
        super().__init__(Gradient(model), n, distribution=std, rng=rng, chunk_size=chunk_size)


class IntegratedGradients(InterpolationAugmentation):
    """
    Integrated Gradients with a zero reference by default.

    Reference: Sundararajan et al., Axiomatic Attribution for Deep Networks
    """

    def __init__(self, model: Model, n: int = 50, chunk_size: int = 1):
        super().__init__(Gradient(model), n, chunk_size=chunk_size)
