from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import torch

from xai_attrib.core.engine import analyze
from xai_attrib.core.errors import AnalysisError, InvalidParameter
from xai_attrib.core.explanation import Explanation
from xai_attrib.core.selection import OutputSelection, select_outputs


class Analyzer(ABC):
    """
    Interface shared by base analyzers and augmentation wrappers.

    Contract:
      - input: torch.Tensor [B, ...] (batch axis first, already validated)
      - output_selection: None, an index, per-sample indices, or an already
        resolved LongTensor [B] (resolving twice is a no-op)
      - returns: Explanation

    Wrappers hold an inner Analyzer, so analyzers form a finite tree with
    Gradient/GradCAM style leaves at the bottom.
    """

    name: str
    heatmap: str

    @abstractmethod
    def predict(self, input: torch.Tensor) -> torch.Tensor:
        """Model output [B, n_outputs] for `input`, without building a graph."""
        raise NotImplementedError

    @abstractmethod
    def explain(self, input: torch.Tensor, output_selection: OutputSelection = None, **kwargs: Any) -> Explanation:
        raise NotImplementedError

    def __call__(self, input: torch.Tensor, output_selection: OutputSelection = None, **kwargs: Any) -> Explanation:
        return analyze(input, self, output_selection, **kwargs)


def selected_gradient(output: torch.Tensor, selection: torch.Tensor, wrt: torch.Tensor) -> torch.Tensor:
    """
    d output[b, selection[b]] / d wrt, for every sample b, in one backward pass.

    The selected scores are summed over the batch before differentiating, so
    this assumes samples do not interact inside the model (no BatchNorm in
    training mode etc.).
    """
    score = select_outputs(output, selection).sum()
    try:
        (grad,) = torch.autograd.grad(score, wrt, allow_unused=True)
    except RuntimeError as exc:
        raise AnalysisError(f"Backward pass failed: {exc}") from exc
    if grad is None:
        raise AnalysisError("Selected output does not depend on the differentiated tensor.")
    return grad


def reject_unknown_options(analyzer: Analyzer, options: dict) -> None:
    """Leaf analyzers take no per-call options; name the stray ones instead of a bare TypeError."""
    if options:
        raise InvalidParameter(f"{analyzer.name} got unexpected option(s): {sorted(options)}")
