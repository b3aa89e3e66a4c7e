from __future__ import annotations

"""
Gradient and Input x Gradient.

Core idea:
"How sensitive is the selected class score to each input element?"

Gradient is the plain sensitivity map d(score)/d(input). It tends to be noisy
and highlights edges everywhere; wrapping it in NoiseAugmentation (SmoothGrad)
or InterpolationAugmentation (Integrated Gradients) is the usual remedy.

InputTimesGradient scales that sensitivity by the input value, turning it into
a signed attribution.
"""

from typing import Any, Callable

import torch

from xai_attrib.analyzers.base import Analyzer, reject_unknown_options, selected_gradient
from xai_attrib.core.errors import AnalysisError
from xai_attrib.core.explanation import Explanation, make_explanation
from xai_attrib.core.selection import OutputSelection, resolve_output_selection
from xai_attrib.core.validation import check_model_output

Model = Callable[[torch.Tensor], torch.Tensor]


def _forward(model: Model, x: torch.Tensor) -> torch.Tensor:
    try:
        output = model(x)
    except RuntimeError as exc:
        raise AnalysisError(f"Model forward pass failed: {exc}") from exc
    return check_model_output(output, x.shape[0])


def input_gradient(model: Model, input: torch.Tensor, output_selection: OutputSelection = None):
    """
    Vanilla input gradient.

    Returns (grad, output, selection):
      - grad: d output[b, sel[b]] / d input, same shape as input
      - output: model output [B, n_outputs]
      - selection: resolved LongTensor [B]

    Notes:
      - the caller's tensor is not modified: we differentiate a detached alias
      - runs under enable_grad so it also works inside torch.no_grad()
      - model parameters' .grad are never touched (autograd.grad, not backward)
    """
    x = input.detach().requires_grad_(True)
    with torch.enable_grad():
        output = _forward(model, x)
        selection = resolve_output_selection(output, output_selection)
        grad = selected_gradient(output, selection, x)
    return grad, output, selection


class Gradient(Analyzer):
    """Gradient of the selected output neuron with respect to the input."""
    name = "Gradient"
    heatmap = "sensitivity"

    def __init__(self, model: Model):
        self.model = model

    def predict(self, input: torch.Tensor) -> torch.Tensor:
        with torch.no_grad():
            return _forward(self.model, input)

    def explain(self, input: torch.Tensor, output_selection: OutputSelection = None, **kwargs: Any) -> Explanation:
        reject_unknown_options(self, kwargs)
        grad, output, selection = input_gradient(self.model, input, output_selection)
        return make_explanation(grad, output, selection, analyzer=self.name, heatmap=self.heatmap)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={type(self.model).__name__})"


class InputTimesGradient(Gradient):
    """Gradient of the selected output neuron, multiplied element-wise with the input."""
    name = "InputTimesGradient"
    heatmap = "attribution"

    def explain(self, input: torch.Tensor, output_selection: OutputSelection = None, **kwargs: Any) -> Explanation:
        reject_unknown_options(self, kwargs)
        grad, output, selection = input_gradient(self.model, input, output_selection)
        return make_explanation(grad * input, output, selection, analyzer=self.name, heatmap=self.heatmap)
