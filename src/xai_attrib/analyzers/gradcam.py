from __future__ import annotations

from typing import Any, Callable, List, Sequence, Union

import torch
import torch.nn as nn
import torch.nn.functional as F

from xai_attrib.analyzers.base import Analyzer, reject_unknown_options, selected_gradient
from xai_attrib.core.errors import AnalysisError, InvalidParameter, ShapeMismatch
from xai_attrib.core.explanation import Explanation, make_explanation
from xai_attrib.core.selection import OutputSelection, resolve_output_selection
from xai_attrib.core.validation import check_model_output

Stage = Callable[[torch.Tensor], torch.Tensor]
Stages = Union[Stage, Sequence[Stage], nn.ModuleList]


def get_module_by_path(model: torch.nn.Module, path: str) -> torch.nn.Module:
    """
    Resolve a module via dotted path string.
    Examples:
      "features" -> model.features
      "layer4.1.conv2" -> model.layer4[1].conv2
    """
    cur = model
    for part in path.split("."):
        try:
            cur = cur[int(part)] if part.isdigit() else getattr(cur, part)
        except (AttributeError, IndexError, TypeError) as exc:
            raise InvalidParameter(f"Cannot resolve module path '{path}' at '{part}'") from exc
    return cur


def _as_stages(layers: Stages, what: str) -> List[Stage]:
    # nn.Sequential is callable and counts as one stage; ModuleList is not callable
    if isinstance(layers, (list, tuple, nn.ModuleList)):
        stages = list(layers)
    elif callable(layers):
        stages = [layers]
    else:
        raise InvalidParameter(f"{what} must be a callable or a sequence of callables, got {type(layers).__name__}")

    if not stages:
        raise InvalidParameter(f"{what} must not be empty")
    for stage in stages:
        if not callable(stage):
            raise InvalidParameter(f"{what} contains a non-callable stage: {stage!r}")
    return stages


def _run(stages: List[Stage], x: torch.Tensor) -> torch.Tensor:
    for stage in stages:
        x = stage(x)
    return x


class GradCAM(Analyzer):
    """
    Grad-CAM: a coarse class activation map from gradients wrt a feature map.

    The model is given as two halves whose composition is the full model:
      - feature_layers: input -> activations A [B, C, *spatial]
      - adaptation_layers: A -> output [B, n_outputs] (pooling + classifier head)

    Per sample, every channel of A is weighted by the spatial mean of
    d(score)/dA, the weighted channels are summed and negative values clipped.
    The map keeps A's spatial resolution, shape [B, 1, *spatial]; upsampling to
    the input size is left to whoever renders it.

    Works with any model family that can be split this way, not just CNNs
    built from nn.Module.
    """
    name = "GradCAM"
    heatmap = "cam"

    def __init__(self, feature_layers: Stages, adaptation_layers: Stages):
        self.feature_layers = _as_stages(feature_layers, "feature_layers")
        self.adaptation_layers = _as_stages(adaptation_layers, "adaptation_layers")

    def features(self, input: torch.Tensor) -> torch.Tensor:
        try:
            activations = _run(self.feature_layers, input)
        except RuntimeError as exc:
            raise AnalysisError(f"Feature layers failed: {exc}") from exc

        if not isinstance(activations, torch.Tensor) or activations.dim() < 3:
            shape = tuple(activations.shape) if isinstance(activations, torch.Tensor) else type(activations).__name__
            raise ShapeMismatch(f"Feature layers must return [batch, channels, *spatial], got {shape}")
        if activations.shape[0] != input.shape[0]:
            raise ShapeMismatch(
                f"Feature layers changed the batch size from {input.shape[0]} to {activations.shape[0]}"
            )
        return activations

    def adapt(self, activations: torch.Tensor) -> torch.Tensor:
        try:
            output = _run(self.adaptation_layers, activations)
        except RuntimeError as exc:
            raise ShapeMismatch(
                f"Adaptation layers do not accept feature output of shape {tuple(activations.shape)}: {exc}"
            ) from exc
        return check_model_output(output, activations.shape[0])

    def predict(self, input: torch.Tensor) -> torch.Tensor:
        with torch.no_grad():
            return self.adapt(self.features(input))

    def explain(self, input: torch.Tensor, output_selection: OutputSelection = None, **kwargs: Any) -> Explanation:
        reject_unknown_options(self, kwargs)
        # Only the adaptation half needs a graph: treat A as the leaf
        with torch.no_grad():
            activations = self.features(input)
        activations = activations.detach().requires_grad_(True)

        with torch.enable_grad():
            output = self.adapt(activations)
            selection = resolve_output_selection(output, output_selection)
            grads = selected_gradient(output, selection, activations)

        spatial_dims = tuple(range(2, grads.dim()))
        weights = grads.mean(dim=spatial_dims)                           # [B,C]
        expand = weights.view(*weights.shape, *([1] * len(spatial_dims)))  # [B,C,1,...]
        cam = (expand * activations.detach()).sum(dim=1, keepdim=True)    # [B,1,*spatial]
        cam = F.relu(cam)

        return make_explanation(
            cam, output, selection,
            analyzer=self.name,
            heatmap=self.heatmap,
            extras={"channel_weights": weights},
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(feature_layers={len(self.feature_layers)}, adaptation_layers={len(self.adaptation_layers)})"
