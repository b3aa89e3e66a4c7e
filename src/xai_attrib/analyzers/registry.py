from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import torch

from xai_attrib.analyzers.augmentation import (
    IntegratedGradients,
    InterpolationAugmentation,
    NoiseAugmentation,
    SmoothGrad,
)
from xai_attrib.analyzers.base import Analyzer
from xai_attrib.analyzers.gradcam import GradCAM, get_module_by_path
from xai_attrib.analyzers.gradient import Gradient, InputTimesGradient
from xai_attrib.core.config import AnalyzeConfig, load_yaml
from xai_attrib.core.errors import InvalidParameter

logger = logging.getLogger(__name__)


def _resolve_stages(model: torch.nn.Module, paths: Union[str, List[str]]) -> List[torch.nn.Module]:
    if isinstance(paths, str):
        paths = [paths]
    return [get_module_by_path(model, p) for p in paths]


def build_analyzer_from_config(cfg: Dict[str, Any], model: torch.nn.Module) -> Analyzer:
    """
    Build an analyzer from a config dict extracted from YAML.
    Modify this function to add new analyzers.

    cfg examples:
      {"name": "gradient"}
      {"name": "smoothgrad", "params": {"n": 20, "std": 0.1, "rng": 0}}
      {"name": "gradcam", "params": {"feature_layers": "features", "adaptation_layers": ["pool", "head"]}}
      {"name": "noise_augmentation", "params": {"n": 10, "distribution": {"name": "uniform", "low": -0.1, "high": 0.1}},
       "inner": {"name": "input_times_gradient"}}
    """
    if not isinstance(cfg, dict) or "name" not in cfg:
        raise InvalidParameter(f"Analyzer config needs a 'name' key, got {cfg!r}")

    name = str(cfg["name"]).lower()
    params = dict(cfg.get("params", {}) or {})

    try:
        if name == "gradient":
            return Gradient(model)
        if name == "input_times_gradient":
            return InputTimesGradient(model)
        if name == "gradcam":
            return GradCAM(
                feature_layers=_resolve_stages(model, params["feature_layers"]),
                adaptation_layers=_resolve_stages(model, params["adaptation_layers"]),
            )
        if name == "smoothgrad":
            return SmoothGrad(model, **params)
        if name == "integrated_gradients":
            return IntegratedGradients(model, **params)
        if name in ("noise_augmentation", "interpolation_augmentation"):
            if "inner" not in cfg:
                raise InvalidParameter(f"{name} needs an 'inner' analyzer config")
            inner = build_analyzer_from_config(cfg["inner"], model)
            wrapper = NoiseAugmentation if name == "noise_augmentation" else InterpolationAugmentation
            return wrapper(inner, **params)
    except (KeyError, TypeError) as exc:
        raise InvalidParameter(f"Bad params for analyzer '{name}': {params}") from exc

    raise InvalidParameter(f"Unknown analyzer: {name}")


def load_analyzer(path: Union[str, Path], model: torch.nn.Module) -> Tuple[Analyzer, AnalyzeConfig]:
    """
    Load an analyzer and analyze options from a YAML file:

      analyzer:
        name: smoothgrad
        params: {n: 20, std: 0.1}
      analyze:
        add_batch_dim: true
    """
    raw = load_yaml(path)
    if "analyzer" not in raw:
        raise InvalidParameter(f"Config {path} has no 'analyzer' section")

    analyzer = build_analyzer_from_config(raw["analyzer"], model)
    analyze_cfg = AnalyzeConfig.from_dict(raw.get("analyze"))
    logger.info("Built analyzer %r from %s", analyzer, path)
    return analyzer, analyze_cfg
