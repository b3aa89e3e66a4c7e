from __future__ import annotations

import pytest
import torch

from xai_attrib.analyzers.augmentation import (
    IntegratedGradients,
    InterpolationAugmentation,
    NoiseAugmentation,
    SmoothGrad,
)
from xai_attrib.analyzers.gradcam import GradCAM
from xai_attrib.analyzers.gradient import Gradient, InputTimesGradient
from xai_attrib.analyzers.noise import Uniform
from xai_attrib.analyzers.registry import build_analyzer_from_config, load_analyzer
from xai_attrib.core.engine import analyze
from xai_attrib.core.errors import InvalidParameter


@pytest.mark.parametrize("cfg, cls", [
    ({"name": "gradient"}, Gradient),
    ({"name": "Input_Times_Gradient"}, InputTimesGradient),
    ({"name": "smoothgrad", "params": {"n": 3, "std": 0.2, "rng": 1}}, SmoothGrad),
    ({"name": "integrated_gradients", "params": {"n": 4}}, IntegratedGradients),
])
def test_build_simple_analyzers(cfg, cls, cnn_model):
    analyzer = build_analyzer_from_config(cfg, cnn_model)
    assert type(analyzer) is cls


def test_build_gradcam_from_module_paths(cnn_model, image_batch):
    cfg = {"name": "gradcam", "params": {"feature_layers": "features", "adaptation_layers": ["head.0", "head.1", "head.2"]}}
    analyzer = build_analyzer_from_config(cfg, cnn_model)

    assert isinstance(analyzer, GradCAM)
    assert analyzer.feature_layers == [cnn_model.features]
    expected = analyze(image_batch, GradCAM(cnn_model.features, cnn_model.head)).val
    torch.testing.assert_close(analyze(image_batch, analyzer).val, expected)


def test_build_nested_wrappers(cnn_model):
    cfg = {
        "name": "noise_augmentation",
        "params": {"n": 2, "distribution": {"name": "uniform", "low": -0.1, "high": 0.1}, "chunk_size": 2},
        "inner": {
            "name": "interpolation_augmentation",
            "params": {"n": 3},
            "inner": {"name": "input_times_gradient"},
        },
    }
    analyzer = build_analyzer_from_config(cfg, cnn_model)

    assert isinstance(analyzer, NoiseAugmentation)
    assert analyzer.distribution == Uniform(-0.1, 0.1)
    assert isinstance(analyzer.analyzer, InterpolationAugmentation)
    assert isinstance(analyzer.analyzer.analyzer, InputTimesGradient)


@pytest.mark.parametrize("cfg", [
    {"name": "lrp"},
    {"params": {}},
    {"name": "gradcam", "params": {"feature_layers": "features"}},
    {"name": "gradcam", "params": {"feature_layers": "nope", "adaptation_layers": "head"}},
    {"name": "noise_augmentation", "params": {"n": 2}},
    {"name": "smoothgrad", "params": {"samples": 2}},
    {"name": "integrated_gradients", "params": {"n": 0}},
])
def test_bad_configs(cfg, cnn_model):
    with pytest.raises(InvalidParameter):
        build_analyzer_from_config(cfg, cnn_model)


def test_load_analyzer_from_yaml(tmp_path, cnn_model, image_batch):
    path = tmp_path / "analyzer.yaml"
    path.write_text(
        "analyzer:\n"
        "  name: smoothgrad\n"
        "  params: {n: 2, std: 0.1, rng: 0}\n"
        "analyze:\n"
        "  add_batch_dim: true\n",
        encoding="utf-8",
    )
    analyzer, cfg = load_analyzer(path, cnn_model)

    assert isinstance(analyzer, SmoothGrad)
    assert cfg.add_batch_dim is True
    expl = analyze(image_batch[0], analyzer, config=cfg)
    assert expl.val.shape == (1, 2, 5, 5)


def test_load_analyzer_requires_section(tmp_path, cnn_model):
    path = tmp_path / "empty.yaml"
    path.write_text("analyze:\n  add_batch_dim: false\n", encoding="utf-8")
    with pytest.raises(InvalidParameter):
        load_analyzer(path, cnn_model)
