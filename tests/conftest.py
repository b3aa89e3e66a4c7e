from __future__ import annotations

from collections import OrderedDict

import pytest
import torch
from torch import nn

from xai_attrib.utils.seed import set_seed


@pytest.fixture
def linear_model() -> nn.Module:
    """4 features -> 3 classes; gradients are the rows of the weight matrix."""
    set_seed(0)
    return nn.Linear(4, 3)


@pytest.fixture
def linear_input() -> torch.Tensor:
    set_seed(1)
    return torch.randn(5, 4)


@pytest.fixture
def cnn_model() -> nn.Module:
    """Tiny CNN split into `features` and `head`, for GradCAM."""
    set_seed(0)
    return nn.Sequential(OrderedDict(
        features=nn.Sequential(nn.Conv2d(2, 4, kernel_size=3, padding=1), nn.ReLU()),
        head=nn.Sequential(nn.AdaptiveAvgPool2d(1), nn.Flatten(), nn.Linear(4, 3)),
    ))


@pytest.fixture
def image_batch() -> torch.Tensor:
    """[B, C, H, W] = [2, 2, 5, 5]"""
    set_seed(2)
    return torch.randn(2, 2, 5, 5)
