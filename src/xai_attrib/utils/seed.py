from __future__ import annotations

import random
from typing import Optional, Union

import numpy as np
import torch

from xai_attrib.core.errors import InvalidParameter

# Seed of the generator a NoiseAugmentation owns when the caller passes no rng.
DEFAULT_SEED = 0


def set_seed(seed: int) -> None:
    """Set seeds for python, numpy, and torch."""
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def make_generator(rng: Optional[Union[int, torch.Generator]] = None) -> torch.Generator:
    """
    None      -> new CPU generator seeded with DEFAULT_SEED
    int       -> new CPU generator seeded with that value
    Generator -> returned as is (the caller keeps ownership of its state)
    """
    if isinstance(rng, torch.Generator):
        return rng
    if rng is None:
        rng = DEFAULT_SEED
    if isinstance(rng, bool) or not isinstance(rng, (int, np.integer)):
        raise InvalidParameter(f"rng must be a torch.Generator, an int seed or None, got {rng!r}")
    gen = torch.Generator()
    gen.manual_seed(int(rng))
    return gen
