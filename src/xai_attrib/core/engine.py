from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import numpy as np
import torch

from xai_attrib.core.config import AnalyzeConfig
from xai_attrib.core.explanation import Explanation
from xai_attrib.core.selection import OutputSelection
from xai_attrib.core.validation import add_batch_axis_like, as_batched_input
from xai_attrib.utils.logging import get_logger

if TYPE_CHECKING:
    from xai_attrib.analyzers.base import Analyzer

# one handler on the package logger; module loggers propagate to it
get_logger()
logger = logging.getLogger(__name__)


def analyze(
    input: torch.Tensor | np.ndarray,
    analyzer: "Analyzer",
    output_selection: OutputSelection = None,
    *,
    add_batch_dim: bool = False,
    config: Optional[AnalyzeConfig] = None,
    **kwargs: Any,
) -> Explanation:
    """
    Apply `analyzer` to `input` and return an Explanation.

    If output_selection is given, the explanation is computed for that output
    (one index for the whole batch, or one per sample). Otherwise the output
    with the highest activation is chosen per sample.

    Keyword arguments:
      - add_batch_dim: add a leading batch axis without copying. Default False.
        Array keyword arguments shaped like the unbatched input (input_ref)
        get the same axis.
      - config: an AnalyzeConfig; takes precedence over add_batch_dim.
      - anything else is forwarded to analyzer.explain, e.g. input_ref=...
        for InterpolationAugmentation.
    """
    cfg = config if config is not None else AnalyzeConfig(add_batch_dim=add_batch_dim)
    x = as_batched_input(input, add_batch_dim=cfg.add_batch_dim)
    if cfg.add_batch_dim:
        # per-call tensors shaped like the sample (e.g. input_ref) get the same batch axis
        kwargs = {k: add_batch_axis_like(v, x.shape[1:]) for k, v in kwargs.items()}

    logger.debug("analyze: analyzer=%s input_shape=%s selection=%s",
                 type(analyzer).__name__, tuple(x.shape), output_selection)
    return analyzer.explain(x, output_selection, **kwargs)
