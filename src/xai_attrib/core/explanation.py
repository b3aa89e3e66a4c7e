from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

import torch

from xai_attrib.core.errors import ShapeMismatch


@dataclass(frozen=True)
class Explanation:
    """
    Result of one analyze call.

    Fields:
      - val: attribution tensor, batch axis first (same shape as the input,
        except for GradCAM which returns [B, 1, *spatial])
      - output: model output [B, n_outputs] for the analyzed (unperturbed) input
      - output_selection: LongTensor [B] of the output indices explained
      - analyzer: tag of the analyzer that produced `val`, e.g. "Gradient"
      - heatmap: rendering preset, "sensitivity" | "attribution" | "cam"
      - extras: read-only mapping of analyzer-specific data

    This record is the whole contract with any heatmap/rendering code:
    renderers read these fields and never reach back into the analyzer.
    """
    val: torch.Tensor
    output: torch.Tensor
    output_selection: torch.Tensor
    analyzer: str
    heatmap: str
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # frozen=True blocks attribute assignment; also freeze the mapping itself
        object.__setattr__(self, "extras", MappingProxyType(dict(self.extras)))

    @property
    def batch_size(self) -> int:
        return int(self.val.shape[0])


def make_explanation(
    val: torch.Tensor,
    output: torch.Tensor,
    output_selection: torch.Tensor,
    analyzer: str,
    heatmap: str,
    extras: Optional[Mapping[str, Any]] = None,
) -> Explanation:
    """Build an Explanation from raw tensors, detaching them and checking batch sizes agree."""
    batch_sizes = {
        "val": int(val.shape[0]),
        "output": int(output.shape[0]),
        "output_selection": int(output_selection.numel()),
    }
    if len(set(batch_sizes.values())) != 1:
        raise ShapeMismatch(f"Inconsistent batch sizes in explanation: {batch_sizes}")

    detached = {
        k: (v.detach() if isinstance(v, torch.Tensor) else v)
        for k, v in (extras or {}).items()
    }
    return Explanation(
        val=val.detach(),
        output=output.detach(),
        output_selection=output_selection.detach(),
        analyzer=analyzer,
        heatmap=heatmap,
        extras=detached,
    )
