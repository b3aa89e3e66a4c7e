from __future__ import annotations

"""
Output selection: which scalar output per sample an explanation targets.

A selection is resolved exactly once per top-level analyze call. Augmentation
wrappers hand the resolved tensor to every inner call, so all noisy or
interpolated variants explain the class chosen on the *original* input.
Re-deriving the argmax per variant would mix explanations of different classes.

Indices are 0-based.
"""

from typing import Sequence, Union

import numpy as np
import torch

from xai_attrib.core.errors import IndexOutOfRange, InvalidParameter, ShapeMismatch

OutputSelection = Union[None, int, Sequence[int], np.ndarray, torch.Tensor]


def resolve_output_selection(output: torch.Tensor, selection: OutputSelection = None) -> torch.Tensor:
    """
    Resolve `selection` against a model output of shape [B, n_outputs].

    - None          -> per-sample argmax (ties: first occurrence)
    - int           -> the same index for every sample
    - sequence [B]  -> one index per sample

    Returns a LongTensor [B] on the output's device.
    """
    if output.dim() != 2:
        raise ShapeMismatch(f"Cannot select from output of shape {tuple(output.shape)}; expected [batch, n_outputs]")
    batch_size, n_outputs = output.shape

    if selection is None:
        # torch.argmax returns the first maximal index
        idx = output.detach().argmax(dim=1)
    else:
        if isinstance(selection, (bool, np.bool_)):
            raise InvalidParameter(f"Output selection must be an integer index, got {selection!r}")
        if isinstance(selection, (int, np.integer)):
            idx = torch.full((batch_size,), int(selection), dtype=torch.long, device=output.device)
        else:
            idx = _selection_tensor(selection, batch_size).to(output.device)

    out_of_range = (idx < 0) | (idx >= n_outputs)
    if bool(out_of_range.any()):
        bad = idx[out_of_range].tolist()
        raise IndexOutOfRange(f"Output indices {bad} outside valid range [0, {n_outputs})")
    return idx


def _selection_tensor(selection, batch_size: int) -> torch.Tensor:
    try:
        t = torch.as_tensor(selection)
    except (TypeError, ValueError, RuntimeError) as exc:
        raise InvalidParameter(f"Cannot interpret output selection {selection!r}") from exc

    if t.is_floating_point() or t.is_complex() or t.dtype == torch.bool:
        raise InvalidParameter(f"Output selection must contain integers, got dtype {t.dtype}")
    t = t.to(torch.long)

    if t.dim() == 0:
        return t.expand(batch_size).clone()
    if t.dim() != 1:
        raise ShapeMismatch(f"Per-sample output selection must be 1-D, got shape {tuple(t.shape)}")
    if t.shape[0] != batch_size:
        raise ShapeMismatch(f"Output selection has {t.shape[0]} entries for a batch of {batch_size}")
    return t


def select_outputs(output: torch.Tensor, selection: torch.Tensor) -> torch.Tensor:
    """Pick output[b, selection[b]] for every sample -> [B]."""
    return output.gather(1, selection.view(-1, 1)).squeeze(1)
