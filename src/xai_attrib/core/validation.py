from __future__ import annotations

from typing import Any, Sequence

import numpy as np
import torch

from xai_attrib.core.errors import InvalidParameter, ShapeMismatch


def as_batched_input(input: torch.Tensor | np.ndarray, add_batch_dim: bool = False) -> torch.Tensor:
    """
    Bring the caller's input into the engine's shape convention.

    Convention:
      - the leading axis is the batch axis: [B, ...] (e.g. [B, C, H, W])
      - everything after it is a feature axis

    Notes:
      - numpy arrays are wrapped with torch.from_numpy (no copy unless
        the array has negative strides)
      - integer/bool inputs are promoted to the default float dtype,
        gradients are undefined for them otherwise
      - add_batch_dim inserts a batch axis of size 1 as a view (unsqueeze)
    """
    if isinstance(input, np.ndarray):
        # torch cannot view negative strides (e.g. img[:, ::-1]); only those get copied
        if any(s < 0 for s in input.strides):
            input = np.ascontiguousarray(input)
        x = torch.from_numpy(input)
    elif isinstance(input, torch.Tensor):
        x = input
    else:
        raise InvalidParameter(f"Expected torch.Tensor or numpy.ndarray input, got {type(input).__name__}")

    if not (x.is_floating_point() or x.is_complex()):
        x = x.to(torch.get_default_dtype())

    if add_batch_dim:
        x = x.unsqueeze(0)

    if x.dim() < 2:
        raise ShapeMismatch(
            f"Input needs a leading batch axis and at least one feature axis, got shape {tuple(x.shape)}. "
            "Pass add_batch_dim=True for a single unbatched sample."
        )
    if x.shape[0] == 0:
        raise ShapeMismatch("Input batch is empty.")
    return x


def check_model_output(output: Any, batch_size: int) -> torch.Tensor:
    """Model outputs must be [B, n_outputs] with the input's batch size."""
    if not isinstance(output, torch.Tensor):
        raise ShapeMismatch(f"Model must return a torch.Tensor, got {type(output).__name__}")
    if output.dim() != 2:
        raise ShapeMismatch(f"Model output must be 2-D [batch, n_outputs], got shape {tuple(output.shape)}")
    if output.shape[0] != batch_size:
        raise ShapeMismatch(f"Model output has batch size {output.shape[0]}, input has {batch_size}")
    if output.shape[1] == 0:
        raise ShapeMismatch("Model output has no components to explain.")
    return output


def check_same_shape(tensor: torch.Tensor, expected: Sequence[int], what: str) -> None:
    if tuple(tensor.shape) != tuple(expected):
        raise ShapeMismatch(f"{what} has shape {tuple(tensor.shape)}, expected {tuple(expected)}")


def check_positive_int(value: Any, name: str) -> int:
    # bool is an int subclass; n=True is almost certainly a mistake
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        raise InvalidParameter(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def add_batch_axis_like(value: Any, sample_shape: Sequence[int]) -> Any:
    """Give `value` a leading batch axis (as a view) if it has the shape of one unbatched sample."""
    if isinstance(value, torch.Tensor) and tuple(value.shape) == tuple(sample_shape):
        return value.unsqueeze(0)
    if isinstance(value, np.ndarray) and value.shape == tuple(sample_shape):
        return np.expand_dims(value, 0)
    return value
