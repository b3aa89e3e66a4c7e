from __future__ import annotations

"""
Error taxonomy raised by the attribution engine.

Every error subclasses both `XAIError` and the closest builtin, so callers can
catch either `ShapeMismatch` or a plain `ValueError`.

Nothing here is retried: a failing trial inside an augmentation wrapper aborts
the whole call, otherwise the averaged attribution would be biased.
"""


class XAIError(Exception):
    """Base class for all engine errors."""


class ShapeMismatch(XAIError, ValueError):
    """Input, reference, selection or model output shapes are inconsistent."""


class IndexOutOfRange(XAIError, IndexError):
    """A resolved output index lies outside [0, n_outputs)."""


class AnalysisError(XAIError, RuntimeError):
    """The forward/backward pass needed for an attribution failed."""


class InvalidParameter(XAIError, ValueError):
    """Bad analyzer/distribution parameter or malformed configuration."""
