from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from xai_attrib.core.errors import InvalidParameter


@dataclass(frozen=True)
class AnalyzeConfig:
    """
    Options of the analyze entry point.

    add_batch_dim:
      Insert a leading batch axis of size 1 (as a view, no copy) for callers
      passing a single unbatched sample. Default False.
    """
    add_batch_dim: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.add_batch_dim, bool):
            raise InvalidParameter(f"add_batch_dim must be a bool, got {self.add_batch_dim!r}")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "AnalyzeConfig":
        raw = dict(raw or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise InvalidParameter(f"Unknown analyze option(s): {unknown}. Known: {sorted(known)}")
        return cls(**raw)


def load_yaml(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidParameter(f"Expected a mapping at the top of {path}, got {type(data).__name__}")
    return data
