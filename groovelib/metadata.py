# groovelib/metadata.py
import json
import math
from dataclasses import dataclass
from typing import Optional, Union

from groovelib.paths import path_is_file, workspace_json_path


@dataclass
class WorkspaceMeta:
    """Fingerprint stored in .groove/workspace.json; every field is optional."""

    version: Optional[Union[int, float]] = None
    root_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.version is None
            and self.root_name is None
            and self.created_at is None
            and self.updated_at is None
        )

    def to_dict(self):
        out = {}
        if self.version is not None:
            out["version"] = self.version
        if self.root_name is not None:
            out["rootName"] = self.root_name
        if self.created_at is not None:
            out["createdAt"] = self.created_at
        if self.updated_at is not None:
            out["updatedAt"] = self.updated_at
        return out


def read_workspace_json(workspace_root: str) -> Optional[WorkspaceMeta]:
    """Read the fingerprint under a candidate root.

    Missing, unreadable or malformed files all count as "no fingerprint".
    """
    meta_path = workspace_json_path(workspace_root)
    if not path_is_file(meta_path):
        return None
    try:
        with open(meta_path, "r", encoding="utf-8") as f:
            parsed = json.load(f)
    except (OSError, ValueError):
        return None
    if not isinstance(parsed, dict):
        return None

    meta = WorkspaceMeta()
    version = parsed.get("version")
    if (
        isinstance(version, (int, float))
        and not isinstance(version, bool)
        and math.isfinite(version)
    ):
        meta.version = version
    for key, attr in (
        ("rootName", "root_name"),
        ("createdAt", "created_at"),
        ("updatedAt", "updated_at"),
    ):
        raw = parsed.get(key)
        if isinstance(raw, str) and raw.strip():
            setattr(meta, attr, raw.strip())
    return None if meta.is_empty() else meta


def workspace_meta_matches(observed, expected) -> bool:
    """Compare only the fields the expectation specifies; updatedAt never participates."""
    if expected is None or observed is None:
        return False
    if expected.root_name and observed.root_name != expected.root_name:
        return False
    if expected.created_at and observed.created_at != expected.created_at:
        return False
    if expected.version is not None and observed.version != expected.version:
        return False
    return True
