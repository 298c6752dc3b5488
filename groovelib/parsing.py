# groovelib/parsing.py
import math
import re
from dataclasses import dataclass, field
from typing import List, Optional

from groovelib.metadata import WorkspaceMeta

SAFE_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9._-]+(?:/[A-Za-z0-9._-]+)*")
SAFE_SEGMENT_PATTERN = re.compile(r"[A-Za-z0-9._-]+")
MAX_KNOWN_WORKTREES = 128


@dataclass
class WorkspaceQuery:
    """Discovery inputs or an explicit root override, as sent by a client."""

    workspace_root: Optional[str] = None
    root_name: Optional[str] = None
    known_worktrees: List[str] = field(default_factory=list)
    workspace_meta: Optional[WorkspaceMeta] = None
    worktree: Optional[str] = None


@dataclass
class ParseError:
    message: str


def is_safe_path_token(value) -> bool:
    """True for `a`, `feature/login-fix`; false for `..`, `a//b`, `a/../b`."""
    if not isinstance(value, str) or not SAFE_TOKEN_PATTERN.fullmatch(value):
        return False
    return not any(segment in (".", "..") for segment in value.split("/"))


def is_valid_root_name(value) -> bool:
    if not isinstance(value, str):
        return False
    trimmed = value.strip()
    if not trimmed:
        return False
    return "/" not in trimmed and "\\" not in trimmed and trimmed not in (".", "..")


def parse_known_worktrees(value):
    """Validate a knownWorktrees list.

    Returns the deduplicated list (first occurrence wins) or a ParseError.
    """
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        return ParseError("knownWorktrees must be an array when provided.")
    if len(value) > MAX_KNOWN_WORKTREES:
        return ParseError(
            f"knownWorktrees is too large (max {MAX_KNOWN_WORKTREES} entries)."
        )

    sanitized = []
    for entry in value:
        if not isinstance(entry, str) or not entry.strip():
            return ParseError("knownWorktrees entries must be non-empty strings.")
        trimmed = entry.strip()
        if not is_safe_path_token(trimmed):
            return ParseError(
                "knownWorktrees contains unsafe characters or path segments."
            )
        if trimmed not in sanitized:
            sanitized.append(trimmed)
    return sanitized


def _finite_number(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_workspace_meta(value) -> Optional[WorkspaceMeta]:
    """Lenient parse of a {version, rootName, createdAt, updatedAt} mapping."""
    if not isinstance(value, dict):
        return None
    meta = WorkspaceMeta(version=_finite_number(value.get("version")))
    for key, attr in (
        ("rootName", "root_name"),
        ("createdAt", "created_at"),
        ("updatedAt", "updated_at"),
    ):
        raw = value.get(key)
        if isinstance(raw, str) and raw.strip():
            setattr(meta, attr, raw.strip())
    return None if meta.is_empty() else meta


def _parse_worktree(value):
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        return ParseError("worktree must be a non-empty string when provided.")
    trimmed = value.strip()
    if not is_safe_path_token(trimmed):
        return ParseError("worktree contains unsafe characters or path segments.")
    return trimmed


def parse_resolve_body(body):
    """Validate a JSON request body into a WorkspaceQuery or a ParseError."""
    if not isinstance(body, dict):
        return ParseError("Request body must be a JSON object.")

    workspace_root = body.get("workspaceRoot")
    if workspace_root is not None:
        if not isinstance(workspace_root, str) or not workspace_root.strip():
            return ParseError(
                "workspaceRoot override must be a non-empty absolute path string when provided."
            )
        workspace_root = workspace_root.strip()

    root_name = body.get("rootName")
    if root_name is not None and not isinstance(root_name, str):
        return ParseError("rootName must be a string when provided.")

    known = parse_known_worktrees(body.get("knownWorktrees"))
    if isinstance(known, ParseError):
        return known

    worktree = _parse_worktree(body.get("worktree"))
    if isinstance(worktree, ParseError):
        return worktree

    return WorkspaceQuery(
        workspace_root=workspace_root,
        root_name=root_name.strip() if root_name else None,
        known_worktrees=known,
        workspace_meta=parse_workspace_meta(body.get("workspaceMeta")),
        worktree=worktree,
    )


def _query_value(params, key):
    raw = params.get(key)
    if raw is None:
        return None
    return raw.strip()


def parse_event_query(params):
    """Validate event-stream query parameters.

    `params` is any mapping with `get(key)` and `getlist(key)` (Starlette's
    QueryParams, or a werkzeug-style MultiDict). `rootName` doubles as the
    expected fingerprint rootName.
    """
    known = parse_known_worktrees(list(params.getlist("knownWorktree")))
    if isinstance(known, ParseError):
        return known

    meta = WorkspaceMeta()
    version_raw = _query_value(params, "workspaceVersion")
    if version_raw:
        try:
            version = float(version_raw)
        except ValueError:
            version = math.nan
        if not math.isfinite(version):
            return ParseError("workspaceVersion must be numeric when provided.")
        meta.version = int(version) if version.is_integer() else version

    meta.created_at = _query_value(params, "workspaceCreatedAt") or None
    meta.updated_at = _query_value(params, "workspaceUpdatedAt") or None
    root_name = _query_value(params, "rootName") or None
    meta.root_name = root_name

    workspace_root = _query_value(params, "workspaceRoot")
    if workspace_root is not None and not workspace_root:
        return ParseError(
            "workspaceRoot must be a non-empty absolute path string when provided."
        )

    return WorkspaceQuery(
        workspace_root=workspace_root,
        root_name=root_name,
        known_worktrees=known,
        workspace_meta=None if meta.is_empty() else meta,
        worktree=None,
    )
