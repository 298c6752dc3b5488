# groovelib/resolution.py
import os
from dataclasses import dataclass
from typing import Optional

from groovelib.config import Settings
from groovelib.discovery import discover_workspace_candidates
from groovelib.parsing import SAFE_SEGMENT_PATTERN, is_valid_root_name
from groovelib.paths import build_search_bases, path_is_directory

MAX_PREVIEW_CANDIDATES = 5


@dataclass
class RootResolution:
    ok: bool
    workspace_root: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, workspace_root):
        return cls(ok=True, workspace_root=workspace_root)

    @classmethod
    def failure(cls, message):
        return cls(ok=False, message=message)

    def to_dict(self):
        if self.ok:
            return {"ok": True, "workspaceRoot": self.workspace_root}
        return {"ok": False, "message": self.message}


def validate_workspace_root_path(workspace_root: str) -> RootResolution:
    """Check an explicit override: absolute, safe components, an accessible directory."""
    raw = workspace_root.strip()
    if not raw or not os.path.isabs(raw):
        return RootResolution.failure(
            f'workspaceRoot override "{raw}" must be an absolute path starting '
            "with '/'. Example: /home/you/projects/next."
        )

    normalized = os.path.normpath(raw)
    segments = [s for s in normalized.split(os.sep) if s]
    if not all(SAFE_SEGMENT_PATTERN.fullmatch(s) for s in segments):
        return RootResolution.failure(
            f'workspaceRoot override "{normalized}" contains unsafe characters. '
            "Use a path made of letters, digits, '.', '_' and '-' only."
        )

    if not path_is_directory(normalized) or not os.access(normalized, os.R_OK | os.X_OK):
        return RootResolution.failure(
            f'workspaceRoot override "{normalized}" is not an existing, accessible '
            "directory for the app server. Verify the path and permissions."
        )
    return RootResolution.success(normalized)


def _describe_target(root_name, worktree):
    if worktree:
        return f'rootName "{root_name}" and worktree "{worktree}"'
    return f'rootName "{root_name}"'


def select_workspace_root(candidates, root_name, worktree=None) -> RootResolution:
    """Pick the winner among discovered candidates.

    Precedence:
    1) exactly one candidate
    2) no candidates -> not found
    3) exactly one fingerprint match
    4) otherwise ambiguous, previewing the most discriminating subset
    """
    target = _describe_target(root_name, worktree)

    if len(candidates) == 1:
        return RootResolution.success(candidates[0].root_path)

    if not candidates:
        return RootResolution.failure(
            f"Could not auto-resolve workspace root for {target}. Re-open the "
            "workspace in the browser and rescan worktrees. If this remains "
            "ambiguous, provide workspaceRoot override in the request."
        )

    matches = [c for c in candidates if c.matches_workspace_meta]
    if len(matches) == 1:
        return RootResolution.success(matches[0].root_path)

    with_meta = [c for c in candidates if c.has_workspace_meta]
    if len(matches) > 1:
        shown = matches
    elif with_meta:
        shown = with_meta
    else:
        shown = candidates
    preview = ", ".join(c.root_path for c in shown[:MAX_PREVIEW_CANDIDATES])

    return RootResolution.failure(
        f"Could not auto-resolve workspace root: found {len(candidates)} matches "
        f"for {target} ({preview}). Narrow the context by reopening the intended "
        "workspace, or provide workspaceRoot override to choose the exact root path."
    )


def resolve_workspace_root(query, settings=None, bases=None, visited=None) -> RootResolution:
    """Resolve a WorkspaceQuery to exactly one root, or a user-displayable failure.

    An explicit override is validated and used as-is; otherwise a bounded
    discovery walk runs from the search bases.
    """
    if query.workspace_root is not None:
        return validate_workspace_root_path(query.workspace_root)

    if not is_valid_root_name(query.root_name):
        return RootResolution.failure(
            "Could not auto-resolve workspace root: rootName is required when "
            "workspaceRoot is omitted."
        )

    settings = settings or Settings()
    root_name = query.root_name.strip()
    if bases is None:
        bases = build_search_bases(extra=settings.search_bases)

    candidates = discover_workspace_candidates(
        root_name,
        query.known_worktrees,
        expected_meta=query.workspace_meta,
        worktree=query.worktree,
        bases=bases,
        max_depth=settings.max_depth,
        max_directories=settings.max_directories,
        skip_names=settings.skip_directories,
        visited=visited,
    )
    return select_workspace_root(candidates, root_name, query.worktree)
