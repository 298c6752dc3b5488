# groovelib/api.py
from groovelib.config import Settings, load_settings
from groovelib.discovery import (
    CandidateRoot,
    discover_workspace_candidates,
    inspect_candidate_root,
)
from groovelib.metadata import (
    WorkspaceMeta,
    read_workspace_json,
    workspace_meta_matches,
)
from groovelib.notifier import WorkspaceChangeStream, format_sse_event, take_snapshot
from groovelib.parsing import (
    WorkspaceQuery,
    is_safe_path_token,
    is_valid_root_name,
    parse_event_query,
    parse_known_worktrees,
    parse_resolve_body,
)
from groovelib.paths import build_search_bases
from groovelib.resolution import (
    RootResolution,
    resolve_workspace_root,
    select_workspace_root,
    validate_workspace_root_path,
)

__all__ = [
    # config
    "Settings",
    "load_settings",
    # parsing
    "WorkspaceQuery",
    "is_safe_path_token",
    "is_valid_root_name",
    "parse_known_worktrees",
    "parse_resolve_body",
    "parse_event_query",
    # metadata
    "WorkspaceMeta",
    "read_workspace_json",
    "workspace_meta_matches",
    # discovery
    "CandidateRoot",
    "build_search_bases",
    "inspect_candidate_root",
    "discover_workspace_candidates",
    # resolution
    "RootResolution",
    "resolve_workspace_root",
    "select_workspace_root",
    "validate_workspace_root_path",
    # notifier
    "WorkspaceChangeStream",
    "format_sse_event",
    "take_snapshot",
]
