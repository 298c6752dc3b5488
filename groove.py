#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.10"
# dependencies = [
#   "tomli>=2.0.0; python_version < '3.11'",
#   "tomli-w>=1.0.0",
#   "anyio>=4.0",
#   "fastapi>=0.110",
#   "uvicorn>=0.29",
#   "watchfiles>=0.21",
# ]
# ///

# Thin compatibility shim: delegates to groovelib and re-exports public API

from groovelib.api import (
    CandidateRoot,
    RootResolution,
    Settings,
    WorkspaceChangeStream,
    WorkspaceMeta,
    WorkspaceQuery,
    build_search_bases,
    discover_workspace_candidates,
    format_sse_event,
    inspect_candidate_root,
    is_safe_path_token,
    is_valid_root_name,
    load_settings,
    parse_event_query,
    parse_known_worktrees,
    parse_resolve_body,
    read_workspace_json,
    resolve_workspace_root,
    select_workspace_root,
    take_snapshot,
    validate_workspace_root_path,
    workspace_meta_matches,
)
from groovelib.cli import main  # CLI entrypoint

__all__ = [
    "main",
    "Settings",
    "load_settings",
    "WorkspaceQuery",
    "is_safe_path_token",
    "is_valid_root_name",
    "parse_known_worktrees",
    "parse_resolve_body",
    "parse_event_query",
    "WorkspaceMeta",
    "read_workspace_json",
    "workspace_meta_matches",
    "CandidateRoot",
    "build_search_bases",
    "inspect_candidate_root",
    "discover_workspace_candidates",
    "RootResolution",
    "resolve_workspace_root",
    "select_workspace_root",
    "validate_workspace_root_path",
    "WorkspaceChangeStream",
    "format_sse_event",
    "take_snapshot",
]

if __name__ == "__main__":
    main()
