# groovelib/paths.py
import os
from pathlib import Path
from typing import List, NamedTuple, Optional

WORKTREES_DIRNAME = ".worktrees"
METADATA_DIRNAME = ".groove"
METADATA_FILENAME = "workspace.json"


class WatchTarget(NamedTuple):
    """A native watch registration: path, source label, optional entry-name filter."""

    path: str
    label: str
    filter_name: Optional[str] = None


def worktrees_dir(workspace_root: str) -> str:
    return os.path.join(workspace_root, WORKTREES_DIRNAME)


def metadata_dir(workspace_root: str) -> str:
    return os.path.join(workspace_root, METADATA_DIRNAME)


def workspace_json_path(workspace_root: str) -> str:
    return os.path.join(workspace_root, METADATA_DIRNAME, METADATA_FILENAME)


def worktree_metadata_dir(workspace_root: str, worktree: str) -> str:
    return os.path.join(workspace_root, WORKTREES_DIRNAME, worktree, METADATA_DIRNAME)


def path_is_directory(path: str) -> bool:
    try:
        return os.path.isdir(path)
    except (OSError, ValueError):
        return False


def path_is_file(path: str) -> bool:
    try:
        return os.path.isfile(path)
    except (OSError, ValueError):
        return False


def build_search_bases(cwd=None, home=None, extra=None) -> List[str]:
    """Likely places a workspace lives: cwd, up to three ancestors, home, then extras.

    Order is preserved and duplicates dropped.
    """
    bases: List[str] = []

    def add(p):
        p = os.path.abspath(p)
        if p not in bases:
            bases.append(p)

    cursor = os.path.abspath(cwd or os.getcwd())
    add(cursor)
    for _ in range(3):
        parent = os.path.dirname(cursor)
        if parent == cursor:
            break
        add(parent)
        cursor = parent

    add(home or str(Path.home()))
    for p in extra or []:
        add(p)
    return bases


def workspace_watch_targets(workspace_root: str, known_worktrees) -> List[WatchTarget]:
    """Native-notification registrations for a resolved root.

    The root itself is watched twice, filtered to the container and the
    metadata directory entries, so creation or removal of either is seen.
    """
    container = worktrees_dir(workspace_root)
    meta = metadata_dir(workspace_root)
    targets = [
        WatchTarget(workspace_root, "workspace-root", WORKTREES_DIRNAME),
        WatchTarget(workspace_root, "workspace-root", METADATA_DIRNAME),
        WatchTarget(container, WORKTREES_DIRNAME),
        WatchTarget(meta, METADATA_DIRNAME),
    ]
    for worktree in known_worktrees:
        targets.append(
            WatchTarget(worktree_metadata_dir(workspace_root, worktree), "worktree-.groove")
        )
    return targets


def workspace_poll_targets(workspace_root: str, known_worktrees) -> List[str]:
    """Paths snapshotted by the polling channel."""
    targets = [
        worktrees_dir(workspace_root),
        metadata_dir(workspace_root),
        workspace_json_path(workspace_root),
    ]
    targets.extend(worktree_metadata_dir(workspace_root, wt) for wt in known_worktrees)
    targets.extend(
        os.path.join(worktree_metadata_dir(workspace_root, wt), METADATA_FILENAME)
        for wt in known_worktrees
    )
    return targets
