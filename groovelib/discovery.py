# groovelib/discovery.py
import os
from dataclasses import dataclass
from typing import List, Optional

from groovelib.config import (
    MAX_DISCOVERY_DEPTH,
    MAX_DISCOVERY_DIRECTORIES,
    SKIPPED_DIRECTORY_NAMES,
)
from groovelib.logs import logger
from groovelib.metadata import read_workspace_json, workspace_meta_matches
from groovelib.paths import build_search_bases, path_is_directory, worktrees_dir


@dataclass
class CandidateRoot:
    root_path: str
    has_workspace_meta: bool
    matches_workspace_meta: bool


def inspect_candidate_root(
    root_path, known_worktrees, expected_meta=None, worktree=None
) -> Optional[CandidateRoot]:
    """Return a CandidateRoot if root_path has the expected shape, else None.

    The shape test: a .worktrees container exists and holds every known
    worktree (plus `worktree` when given) as a subdirectory.
    """
    container = worktrees_dir(root_path)
    if not path_is_directory(container):
        return None

    required = list(known_worktrees)
    if worktree and worktree not in required:
        required.append(worktree)
    for name in required:
        if not path_is_directory(os.path.join(container, name)):
            return None

    observed = read_workspace_json(root_path)
    return CandidateRoot(
        root_path=root_path,
        has_workspace_meta=observed is not None,
        matches_workspace_meta=workspace_meta_matches(observed, expected_meta),
    )


def _child_directories(directory):
    """Non-symlink subdirectories of `directory` as (name, path), in listing order."""
    children = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                if entry.is_dir(follow_symlinks=False):
                    children.append((entry.name, entry.path))
            except OSError:
                continue
    return children


def discover_workspace_candidates(
    root_name,
    known_worktrees,
    expected_meta=None,
    worktree=None,
    bases=None,
    max_depth=MAX_DISCOVERY_DEPTH,
    max_directories=MAX_DISCOVERY_DIRECTORIES,
    skip_names=SKIPPED_DIRECTORY_NAMES,
    visited=None,
) -> List[CandidateRoot]:
    """Walk the search bases depth-first looking for directories named root_name.

    Args:
        root_name: bare directory name to look for
        known_worktrees: worktree names every candidate must contain
        expected_meta: optional WorkspaceMeta used to flag fingerprint matches
        worktree: optional extra worktree a candidate must contain
        bases: directories to start from (default: build_search_bases())
        max_depth: deepest level descended into below a base
        max_directories: global cap on directories visited across all bases
        skip_names: directory names never descended into
        visited: If provided, append each visited directory to it

    Returns candidates sorted by path. Hitting max_directories stops the
    walk everywhere; candidates found so far are kept.
    """
    if bases is None:
        bases = build_search_bases()

    candidates = {}
    seen = set()
    scanned = 0

    for base in bases:
        if scanned >= max_directories:
            break
        stack = [(os.path.abspath(base), 0)]
        while stack:
            directory, depth = stack.pop()
            if directory in seen:
                continue
            seen.add(directory)
            if scanned >= max_directories:
                break
            scanned += 1
            if visited is not None:
                visited.append(directory)

            try:
                children = _child_directories(directory)
            except OSError as e:
                logger.debug("discovery: skipping %s (%s)", directory, e)
                continue

            descend = []
            for name, child in children:
                if name == root_name:
                    candidate = inspect_candidate_root(
                        child, known_worktrees, expected_meta, worktree
                    )
                    if candidate:
                        candidates[candidate.root_path] = candidate
                if depth >= max_depth or name in skip_names:
                    continue
                descend.append((child, depth + 1))
            # Reversed so the first listed child is visited first
            stack.extend(reversed(descend))

    return sorted(candidates.values(), key=lambda c: c.root_path)
