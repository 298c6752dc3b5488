import json
import os
from pathlib import Path

import groove
from groovelib.config import Settings
from groovelib.discovery import CandidateRoot


def _make_root(path: Path, worktrees=(), meta=None) -> Path:
    (path / ".worktrees").mkdir(parents=True)
    for wt in worktrees:
        (path / ".worktrees" / wt).mkdir(parents=True)
    if meta is not None:
        (path / ".groove").mkdir()
        (path / ".groove" / "workspace.json").write_text(json.dumps(meta))
    return path


def _resolve(tmp_path, **body):
    query = groove.parse_resolve_body(body)
    return groove.resolve_workspace_root(query, bases=[str(tmp_path)])


def test_single_candidate_resolves(tmp_path):
    root = _make_root(tmp_path / "code" / "proj", worktrees=["feature/login-fix"])
    # Same name, wrong shape: no .worktrees container
    (tmp_path / "other" / "proj").mkdir(parents=True)

    res = _resolve(tmp_path, rootName="proj", knownWorktrees=["feature/login-fix"])
    assert res.ok
    assert res.workspace_root == str(root)
    assert res.to_dict() == {"ok": True, "workspaceRoot": str(root)}


def test_known_worktrees_filter_candidates(tmp_path):
    keep = _make_root(tmp_path / "a" / "proj", worktrees=["main", "feat"])
    _make_root(tmp_path / "b" / "proj", worktrees=["main"])

    res = _resolve(tmp_path, rootName="proj", knownWorktrees=["main", "feat"])
    assert res.ok
    assert res.workspace_root == str(keep)


def test_required_worktree_joins_structural_test(tmp_path):
    _make_root(tmp_path / "a" / "proj", worktrees=["main"])
    keep = _make_root(tmp_path / "b" / "proj", worktrees=["main", "hotfix"])

    res = _resolve(tmp_path, rootName="proj", worktree="hotfix")
    assert res.ok
    assert res.workspace_root == str(keep)

    missing = _resolve(tmp_path, rootName="proj", worktree="nope")
    assert not missing.ok
    assert '"nope"' in missing.message


def test_zero_candidates_names_target(tmp_path):
    (tmp_path / "proj").mkdir()
    res = _resolve(tmp_path, rootName="proj")
    assert not res.ok
    assert '"proj"' in res.message
    assert "workspaceRoot override" in res.message
    assert res.to_dict()["ok"] is False


def test_missing_root_name_fails_fast(tmp_path):
    res = _resolve(tmp_path)
    assert not res.ok
    assert "rootName is required" in res.message
    res = _resolve(tmp_path, rootName="a/b")
    assert not res.ok


def test_fingerprint_breaks_tie(tmp_path):
    _make_root(tmp_path / "a" / "proj", meta={"version": 1, "rootName": "proj", "createdAt": "t-old"})
    winner = _make_root(
        tmp_path / "b" / "proj", meta={"version": 1, "rootName": "proj", "createdAt": "t-new"}
    )
    _make_root(tmp_path / "c" / "proj")

    res = _resolve(
        tmp_path,
        rootName="proj",
        workspaceMeta={"version": 1, "rootName": "proj", "createdAt": "t-new"},
    )
    assert res.ok
    assert res.workspace_root == str(winner)


def test_two_unfingerprinted_roots_are_ambiguous(tmp_path):
    first = _make_root(tmp_path / "a" / "proj")
    second = _make_root(tmp_path / "b" / "proj")

    res = _resolve(tmp_path, rootName="proj", knownWorktrees=[])
    assert not res.ok
    assert "found 2 matches" in res.message
    assert str(first) in res.message
    assert str(second) in res.message


def test_ambiguous_preview_is_bounded(tmp_path):
    for i in range(7):
        _make_root(tmp_path / f"dir{i}" / "proj")

    res = _resolve(tmp_path, rootName="proj")
    assert not res.ok
    assert "found 7 matches" in res.message
    shown = [i for i in range(7) if str(tmp_path / f"dir{i}" / "proj") in res.message]
    # Sorted by path, first five previewed
    assert shown == [0, 1, 2, 3, 4]


def _candidate(path, has_meta=False, matches=False):
    return CandidateRoot(root_path=path, has_workspace_meta=has_meta, matches_workspace_meta=matches)


def test_select_prefers_multiple_matches_in_preview():
    candidates = [
        _candidate("/a/proj"),
        _candidate("/b/proj", has_meta=True),
        _candidate("/c/proj", has_meta=True, matches=True),
        _candidate("/d/proj", has_meta=True, matches=True),
    ]
    res = groove.select_workspace_root(candidates, "proj")
    assert not res.ok
    assert "found 4 matches" in res.message
    assert "/c/proj, /d/proj" in res.message
    assert "/a/proj" not in res.message
    assert "/b/proj" not in res.message


def test_select_falls_back_to_fingerprinted_preview():
    candidates = [
        _candidate("/a/proj"),
        _candidate("/b/proj", has_meta=True),
        _candidate("/c/proj"),
    ]
    res = groove.select_workspace_root(candidates, "proj")
    assert not res.ok
    assert "found 3 matches" in res.message
    assert "(/b/proj)" in res.message


def test_select_single_match_wins():
    candidates = [_candidate("/a/proj", has_meta=True), _candidate("/b/proj", has_meta=True, matches=True)]
    res = groove.select_workspace_root(candidates, "proj")
    assert res.ok
    assert res.workspace_root == "/b/proj"


def test_walk_never_visits_beyond_depth_limit(tmp_path):
    deep = tmp_path
    for level in range(7):
        deep = deep / f"l{level}"
    _make_root(deep / "proj")

    visited = []
    candidates = groove.discover_workspace_candidates(
        "proj", [], bases=[str(tmp_path)], visited=visited
    )
    assert candidates == []
    assert str(tmp_path / "l0" / "l1" / "l2" / "l3") in visited
    assert str(tmp_path / "l0" / "l1" / "l2" / "l3" / "l4") not in visited


def test_candidate_just_below_depth_limit_is_found(tmp_path):
    # Children of the deepest visited level are still tested as candidates.
    root = _make_root(tmp_path / "l1" / "l2" / "l3" / "l4" / "proj")
    candidates = groove.discover_workspace_candidates("proj", [], bases=[str(tmp_path)])
    assert [c.root_path for c in candidates] == [str(root)]


def test_walk_respects_global_cap(tmp_path):
    for i in range(10):
        (tmp_path / f"d{i}").mkdir()
    _make_root(tmp_path / "d9" / "nested" / "proj")

    visited = []
    groove.discover_workspace_candidates(
        "proj", [], bases=[str(tmp_path), str(tmp_path / "d9")], max_directories=3, visited=visited
    )
    assert len(visited) == 3


def test_walk_skips_noise_and_symlinks(tmp_path):
    _make_root(tmp_path / "node_modules" / "pkg" / "proj")
    real = _make_root(tmp_path / "elsewhere" / "deep" / "deeper" / "deepest" / "x" / "proj")
    os.symlink(str(real.parent), str(tmp_path / "link"))

    visited = []
    candidates = groove.discover_workspace_candidates(
        "proj", [], bases=[str(tmp_path)], max_depth=2, visited=visited
    )
    assert candidates == []
    assert str(tmp_path / "elsewhere") in visited
    assert str(tmp_path / "node_modules") not in visited
    assert str(tmp_path / "link") not in visited


def test_walk_dedupes_overlapping_bases(tmp_path):
    root = _make_root(tmp_path / "a" / "proj")
    candidates = groove.discover_workspace_candidates(
        "proj", [], bases=[str(tmp_path), str(tmp_path / "a"), str(tmp_path)]
    )
    assert [c.root_path for c in candidates] == [str(root)]


def test_unreadable_directory_is_skipped(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    root = _make_root(tmp_path / "open" / "proj")
    locked.chmod(0)
    try:
        candidates = groove.discover_workspace_candidates("proj", [], bases=[str(tmp_path)])
    finally:
        locked.chmod(0o755)
    assert [c.root_path for c in candidates] == [str(root)]


def test_settings_bound_the_walk(tmp_path):
    _make_root(tmp_path / "l1" / "l2" / "proj")
    query = groove.parse_resolve_body({"rootName": "proj"})
    shallow = groove.resolve_workspace_root(query, settings=Settings(max_depth=0), bases=[str(tmp_path)])
    assert not shallow.ok
    deep = groove.resolve_workspace_root(query, settings=Settings(max_depth=2), bases=[str(tmp_path)])
    assert deep.ok


def test_override_existing_directory(tmp_path):
    proj = tmp_path / "proj"
    proj.mkdir()
    res = _resolve(tmp_path, workspaceRoot=str(proj) + "/")
    assert res.ok
    assert res.workspace_root == str(proj)


def test_override_rejections(tmp_path):
    relative = groove.validate_workspace_root_path("relative/proj")
    assert not relative.ok
    assert "relative/proj" in relative.message

    missing = groove.validate_workspace_root_path(str(tmp_path / "missing"))
    assert not missing.ok
    assert str(tmp_path / "missing") in missing.message

    a_file = tmp_path / "file"
    a_file.write_text("x")
    assert not groove.validate_workspace_root_path(str(a_file)).ok

    odd = tmp_path / "has space"
    odd.mkdir()
    assert not groove.validate_workspace_root_path(str(odd)).ok


def test_override_skips_discovery(tmp_path, monkeypatch):
    import groovelib.resolution as resolution

    def boom(*args, **kwargs):
        raise AssertionError("discovery must not run")

    monkeypatch.setattr(resolution, "discover_workspace_candidates", boom)
    res = groove.resolve_workspace_root(
        groove.WorkspaceQuery(workspace_root=str(tmp_path), root_name="proj")
    )
    assert res.ok


def test_override_rejects_control_characters_in_segments(tmp_path):
    odd = tmp_path / "a\n" / "b"
    odd.mkdir(parents=True)
    res = groove.validate_workspace_root_path(str(odd))
    assert not res.ok
    assert "unsafe characters" in res.message
    assert not groove.validate_workspace_root_path("/x/a\n/b").ok
    assert not _resolve(tmp_path, workspaceRoot=str(odd)).ok
