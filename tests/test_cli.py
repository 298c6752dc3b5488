import json
import os
import subprocess
import sys
import uuid
from pathlib import Path

GROOVE_SCRIPT = Path(__file__).parent.parent / "groove.py"


def _run_cli(tmp_path, args, cwd=None):
    cmd = [sys.executable, str(GROOVE_SCRIPT)] + args
    e = os.environ.copy()
    e["XDG_CONFIG_HOME"] = str(tmp_path / "xdg")
    e["HOME"] = str(tmp_path)
    return subprocess.run(cmd, env=e, cwd=cwd, capture_output=True, text=True)


def _make_root(path: Path, worktrees=()):
    (path / ".worktrees").mkdir(parents=True)
    for wt in worktrees:
        (path / ".worktrees" / wt).mkdir(parents=True)
    return path


def test_cli_resolve_override(tmp_path):
    proj = tmp_path / "proj"
    proj.mkdir()
    res = _run_cli(tmp_path, ["resolve", "--workspace-root", str(proj)])
    assert res.returncode == 0
    assert res.stdout.strip() == str(proj)


def test_cli_resolve_override_json(tmp_path):
    proj = tmp_path / "proj"
    proj.mkdir()
    res = _run_cli(tmp_path, ["resolve", "--workspace-root", str(proj), "--json"])
    assert res.returncode == 0
    assert json.loads(res.stdout) == {"ok": True, "workspaceRoot": str(proj)}


def test_cli_resolve_relative_override_fails(tmp_path):
    res = _run_cli(tmp_path, ["resolve", "--workspace-root", "relative/proj"])
    assert res.returncode == 1
    assert "must be an absolute path" in res.stderr
    assert "hint:" in res.stderr


def test_cli_resolve_discovers_from_cwd(tmp_path):
    # Unique name so sibling test directories never collide
    name = f"proj-{uuid.uuid4().hex[:8]}"
    work = tmp_path / "work"
    root = _make_root(work / "clients" / name, worktrees=["feature/login-fix"])
    res = _run_cli(
        tmp_path,
        ["resolve", "--root-name", name, "--known-worktree", "feature/login-fix"],
        cwd=str(work),
    )
    assert res.returncode == 0, res.stderr
    assert res.stdout.strip() == str(root)


def test_cli_resolve_not_found(tmp_path):
    name = f"proj-{uuid.uuid4().hex[:8]}"
    work = tmp_path / "work"
    work.mkdir()
    res = _run_cli(tmp_path, ["resolve", "--root-name", name], cwd=str(work))
    assert res.returncode == 1
    assert name in res.stderr


def test_cli_rejects_unsafe_worktree(tmp_path):
    res = _run_cli(tmp_path, ["resolve", "--root-name", "proj", "--known-worktree", "a/../b"])
    assert res.returncode == 1
    assert "unsafe" in res.stderr


def test_cli_config_init_and_show(tmp_path):
    res = _run_cli(tmp_path, ["config", "--init"])
    assert res.returncode == 0
    assert (tmp_path / "xdg" / "groove" / "config.toml").exists()

    res = _run_cli(tmp_path, ["config"])
    assert res.returncode == 0
    lines = res.stdout.splitlines()
    assert lines[0].startswith("Config file:")
    shown = json.loads("\n".join(lines[1:]))
    assert shown["discovery"]["max_depth"] == 4
    assert shown["events"]["poll_interval"] == 1.8


def test_cli_no_command_prints_help(tmp_path):
    res = _run_cli(tmp_path, [])
    assert res.returncode == 1
    assert "usage" in res.stderr
