# groovelib/cli.py
import argparse
import asyncio
import json
import sys

from groovelib.config import HAS_TOML, get_config_path, load_settings, save_config
from groovelib.logs import configure_logging
from groovelib.notifier import WorkspaceChangeStream
from groovelib.parsing import ParseError, parse_resolve_body
from groovelib.resolution import resolve_workspace_root


def _add_discovery_arguments(parser):
    parser.add_argument(
        "--workspace-root", help="Absolute path of the workspace root (skips discovery)"
    )
    parser.add_argument("--root-name", help="Directory name of the workspace root")
    parser.add_argument(
        "--known-worktree",
        action="append",
        default=[],
        help="Worktree that must exist under .worktrees (repeatable)",
    )
    parser.add_argument(
        "--worktree", help="Worktree an action targets; must also exist under .worktrees"
    )
    parser.add_argument(
        "--meta-version", type=float, help="Expected workspace.json version"
    )
    parser.add_argument("--meta-created-at", help="Expected workspace.json createdAt")


def _query_from_args(args):
    body = {"knownWorktrees": args.known_worktree}
    if args.workspace_root is not None:
        body["workspaceRoot"] = args.workspace_root
    if args.root_name is not None:
        body["rootName"] = args.root_name
    if args.worktree is not None:
        body["worktree"] = args.worktree
    meta = {}
    if args.meta_version is not None:
        v = args.meta_version
        meta["version"] = int(v) if v.is_integer() else v
    if args.meta_created_at:
        meta["createdAt"] = args.meta_created_at
    if args.root_name:
        meta["rootName"] = args.root_name
    if meta:
        body["workspaceMeta"] = meta
    return parse_resolve_body(body)


def _resolve_or_exit(args, settings):
    query = _query_from_args(args)
    if isinstance(query, ParseError):
        print(f"Error: {query.message}", file=sys.stderr)
        sys.exit(1)
    resolution = resolve_workspace_root(query, settings=settings)
    if not resolution.ok:
        print(f"Error: {resolution.message}", file=sys.stderr)
        print(
            "hint: pass --workspace-root /abs/path/to/root to skip discovery",
            file=sys.stderr,
        )
        sys.exit(1)
    return query, resolution


async def _watch(workspace_root, known_worktrees, settings):
    stream = WorkspaceChangeStream(workspace_root, known_worktrees, settings=settings)
    await stream.start()
    try:
        async for chunk in stream.events():
            print(chunk, end="", flush=True)
    finally:
        stream.close("cli-exit")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Locate a groove workspace root and stream its filesystem changes"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    resolve_parser = subparsers.add_parser(
        "resolve", help="Print the workspace root for the given discovery inputs"
    )
    _add_discovery_arguments(resolve_parser)
    resolve_parser.add_argument(
        "--json", action="store_true", help="Print the result as a JSON object"
    )

    watch_parser = subparsers.add_parser(
        "watch", help="Resolve the workspace root and print change events until interrupted"
    )
    _add_discovery_arguments(watch_parser)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP event server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8765, help="Bind port")

    config_parser = subparsers.add_parser("config", help="Show or initialize settings")
    config_parser.add_argument(
        "--init", action="store_true", help="Write the default config file"
    )

    args = parser.parse_args(argv)
    configure_logging()
    settings = load_settings()

    if args.command is None:
        parser.print_help(sys.stderr)
        sys.exit(1)

    if args.command == "config":
        path = get_config_path()
        if args.init:
            if not HAS_TOML:
                print(
                    "Note: Config file not written (TOML support not available)",
                    file=sys.stderr,
                )
                sys.exit(1)
            if path.exists():
                print(f"Config already exists: {path}", file=sys.stderr)
                return
            save_config(settings.to_config())
            print(f"Wrote default config to {path}", file=sys.stderr)
            return
        print(f"Config file: {path}{'' if path.exists() else ' (not present)'}")
        print(json.dumps(settings.to_config(), indent=2))
        return

    if args.command == "serve":
        import uvicorn

        from groovelib.server import create_app

        uvicorn.run(create_app(settings), host=args.host, port=args.port)
        return

    query, resolution = _resolve_or_exit(args, settings)

    if args.command == "resolve":
        if args.json:
            print(json.dumps(resolution.to_dict()))
        else:
            print(resolution.workspace_root)
    elif args.command == "watch":
        try:
            asyncio.run(_watch(resolution.workspace_root, query.known_worktrees, settings))
        except KeyboardInterrupt:
            print("Stopped watching", file=sys.stderr)
