# groovelib/config.py
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

# HAS_TOML determination
try:
    if sys.version_info >= (3, 11):
        import tomllib as tomli  # type: ignore
    else:
        import tomli  # type: ignore
    import tomli_w  # type: ignore

    HAS_TOML = True
except ImportError:
    print(
        "Warning: tomli/tomli_w packages not found. Configuration features will be disabled.",
        file=sys.stderr,
    )
    print("Install with: pip install tomli tomli-w", file=sys.stderr)
    HAS_TOML = False

MAX_DISCOVERY_DEPTH = 4
MAX_DISCOVERY_DIRECTORIES = 2500
POLL_INTERVAL_SECONDS = 1.8
KEEPALIVE_INTERVAL_SECONDS = 25.0
SKIPPED_DIRECTORY_NAMES = frozenset(
    {
        ".git",
        ".next",
        ".pnpm-store",
        ".turbo",
        "dist",
        "node_modules",
    }
)


@dataclass
class Settings:
    """Effective runtime settings for discovery and event streaming."""

    max_depth: int = MAX_DISCOVERY_DEPTH
    max_directories: int = MAX_DISCOVERY_DIRECTORIES
    skip_directories: frozenset = SKIPPED_DIRECTORY_NAMES
    search_bases: List[str] = field(default_factory=list)
    poll_interval: float = POLL_INTERVAL_SECONDS
    keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS

    def to_config(self):
        """Render as the TOML document shape used by load_config/save_config."""
        return {
            "discovery": {
                "max_depth": self.max_depth,
                "max_directories": self.max_directories,
                "skip_directories": sorted(self.skip_directories - SKIPPED_DIRECTORY_NAMES),
                "search_bases": list(self.search_bases),
            },
            "events": {
                "poll_interval": self.poll_interval,
                "keepalive_interval": self.keepalive_interval,
            },
        }


def get_config_path():
    """Get the path to the config file following XDG Base Directory spec."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        config_dir = Path(xdg_config_home) / "groove"
    else:
        config_dir = Path.home() / ".config" / "groove"
    return config_dir / "config.toml"


def load_config():
    """Load configuration from file; a missing or broken file yields an empty config."""
    if not HAS_TOML:
        return {}
    config_path = get_config_path()
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "rb") as f:
            return tomli.load(f)  # type: ignore
    except Exception as e:
        print(f"Error loading config file: {e}", file=sys.stderr)
        return {}


def save_config(config):
    """Save the configuration to the config file."""
    if not HAS_TOML:
        return
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(config_path, "wb") as f:
            tomli_w.dump(config, f)  # type: ignore
    except Exception as e:
        print(f"Error saving config file: {e}", file=sys.stderr)


def _positive(value, fallback, kind):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if value <= 0:
        return fallback
    return kind(value)


def load_settings(config=None) -> Settings:
    """Merge config file values over the built-in defaults.

    Unknown keys are ignored and values of the wrong type fall back to the
    defaults, so a hand-edited file can never break discovery.
    """
    if config is None:
        config = load_config()
    discovery = config.get("discovery") or {}
    events = config.get("events") or {}
    settings = Settings()

    settings.max_depth = _positive(discovery.get("max_depth"), settings.max_depth, int)
    settings.max_directories = _positive(
        discovery.get("max_directories"), settings.max_directories, int
    )
    extra_skips = discovery.get("skip_directories") or []
    if isinstance(extra_skips, list):
        settings.skip_directories = SKIPPED_DIRECTORY_NAMES | {
            s for s in extra_skips if isinstance(s, str) and s
        }
    bases = discovery.get("search_bases") or []
    if isinstance(bases, list):
        settings.search_bases = [
            os.path.expanduser(b) for b in bases if isinstance(b, str) and b.strip()
        ]

    settings.poll_interval = _positive(
        events.get("poll_interval"), settings.poll_interval, float
    )
    settings.keepalive_interval = _positive(
        events.get("keepalive_interval"), settings.keepalive_interval, float
    )
    return settings
