"""FolioConfig: project-local config for a folio workspace.

Default layout (all relative to the directory holding folio.toml):

    folio.toml            # config
    .env                  # optional: FOLIO_WORKSPACE=/elsewhere
    workspace/
        projects.json
        projects/<id>/...

folio.toml example:

    [folio]
    name = "my-novels"
    # workspace = "workspace"   # default

    [timeline]
    max_snapshots = 20
    preview_chars = 200

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from folio.timeline import MAX_SNAPSHOTS, PREVIEW_CHARS
from folio.workspace import Workspace

_CONFIG_FILENAME = "folio.toml"
_DEFAULT_WORKSPACE = "workspace"
_WORKSPACE_ENV = "FOLIO_WORKSPACE"


@dataclass
class TimelineConfig:
    max_snapshots: int = MAX_SNAPSHOTS   # per chapter, oldest evicted first
    preview_chars: int = PREVIEW_CHARS   # snapshot list preview length


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class FolioConfig:
    """Resolved configuration for a folio workspace."""

    root: Path                      # directory that contains folio.toml
    name: str = ""
    workspace_dir: Path = field(default_factory=Path)
    timeline: TimelineConfig = field(default_factory=TimelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def workspace(self) -> Workspace:
        return Workspace(self.workspace_dir)

    def ensure_dirs(self) -> None:
        """Create the workspace and its projects/ directory."""
        self.workspace.projects_dir.mkdir(parents=True, exist_ok=True)


def _load_env(root: Path) -> dict[str, str]:
    """Parse a simple KEY=VALUE .env file."""
    env_file = root / ".env"
    if not env_file.exists():
        return {}
    env: dict[str, str] = {}
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            env[k.strip()] = v.strip().strip('"').strip("'")
    return env


def load_config(root: Path | str | None = None) -> FolioConfig:
    """Load folio.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    folio_section = raw.get("folio", {})
    tl_section = raw.get("timeline", {})
    log_section = raw.get("logging", {})

    # Environment beats .env beats folio.toml
    env = _load_env(root_path)
    workspace_rel = (
        os.environ.get(_WORKSPACE_ENV)
        or env.get(_WORKSPACE_ENV)
        or folio_section.get("workspace", _DEFAULT_WORKSPACE)
    )

    max_snapshots = int(tl_section.get("max_snapshots", MAX_SNAPSHOTS))
    if max_snapshots < 1:
        msg = f"timeline.max_snapshots must be at least 1, got {max_snapshots}"
        raise ValueError(msg)
    preview_chars = int(tl_section.get("preview_chars", PREVIEW_CHARS))
    if preview_chars < 1:
        msg = f"timeline.preview_chars must be at least 1, got {preview_chars}"
        raise ValueError(msg)

    return FolioConfig(
        root=root_path,
        name=folio_section.get("name", root_path.name),
        workspace_dir=(root_path / Path(workspace_rel).expanduser()).resolve(),
        timeline=TimelineConfig(
            max_snapshots=max_snapshots,
            preview_chars=preview_chars,
        ),
        logging=LoggingConfig(
            level=str(log_section.get("level", "INFO")).upper(),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for folio.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default folio.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"folio.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[folio]
name = "{project_name}"
# workspace = "workspace"   # default; FOLIO_WORKSPACE overrides

# [timeline]
# max_snapshots = 20        # snapshots kept per chapter, oldest dropped first
# preview_chars = 200       # length of snapshot previews

# [logging]
# level = "INFO"
"""
    config_path.write_text(content)
    return config_path
