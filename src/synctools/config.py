"""
Profile discovery and loading.

Profiles live in the config directory (~/.config/sync-tools by default)
as YAML files keyed by SyncProfile field names, or as legacy shell-style
``.conf`` files (``KEY="value"`` lines). Legacy files are read as data
with shlex, never sourced.

CLI overrides are merged over the file's values and the result is
validated exactly once into a frozen SyncProfile.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from . import CONFIG_DIR
from .errors import ConfigError
from .models import SyncProfile

logger = logging.getLogger("synctools.config")

DEFAULT_PROFILE = "default"
PROFILE_SUFFIXES = (".yaml", ".yml", ".conf")

# Legacy .conf key -> SyncProfile field. Every tool's keys are kept, so
# a --sync-tool override finds the parameters written for that tool.
LEGACY_KEYS = {
    "SYNC_TOOL": "backend",
    "VPN_REQUIRED": "vpn_required",
    "VPN_CONNECTION": "vpn_connection",
    "UNISON_PROFILE": "unison_profile",
    "UNISON_OPTIONS": "unison_options",
    "RSYNC_SOURCE": "rsync_source",
    "RSYNC_DEST": "rsync_destination",
    "RSYNC_OPTIONS": "rsync_options",
    "RCLONE_SOURCE": "rclone_source",
    "RCLONE_DEST": "rclone_destination",
    "RCLONE_OPTIONS": "rclone_options",
    "STARTUP_DELAY": "startup_delay",
    "RETRY_COUNT": "retry_count",
    "RETRY_DELAY": "retry_delay",
    "CONNECTION_TIMEOUT": "connectivity_timeout",
    "PRE_SYNC_HOOK": "pre_hook",
    "POST_SYNC_HOOK": "post_hook",
    "DRY_RUN": "dry_run",
    "VERBOSE": "verbose",
    "QUIET": "quiet",
}


def config_dir(path: Union[Path, str, None] = None) -> Path:
    return Path(path or CONFIG_DIR).expanduser()


def parse_legacy_conf(text: str) -> dict[str, str]:
    """Parse ``KEY="value"`` assignments from a shell-style profile.

    Comments and blank lines are ignored, as are lines that are not
    plain assignments.

    Args:
        text: File contents.

    Returns:
        Dict of variable name to unquoted value.

    Raises:
        ConfigError: If a value has unbalanced quotes.
    """
    values: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, rest = line.partition("=")
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        if not key.isidentifier():
            continue
        try:
            tokens = shlex.split(rest, comments=True)
        except ValueError as exc:
            raise ConfigError(f"Line {lineno}: cannot parse {key}: {exc}") from exc
        values[key] = tokens[0] if tokens else ""
    return values


def _from_legacy(values: dict[str, str]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for key, field_name in LEGACY_KEYS.items():
        if key in values:
            data[field_name] = values[key]

    for hook in ("pre_hook", "post_hook"):
        if data.get(hook) == "":
            data[hook] = None
    return data


def read_profile_file(path: Path) -> dict[str, Any]:
    """Read a profile file into a dict of SyncProfile fields.

    Raises:
        ConfigError: If the file is missing or unreadable.
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to load configuration file: {path} ({exc})") from exc

    if path.suffix == ".conf":
        return _from_legacy(parse_legacy_conf(text))

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to load configuration file: {path} ({exc})") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must be a mapping: {path}")
    return data


def find_profile(name: str, directory: Union[Path, str, None] = None) -> Optional[Path]:
    """Locate ``<name>.yaml``, ``<name>.yml`` or ``<name>.conf`` in the config dir."""
    base = config_dir(directory)
    for suffix in PROFILE_SUFFIXES:
        candidate = base / f"{name}{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_profile(
    name: Optional[str] = None,
    config_file: Union[Path, str, None] = None,
    overrides: Optional[dict[str, Any]] = None,
    directory: Union[Path, str, None] = None,
) -> SyncProfile:
    """Build the SyncProfile for a run.

    An explicit config_file wins over a profile name. With neither, the
    ``default`` profile is used and created on first use.

    Args:
        name: Profile name in the config directory.
        config_file: Explicit profile file path.
        overrides: Field values that replace the file's (None values ignored).
        directory: Config directory override.

    Returns:
        Validated, frozen SyncProfile.

    Raises:
        ConfigError: If the file is missing, unparseable or invalid.
    """
    if config_file:
        path = Path(config_file).expanduser()
        profile_name = name or path.stem
    else:
        profile_name = name or DEFAULT_PROFILE
        path = find_profile(profile_name, directory)
        if path is None and profile_name == DEFAULT_PROFILE:
            create_config(directory)
            path = find_profile(profile_name, directory)
        if path is None:
            raise ConfigError(
                f"Profile not found: {profile_name} (looked in {config_dir(directory)})"
            )

    logger.info("Loading configuration: %s", path)
    data = read_profile_file(path)
    data.setdefault("name", profile_name)
    data.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return SyncProfile.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid profile {profile_name}: {exc}") from exc


def list_profiles(directory: Union[Path, str, None] = None) -> list[dict[str, Any]]:
    """Summarize every profile file in the config directory.

    Returns:
        One dict per profile with name, path, backend and vpn_required.
        Unreadable files are listed with backend ``unknown``.
    """
    base = config_dir(directory)
    if not base.is_dir():
        return []

    profiles = []
    for path in sorted(base.iterdir()):
        if path.suffix not in PROFILE_SUFFIXES or not path.is_file():
            continue
        try:
            data = read_profile_file(path)
        except ConfigError as exc:
            logger.warning("Skipping unreadable profile %s: %s", path, exc)
            data = {}
        profiles.append({
            "name": path.stem,
            "path": path,
            "backend": str(data.get("backend", "unknown")),
            "vpn_required": str(data.get("vpn_required", False)).lower() in ("true", "1", "yes"),
        })
    return profiles


DEFAULT_CONFIG = {
    "backend": "unison",
    "vpn_required": False,
    "vpn_connection": "",
    "unison_profile": "default",
    "unison_options": "-sortbysize -batch -times -force newer -confirmbigdel=false",
    "startup_delay": 5,
    "retry_count": 3,
    "retry_delay": 10,
    "connectivity_timeout": 30,
    "pre_hook": None,
    "post_hook": None,
}

EXAMPLE_PROFILES = {
    "example-unison": {
        "backend": "unison",
        "vpn_required": True,
        "vpn_connection": "Office",
        "unison_profile": "desktop",
        "unison_options": "-sortbysize -batch -times -force newer -confirmbigdel=false",
        "startup_delay": 5,
    },
    "example-rsync": {
        "backend": "rsync",
        "rsync_source": "/home/user/Documents/",
        "rsync_destination": "user@server.example.com:/backup/Documents/",
        "rsync_options": "-avz --progress --delete --exclude=.git/",
    },
    "example-rclone": {
        "backend": "rclone",
        "rclone_source": "/home/user/Documents/",
        "rclone_destination": "gdrive:backup/Documents/",
        "rclone_options": "--progress --transfers 8 --checkers 8",
    },
}


def create_config(directory: Union[Path, str, None] = None) -> list[Path]:
    """Write the default profile and the example profiles.

    Existing files are left untouched.

    Returns:
        Paths of the files that were written.
    """
    base = config_dir(directory)
    base.mkdir(parents=True, exist_ok=True)

    written = []
    for name, data in {DEFAULT_PROFILE: DEFAULT_CONFIG, **EXAMPLE_PROFILES}.items():
        if find_profile(name, base) is not None:
            continue
        path = base / f"{name}.yaml"
        path.write_text(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )
        written.append(path)
        logger.info("Created profile: %s", path)
    return written
