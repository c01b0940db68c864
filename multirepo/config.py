"""Configuration management for multirepo."""

import os
import json
import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger('multirepo')

CONFIG_FILENAME = ".reposrc.json"

DEFAULT_PARALLEL = 10
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_DAYS_THRESHOLD = 90
DEFAULT_GITHUB_HOST = "github.com"

DEFAULT_CONFIG: Dict[str, Any] = {
    'github': {
        'host': DEFAULT_GITHUB_HOST,
        'apiUrl': "https://api.github.com",
    },
    'org': "",
    'daysThreshold': DEFAULT_DAYS_THRESHOLD,
    'parallel': DEFAULT_PARALLEL,
    'timeout': DEFAULT_TIMEOUT_MS,
}


def get_api_url(host: str) -> str:
    """Get the REST API base URL for a GitHub host.

    Args:
        host: GitHub host name

    Returns:
        API URL (GitHub Enterprise uses the /api/v3 path)
    """
    if host == DEFAULT_GITHUB_HOST:
        return "https://api.github.com"
    return f"https://{host}/api/v3"


def get_cwd_config_path() -> str:
    return os.path.join(os.getcwd(), CONFIG_FILENAME)


def get_home_config_path() -> str:
    return os.path.join(os.path.expanduser("~"), CONFIG_FILENAME)


def load_config_file(path: str) -> Optional[Dict[str, Any]]:
    """Load a JSON config file.

    Args:
        path: File path

    Returns:
        Parsed dictionary, or None if missing or malformed
    """
    if not os.path.isfile(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a JSON object")
        return None
    return data


def merge_config(defaults: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
    """Merge user settings over defaults (the github section merges by key)."""
    merged = deepcopy(defaults)
    for key, value in user.items():
        if key == 'github' and isinstance(value, dict):
            merged['github'].update(value)
        elif value is not None:
            merged[key] = value
    return merged


def load_config_data() -> Dict[str, Any]:
    """Load settings from the cwd config file, else the home one.

    Returns:
        Settings dictionary merged over DEFAULT_CONFIG
    """
    for path in (get_cwd_config_path(), get_home_config_path()):
        data = load_config_file(path)
        if data is not None:
            logger.debug(f"Loaded config from {path}")
            return merge_config(DEFAULT_CONFIG, data)
    return deepcopy(DEFAULT_CONFIG)


def save_config(data: Dict[str, Any], location: str = "cwd") -> str:
    """Write settings to the cwd or home config file.

    Args:
        data: Settings dictionary
        location: "cwd" or "home"

    Returns:
        Path written
    """
    if location not in ("cwd", "home"):
        raise ValueError(f"Unknown config location: {location}")
    path = get_cwd_config_path() if location == "cwd" else get_home_config_path()
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
        f.write("\n")
    return path


def get_config_value(data: Dict[str, Any], key_path: str) -> Any:
    """Look up a dotted key such as 'github.host'.

    Returns:
        The value, or None if any segment is missing
    """
    value: Any = data
    for key in key_path.split("."):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return None
    return value


def set_config_value(data: Dict[str, Any], key_path: str, value: Any) -> Dict[str, Any]:
    """Return a copy of data with a dotted key set.

    Only top-level keys and keys under 'github' can be set.
    """
    keys = key_path.split(".")
    result = deepcopy(data)

    if len(keys) == 1:
        result[keys[0]] = value
    elif len(keys) == 2 and keys[0] == 'github':
        result.setdefault('github', {})[keys[1]] = value
    else:
        raise ValueError(f"Unsupported config key: {key_path}")
    return result


def parse_config_value(raw: str) -> Any:
    """Parse a CLI-provided value: JSON scalars first, plain string otherwise."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class Config:
    """Runtime configuration for multirepo.

    Precedence: CLI arguments, then environment variables (REPOS_*, which
    may come from a .env file), then .reposrc.json, then defaults.
    """

    base_dir: str
    parallel: int = DEFAULT_PARALLEL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    org: str = ""
    days_threshold: int = DEFAULT_DAYS_THRESHOLD
    github_host: str = DEFAULT_GITHUB_HOST
    github_api_url: str = "https://api.github.com"
    kill_on_timeout: bool = False

    @classmethod
    def from_env_and_args(
        cls,
        parallel: Optional[int] = None,
        timeout_ms: Optional[int] = None,
        org: Optional[str] = None,
        days: Optional[int] = None,
        kill_on_timeout: bool = False,
        base_dir: Optional[str] = None,
        file_data: Optional[Dict[str, Any]] = None
    ) -> 'Config':
        """Create config from the config file, environment and CLI arguments.

        Args:
            parallel: Concurrency (overrides REPOS_PARALLEL)
            timeout_ms: Per-operation timeout in ms (overrides REPOS_TIMEOUT)
            org: GitHub org or user (overrides REPOS_ORG)
            days: Activity threshold in days for clone
            kill_on_timeout: Kill child processes that exceed the timeout
            base_dir: Directory holding the repositories (default: cwd)
            file_data: Pre-loaded settings (default: load_config_data())

        Returns:
            Config instance

        Raises:
            ValueError: If a numeric setting is invalid
        """
        data = file_data if file_data is not None else load_config_data()
        github = data.get('github') or {}

        final_parallel = _first(parallel, _env_int('REPOS_PARALLEL'), data.get('parallel'), DEFAULT_PARALLEL)
        final_timeout = _first(timeout_ms, _env_int('REPOS_TIMEOUT'), data.get('timeout'), DEFAULT_TIMEOUT_MS)
        final_org = _first(org, os.getenv('REPOS_ORG'), data.get('org'), "")
        final_days = _first(days, data.get('daysThreshold'), DEFAULT_DAYS_THRESHOLD)
        host = github.get('host') or DEFAULT_GITHUB_HOST

        if int(final_parallel) <= 0:
            raise ValueError(f"parallel must be a positive integer, got {final_parallel}")
        if int(final_timeout) <= 0:
            raise ValueError(f"timeout must be a positive number of milliseconds, got {final_timeout}")

        return cls(
            base_dir=base_dir or os.getcwd(),
            parallel=int(final_parallel),
            timeout_ms=int(final_timeout),
            org=final_org,
            days_threshold=int(final_days),
            github_host=host,
            github_api_url=github.get('apiUrl') or get_api_url(host),
            kill_on_timeout=kill_on_timeout,
        )


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None
