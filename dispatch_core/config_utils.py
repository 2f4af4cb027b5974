import json
import os
import re
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from jsonschema import validate as jsonschema_validate, ValidationError

from dispatch_core.models import DispatchSettings, DispatchTarget

DEFAULT_VERSION = '0.1.0'

DEFAULT_ENV_FILE = '/etc/github-dispatch/.env'

CONFIG_SCHEMA = {
    'type': 'object',
    'properties': {
        'GitHub': {
            'type': 'object',
            'properties': {
                'Owner': {'type': 'string'},
                'Repo': {'type': 'string'},
                'Token': {'type': 'string'},
            },
        },
    },
}


class ConfigError(Exception):
    """Raised when a dispatch config file cannot be read or is invalid."""


def package_version() -> str:
    """Installed distribution version, or the source default when not installed."""
    try:
        return version('github-dispatch')
    except PackageNotFoundError:
        return DEFAULT_VERSION


def resolve_env_vars(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively resolve ${VAR} environment variables in a dict."""
    resolved: Dict[str, Any] = {}

    def replace_env_var(match):
        var_name = match.group(1)
        return os.getenv(var_name, match.group(0))

    for key, value in config_dict.items():
        if isinstance(value, str):
            resolved[key] = re.sub(r"\$\{([^}]+)\}", replace_env_var, value)
        elif isinstance(value, dict):
            resolved[key] = resolve_env_vars(value)
        else:
            resolved[key] = value
    return resolved


def load_env_file(env_file: Optional[str], logger) -> bool:
    """Load a .env file quietly if present. Returns True when loaded."""
    env_file = env_file or os.getenv('DISPATCH_ENV_FILE', DEFAULT_ENV_FILE)
    if not os.path.exists(env_file):
        return False
    try:
        load_dotenv(env_file)
    except Exception as e:
        logger.debug(f"Unable to load {env_file}: {e}")
        return False
    return True


def _read_config_file(config_file: str) -> Dict[str, Any]:
    try:
        with open(config_file, 'r') as f:
            config = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Unable to read {config_file}: {e}") from e
    try:
        jsonschema_validate(config, CONFIG_SCHEMA)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation error in {config_file}: {e.message}") from e
    return resolve_env_vars(config)


def load_target(config_file: Optional[str] = None) -> DispatchTarget:
    """Resolve owner/repo/token for a single dispatch batch.

    Values from the optional JSON config file are overridden by the
    GITHUB_OWNER, GITHUB_REPO and GITHUB_TOKEN environment variables.
    Nothing is cached; every call re-reads its sources.
    """
    config_file = config_file or os.getenv('DISPATCH_CONFIG_FILE')
    github: Dict[str, Any] = {}
    if config_file:
        github = _read_config_file(config_file).get('GitHub', {})
    return DispatchTarget(
        owner=os.getenv('GITHUB_OWNER') or github.get('Owner', ''),
        repo=os.getenv('GITHUB_REPO') or github.get('Repo', ''),
        token=os.getenv('GITHUB_TOKEN') or github.get('Token', ''),
    )


def load_settings() -> DispatchSettings:
    """Transport settings from the environment, falling back to defaults on bad values."""
    try:
        timeout = float(os.getenv('DISPATCH_TIMEOUT', '10'))
    except Exception:
        timeout = 10.0
    try:
        max_workers = int(os.getenv('DISPATCH_WORKERS', '4'))
    except Exception:
        max_workers = 4
    if timeout <= 0:
        timeout = 10.0
    if max_workers < 1:
        max_workers = 4
    return DispatchSettings(
        user_agent=os.getenv('DISPATCH_USER_AGENT', f'github-dispatch/{package_version()}'),
        timeout=timeout,
        max_workers=max_workers,
    )
