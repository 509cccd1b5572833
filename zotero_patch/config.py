# config.py
# Description: Configuration management for zotero_patch.
#
# Imports
import copy
import os
import tomllib
from pathlib import Path
from typing import Dict, Any, Optional, Mapping, Union
#
# Third-Party Imports
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator
#
# Local Imports
from .Constants import (
    DEFAULT_API_BASE_URL, MAX_BATCH_SIZE, ENV_API_TOKEN, ENV_GROUP_ID, ENV_CSV_PATH, ENV_API_BASE_URL,
    ENV_LOG_LEVEL, ENV_CONFIG_PATH,
)
from .Sync.pacing import RetryPolicy
from .zotero_api.exceptions import ConfigurationError
from .zotero_api.schemas import VersionSource, WriteMethod
#
#######################################################################################################################
#
# Functions:

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "zotero_patch" / "config.toml"
# Endpoints under /groups/<id> that return arrays rather than a single object
LIST_ENDPOINTS = ("collections", "items", "searches", "tags", "top", "trash")

CONFIG_TOML_CONTENT = """
# Configuration for zotero_patch.
# Credentials belong in the environment (or a .env file):
#   ZOTERO_API_TOKEN, ZOTERO_GROUP_ID, ZOTERO_CSV_PATH

[api]
base_url = "https://api.zotero.org"
request_timeout = 30.0
# Endpoint (relative to /groups/<id>) used to read the library version
version_path = "/collections"
# "header" reads Last-Modified-Version, "body" reads the JSON 'version' field, "auto" tries both.
# "body" needs an endpoint that returns a single object: set version_path = "" for the group itself.
version_source = "header"
write_path = "/items"
write_method = "POST"

[sync]
# The API accepts at most 50 objects per write
batch_size = 50

[retry]
max_transient_retries = 5
base_backoff_seconds = 1.0
max_backoff_seconds = 60.0
min_backoff_seconds = 1.0
jitter = true
# Leave unset to retry rate limits and version conflicts until the server relents
# max_rate_limit_retries = 20
# max_conflict_retries = 10

[logging]
log_level = "INFO"
log_file = "~/.local/share/zotero_patch/logs/zotero_patch.log"
# Structured JSON metrics; empty disables the sink
metrics_file = ""
"""

DEFAULT_CONFIG_FROM_TOML: Dict[str, Any] = tomllib.loads(CONFIG_TOML_CONTENT)


class ZoteroSettings(BaseModel):
    """Immutable settings for one sync run."""
    model_config = ConfigDict(frozen=True)

    api_token: SecretStr
    group_id: str = Field(min_length=1)
    csv_path: Optional[Path] = None
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = Field(default=30.0, gt=0)
    version_path: str = "/collections"
    version_source: VersionSource = "header"
    write_path: str = "/items"
    write_method: WriteMethod = "POST"
    batch_size: int = Field(default=MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    log_level: str = "INFO"
    log_file: Optional[str] = None
    metrics_file: Optional[str] = None

    @model_validator(mode="after")
    def _check_version_endpoint(self) -> "ZoteroSettings":
        # List endpoints answer with a JSON array, which has no top-level version
        last_segment = self.version_path.rstrip("/").rsplit("/", 1)[-1]
        if self.version_source == "body" and last_segment in LIST_ENDPOINTS:
            raise ValueError(
                f"version_source 'body' cannot read a version from the list endpoint '{self.version_path}'; "
                "use version_path = \"\" (the group object) or version_source 'header'"
            )
        return self


def deep_merge_dicts(base: Dict, update: Dict) -> Dict:
    """Recursively merges update_dict into base_dict."""
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = deep_merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_config_path(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    override = env.get(ENV_CONFIG_PATH)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def load_toml_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Returns the built-in defaults merged with the user's TOML file, if one exists."""
    loaded_config = copy.deepcopy(DEFAULT_CONFIG_FROM_TOML)
    config_path = config_path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        logger.debug(f"No config file at {config_path}; using built-in defaults")
        return loaded_config
    try:
        with open(config_path, "rb") as f:
            user_config_from_file = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        raise ConfigurationError(f"Could not read config file {config_path}: {e}") from e
    logger.info(f"Loaded config from {config_path}")
    return deep_merge_dicts(loaded_config, user_config_from_file)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    return value if value else None


def _build_settings_dict(toml_config: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    api = toml_config.get("api", {})
    sync = toml_config.get("sync", {})
    logging_cfg = toml_config.get("logging", {})

    missing = [name for name in (ENV_API_TOKEN, ENV_GROUP_ID) if not env.get(name)]
    if missing:
        raise ConfigurationError(f"Missing required environment variable(s): {', '.join(missing)}")

    return {
        "api_token": env[ENV_API_TOKEN],
        "group_id": env[ENV_GROUP_ID].strip(),
        "csv_path": _blank_to_none(env.get(ENV_CSV_PATH)),
        "api_base_url": env.get(ENV_API_BASE_URL) or api.get("base_url", DEFAULT_API_BASE_URL),
        "request_timeout": api.get("request_timeout", 30.0),
        "version_path": api.get("version_path", "/collections"),
        "version_source": api.get("version_source", "header"),
        "write_path": api.get("write_path", "/items"),
        "write_method": str(api.get("write_method", "POST")).upper(),
        "batch_size": sync.get("batch_size", MAX_BATCH_SIZE),
        "retry": toml_config.get("retry", {}),
        "log_level": (env.get(ENV_LOG_LEVEL) or logging_cfg.get("log_level", "INFO")).upper(),
        "log_file": _blank_to_none(logging_cfg.get("log_file")),
        "metrics_file": _blank_to_none(logging_cfg.get("metrics_file")),
    }


# --- Primary Configuration Loading Logic ---
_SETTINGS_CACHE: Optional[ZoteroSettings] = None

def load_settings(
    config_path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
    force_reload: bool = False,
) -> ZoteroSettings:
    """
    Builds ZoteroSettings from built-in defaults, the TOML config file and the
    environment, in increasing order of precedence.

    Raises:
        ConfigurationError: A required variable is missing or a value is invalid.
    """
    global _SETTINGS_CACHE
    if _SETTINGS_CACHE is not None and not force_reload and env is None and config_path is None:
        return _SETTINGS_CACHE

    if use_dotenv:
        load_dotenv()
    env = os.environ if env is None else env
    path = Path(config_path).expanduser() if config_path else get_config_path(env)

    settings_dict = _build_settings_dict(load_toml_config(path), env)
    try:
        settings = ZoteroSettings.model_validate(settings_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.debug(f"Settings loaded for group {settings.group_id} against {settings.api_base_url}")
    _SETTINGS_CACHE = settings
    return settings

#
# End of config.py
#######################################################################################################################
