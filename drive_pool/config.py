"""
Settings for drive-pool.

Values come from, in increasing priority: defaults, the settings file
(~/.config/drive-pool/config.json, or $DRIVE_POOL_CONFIG), and
DRIVE_POOL_* environment variables.
"""
import json
import os
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional, Dict, Any

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "drive-pool"
DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024
MIN_CHUNK_SIZE = 256 * 1024

ENV_PREFIX = "DRIVE_POOL_"


@dataclass
class Settings:
    """
    Attributes:
        key_file: Path to the credential bundle (shell variables allowed)
        chunk_size: Upload chunk size, also the cutoff for chunked uploads
        proxy_url: Proxy for Drive traffic
        impersonate: User to impersonate with the service accounts
        use_trash: Trash instead of permanently deleting
        delete_concurrency: Remote calls in flight during a recursive delete
        skip_unreachable: Skip storage accounts whose quota query fails
    """
    key_file: str = ""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    proxy_url: Optional[str] = None
    impersonate: Optional[str] = None
    use_trash: bool = False
    delete_concurrency: int = 4
    skip_unreachable: bool = False

    def validate(self) -> None:
        if self.chunk_size < MIN_CHUNK_SIZE or self.chunk_size & (self.chunk_size - 1):
            raise ConfigError(
                f"chunk_size must be a power of 2 >= {MIN_CHUNK_SIZE}, got {self.chunk_size}"
            )
        if self.delete_concurrency < 1:
            raise ConfigError("delete_concurrency must be at least 1")

    def update(self, **values: Any) -> None:
        """Set fields from strings or typed values, ignoring None."""
        for f in fields(self):
            value = values.get(f.name)
            if value is None:
                continue
            setattr(self, f.name, _coerce(f.name, f.type, value))
        self.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(name: str, type_: Any, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if type_ in (bool, "bool"):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if type_ in (int, "int"):
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    return value


def expand_path(path: str) -> Path:
    """Expand $VARS and ~ the way a shell would."""
    return Path(os.path.expanduser(os.path.expandvars(path)))


def config_path() -> Path:
    env = os.getenv(f"{ENV_PREFIX}CONFIG")
    if env:
        return expand_path(env)
    return DEFAULT_CONFIG_DIR / "config.json"


def load_settings(path: Optional[Path] = None, use_env: bool = True) -> Settings:
    """
    Load settings from the settings file and the environment.

    Raises:
        ConfigError: Settings file is unreadable or values are invalid
    """
    path = path or config_path()
    settings = Settings()

    if path.exists():
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            raise ConfigError(f"Error reading settings file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {path} must contain a JSON object")
        unknown = set(data) - {f.name for f in fields(Settings)}
        if unknown:
            logger.warning(f"Ignoring unknown settings in {path}: {', '.join(sorted(unknown))}")
        settings.update(**{k: v for k, v in data.items() if k not in unknown})

    if use_env:
        settings.update(**{
            f.name: os.getenv(f"{ENV_PREFIX}{f.name.upper()}")
            for f in fields(Settings)
        })

    settings.validate()
    return settings


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    """Write settings to the settings file, creating its directory."""
    settings.validate()
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.to_dict(), indent=2) + "\n")
    logger.info(f"Saved settings to {path}")
    return path
