"""dotsecrets runtime configuration and settings."""
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from dotsecrets.core.errors import DotsecretsError
from dotsecrets.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_VAULT = "Employee"
DEFAULT_FIELD = "credential"
DEFAULT_CATEGORY = "API Credential"

SETTINGS_FILENAME = "dotsecrets.yml"

# Preloaded by warm-cache when the settings file does not list any
DEFAULT_WARM_SECRETS = [
    "GITHUB_TOKEN:credential",
    "GITLAB_TOKEN:credential",
    "ANTHROPIC_API_KEY:credential",
    "AWS_ACCESS_KEY_ID:credential",
    "AWS_SECRET_ACCESS_KEY:credential",
]

# VARIABLE:SECRET:field
DEFAULT_ENV_SECRETS = [
    "GITHUB_TOKEN:GITHUB_TOKEN:credential",
    "GITLAB_TOKEN:GITLAB_TOKEN:credential",
    "ANTHROPIC_API_KEY:ANTHROPIC_API_KEY:credential",
    "AWS_ACCESS_KEY_ID:AWS_ACCESS_KEY_ID:credential",
    "AWS_SECRET_ACCESS_KEY:AWS_SECRET_ACCESS_KEY:credential",
    "HOMEBREW_GITHUB_API_TOKEN:HOMEBREW_GITHUB_API_TOKEN:credential",
    "OPENAI_API_KEY:OPENAI_API_KEY:credential",
]


class ConfigError(DotsecretsError):
    """Raised when the settings file is malformed."""
    pass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a whole number of seconds, got {raw!r}") from None


def default_cache_dir() -> Path:
    """Per-user cache directory under the system temp dir."""
    return Path(tempfile.gettempdir()) / f"dotsecrets-cache-{os.getuid()}"


@dataclass
class DotsecretsConfig:
    """Runtime configuration for dotsecrets operations.

    Attributes:
        cache_ttl: Seconds a cached secret stays valid (default: 300, 0 disables hits)
        cache_enabled: Whether resolved secrets are cached on disk at all
        cache_dir: Cache directory (default: $TMPDIR/dotsecrets-cache-<uid>)
        op_timeout: Timeout in seconds for each secret store CLI call (default: 30)
        debug: Emit per-token traces while processing templates
        account: Account alias to use (overrides detection)
    """

    cache_ttl: int = 300  # 5 minutes
    cache_enabled: bool = True
    cache_dir: Optional[Path] = None
    op_timeout: int = 30
    debug: bool = False
    account: Optional[str] = None

    def __post_init__(self):
        if self.cache_dir is None:
            self.cache_dir = default_cache_dir()
        self.cache_dir = Path(self.cache_dir)
        if self.cache_ttl < 0:
            raise ConfigError(f"cache_ttl must be >= 0, got {self.cache_ttl}")

    @classmethod
    def from_env(cls) -> "DotsecretsConfig":
        """Create config from environment variables.

        Environment variables:
            DOTSECRETS_CACHE_TTL: Cache TTL in seconds
            DOTSECRETS_CACHE_ENABLED: Enable/disable caching (true/false)
            DOTSECRETS_CACHE_DIR: Cache directory
            DOTSECRETS_OP_TIMEOUT: Secret store CLI timeout in seconds
            DOTSECRETS_DEBUG: Enable per-token debug traces (true/false)
            DOTSECRETS_ACCOUNT: Account alias override

        Returns:
            DotsecretsConfig instance with values from environment or defaults
        """
        cache_dir = os.getenv("DOTSECRETS_CACHE_DIR")
        return cls(
            cache_ttl=_env_int("DOTSECRETS_CACHE_TTL", cls.cache_ttl),
            cache_enabled=_env_bool("DOTSECRETS_CACHE_ENABLED", cls.cache_enabled),
            cache_dir=Path(cache_dir) if cache_dir else None,
            op_timeout=_env_int("DOTSECRETS_OP_TIMEOUT", cls.op_timeout),
            debug=_env_bool("DOTSECRETS_DEBUG", cls.debug),
            account=os.getenv("DOTSECRETS_ACCOUNT") or None,
        )


@dataclass
class SecretsSettings:
    """User settings loaded from the YAML settings file.

    Example::

        default_vault: Employee
        default_account: personal
        accounts:
          work: my-company.1password.com
          personal: my.1password.com
        fallback_accounts: [work]
        detection:
          work_usernames: [jane.doe]
          work_hostname_patterns: [corp, office]
        warm_secrets:
          - GITHUB_TOKEN:credential
    """

    default_vault: str = DEFAULT_VAULT
    default_account: str = "personal"
    accounts: Dict[str, str] = field(default_factory=dict)
    fallback_accounts: List[str] = field(default_factory=list)
    detection: Dict[str, List[str]] = field(default_factory=dict)
    warm_secrets: List[str] = field(default_factory=lambda: list(DEFAULT_WARM_SECRETS))
    env_secrets: List[str] = field(default_factory=lambda: list(DEFAULT_ENV_SECRETS))
    source: Optional[Path] = None

    def account_id(self, alias: Optional[str]) -> Optional[str]:
        """Map an account alias (e.g. 'work') to the backend account ID."""
        if alias is None:
            return None
        return self.accounts.get(alias, alias)

    @classmethod
    def from_dict(cls, data: dict, source: Optional[Path] = None) -> "SecretsSettings":
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file must contain a mapping: {source}")

        accounts = data.get("accounts") or {}
        if not isinstance(accounts, dict):
            raise ConfigError("'accounts' must map aliases to account IDs")

        settings = cls(
            default_vault=str(data.get("default_vault", DEFAULT_VAULT)),
            default_account=str(data.get("default_account", "personal")),
            accounts={str(k): str(v) for k, v in accounts.items()},
            fallback_accounts=[str(a) for a in data.get("fallback_accounts") or []],
            detection={
                str(k): [str(p) for p in (v or [])]
                for k, v in (data.get("detection") or {}).items()
            },
            source=source,
        )
        if "warm_secrets" in data:
            settings.warm_secrets = [str(s) for s in data["warm_secrets"] or []]
        if "env_secrets" in data:
            settings.env_secrets = [str(s) for s in data["env_secrets"] or []]
        return settings


def find_settings(settings_path: Optional[str] = None) -> Optional[Path]:
    """Locate the active settings file, or None when there is none."""
    if settings_path:
        return Path(settings_path)

    if env_path := os.environ.get("DOTSECRETS_CONFIG"):
        return Path(env_path)

    # Ordered by proximity to current run
    for path in (Path(SETTINGS_FILENAME), Path.home() / ".config" / "dotsecrets" / "config.yml"):
        if path.exists():
            return path

    return None


def load_settings(settings_path: Optional[str] = None) -> SecretsSettings:
    """Load YAML settings, falling back to defaults when no file exists.

    Raises:
        ConfigError: If an explicitly located file is missing or malformed
    """
    path = find_settings(settings_path)
    if path is None:
        return SecretsSettings()

    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    # Empty file means defaults
    if not data:
        return SecretsSettings(source=path)

    logger.debug(f"Loaded settings from {path}")
    return SecretsSettings.from_dict(data, source=path)


# Global config instance (can be overridden)
_config: Optional[DotsecretsConfig] = None


def get_config() -> DotsecretsConfig:
    """Get the global dotsecrets configuration.

    Returns:
        DotsecretsConfig instance (creates from environment if not set)
    """
    global _config
    if _config is None:
        _config = DotsecretsConfig.from_env()
    return _config


def set_config(config: Optional[DotsecretsConfig]):
    """Set the global dotsecrets configuration.

    Args:
        config: DotsecretsConfig instance to use globally, or None to reset
    """
    global _config
    _config = config
