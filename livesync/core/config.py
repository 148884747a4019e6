"""
Configuration management for livesync.

Loads settings from an optional YAML config file, then lets environment
variables (including a local .env file) override them.
"""
from dataclasses import dataclass, field, fields, replace
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from livesync.core.errors import NotConfigured
from livesync.utils.logger import get_logger

logger = get_logger("core.config")


def _project_root() -> Path:
    """Return project root (parent of livesync package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"

# Substrings that mark a value copied from an example file and never filled in
PLACEHOLDER_MARKERS = ("your-", "your_", "placeholder", "changeme")

DEFAULT_WARM_PROFILES: List[Dict[str, Any]] = [
    {"page": 1, "limit": 12},
    {"category": "tshirt", "page": 1, "limit": 12},
    {"category": "hoodie", "page": 1, "limit": 12},
    {"sortBy": "is_bestseller", "sortOrder": "desc", "page": 1, "limit": 12},
]

# dataclass field -> environment variable
ENV_VARS = {
    "sheet_id": "LIVE_SHEET_ID",
    "sheet_name": "LIVE_SHEET_NAME",
    "sheet_range": "LIVE_SHEET_RANGE",
    "api_key": "GOOGLE_SHEETS_API_KEY",
    "service_account_email": "GOOGLE_SHEETS_CLIENT_EMAIL",
    "service_account_private_key": "GOOGLE_SHEETS_PRIVATE_KEY",
    "service_account_file": "GOOGLE_APPLICATION_CREDENTIALS",
    "ttl_seconds": "SHEET_CACHE_TTL_SECONDS",
    "default_page_size": "DEFAULT_PAGE_SIZE",
    "max_page_size": "MAX_PAGE_SIZE",
    "fetch_timeout_seconds": "SHEET_FETCH_TIMEOUT",
    "failure_backoff_seconds": "SHEET_FAILURE_BACKOFF_SECONDS",
    "cron_secret": "CRON_SECRET",
    "image_warm_batch_size": "IMAGE_WARM_BATCH_SIZE",
}


def looks_unset(value: Any) -> bool:
    """True for None, blank strings and placeholder-looking values."""
    if value is None:
        return True
    text = str(value).strip()
    if not text:
        return True
    lower = text.lower()
    return any(marker in lower for marker in PLACEHOLDER_MARKERS)


@dataclass
class SyncConfig:
    """Configuration for the live sheet catalog."""

    # Data source
    sheet_id: str = ""
    sheet_name: str = ""                # Resolved from spreadsheet metadata when empty
    sheet_range: str = "A1:V1000"       # First row is the header

    # Credentials: an API key, or a service account (inline or file)
    api_key: str = ""
    service_account_email: str = ""
    service_account_private_key: str = ""
    service_account_file: str = ""

    # Cache
    ttl_seconds: float = 60.0
    failure_backoff_seconds: float = 10.0   # Serve stale without refetching right after a failure

    # Query defaults
    default_page_size: int = 12
    max_page_size: int = 100

    # Network
    fetch_timeout_seconds: float = 10.0

    # Warming / admin
    warm_profiles: List[Dict[str, Any]] = field(
        default_factory=lambda: [dict(p) for p in DEFAULT_WARM_PROFILES]
    )
    cron_secret: str = ""
    image_warm_batch_size: int = 5

    @property
    def uses_service_account(self) -> bool:
        if self.service_account_file:
            return True
        return not looks_unset(self.service_account_email) and not looks_unset(
            self.service_account_private_key
        )

    def missing_settings(self) -> List[str]:
        """Names of required settings that are absent or placeholders."""
        missing = []
        if looks_unset(self.sheet_id):
            missing.append(ENV_VARS["sheet_id"])

        if self.service_account_file:
            if not Path(self.service_account_file).expanduser().exists():
                missing.append(ENV_VARS["service_account_file"])
        elif self.service_account_email or self.service_account_private_key:
            if looks_unset(self.service_account_email):
                missing.append(ENV_VARS["service_account_email"])
            if looks_unset(self.service_account_private_key):
                missing.append(ENV_VARS["service_account_private_key"])
        elif looks_unset(self.api_key):
            missing.append(
                f"{ENV_VARS['api_key']} or "
                f"{ENV_VARS['service_account_email']}+{ENV_VARS['service_account_private_key']}"
            )
        return missing

    def validate(self) -> "SyncConfig":
        """Raise NotConfigured unless a fetch could be attempted."""
        missing = self.missing_settings()
        if missing:
            raise NotConfigured(missing)
        return self

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "SyncConfig":
        """Load configuration from YAML file."""
        path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        sheet_config = data.get('sheet', {})
        cache_config = data.get('cache', {})
        query_config = data.get('query', {})
        warm_config = data.get('warming', {})

        defaults = cls()
        return cls(
            sheet_id=str(sheet_config.get('id', '') or ''),
            sheet_name=str(sheet_config.get('name', '') or ''),
            sheet_range=sheet_config.get('range', defaults.sheet_range),
            fetch_timeout_seconds=float(sheet_config.get('timeout_seconds', defaults.fetch_timeout_seconds)),
            ttl_seconds=float(cache_config.get('ttl_seconds', defaults.ttl_seconds)),
            failure_backoff_seconds=float(cache_config.get('failure_backoff_seconds', defaults.failure_backoff_seconds)),
            default_page_size=int(query_config.get('default_page_size', defaults.default_page_size)),
            max_page_size=int(query_config.get('max_page_size', defaults.max_page_size)),
            warm_profiles=list(warm_config.get('profiles') or defaults.warm_profiles),
            image_warm_batch_size=int(warm_config.get('image_batch_size', defaults.image_warm_batch_size)),
        )

    @classmethod
    def from_env(cls, base: Optional["SyncConfig"] = None) -> "SyncConfig":
        """Overlay environment variables on top of `base` (or defaults)."""
        config = base or cls()
        types = {f.name: f.type for f in fields(cls)}
        overrides: Dict[str, Any] = {}

        for name, env_var in ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw is None or raw == "":
                continue
            kind = types[name]
            try:
                if kind in (int, "int"):
                    overrides[name] = int(raw)
                elif kind in (float, "float"):
                    overrides[name] = float(raw)
                else:
                    overrides[name] = raw
            except ValueError:
                logger.warning(f"Ignoring {env_var}={raw!r}: expected {getattr(kind, '__name__', kind)}")

        key = overrides.get("service_account_private_key")
        if key:
            # Keys pasted into .env files keep their newlines escaped
            overrides["service_account_private_key"] = key.replace("\\n", "\n")

        return replace(config, **overrides)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "SyncConfig":
        """YAML file first, environment second."""
        return cls.from_env(cls.from_yaml(config_path))


# Global config instance
_config: Optional[SyncConfig] = None


def get_config() -> SyncConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = SyncConfig.load()
    return _config


def set_config(config: SyncConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
