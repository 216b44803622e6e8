"""Application settings and reference-data loading.

Deployment settings come from the environment (prefix ``ONBOARDING_``) or a
``.env`` file. Screening thresholds and reference lists live in JSON files
under the data directory so compliance can tune them without a deploy.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from onboarding.errors import ConfigurationError
from onboarding.models import ScreeningConfig
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Resolve the data/ directory relative to this file so the server works
# regardless of which directory uvicorn is launched from.
DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

# HS256 keys shorter than the digest size weaken the signature
MIN_TOKEN_SECRET_BYTES = 32


class Settings(BaseSettings):
    """Deployment settings."""

    app_name: str = "Client Onboarding Screening API"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    data_dir: Path = DEFAULT_DATA_DIR

    # Case storage
    storage_backend: str = "memory"  # memory | filesystem
    storage_root: Path = Path("./case-store")

    # Notifications
    admin_email: str = "compliance@example.com"
    sender_email: str = "onboarding@example.com"
    public_base_url: str = "http://localhost:8000"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_starttls: bool = True

    # Decision links
    # Required; the service refuses to start without a strong secret
    decision_token_secret: Optional[str] = None
    decision_token_ttl_seconds: int = 24 * 3600

    # External screening sources
    http_timeout: float = 10.0
    remote_sanctions_lists: Dict[str, str] = Field(default_factory=dict)
    remote_list_cache_seconds: float = 300.0
    mx_resolver_url: Optional[str] = "https://dns.google/resolve"
    media_search_url: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="ONBOARDING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        LOGGER.warning(f"Reference file {path} not found, using defaults")
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_screening_config(data_dir: Path) -> ScreeningConfig:
    """Load tunable screening thresholds (or use defaults)."""
    return ScreeningConfig(**_read_json(data_dir / "screening_config.json", {}))


def load_sanctions_list(data_dir: Path) -> List[str]:
    """Names on the locally maintained consolidated sanctions list."""
    return list(_read_json(data_dir / "sanctions_list.json", []))


def load_pep_registers(data_dir: Path) -> Dict[str, List[str]]:
    """Official PEP registers keyed by ISO 3166-1 alpha-2 country code."""
    registers = _read_json(data_dir / "pep_registers.json", {})
    return {country.upper(): list(names) for country, names in registers.items()}


def load_entity_registry(data_dir: Path) -> List[Dict[str, Any]]:
    """Registry extracts used to confirm entity registration numbers."""
    return list(_read_json(data_dir / "entity_registry.json", []))


def require_token_secret(settings: Settings) -> str:
    """Return the decision token secret, or refuse to run without a usable one.

    Raises:
        ConfigurationError: If the secret is unset or shorter than 32 bytes
    """
    secret = settings.decision_token_secret
    if not secret or not secret.strip():
        raise ConfigurationError("ONBOARDING_DECISION_TOKEN_SECRET must be set")
    if len(secret.encode("utf-8")) < MIN_TOKEN_SECRET_BYTES:
        raise ConfigurationError(
            f"ONBOARDING_DECISION_TOKEN_SECRET must be at least {MIN_TOKEN_SECRET_BYTES} bytes"
        )
    return secret
