"""
Centralized settings and engine defaults for the pricing engine.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 4 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


DEFAULT_CONDITION_CURVE = {
    'MINT': 1.1,
    'NM': 1.0,
    'VG_PLUS': 0.85,
    'VG': 0.6,
    'VG_MINUS': 0.45,
    'G': 0.3,
    'FAIR': 0.2,
    'POOR': 0.1,
}


@dataclass(frozen=True)
class PricingDefaults:
    """Engine defaults used whenever a policy does not say otherwise."""

    buy_percentage: float = 0.55
    sell_percentage: float = 1.25
    min_profit_margin: float = 0.30
    buy_floor: float = 5.0
    buy_ceiling: float = 500.0
    sell_floor: float = 10.0
    sell_ceiling: float = 999.99
    round_increment: float = 0.25
    media_weight: float = 0.6
    sleeve_weight: float = 0.4
    offer_expiry_days: int = 30
    market_source: str = 'HYBRID'
    market_statistic: str = 'median'
    condition_curve: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CONDITION_CURVE))
    # days listed -> discount fraction
    markdown_schedule: dict[int, float] = field(default_factory=lambda: {30: 0.10, 60: 0.20})


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, '') else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, '') else default


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    project_root: Path

    # Persistence
    database_url: str = 'sqlite:///vinyl_pricing.db'

    # Policy cache and history
    policy_cache_ttl_seconds: float = 300.0
    history_audit_limit: int = 5

    # Market data providers
    discogs_api_url: str = 'https://api.discogs.com'
    discogs_token: str = ''
    discogs_user_agent: str = 'VinylPricing/1.0'
    ebay_api_url: str = 'https://api.ebay.com'
    ebay_client_id: Optional[str] = None
    ebay_client_secret: Optional[str] = None
    provider_timeout_seconds: float = 15.0
    provider_max_retries: int = 3

    defaults: PricingDefaults = field(default_factory=PricingDefaults)

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the environment."""
        root = project_root or get_project_root()
        default_db = f"sqlite:///{root / 'vinyl_pricing.db'}"

        return cls(
            project_root=root,
            database_url=os.getenv('VINYL_DATABASE_URL', default_db),
            policy_cache_ttl_seconds=_env_float('POLICY_CACHE_TTL_SECONDS', 300.0),
            history_audit_limit=_env_int('POLICY_HISTORY_AUDIT_LIMIT', 5),
            discogs_api_url=os.getenv('DISCOGS_API_URL', 'https://api.discogs.com'),
            discogs_token=os.getenv('DISCOGS_TOKEN', ''),
            discogs_user_agent=os.getenv('DISCOGS_USER_AGENT', 'VinylPricing/1.0'),
            ebay_api_url=os.getenv('EBAY_API_URL', 'https://api.ebay.com'),
            ebay_client_id=os.getenv('EBAY_CLIENT_ID'),
            ebay_client_secret=os.getenv('EBAY_CLIENT_SECRET'),
            provider_timeout_seconds=_env_float('MARKET_PROVIDER_TIMEOUT_SECONDS', 15.0),
            provider_max_retries=_env_int('MARKET_PROVIDER_MAX_RETRIES', 3),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
