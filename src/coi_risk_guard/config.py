from pydantic_settings import BaseSettings

from .models import MatchPolicy
from .yaml_config import get_defaults

_defaults = get_defaults()


class Settings(BaseSettings):
    model_config = {"env_prefix": "COI_GUARD_"}

    # Feed sources, tried in order: remote -> cached snapshot -> bundled file
    feed_url: str = _defaults.get(
        "feed_url",
        "https://www.coi.gov.cz/userdata/files/dokumenty-ke-stazeni/open-data/rizikove-seznam.csv",
    )
    feed_encoding: str = _defaults.get("feed_encoding", "windows-1250")
    bundled_feed_path: str = _defaults.get("bundled_feed_path", "")
    user_agent: str = _defaults.get("user_agent", "coi-risk-guard/0.1")

    # Timeouts and rate limiting (seconds)
    fetch_timeout_seconds: float = _defaults.get("fetch_timeout_seconds", 15.0)
    source_timeout_seconds: float = _defaults.get("source_timeout_seconds", 20.0)
    min_fetch_interval_seconds: float = _defaults.get("min_fetch_interval_seconds", 60.0)

    # Durable store for the cached snapshot
    storage_path: str = _defaults.get("storage_path", "~/.cache/coi-risk-guard/storage.json")

    # Matching
    suffix_match_policy: MatchPolicy = _defaults.get("suffix_match_policy", MatchPolicy.FIRST_INSERTED)

    # Presentation
    blocked_page_url: str = _defaults.get("blocked_page_url", "/pages/blocked.html")

    # Only messages from this extension id are handled
    extension_id: str = _defaults.get("extension_id", "coi-risk-guard")


settings = Settings()
