"""
Central feature flags. One file controls every external dependency.

Set via environment variables (prefix FF_) or .env file.
When a flag is OFF, the system uses a local/mock fallback. Nothing crashes.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Auth ─────────────────────────────────────────────────────────
    use_auth0: bool = Field(default=True, alias="FF_USE_AUTH0")
    # ON  → JWT validated via Auth0 JWKS. Needs AUTH0_DOMAIN, AUTH0_AUDIENCE.
    # OFF → Dev user injected (team_id="dev-team"). No token needed.

    # ── Storage ──────────────────────────────────────────────────────
    use_s3: bool = Field(default=True, alias="FF_USE_S3")
    # ON  → Advanced-mode copies go to S3. Needs AWS creds + bucket names.
    # OFF → Copies land in ./local_storage/advanced/{team_id}/.

    # ── Progress store / Realtime ────────────────────────────────────
    use_redis: bool = Field(default=True, alias="FF_USE_REDIS")
    # ON  → Progress read from Redis, realtime events published. Needs REDIS_URL.
    # OFF → Progress always reports "not started". Events silently skipped.

    # ── Conversion queue ─────────────────────────────────────────────
    use_trigger: bool = Field(default=True, alias="FF_USE_TRIGGER")
    # ON  → Conversion jobs submitted to trigger.dev. Needs TRIGGER_SECRET_KEY.
    # OFF → Submissions are logged and skipped. Documents stay unconverted.

    # ── Link blocklist ───────────────────────────────────────────────
    use_edge_config: bool = Field(default=True, alias="FF_USE_EDGE_CONFIG")
    # ON  → Keyword blocklist fetched from Edge Config. Needs EDGE_CONFIG_ID/TOKEN.
    # OFF → Blocklist reported unavailable, every link passes.

    # ── Webhooks ─────────────────────────────────────────────────────
    use_webhooks: bool = Field(default=True, alias="FF_USE_WEBHOOKS")
    # ON  → document.created / link.created delivered to team endpoints.
    # OFF → Webhook delivery skipped.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
