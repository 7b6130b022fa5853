"""
Configuration management for the Upgrade Advisor.
Supports Anthropic Claude (direct), Perplexity (research) and AWS Bedrock
(cloud gateway) as recommendation providers.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from .schemas.base import ProviderPreference


def sanitize_api_key(value: str | None) -> str:
    """Strip surrounding whitespace and embedded CR/LF from a pasted credential."""
    if not value:
        return ""
    return value.strip().replace("\n", "").replace("\r", "")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # ── Direct chat provider (Anthropic Messages API) ──
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    anthropic_base_url: str = Field(default="https://api.anthropic.com", alias="ANTHROPIC_BASE_URL")
    anthropic_version: str = Field(default="2023-06-01", alias="ANTHROPIC_VERSION")
    anthropic_max_tokens: int = Field(default=2500, alias="ANTHROPIC_MAX_TOKENS")

    # ── Research provider (Perplexity chat completions) ──
    perplexity_api_key: str = Field(default="", alias="PERPLEXITY_API_KEY")
    perplexity_model: str = Field(default="sonar", alias="PERPLEXITY_MODEL")
    perplexity_base_url: str = Field(default="https://api.perplexity.ai", alias="PERPLEXITY_BASE_URL")
    perplexity_max_tokens: int = Field(default=2000, alias="PERPLEXITY_MAX_TOKENS")
    perplexity_temperature: float = Field(default=0.1, alias="PERPLEXITY_TEMPERATURE")

    # ── Cloud gateway (AWS Bedrock) ──
    # BEDROCK_API_KEY (bearer) is tried first; SigV4 with the access key pair otherwise.
    aws_access_key_id: str = Field(default="", alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field(default="", alias="AWS_SECRET_ACCESS_KEY")
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")
    bedrock_api_key: str = Field(default="", alias="BEDROCK_API_KEY")
    bedrock_model: str = Field(default="anthropic.claude-3-5-sonnet-20241022-v2:0", alias="BEDROCK_MODEL")
    bedrock_max_tokens: int = Field(default=4000, alias="BEDROCK_MAX_TOKENS")
    # Check BEDROCK_MODEL against the discovered catalog before invoking
    bedrock_validate_model: bool = Field(default=True, alias="BEDROCK_VALIDATE_MODEL")

    # ── Provider selection ──
    # "Claude" | "Perplexity" | "Bedrock"
    ai_provider: str = Field(default="Claude", alias="AI_PROVIDER")
    # With AI_PROVIDER=Claude: Perplexity researches, Claude formats the report
    use_perplexity: bool = Field(default=False, alias="USE_PERPLEXITY")

    # ── Resilient transport ──
    # 4 attempts = 1 initial + 3 retries, backoff 1s → 2s → 4s
    llm_max_attempts: int = Field(default=4, alias="LLM_MAX_ATTEMPTS")
    llm_retry_base_delay: float = Field(default=1.0, alias="LLM_RETRY_BASE_DELAY")
    llm_max_in_flight: int = Field(default=1, alias="LLM_MAX_IN_FLIGHT")
    http_timeout_seconds: float = Field(default=120.0, alias="HTTP_TIMEOUT_SECONDS")

    # ── Model catalog ──
    model_catalog_ttl_hours: float = Field(default=24.0, alias="MODEL_CATALOG_TTL_HOURS")
    # After a failed discovery, serve the stale or static list this long before retrying
    model_catalog_retry_minutes: float = Field(default=30.0, alias="MODEL_CATALOG_RETRY_MINUTES")

    # ── Batch analysis ──
    max_concurrent_analyses: int = Field(default=4, alias="MAX_CONCURRENT_ANALYSES")

    @property
    def anthropic_configured(self) -> bool:
        return bool(sanitize_api_key(self.anthropic_api_key))

    @property
    def perplexity_configured(self) -> bool:
        return bool(sanitize_api_key(self.perplexity_api_key))

    @property
    def bedrock_uses_api_key(self) -> bool:
        return bool(sanitize_api_key(self.bedrock_api_key))

    @property
    def bedrock_configured(self) -> bool:
        if self.bedrock_uses_api_key:
            return True
        return bool(sanitize_api_key(self.aws_access_key_id) and sanitize_api_key(self.aws_secret_access_key))

    def get_provider_preference(self) -> ProviderPreference:
        """Map AI_PROVIDER / USE_PERPLEXITY onto a dispatcher pipeline."""
        provider = self.ai_provider.strip().lower()
        if provider == "bedrock":
            return ProviderPreference.BEDROCK
        if provider == "perplexity":
            return ProviderPreference.PERPLEXITY
        if self.use_perplexity:
            return ProviderPreference.RESEARCH_THEN_FORMAT
        return ProviderPreference.CLAUDE


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
