"""
Provider configuration checker - checks configuration, not connectivity.

Reports which AI providers have credentials and which pipeline the current
settings select. No network calls.
"""

import logging
from typing import Dict, List, Optional

from ..config import Settings, get_settings
from ..schemas.base import ProviderName, ProviderPreference

logger = logging.getLogger(__name__)


class ProviderConfigChecker:
    """Quick provider configuration checker (no network calls)."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def get_all_available(self) -> Dict[str, bool]:
        """Which providers have credentials (not whether they work)."""
        return {
            ProviderName.CLAUDE.value: self.settings.anthropic_configured,
            ProviderName.PERPLEXITY.value: self.settings.perplexity_configured,
            ProviderName.BEDROCK.value: self.settings.bedrock_configured,
        }

    def get_critical_issues(self) -> List[str]:
        """Problems that will make every or some recommendations fail."""
        issues = []
        available = self.get_all_available()
        preference = self.settings.get_provider_preference()

        if not any(available.values()):
            issues.append("❌ No AI providers configured (need ANTHROPIC_API_KEY, PERPLEXITY_API_KEY or AWS Bedrock credentials)")
            return issues

        if preference == ProviderPreference.BEDROCK and not available[ProviderName.BEDROCK.value]:
            issues.append("⚠️ AI_PROVIDER=Bedrock but no Bedrock credentials (will fall back to Claude)")
        if preference in (ProviderPreference.PERPLEXITY, ProviderPreference.RESEARCH_THEN_FORMAT) \
                and not available[ProviderName.PERPLEXITY.value]:
            issues.append("⚠️ Perplexity research selected but PERPLEXITY_API_KEY is not set")
        if preference == ProviderPreference.RESEARCH_THEN_FORMAT and not available[ProviderName.CLAUDE.value]:
            issues.append("⚠️ USE_PERPLEXITY is on but ANTHROPIC_API_KEY is not set (reports will be unformatted research)")
        if preference == ProviderPreference.CLAUDE and not available[ProviderName.CLAUDE.value]:
            issues.append("⚠️ AI_PROVIDER=Claude but ANTHROPIC_API_KEY is not set")

        # Partial SigV4 credentials are silently treated as "not configured"
        if not self.settings.bedrock_uses_api_key and (
            bool(self.settings.aws_access_key_id) != bool(self.settings.aws_secret_access_key)
        ):
            issues.append("⚠️ Only one of AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY is set")

        return issues

    def get_status_summary(self) -> str:
        """Get a human-readable status summary."""
        available = self.get_all_available()
        issues = self.get_critical_issues()
        preference = self.settings.get_provider_preference()

        lines = ["📊 AI Provider Configuration Status:", ""]
        lines.append(f"  Pipeline: {preference.value}")
        configured_count = sum(1 for v in available.values() if v)
        lines.append(f"  Providers: {configured_count}/{len(available)} configured")
        for name, ok in available.items():
            status = "✅" if ok else "❌"
            detail = ""
            if name == ProviderName.CLAUDE.value and ok:
                detail = f" ({self.settings.anthropic_model})"
            elif name == ProviderName.PERPLEXITY.value and ok:
                detail = f" ({self.settings.perplexity_model})"
            elif name == ProviderName.BEDROCK.value and ok:
                auth = "API key" if self.settings.bedrock_uses_api_key else "SigV4"
                detail = f" ({self.settings.bedrock_model}, {self.settings.aws_region}, {auth})"
            lines.append(f"    {status} {name}{detail}")

        lines.append("")
        if issues:
            lines.append("⚠️ Configuration Issues:")
            for issue in issues:
                lines.append(f"  {issue}")
        else:
            lines.append("✅ Selected pipeline is fully configured!")

        return "\n".join(lines)
