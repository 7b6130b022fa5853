"""
Direct-chat provider: Anthropic Messages API.

POST {base}/v1/messages with x-api-key + anthropic-version headers,
one user turn, text read from content[0].text.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings, get_settings, sanitize_api_key
from ..schemas.analysis import AnalysisSubject, Err, ProviderRequest, ProviderResult
from ..schemas.base import ErrorKind, ProviderName
from .prompts import formatting_prompt, research_prompt
from .transport import ResilientTransport, SleepFunc

logger = logging.getLogger(__name__)


class AnthropicTool:
    """Claude via the Anthropic API. Used alone or to format Perplexity research."""

    provider = ProviderName.CLAUDE.value

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = ResilientTransport(self.provider, self.settings, client=client, sleep=sleep)
        if self.configured:
            logger.info(f"Claude configured: {self.settings.anthropic_model}")

    @property
    def configured(self) -> bool:
        return self.settings.anthropic_configured

    def build_request(self, prompt: str) -> ProviderRequest:
        return ProviderRequest(
            method="POST",
            url=f"{self.settings.anthropic_base_url.rstrip('/')}/v1/messages",
            body={
                "model": self.settings.anthropic_model,
                "max_tokens": self.settings.anthropic_max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": sanitize_api_key(self.settings.anthropic_api_key),
                "anthropic-version": self.settings.anthropic_version,
            },
        )

    @staticmethod
    def parse_response(data: Dict[str, Any]) -> str:
        return data["content"][0]["text"]

    async def complete(self, prompt: str, cancel_event: Optional[asyncio.Event] = None) -> ProviderResult:
        if not self.configured:
            logger.info("Claude: API key not configured, skipping")
            return Err(ErrorKind.NOT_CONFIGURED, self.provider, detail="ANTHROPIC_API_KEY is not set")
        return await self.transport.execute(
            self.build_request(prompt), self.parse_response, self.provider, cancel_event
        )

    async def analyze(self, subject: AnalysisSubject, cancel_event: Optional[asyncio.Event] = None) -> ProviderResult:
        """Direct analysis with the research prompt."""
        logger.info(f"Claude: analyzing {subject.package_id} ({subject.current_version} -> {subject.available_version})")
        return await self.complete(research_prompt(subject), cancel_event)

    async def format_report(
        self,
        subject: AnalysisSubject,
        research_text: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProviderResult:
        """Turn raw research into the structured upgrade report."""
        logger.info(f"Claude: formatting research for {subject.package_id} ({len(research_text)} chars)")
        return await self.complete(formatting_prompt(subject, research_text), cancel_event)

    async def aclose(self) -> None:
        await self.transport.aclose()
