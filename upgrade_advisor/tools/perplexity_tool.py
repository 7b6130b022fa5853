"""
Research provider: Perplexity chat completions.

POST {base}/chat/completions with a Bearer key, a system turn and the
18-point research prompt; text read from choices[0].message.content.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings, get_settings, sanitize_api_key
from ..schemas.analysis import AnalysisSubject, Err, ProviderRequest, ProviderResult
from ..schemas.base import ErrorKind, ProviderName
from .prompts import RESEARCH_SYSTEM_PROMPT, research_prompt
from .transport import ResilientTransport, SleepFunc

logger = logging.getLogger(__name__)


class PerplexityTool:
    """Fact gathering via Perplexity (sonar)."""

    provider = ProviderName.PERPLEXITY.value

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = ResilientTransport(self.provider, self.settings, client=client, sleep=sleep)
        if self.configured:
            logger.info(f"Perplexity configured: {self.settings.perplexity_model}")

    @property
    def configured(self) -> bool:
        return self.settings.perplexity_configured

    def build_request(self, subject: AnalysisSubject) -> ProviderRequest:
        return ProviderRequest(
            method="POST",
            url=f"{self.settings.perplexity_base_url.rstrip('/')}/chat/completions",
            body={
                "model": self.settings.perplexity_model,
                "messages": [
                    {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
                    {"role": "user", "content": research_prompt(subject)},
                ],
                "max_tokens": self.settings.perplexity_max_tokens,
                "temperature": self.settings.perplexity_temperature,
            },
            headers={"Authorization": f"Bearer {sanitize_api_key(self.settings.perplexity_api_key)}"},
        )

    @staticmethod
    def parse_response(data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"]

    async def research(self, subject: AnalysisSubject, cancel_event: Optional[asyncio.Event] = None) -> ProviderResult:
        if not self.configured:
            logger.info("Perplexity: API key not configured, skipping")
            return Err(ErrorKind.NOT_CONFIGURED, self.provider, detail="PERPLEXITY_API_KEY is not set")
        logger.info(f"Perplexity: researching {subject.package_id}")
        return await self.transport.execute(
            self.build_request(subject), self.parse_response, self.provider, cancel_event
        )

    async def aclose(self) -> None:
        await self.transport.aclose()
