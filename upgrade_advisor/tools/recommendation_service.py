"""
Upgrade recommendation service with provider fallback.

Pipelines by ProviderPreference (each provider is tried at most once per call;
retries happen inside the transport, not here):
- BEDROCK:              Bedrock → Claude
- CLAUDE:               Claude → Bedrock
- PERPLEXITY:           Perplexity → Bedrock → Claude
- RESEARCH_THEN_FORMAT: Perplexity research, Claude formats it.
                        Formatting fails → Bedrock, then raw research with a note.
                        Research fails → Bedrock → Claude.

recommend() always returns text. Typed failures are rendered to markdown here
and nowhere else.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional

import httpx

from ..config import Settings, get_settings
from ..schemas.analysis import AnalysisSubject, Err, Ok, ProviderResult
from ..schemas.base import ErrorKind, ProviderPreference
from .anthropic_tool import AnthropicTool
from .bedrock_tool import BedrockTool
from .error_messages import render_exhausted, render_not_configured
from .perplexity_tool import PerplexityTool
from .transport import SleepFunc

logger = logging.getLogger(__name__)

RESEARCH_ONLY_NOTE = "**Research Data (Perplexity only):**\n\n"

Step = Callable[[AnalysisSubject, Optional[asyncio.Event]], Awaitable[ProviderResult]]


class RecommendationService:
    """Routes one package analysis across Claude, Perplexity and Bedrock."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None,
        anthropic: Optional[AnthropicTool] = None,
        perplexity: Optional[PerplexityTool] = None,
        bedrock: Optional[BedrockTool] = None,
    ):
        self.settings = settings or get_settings()
        self.anthropic = anthropic or AnthropicTool(self.settings, client=client, sleep=sleep)
        self.perplexity = perplexity or PerplexityTool(self.settings, client=client, sleep=sleep)
        self.bedrock = bedrock or BedrockTool(self.settings, client=client, sleep=sleep)

    # ──────────────────────────────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────────────────────────────

    async def recommend(
        self,
        subject: AnalysisSubject,
        preference: Optional[ProviderPreference] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """Recommendation text for one package. Never raises except on cancellation."""
        try:
            result = await self.dispatch(subject, preference, cancel_event)
            if isinstance(result, Ok):
                return result.text
            return result.detail
        except Exception as e:
            logger.exception(f"Recommendation for {subject.package_id} failed unexpectedly: {e}")
            return f"AI analysis failed: {e}"

    async def recommend_many(
        self,
        subjects: Iterable[AnalysisSubject],
        preference: Optional[ProviderPreference] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[str]:
        """Analyze many packages concurrently, at most MAX_CONCURRENT_ANALYSES at a time.

        Results are in the same order as `subjects`, one per subject, so repeated
        or empty package ids never overwrite each other.
        """
        subjects = list(subjects)
        limit = asyncio.Semaphore(max(1, self.settings.max_concurrent_analyses))

        async def _one(subject: AnalysisSubject) -> str:
            async with limit:
                return await self.recommend(subject, preference, cancel_event)

        logger.info(f"Analyzing {len(subjects)} packages (max {self.settings.max_concurrent_analyses} concurrent)")
        return list(await asyncio.gather(*(_one(s) for s in subjects)))

    async def dispatch(
        self,
        subject: AnalysisSubject,
        preference: Optional[ProviderPreference] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProviderResult:
        """Run the pipeline for `preference`. Returns Ok, or Err(ALL_PROVIDERS_EXHAUSTED) with rendered text."""
        preference = preference or self.settings.get_provider_preference()
        logger.info(f"Recommending {subject.package_id} via {preference.value} pipeline")
        failures: List[Err] = []

        if preference == ProviderPreference.RESEARCH_THEN_FORMAT:
            result = await self._research_then_format(subject, failures, cancel_event)
        else:
            result = await self._run_chain(self._chain_for(preference), subject, failures, cancel_event)

        if result is not None:
            return result
        return self._give_up(subject, failures)

    async def aclose(self) -> None:
        await self.anthropic.aclose()
        await self.perplexity.aclose()
        await self.bedrock.aclose()

    # ──────────────────────────────────────────────────────────────────────
    # Pipelines
    # ──────────────────────────────────────────────────────────────────────

    def _chain_for(self, preference: ProviderPreference) -> List[Step]:
        if preference == ProviderPreference.BEDROCK:
            return [self.bedrock.analyze, self.anthropic.analyze]
        if preference == ProviderPreference.PERPLEXITY:
            return [self.perplexity.research, self.bedrock.analyze, self.anthropic.analyze]
        return [self.anthropic.analyze, self.bedrock.analyze]

    async def _run_chain(
        self,
        steps: List[Step],
        subject: AnalysisSubject,
        failures: List[Err],
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[Ok]:
        for step in steps:
            result = await step(subject, cancel_event)
            if isinstance(result, Ok):
                logger.info(f"Success via {result.provider} for {subject.package_id}")
                return result
            failures.append(result)
            if result.kind != ErrorKind.NOT_CONFIGURED:
                logger.warning(f"{result.provider} failed for {subject.package_id} ({result.kind.value}), falling back")
        return None

    async def _research_then_format(
        self,
        subject: AnalysisSubject,
        failures: List[Err],
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[Ok]:
        research = await self.perplexity.research(subject, cancel_event)
        if isinstance(research, Err):
            failures.append(research)
            logger.warning(f"Perplexity research failed for {subject.package_id} ({research.kind.value}), falling back")
            return await self._run_chain(
                [self.bedrock.analyze, self.anthropic.analyze], subject, failures, cancel_event
            )

        report = await self.anthropic.format_report(subject, research.text, cancel_event)
        if isinstance(report, Ok):
            logger.info(f"Success via Perplexity + Claude for {subject.package_id}")
            return report

        logger.warning(f"Claude formatting failed for {subject.package_id} ({report.kind.value}), trying Bedrock")
        analysis = await self.bedrock.analyze(subject, cancel_event)
        if isinstance(analysis, Ok):
            logger.info(f"Success via {analysis.provider} for {subject.package_id}")
            return analysis

        logger.warning(f"No formatted report for {subject.package_id}, returning raw research")
        return Ok(text=f"{RESEARCH_ONLY_NOTE}{research.text}", provider=research.provider)

    def _give_up(self, subject: AnalysisSubject, failures: List[Err]) -> Err:
        if all(f.kind == ErrorKind.NOT_CONFIGURED for f in failures):
            logger.warning(f"No AI provider configured, nothing to analyze {subject.package_id} with")
            text = render_not_configured(failures)
        else:
            logger.warning(f"All providers failed for {subject.package_id}")
            text = render_exhausted(failures)
        return Err(
            ErrorKind.ALL_PROVIDERS_EXHAUSTED,
            provider=", ".join(f.provider for f in failures),
            detail=text,
            attempts=sum(f.attempts for f in failures),
        )
