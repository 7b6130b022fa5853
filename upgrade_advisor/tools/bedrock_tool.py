"""
Cloud-gateway provider: AWS Bedrock InvokeModel.

POST https://bedrock-runtime.{region}.amazonaws.com/model/{modelId}/invoke
- Auth: BEDROCK_API_KEY as a Bearer token when set, SigV4 otherwise.
- Body and response shape come from the model family (see model_families).
- Before invoking, the configured model is checked against the discovered
  catalog and swapped for the best model of the same vendor if it is gone.
- A SigV4 403 is retried once with the alternate signing name.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from ..config import Settings, get_settings, sanitize_api_key
from ..schemas.analysis import AnalysisSubject, Err, ProviderRequest, ProviderResult
from ..schemas.base import ErrorKind, ProviderName
from .aws_signer import AwsSigV4Signer, alternate_service_name
from .model_catalog import SOURCE_DISCOVERED, BedrockModelDiscovery, ModelCatalog, best_model_for_vendor
from .model_families import GEO_PREFIXES, family_for
from .prompts import bedrock_analysis_prompt
from .transport import ResilientTransport, SleepFunc

logger = logging.getLogger(__name__)

DEFAULT_SIGNING_SERVICE = "bedrock"


class BedrockTool:
    """Upgrade analysis through a Bedrock-hosted model."""

    provider = ProviderName.BEDROCK.value

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None,
        catalog: Optional[ModelCatalog] = None,
        signer: Optional[AwsSigV4Signer] = None,
    ):
        self.settings = settings or get_settings()
        self.region = self.settings.aws_region.strip() or "us-east-1"
        self.transport = ResilientTransport(self.provider, self.settings, client=client, sleep=sleep)
        self.catalog = catalog or ModelCatalog(BedrockModelDiscovery(self.settings, client=client))
        self.signer = signer or AwsSigV4Signer(
            sanitize_api_key(self.settings.aws_access_key_id),
            sanitize_api_key(self.settings.aws_secret_access_key),
            self.region,
        )
        if self.configured:
            auth = "API key" if self.uses_api_key else "AWS Signature"
            logger.info(f"Bedrock configured: {self.settings.bedrock_model} in {self.region} ({auth})")

    @property
    def configured(self) -> bool:
        return self.settings.bedrock_configured

    @property
    def uses_api_key(self) -> bool:
        return self.settings.bedrock_uses_api_key

    def invoke_url(self, model_id: str) -> str:
        return f"https://bedrock-runtime.{self.region}.amazonaws.com/model/{quote(model_id, safe='')}/invoke"

    def build_request(self, prompt: str, model_id: str, service: str = DEFAULT_SIGNING_SERVICE) -> ProviderRequest:
        family = family_for(model_id)
        request = ProviderRequest(
            method="POST",
            url=self.invoke_url(model_id),
            body=family.build_body(prompt, self.settings.bedrock_max_tokens),
            headers={"Accept": "application/json"},
        )
        if self.uses_api_key:
            request.headers["Authorization"] = f"Bearer {sanitize_api_key(self.settings.bedrock_api_key)}"
        else:
            request.auth = self.signer.auth_hook(service)
        return request

    async def resolve_model(self, cancel_event: Optional[asyncio.Event] = None) -> str:
        """Configured model, or the vendor's best discovered model if the region no longer lists it."""
        model_id = self.settings.bedrock_model.strip()
        if not self.settings.bedrock_validate_model:
            return model_id
        # Cross-region inference profiles are not listed by /foundation-models
        if model_id.startswith(GEO_PREFIXES):
            return model_id

        try:
            entry = await self.catalog.get_entry(self.region, cancel_event=cancel_event)
        except Exception as e:
            logger.warning(f"Bedrock: model catalog unavailable ({type(e).__name__}: {e}), using {model_id}")
            return model_id
        if entry.source != SOURCE_DISCOVERED:
            return model_id
        if any(m.model_id.lower() == model_id.lower() for m in entry.models):
            return model_id

        vendor = family_for(model_id).vendor
        replacement = best_model_for_vendor(entry.models, vendor)
        if replacement is None:
            logger.warning(f"Bedrock: {model_id} not listed in {self.region} and no {vendor} model found, trying anyway")
            return model_id

        logger.warning(f"Bedrock: {model_id} not available in {self.region}, using {replacement.model_id}")
        return replacement.model_id

    async def complete(
        self,
        prompt: str,
        model_id: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProviderResult:
        family = family_for(model_id)
        result = await self.transport.execute(
            self.build_request(prompt, model_id), family.extract_text, self.provider, cancel_event
        )

        if (
            isinstance(result, Err)
            and result.status_code == 403
            and not self.uses_api_key
        ):
            service = alternate_service_name(DEFAULT_SIGNING_SERVICE)
            logger.warning(f"Bedrock: 403 signed as '{DEFAULT_SIGNING_SERVICE}', re-signing as '{service}'")
            result = await self.transport.execute(
                self.build_request(prompt, model_id, service), family.extract_text, self.provider, cancel_event
            )
        return result

    async def analyze(self, subject: AnalysisSubject, cancel_event: Optional[asyncio.Event] = None) -> ProviderResult:
        if not self.configured:
            logger.info("Bedrock: credentials not configured, skipping")
            return Err(ErrorKind.NOT_CONFIGURED, self.provider, detail="AWS Bedrock credentials not configured")

        model_id = await self.resolve_model(cancel_event)
        logger.info(f"Bedrock: analyzing {subject.package_id} with {model_id}")
        return await self.complete(bedrock_analysis_prompt(subject), model_id, cancel_event)

    async def aclose(self) -> None:
        await self.transport.aclose()
        await self.catalog.discovery.aclose()
