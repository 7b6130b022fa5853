"""
Bedrock model discovery and the per-region model catalog cache.

Discovery chain for GET /foundation-models:
1. bedrock.{region}          signed as "bedrock"
2. bedrock-runtime.{region}  signed as "bedrock"
3. bedrock.{region}          signed as "bedrock-runtime"  (SigV4 only)
If all three fail the catalog serves the stale entry, or a static list of
known-good models, so callers always get something to choose from. Either
way the region is not queried again until the retry window
(MODEL_CATALOG_RETRY_MINUTES) has passed.

The cache owns its lock; the freshness check and the write of refreshed data
happen under it, so concurrent callers never refresh the same region twice.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from ..config import Settings, get_settings, sanitize_api_key
from ..schemas.base import UseCase
from ..schemas.catalog import CatalogEntry, ModelDescriptor
from .aws_signer import AwsSigV4Signer

logger = logging.getLogger(__name__)

SOURCE_DISCOVERED = "discovered"
SOURCE_STATIC = "static"


class CatalogDiscoveryError(Exception):
    """Every discovery attempt failed."""
    pass


def _static(model_id: str, name: str, vendor: str) -> ModelDescriptor:
    return ModelDescriptor(
        modelId=model_id,
        modelName=name,
        providerName=vendor,
        inputModalities=("TEXT",),
        outputModalities=("TEXT",),
    )


STATIC_TEXT_MODELS: List[ModelDescriptor] = [
    _static("anthropic.claude-3-5-sonnet-20241022-v2:0", "Claude 3.5 Sonnet v2", "Anthropic"),
    _static("anthropic.claude-3-5-sonnet-20240620-v1:0", "Claude 3.5 Sonnet", "Anthropic"),
    _static("anthropic.claude-3-5-haiku-20241022-v1:0", "Claude 3.5 Haiku", "Anthropic"),
    _static("us.anthropic.claude-3-7-sonnet-20250219-v1:0", "Claude 3.7 Sonnet", "Anthropic"),
    _static("anthropic.claude-sonnet-4-20250115-v1:0", "Claude Sonnet 4", "Anthropic"),
    _static("anthropic.claude-opus-4-1-20250805-v1:0", "Claude Opus 4", "Anthropic"),
    _static("meta.llama3-3-70b-instruct-v1:0", "Llama 3.3 70B", "Meta"),
    _static("meta.llama3-2-90b-instruct-v1:0", "Llama 3.2 90B", "Meta"),
    _static("amazon.titan-text-premier-v1:0", "Titan Text Premier", "Amazon"),
]


# ══════════════════════════════════════════════════════════════════════════════
# Discovery
# ══════════════════════════════════════════════════════════════════════════════

class BedrockModelDiscovery:
    """Lists foundation models from the Bedrock control plane."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._clock = clock

    @property
    def uses_api_key(self) -> bool:
        return self.settings.bedrock_uses_api_key

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def attempts(self, region: str) -> List[Tuple[str, str]]:
        """(url, signing service) pairs in the order they are tried."""
        chain = [
            (f"https://bedrock.{region}.amazonaws.com/foundation-models", "bedrock"),
            (f"https://bedrock-runtime.{region}.amazonaws.com/foundation-models", "bedrock"),
        ]
        # A bearer key has no signing name to vary
        if not self.uses_api_key:
            chain.append((f"https://bedrock.{region}.amazonaws.com/foundation-models", "bedrock-runtime"))
        return chain

    def _headers(self, region: str, url: str, service: str) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.uses_api_key:
            headers["Authorization"] = f"Bearer {sanitize_api_key(self.settings.bedrock_api_key)}"
            return headers
        signer = AwsSigV4Signer(
            sanitize_api_key(self.settings.aws_access_key_id),
            sanitize_api_key(self.settings.aws_secret_access_key),
            region,
            clock=self._clock,
        )
        headers.update(signer.sign_headers("GET", url, service=service))
        return headers

    async def list_foundation_models(
        self,
        region: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ModelDescriptor]:
        """All models the region reports. Raises CatalogDiscoveryError when every attempt fails."""
        if not self.settings.bedrock_configured:
            raise CatalogDiscoveryError("AWS Bedrock credentials not configured")

        errors = []
        for url, service in self.attempts(region):
            if cancel_event is not None and cancel_event.is_set():
                raise asyncio.CancelledError()

            host = httpx.URL(url).host
            try:
                response = await self._get_client().get(url, headers=self._headers(region, url, service))
                if response.status_code != 200:
                    raise CatalogDiscoveryError(f"HTTP {response.status_code}: {response.text[:200]}")
                payload = response.json()
                summaries = payload.get("modelSummaries") if isinstance(payload, dict) else None
                if not isinstance(summaries, list):
                    raise CatalogDiscoveryError("response has no modelSummaries list")
                models = [ModelDescriptor.from_summary(s) for s in summaries]
                logger.info(f"Bedrock discovery: {len(models)} models from {host} (signed as '{service}')")
                return models
            except (httpx.HTTPError, CatalogDiscoveryError, ValueError, KeyError, AttributeError, TypeError) as e:
                logger.warning(f"Bedrock discovery via {host} as '{service}' failed: {e}")
                errors.append(f"{host}/{service}: {e}")

        raise CatalogDiscoveryError("; ".join(errors))


# ══════════════════════════════════════════════════════════════════════════════
# Catalog Views
# ══════════════════════════════════════════════════════════════════════════════

def filter_text_models(models: List[ModelDescriptor]) -> List[ModelDescriptor]:
    return [m for m in models if m.is_text_model]


def group_by_vendor(models: List[ModelDescriptor]) -> Dict[str, List[ModelDescriptor]]:
    """Vendor -> models sorted by model name."""
    groups: Dict[str, List[ModelDescriptor]] = {}
    for model in models:
        groups.setdefault(model.provider_name, []).append(model)
    return {vendor: sorted(items, key=lambda m: m.model_name) for vendor, items in groups.items()}


def display_names(models: List[ModelDescriptor]) -> Dict[str, str]:
    return {m.model_id: m.display_name for m in models}


def _first(models: List[ModelDescriptor], *needles: str) -> Optional[ModelDescriptor]:
    for model in models:
        model_id = model.model_id.lower()
        if all(n in model_id for n in needles):
            return model
    return None


def _vendor(models: List[ModelDescriptor], vendor: str) -> List[ModelDescriptor]:
    return [m for m in models if m.provider_name.lower() == vendor.lower()]


def recommend_models(models: List[ModelDescriptor]) -> Dict[UseCase, ModelDescriptor]:
    """Best model per use case, by id-substring heuristics per vendor family."""
    claude = _vendor(models, "Anthropic")
    llama = _vendor(models, "Meta")
    titan = _vendor(models, "Amazon")

    picks = {
        UseCase.HIGHEST_QUALITY: (
            _first(claude, "sonnet", "v2") or _first(claude, "sonnet") or (claude[0] if claude else None)
        ),
        UseCase.FASTEST_RESPONSE: (
            _first(claude, "haiku") or _first(titan, "express") or _first(llama, "8b")
        ),
        UseCase.COST_EFFECTIVE: (
            _first(llama, "11b") or (titan[0] if titan else None) or _first(claude, "haiku")
        ),
        UseCase.MOST_POWERFUL: (
            _first(claude, "opus") or _first(llama, "405b") or _first(llama, "90b")
        ),
    }
    return {use_case: model for use_case, model in picks.items() if model is not None}


def best_model_for_vendor(models: List[ModelDescriptor], vendor: str) -> Optional[ModelDescriptor]:
    candidates = _vendor(models, vendor)
    if not candidates:
        return None

    key = vendor.lower()
    if key == "anthropic":
        return _first(candidates, "sonnet", "v2") or _first(candidates, "sonnet") or candidates[0]
    if key == "meta":
        return _first(candidates, "90b") or _first(candidates, "70b") or candidates[0]
    if key == "amazon":
        return _first(candidates, "premier") or candidates[0]
    return candidates[0]


# ══════════════════════════════════════════════════════════════════════════════
# Cache
# ══════════════════════════════════════════════════════════════════════════════

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelCatalog:
    """Region-keyed cache of Bedrock text models with a TTL and its own lock.

    Discovered entries live for `ttl`. After a failed discovery the served
    entry (stale or static) is kept for `retry_ttl` before discovery is tried
    again. Inject a fake discovery backend and clock in tests.
    """

    def __init__(
        self,
        discovery: BedrockModelDiscovery,
        ttl: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
        retry_ttl: Optional[timedelta] = None,
    ):
        self.discovery = discovery
        if ttl is None:
            ttl = timedelta(hours=discovery.settings.model_catalog_ttl_hours)
        if retry_ttl is None:
            retry_ttl = timedelta(minutes=discovery.settings.model_catalog_retry_minutes)
        self.ttl = ttl
        self.retry_ttl = min(retry_ttl, ttl)
        self._clock = clock or _utcnow
        self._entries: Dict[str, CatalogEntry] = {}
        self._expires_at: Dict[str, datetime] = {}
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def is_fresh(self, region: str) -> bool:
        expires_at = self._expires_at.get(region)
        return expires_at is not None and self._clock() < expires_at

    def peek(self, region: str) -> Optional[CatalogEntry]:
        return self._entries.get(region)

    def invalidate(self, region: Optional[str] = None) -> None:
        if region is None:
            self._entries.clear()
            self._expires_at.clear()
        else:
            self._entries.pop(region, None)
            self._expires_at.pop(region, None)

    async def get_entry(
        self,
        region: str,
        force_refresh: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CatalogEntry:
        """Cached entry if fresh; otherwise refresh, degrading to stale data or the static list."""
        async with self._get_lock():
            entry = self._entries.get(region)
            if entry is not None and not force_refresh and self.is_fresh(region):
                logger.debug(f"Model catalog: cache hit for {region} ({len(entry.models)} models, {entry.source})")
                return entry

            try:
                models = filter_text_models(
                    await self.discovery.list_foundation_models(region, cancel_event)
                )
                if not models:
                    raise CatalogDiscoveryError("no text models returned")
            except CatalogDiscoveryError as e:
                if entry is not None and entry.source == SOURCE_DISCOVERED:
                    logger.warning(f"Model catalog: refresh for {region} failed ({e}), serving stale entry")
                else:
                    logger.warning(f"Model catalog: discovery for {region} failed ({e}), using static model list")
                    entry = CatalogEntry(
                        models=list(STATIC_TEXT_MODELS), refreshed_at=self._clock(), source=SOURCE_STATIC
                    )
                self._store(region, entry, self.retry_ttl)
                return entry

            entry = CatalogEntry(models=models, refreshed_at=self._clock(), source=SOURCE_DISCOVERED)
            self._store(region, entry, self.ttl)
            logger.info(f"Model catalog: cached {len(models)} text models for {region}")
            return entry

    def _store(self, region: str, entry: CatalogEntry, lifetime: timedelta) -> None:
        self._entries[region] = entry
        self._expires_at[region] = self._clock() + lifetime

    async def get_text_models(
        self,
        region: str,
        force_refresh: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ModelDescriptor]:
        entry = await self.get_entry(region, force_refresh, cancel_event)
        return list(entry.models)

    async def models_by_vendor(self, region: str) -> Dict[str, List[ModelDescriptor]]:
        return group_by_vendor(await self.get_text_models(region))

    async def recommended_models(self, region: str) -> Dict[UseCase, ModelDescriptor]:
        return recommend_models(await self.get_text_models(region))

    async def best_model_for_vendor(self, region: str, vendor: str) -> Optional[ModelDescriptor]:
        return best_model_for_vendor(await self.get_text_models(region), vendor)

    async def is_model_available(self, region: str, model_id: str) -> bool:
        models = await self.get_text_models(region)
        return any(m.model_id.lower() == model_id.lower() for m in models)

    async def display_names(self, region: str) -> Dict[str, str]:
        return display_names(await self.get_text_models(region))
