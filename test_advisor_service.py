"""
Recommendation service tests: pipeline routing, fallback order, rendering of
exhausted/unconfigured outcomes, cancellation and batch concurrency.
"""

import asyncio

import httpx
import pytest

from upgrade_advisor.schemas import AnalysisSubject, Err, ErrorKind, Ok, ProviderPreference
from upgrade_advisor.tools.error_messages import NO_RESULT_MESSAGE
from upgrade_advisor.tools.recommendation_service import RESEARCH_ONLY_NOTE, RecommendationService

CLAUDE_HOST = "api.anthropic.com"
PERPLEXITY_HOST = "api.perplexity.ai"
BEDROCK_HOST = "bedrock-runtime.us-east-1.amazonaws.com"

ALL_KEYS = {
    "ANTHROPIC_API_KEY": "sk-ant-test",
    "PERPLEXITY_API_KEY": "pplx-test",
    "BEDROCK_API_KEY": "br-test",
    "BEDROCK_VALIDATE_MODEL": False,
}


def claude_ok(text):
    return httpx.Response(200, json={"content": [{"text": text}]})


def perplexity_ok(text):
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


class Upstreams:
    """Per-host canned responses; records which hosts were called, in order."""

    def __init__(self, **by_host):
        self.by_host = by_host
        self.hosts = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.hosts.append(request.url.host)
        response = self.by_host.get(request.url.host)
        if response is None:
            raise AssertionError(f"unexpected request to {request.url}")
        if callable(response):
            return response(request)
        return response


@pytest.fixture
def make_service(make_settings, mock_client, sleeps):
    def _make(upstreams: Upstreams, **env) -> RecommendationService:
        settings = make_settings(**env)
        return RecommendationService(settings, client=mock_client(upstreams), sleep=sleeps)
    return _make


# ─── End-to-end scenarios ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_direct_chat_only(make_service, subject):
    upstreams = Upstreams(**{CLAUDE_HOST: claude_ok("Upgrade is safe.")})
    service = make_service(upstreams, ANTHROPIC_API_KEY="sk-ant-test")

    assert await service.recommend(subject) == "Upgrade is safe."
    assert upstreams.hosts == [CLAUDE_HOST]


@pytest.mark.asyncio
async def test_research_kept_when_formatting_fails(make_service, subject):
    upstreams = Upstreams(**{
        PERPLEXITY_HOST: perplexity_ok("Git 2.45.1 fixes two CVEs."),
        CLAUDE_HOST: httpx.Response(401, text="invalid x-api-key"),
    })
    service = make_service(
        upstreams, ANTHROPIC_API_KEY="sk-ant-test", PERPLEXITY_API_KEY="pplx-test", USE_PERPLEXITY=True
    )

    text = await service.recommend(subject)

    assert text == f"{RESEARCH_ONLY_NOTE}Git 2.45.1 fixes two CVEs."
    assert upstreams.hosts == [PERPLEXITY_HOST, CLAUDE_HOST]


@pytest.mark.asyncio
async def test_gateway_overloaded_after_four_attempts(make_service, sleeps, subject):
    upstreams = Upstreams(**{BEDROCK_HOST: httpx.Response(529, text="overloaded")})
    service = make_service(upstreams, AI_PROVIDER="Bedrock", BEDROCK_API_KEY="br-test", BEDROCK_VALIDATE_MODEL=False)

    text = await service.recommend(subject)

    assert "Bedrock Service Temporarily Overloaded" in text
    assert upstreams.hosts == [BEDROCK_HOST] * 4
    assert sleeps.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_nothing_configured_makes_no_calls(make_service, subject):
    upstreams = Upstreams()
    service = make_service(upstreams)

    text = await service.recommend(subject)

    assert text.startswith(NO_RESULT_MESSAGE)
    assert "ANTHROPIC_API_KEY" in text
    assert upstreams.hosts == []


# ─── Research + format pipeline ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_research_then_format_success(make_service, subject):
    def format_handler(request):
        assert b"Research Data" in request.content
        return claude_ok("# Formatted report")

    upstreams = Upstreams(**{
        PERPLEXITY_HOST: perplexity_ok("facts"),
        CLAUDE_HOST: format_handler,
    })
    service = make_service(upstreams, ANTHROPIC_API_KEY="k", PERPLEXITY_API_KEY="p", USE_PERPLEXITY=True)

    result = await service.dispatch(subject)

    assert result == Ok(text="# Formatted report", provider="Claude")


@pytest.mark.asyncio
async def test_formatting_failure_tries_gateway_before_raw_research(make_service, subject):
    upstreams = Upstreams(**{
        PERPLEXITY_HOST: perplexity_ok("facts"),
        CLAUDE_HOST: httpx.Response(401, text="invalid x-api-key"),
        BEDROCK_HOST: claude_ok("from bedrock"),
    })
    service = make_service(upstreams, USE_PERPLEXITY=True, **ALL_KEYS)

    assert await service.recommend(subject) == "from bedrock"
    assert upstreams.hosts == [PERPLEXITY_HOST, CLAUDE_HOST, BEDROCK_HOST]


@pytest.mark.asyncio
async def test_raw_research_when_gateway_also_fails(make_service, subject):
    upstreams = Upstreams(**{
        PERPLEXITY_HOST: perplexity_ok("facts"),
        CLAUDE_HOST: httpx.Response(500, text="internal"),
        BEDROCK_HOST: httpx.Response(400, text="bad model"),
    })
    service = make_service(upstreams, USE_PERPLEXITY=True, **ALL_KEYS)

    assert await service.recommend(subject) == f"{RESEARCH_ONLY_NOTE}facts"


@pytest.mark.asyncio
async def test_failed_research_falls_back_to_gateway(make_service, subject):
    upstreams = Upstreams(**{
        PERPLEXITY_HOST: httpx.Response(500, text="down"),
        BEDROCK_HOST: claude_ok("from bedrock"),
    })
    service = make_service(upstreams, USE_PERPLEXITY=True, **ALL_KEYS)

    assert await service.recommend(subject) == "from bedrock"
    assert upstreams.hosts == [PERPLEXITY_HOST, BEDROCK_HOST]


# ─── Fallback order ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_gateway_failure_falls_back_to_claude_never_research(make_service, subject):
    upstreams = Upstreams(**{
        BEDROCK_HOST: httpx.Response(400, text="bad model"),
        CLAUDE_HOST: claude_ok("from claude"),
    })
    service = make_service(upstreams, AI_PROVIDER="Bedrock", **ALL_KEYS)

    assert await service.recommend(subject) == "from claude"
    assert upstreams.hosts == [BEDROCK_HOST, CLAUDE_HOST]


@pytest.mark.asyncio
async def test_malformed_model_catalog_still_falls_back_to_claude(make_service, subject):
    def gateway(request):
        if request.url.path == "/foundation-models":
            return httpx.Response(200, json={"modelSummaries": None})
        return httpx.Response(500, text="model error")

    upstreams = Upstreams(**{
        "bedrock.us-east-1.amazonaws.com": gateway,
        BEDROCK_HOST: gateway,
        CLAUDE_HOST: claude_ok("Claude says safe."),
    })
    service = make_service(upstreams, AI_PROVIDER="Bedrock", BEDROCK_API_KEY="br-test", ANTHROPIC_API_KEY="k")

    assert await service.recommend(subject) == "Claude says safe."
    assert upstreams.hosts[-1] == CLAUDE_HOST
    assert BEDROCK_HOST in upstreams.hosts


@pytest.mark.asyncio
async def test_claude_failure_falls_back_to_gateway(make_service, subject):
    upstreams = Upstreams(**{
        CLAUDE_HOST: httpx.Response(500, text="internal"),
        BEDROCK_HOST: claude_ok("from bedrock"),
    })
    service = make_service(upstreams, **ALL_KEYS)

    result = await service.dispatch(subject, ProviderPreference.CLAUDE)

    assert result == Ok(text="from bedrock", provider="Bedrock")
    assert upstreams.hosts == [CLAUDE_HOST, BEDROCK_HOST]


@pytest.mark.asyncio
async def test_research_only_falls_back_to_claude(make_service, subject):
    upstreams = Upstreams(**{
        PERPLEXITY_HOST: httpx.Response(401, text="bad key"),
        CLAUDE_HOST: claude_ok("from claude"),
    })
    service = make_service(upstreams, AI_PROVIDER="Perplexity", ANTHROPIC_API_KEY="k", PERPLEXITY_API_KEY="p")

    assert await service.recommend(subject) == "from claude"
    assert upstreams.hosts == [PERPLEXITY_HOST, CLAUDE_HOST]


@pytest.mark.asyncio
async def test_each_provider_tried_once(make_service, subject):
    upstreams = Upstreams(**{
        PERPLEXITY_HOST: httpx.Response(500, text="p down"),
        BEDROCK_HOST: httpx.Response(500, text="b down"),
        CLAUDE_HOST: httpx.Response(500, text="c down"),
    })
    service = make_service(upstreams, AI_PROVIDER="Perplexity", **ALL_KEYS)

    result = await service.dispatch(subject)

    assert upstreams.hosts == [PERPLEXITY_HOST, BEDROCK_HOST, CLAUDE_HOST]
    assert isinstance(result, Err)
    assert result.kind == ErrorKind.ALL_PROVIDERS_EXHAUSTED


# ─── Rendering ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_exhausted_leads_with_first_network_failure(make_service, subject):
    upstreams = Upstreams(**{CLAUDE_HOST: httpx.Response(500, text="internal")})
    service = make_service(upstreams, ANTHROPIC_API_KEY="k")

    text = await service.recommend(subject)

    assert text.startswith("Claude API Error 500: internal")
    assert "**Also tried:**" in text
    assert "- Bedrock: not configured" in text


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_text(make_service, subject, monkeypatch):
    service = make_service(Upstreams(), ANTHROPIC_API_KEY="k")

    async def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(service.anthropic, "analyze", explode)

    assert await service.recommend(subject) == "AI analysis failed: boom"


# ─── Cancellation ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cancellation_propagates(make_service, subject):
    upstreams = Upstreams(**{CLAUDE_HOST: claude_ok("never")})
    service = make_service(upstreams, ANTHROPIC_API_KEY="k")
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(asyncio.CancelledError):
        await service.recommend(subject, cancel_event=cancel)
    assert upstreams.hosts == []


# ─── Batches ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_recommend_many_caps_concurrency(make_service):
    state = {"now": 0, "peak": 0}

    async def slow_claude(request):
        state["now"] += 1
        state["peak"] = max(state["peak"], state["now"])
        await asyncio.sleep(0.01)
        state["now"] -= 1
        return claude_ok("ok")

    upstreams = Upstreams(**{CLAUDE_HOST: slow_claude})
    service = make_service(upstreams, ANTHROPIC_API_KEY="k", MAX_CONCURRENT_ANALYSES=2, LLM_MAX_IN_FLIGHT=10)
    subjects = [
        AnalysisSubject(name=f"App {i}", package_id=f"Vendor.App{i}", current_version="1.0", available_version="2.0")
        for i in range(6)
    ]

    results = await service.recommend_many(subjects)

    assert results == ["ok"] * 6
    assert state["peak"] == 2


@pytest.mark.asyncio
async def test_recommend_many_keeps_one_result_per_subject(make_service):
    def echo_package(request):
        prompt = request.read().decode()
        return claude_ok("second" if "2.0 to 3.0" in prompt else "first")

    upstreams = Upstreams(**{CLAUDE_HOST: echo_package})
    service = make_service(upstreams, ANTHROPIC_API_KEY="k")
    subjects = [
        AnalysisSubject(name="Tool", package_id="Vendor.Tool", current_version="1.0", available_version="2.0"),
        AnalysisSubject(name="Tool", package_id="Vendor.Tool", current_version="2.0", available_version="3.0"),
        AnalysisSubject(name="Unnamed", package_id=""),
    ]

    results = await service.recommend_many(subjects)

    assert results == ["first", "second", "first"]
