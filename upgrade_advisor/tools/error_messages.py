"""
User-facing text for provider failures.

Adapters and the transport only ever return typed Err values. This module is
the one place they become markdown, and it is only called by the dispatcher
when it hands a result back to its caller.
"""

from typing import List

from ..schemas.analysis import Err
from ..schemas.base import ErrorKind, ProviderName

NO_RESULT_MESSAGE = "AI analysis failed - no result generated"

CREDENTIAL_HINTS = {
    ProviderName.CLAUDE.value: "ANTHROPIC_API_KEY",
    ProviderName.PERPLEXITY.value: "PERPLEXITY_API_KEY",
    ProviderName.BEDROCK.value: "BEDROCK_API_KEY or AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY",
}


def _raw(err: Err) -> str:
    return f"{err.provider} API Error {err.status_code}: {err.detail}"


def _rate_limited(err: Err) -> str:
    return (
        f"⚠️ **{err.provider} Rate Limit Exceeded**\n\n"
        "The API is receiving too many requests. This is temporary and should resolve shortly.\n\n"
        "**Recommendation**: Wait a few minutes and try again, or use a smaller batch of packages for analysis.\n\n"
        "**Technical Details**: Rate limiting helps ensure fair access to AI services for all users."
    )


def _overloaded(err: Err) -> str:
    return (
        f"⚠️ **{err.provider} Service Temporarily Overloaded**\n\n"
        "The AI service is experiencing high demand and is temporarily overloaded.\n\n"
        "**Recommendation**: \n"
        "- ✅ Try again in a few minutes\n"
        "- ✅ Analyze fewer packages at once\n"
        "- ✅ Use off-peak hours for large batches\n\n"
        "**Status**: This is a temporary service condition, not an error with your configuration.\n\n"
        f"**Alternative**: Consider switching AI_PROVIDER if {err.provider} is consistently overloaded."
    )


def _unauthorized(err: Err) -> str:
    credential = CREDENTIAL_HINTS.get(err.provider, "API key")
    return (
        f"🔑 **{err.provider} Authentication Error**\n\n"
        "Your credentials appear to be invalid or expired.\n\n"
        f"**Action Required**: Please check {credential} and ensure it's correctly entered.\n\n"
        f"`{_raw(err)}`"
    )


def _forbidden(err: Err) -> str:
    credential = CREDENTIAL_HINTS.get(err.provider, "API key")
    if err.provider == ProviderName.BEDROCK.value:
        action = "Ensure your AWS IAM user has the `bedrock:InvokeModel` permission and model access is enabled."
    else:
        action = f"Check that {credential} is allowed to use this model."
    return (
        f"🚫 **{err.provider} Access Denied**\n\n"
        "Your credentials don't have permission for this request.\n\n"
        f"**Action Required**: {action}\n\n"
        f"`{_raw(err)}`"
    )


def _payment_required(err: Err) -> str:
    return (
        f"💳 **{err.provider} Account Issue**\n\n"
        "Your account may have exceeded usage limits or requires payment.\n\n"
        f"**Action Required**: Check your account status on the {err.provider} dashboard."
    )


def _bad_request(err: Err) -> str:
    return (
        f"⚠️ **{err.provider} Request Error**\n\n"
        "The request format or model selection may be incorrect.\n\n"
        "**Recommendation**: Try switching to a different model in your configuration.\n\n"
        f"`{_raw(err)}`"
    )


_STATUS_TEMPLATES = {
    429: _rate_limited,
    529: _overloaded,
    401: _unauthorized,
    403: _forbidden,
    402: _payment_required,
    400: _bad_request,
}


def render_error(err: Err) -> str:
    """Render one provider failure as markdown."""
    if err.kind == ErrorKind.NOT_CONFIGURED:
        if err.provider == ProviderName.BEDROCK.value:
            return "AWS Bedrock credentials not configured"
        return f"{err.provider} API key not configured"
    if err.kind == ErrorKind.PARSE_FAILURE:
        return f"{err.provider} response parsing error: {err.detail}"
    if err.kind == ErrorKind.TRANSPORT_FAILURE:
        return f"{err.provider} API error: {err.detail}"

    template = _STATUS_TEMPLATES.get(err.status_code)
    if template is not None:
        return template(err)
    return _raw(err)


def render_not_configured(errors: List[Err]) -> str:
    """Every provider was skipped for missing credentials."""
    lines = [NO_RESULT_MESSAGE, "", "No AI provider is configured. Set at least one of:"]
    seen = set()
    for err in errors:
        if err.provider in seen:
            continue
        seen.add(err.provider)
        lines.append(f"- {err.provider}: {CREDENTIAL_HINTS.get(err.provider, 'API key')}")
    return "\n".join(lines)


def render_exhausted(errors: List[Err]) -> str:
    """Every fallback step failed; lead with the first failure that reached the network."""
    reached = [err for err in errors if err.reached_network]
    primary = reached[0] if reached else errors[0]
    message = render_error(primary)

    others = [err for err in errors if err is not primary]
    if not others:
        return message

    lines = [message, "", "---", "**Also tried:**"]
    for err in others:
        lines.append(f"- {err.provider}: {err.kind.value.replace('_', ' ')}")
    return "\n".join(lines)
