"""
Common enums used across the advisor.

These define the vocabulary of the orchestration layer: which pipeline a
caller prefers, how a provider call failed, and which use case a Bedrock
model recommendation is for.
"""

from enum import Enum


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS - Provider Selection
# ══════════════════════════════════════════════════════════════════════════════

class ProviderPreference(str, Enum):
    """Primary pipeline requested by the caller."""
    BEDROCK = "bedrock"                            # Cloud gateway first, then Claude
    RESEARCH_THEN_FORMAT = "research_then_format"  # Perplexity research, Claude formats
    CLAUDE = "claude"                              # Claude only, Bedrock as fallback
    PERPLEXITY = "perplexity"                      # Perplexity only, then Bedrock, then Claude


class ProviderName(str, Enum):
    """User-facing provider labels."""
    CLAUDE = "Claude"
    PERPLEXITY = "Perplexity"
    BEDROCK = "Bedrock"


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS - Failure Classification
# ══════════════════════════════════════════════════════════════════════════════

class ErrorKind(str, Enum):
    """Why a provider call produced no text."""
    NOT_CONFIGURED = "not_configured"        # Missing credential, no network attempted
    RATE_LIMITED = "rate_limited"            # 429 / 529 after retries
    AUTH_FAILURE = "auth_failure"            # 401 / 403
    BAD_REQUEST = "bad_request"              # 400
    API_ERROR = "api_error"                  # Any other non-success status
    PARSE_FAILURE = "parse_failure"          # Body did not match the expected shape
    TRANSPORT_FAILURE = "transport_failure"  # DNS / TLS / timeout after retries
    ALL_PROVIDERS_EXHAUSTED = "all_providers_exhausted"


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS - Model Catalog
# ══════════════════════════════════════════════════════════════════════════════

class UseCase(str, Enum):
    """Recommendation buckets for Bedrock text models."""
    HIGHEST_QUALITY = "HighestQuality"
    FASTEST_RESPONSE = "FastestResponse"
    COST_EFFECTIVE = "CostEffective"
    MOST_POWERFUL = "MostPowerful"


class ModelFamilyKind(str, Enum):
    """Request/response JSON shape of a Bedrock-hosted model."""
    CHAT = "chat"              # Anthropic messages body
    COMPLETION = "completion"  # Meta Llama prompt/generation body
    TEXT_GENERATION = "text_generation"  # Amazon Titan inputText body
