"""
Provider adapters, transport, signing and catalog for the Upgrade Advisor.
"""

from .anthropic_tool import AnthropicTool
from .aws_signer import AwsSigV4Signer, SigningContext
from .bedrock_tool import BedrockTool
from .config_checker import ProviderConfigChecker
from .error_messages import render_error
from .model_catalog import BedrockModelDiscovery, CatalogDiscoveryError, ModelCatalog
from .model_families import ModelFamily, family_for
from .perplexity_tool import PerplexityTool
from .recommendation_service import RecommendationService
from .transport import ResilientTransport, RetryState

__all__ = [
    "AnthropicTool",
    "AwsSigV4Signer",
    "SigningContext",
    "BedrockTool",
    "ProviderConfigChecker",
    "render_error",
    "BedrockModelDiscovery",
    "CatalogDiscoveryError",
    "ModelCatalog",
    "ModelFamily",
    "family_for",
    "PerplexityTool",
    "RecommendationService",
    "ResilientTransport",
    "RetryState",
]
