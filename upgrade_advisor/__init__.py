"""
Upgrade Advisor - AI provider orchestration for package upgrade recommendations.

Routes one "analyze this package" request across Anthropic Claude, Perplexity
and AWS Bedrock with retries, backoff and a deterministic fallback order.
"""

__version__ = "1.0.0"
