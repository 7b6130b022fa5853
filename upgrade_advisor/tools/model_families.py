"""
Bedrock model families.

Each family owns one request body shape and one response shape. The registry
maps a model-id prefix to its family; unknown prefixes use the Anthropic chat
shape. Cross-region inference ids ("us.", "eu.", "apac.", "global.") are
matched on the id with the geo prefix removed.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

from ..schemas.base import ModelFamilyKind

BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"
GEO_PREFIXES = ("us.", "eu.", "apac.", "global.")


def _chat_body(prompt: str, max_tokens: int) -> Dict[str, Any]:
    return {
        "anthropic_version": BEDROCK_ANTHROPIC_VERSION,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }


def _chat_text(data: Dict[str, Any]) -> str:
    return data["content"][0]["text"]


def _completion_body(prompt: str, max_tokens: int) -> Dict[str, Any]:
    return {
        "prompt": prompt,
        "max_gen_len": max_tokens,
        "temperature": 0.1,
        "top_p": 0.9,
    }


def _completion_text(data: Dict[str, Any]) -> str:
    return data["generation"]


def _titan_body(prompt: str, max_tokens: int) -> Dict[str, Any]:
    return {
        "inputText": prompt,
        "textGenerationConfig": {
            "maxTokenCount": max_tokens,
            "stopSequences": [],
            "temperature": 0.1,
            "topP": 0.9,
        },
    }


def _titan_text(data: Dict[str, Any]) -> str:
    return data["results"][0]["outputText"]


@dataclass(frozen=True)
class ModelFamily:
    kind: ModelFamilyKind
    vendor: str
    prefixes: Tuple[str, ...]
    build_body: Callable[[str, int], Dict[str, Any]]
    extract_text: Callable[[Dict[str, Any]], str]

    def matches(self, model_id: str) -> bool:
        return strip_geo_prefix(model_id).startswith(self.prefixes)


ANTHROPIC_CHAT = ModelFamily(
    kind=ModelFamilyKind.CHAT,
    vendor="Anthropic",
    prefixes=("anthropic.claude",),
    build_body=_chat_body,
    extract_text=_chat_text,
)

META_LLAMA = ModelFamily(
    kind=ModelFamilyKind.COMPLETION,
    vendor="Meta",
    prefixes=("meta.llama",),
    build_body=_completion_body,
    extract_text=_completion_text,
)

AMAZON_TITAN = ModelFamily(
    kind=ModelFamilyKind.TEXT_GENERATION,
    vendor="Amazon",
    prefixes=("amazon.titan",),
    build_body=_titan_body,
    extract_text=_titan_text,
)

# Order matters only if prefixes ever overlap; first match wins.
MODEL_FAMILIES: List[ModelFamily] = [ANTHROPIC_CHAT, META_LLAMA, AMAZON_TITAN]
DEFAULT_FAMILY = ANTHROPIC_CHAT


def strip_geo_prefix(model_id: str) -> str:
    for prefix in GEO_PREFIXES:
        if model_id.startswith(prefix):
            return model_id[len(prefix):]
    return model_id


def family_for(model_id: str) -> ModelFamily:
    """Family for a model id; unrecognized ids fall back to the chat shape."""
    for family in MODEL_FAMILIES:
        if family.matches(model_id):
            return family
    return DEFAULT_FAMILY


def register_family(family: ModelFamily) -> None:
    """Add a vendor family ahead of the built-in ones."""
    MODEL_FAMILIES.insert(0, family)
