"""
Bedrock model catalog types.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ModelDescriptor(BaseModel):
    """A foundation model as listed by Bedrock's /foundation-models endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    model_id: str = Field(alias="modelId")
    model_name: str = Field(default="", alias="modelName")
    provider_name: str = Field(default="", alias="providerName")
    input_modalities: Tuple[str, ...] = Field(default=(), alias="inputModalities")
    output_modalities: Tuple[str, ...] = Field(default=(), alias="outputModalities")
    response_streaming_supported: bool = Field(default=False, alias="responseStreamingSupported")
    lifecycle_status: str = Field(default="ACTIVE", alias="lifecycleStatus")

    @classmethod
    def from_summary(cls, summary: Dict[str, Any]) -> "ModelDescriptor":
        """Build from one entry of the API's modelSummaries list."""
        lifecycle = summary.get("modelLifecycle") or {}
        return cls(
            modelId=summary["modelId"],
            modelName=summary.get("modelName") or "",
            providerName=summary.get("providerName") or "",
            inputModalities=tuple(summary.get("inputModalities") or ()),
            outputModalities=tuple(summary.get("outputModalities") or ()),
            responseStreamingSupported=bool(summary.get("responseStreamingSupported")),
            lifecycleStatus=lifecycle.get("status") or "ACTIVE",
        )

    @property
    def is_text_model(self) -> bool:
        """Text in and text out, not legacy, not an embedding model."""
        return (
            "TEXT" in self.input_modalities
            and "TEXT" in self.output_modalities
            and self.lifecycle_status.upper() != "LEGACY"
            and "embed" not in self.model_id.lower()
        )

    @property
    def display_name(self) -> str:
        name = self.model_name or self.model_id
        if self.provider_name not in name:
            name = f"{self.provider_name} - {name}"
        flags = []
        if self.response_streaming_supported:
            flags.append("Streaming")
        if self.lifecycle_status == "ACTIVE":
            flags.append("Active")
        if flags:
            name += f" ({', '.join(flags)})"
        return name


@dataclass(frozen=True)
class CatalogEntry:
    """Text models cached for one region."""
    models: List[ModelDescriptor]
    refreshed_at: datetime
    source: str  # "discovered" | "static"
