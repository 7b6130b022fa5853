"""
Schemas for the Upgrade Advisor.

Modules:
- base: Enums (ProviderPreference, ProviderName, ErrorKind, UseCase, ModelFamilyKind)
- analysis: AnalysisSubject, ProviderRequest, Ok / Err results
- catalog: ModelDescriptor, CatalogEntry
"""

# Base types
from .base import (
    ErrorKind,
    ModelFamilyKind,
    ProviderName,
    ProviderPreference,
    UseCase,
)

# Requests and results
from .analysis import (
    AnalysisSubject,
    Err,
    Ok,
    ProviderRequest,
    ProviderResult,
)

# Catalog
from .catalog import (
    CatalogEntry,
    ModelDescriptor,
)

__all__ = [
    "ErrorKind",
    "ModelFamilyKind",
    "ProviderName",
    "ProviderPreference",
    "UseCase",
    "AnalysisSubject",
    "Err",
    "Ok",
    "ProviderRequest",
    "ProviderResult",
    "CatalogEntry",
    "ModelDescriptor",
]
