"""LLM-backed analysis with caching and local fallbacks.

Public API:
    AnalysisGateway    - Cache-aside front for every analysis operation
    AnalysisOperation  - Operation identifiers
    AnalysisOutcome    - Result + provenance + cache key
    build_policies     - Operation-policy table from settings
    LLMClient          - LiteLLM-backed Analyzer
"""

from talentflow.analysis.gateway import AnalysisGateway, AnalysisOutcome, Provenance
from talentflow.analysis.llm import (
    Analyzer,
    LLMClient,
    LLMError,
    LLMResponseError,
    LLMTimeoutError,
    LLMUnavailableError,
)
from talentflow.analysis.operations import AnalysisOperation, OperationPolicy, build_policies

__all__ = [
    "AnalysisGateway",
    "AnalysisOperation",
    "AnalysisOutcome",
    "Analyzer",
    "LLMClient",
    "LLMError",
    "LLMResponseError",
    "LLMTimeoutError",
    "LLMUnavailableError",
    "OperationPolicy",
    "Provenance",
    "build_policies",
]
