"""
Error Taxonomy

Typed exceptions raised across the package.

    HybridKGError
    ├── StoreError                 storage operation failed
    │   └── StoreConnectionError   store unreachable or not initialized
    ├── ProviderError              LLM / embedding backend failed
    ├── ExtractionTimeout          extraction call exceeded its deadline
    ├── ExtractionDecodeError      extraction output could not be decoded
    └── GenerationTimeout          answer generation exceeded its deadline

Connectivity errors (StoreConnectionError, ProviderError) are fatal to the
operation that hit them. Timeouts and decode errors are recovered by the
component that raised them and only surface as diagnostics.
"""

from __future__ import annotations


class HybridKGError(Exception):
    """Base class for all HybridKG errors."""


class StoreError(HybridKGError):
    """A chunk store or graph store operation failed."""


class StoreConnectionError(StoreError):
    """A store could not be reached or was used before initialize()."""


class ProviderError(HybridKGError):
    """An LLM or embedding backend call failed."""


class ExtractionTimeout(HybridKGError):
    """Entity extraction did not finish within its deadline."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Extraction timeout after {timeout:g}s")
        self.timeout = timeout


class ExtractionDecodeError(HybridKGError):
    """Extraction output was not a decodable JSON object."""


class GenerationTimeout(HybridKGError):
    """Answer generation did not finish within its deadline."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Generation timeout after {timeout:g}s")
        self.timeout = timeout


__all__ = [
    "HybridKGError",
    "StoreError",
    "StoreConnectionError",
    "ProviderError",
    "ExtractionTimeout",
    "ExtractionDecodeError",
    "GenerationTimeout",
]
