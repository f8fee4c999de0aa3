"""
Extraction Module

Modules:
    extractor: EntityExtractor (JSON-mode extraction with strict decoding)
"""

from hybrid_kg.ingestion.extraction.extractor import EntityExtractor

__all__ = ["EntityExtractor"]
