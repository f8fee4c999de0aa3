"""
Entity Extractor

Turns a passage into typed entities and relationships with one JSON-mode
generation call, then validates the output item by item.

Contract:
    - Text is hard-truncated to a fixed prefix before prompting
    - Decoding is deterministic (temperature 0)
    - A call that exceeds its deadline yields an empty extraction
    - Output that is not a JSON object yields an empty extraction with a
      diagnostic; invalid items inside a valid object are dropped one by one
    - Batches run sequentially and never abort on a single passage

Example:
    >>> extractor = EntityExtractor(llm, config)
    >>> extraction = await extractor.extract("Sam Altman is the CEO of OpenAI.")
    >>> [e.name for e in extraction.entities]
    ['Sam Altman', 'OpenAI']
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from hybrid_kg.errors import ExtractionDecodeError, ExtractionTimeout, ProviderError
from hybrid_kg.types import (
    BatchExtractionSummary,
    EntityType,
    ExtractedEntity,
    ExtractedRelationship,
    Extraction,
    Passage,
    PassageExtraction,
    RelationshipType,
)
from hybrid_kg.utils.deadline import run_with_deadline

if TYPE_CHECKING:
    from hybrid_kg.config.settings import KGConfig
    from hybrid_kg.providers.base import LLMProvider

logger = logging.getLogger(__name__)

# Output budget for one extraction reply
_EXTRACTION_MAX_TOKENS = 1024

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

_EXTRACTION_SYSTEM_PROMPT = """\
You build a knowledge graph from short text passages.
Reply with a single JSON object and nothing else."""

_EXTRACTION_USER_TEMPLATE = """\
List the named entities in the text and the relationships between them.

Entity types: {entity_types}
Relationship types: {relationship_types}

TEXT:
{text}

Reply in this shape:
{{"entities":[{{"name":"string","type":"{entity_type_options}"}}],\
"relationships":[{{"from":"name","from_type":"type","type":"rel_type","to":"name","to_type":"type"}}]}}

JSON:"""


class EntityExtractor:
    """
    Structured entity/relationship extraction for one passage at a time.

    Args:
        llm: LLM provider (called in JSON mode)
        config: Supplies extraction_timeout and extraction_max_chars
    """

    def __init__(self, llm: "LLMProvider", config: "KGConfig | None" = None) -> None:
        self.llm = llm
        self.timeout = config.extraction_timeout if config else 45.0
        self.max_chars = config.extraction_max_chars if config else 800

    def build_prompt(self, text: str) -> str:
        """Render the extraction prompt for a hard-truncated prefix of `text`."""
        entity_types = [t.value for t in EntityType]
        return _EXTRACTION_USER_TEMPLATE.format(
            entity_types=", ".join(entity_types),
            relationship_types=", ".join(t.value for t in RelationshipType),
            entity_type_options="|".join(entity_types),
            text=text[: self.max_chars],
        )

    async def extract(self, text: str) -> Extraction:
        """
        Extract entities and relationships from one passage.

        Never raises for timeouts, backend failures or malformed output;
        those produce an empty extraction whose `error` says what happened.
        """
        prompt = self.build_prompt(text)

        try:
            raw = await run_with_deadline(
                self.llm.generate(
                    prompt,
                    system=_EXTRACTION_SYSTEM_PROMPT,
                    temperature=0.0,
                    max_tokens=_EXTRACTION_MAX_TOKENS,
                    json_mode=True,
                    timeout=self.timeout,
                ),
                self.timeout,
                ExtractionTimeout,
            )
        except (ExtractionTimeout, ProviderError) as e:
            logger.warning(f"Extraction failed: {e}")
            return Extraction.empty(str(e))

        try:
            return self.decode(raw)
        except ExtractionDecodeError as e:
            logger.warning(f"Extraction output rejected: {e}")
            return Extraction.empty(str(e))

    @staticmethod
    def decode(raw: str) -> Extraction:
        """
        Decode raw model output into a fully validated Extraction.

        `entities` / `relationships` that are missing or not lists become
        empty lists. Items that fail validation are dropped and counted.

        Raises:
            ExtractionDecodeError: If `raw` is not a JSON object
        """
        text = raw.strip()
        fenced = _CODE_FENCE.match(text)
        if fenced:
            text = fenced.group(1)

        try:
            data: Any = json.loads(text)
        except json.JSONDecodeError as e:
            raise ExtractionDecodeError(f"Invalid JSON from extraction model: {e}") from e
        if not isinstance(data, dict):
            raise ExtractionDecodeError(
                f"Expected a JSON object from extraction model, got {type(data).__name__}"
            )

        raw_entities = data.get("entities")
        raw_relationships = data.get("relationships")
        if not isinstance(raw_entities, list):
            raw_entities = []
        if not isinstance(raw_relationships, list):
            raw_relationships = []

        dropped = 0
        entities: list[ExtractedEntity] = []
        for item in raw_entities:
            try:
                entities.append(ExtractedEntity.model_validate(item))
            except ValidationError:
                dropped += 1

        relationships: list[ExtractedRelationship] = []
        for item in raw_relationships:
            try:
                relationships.append(ExtractedRelationship.model_validate(item))
            except ValidationError:
                dropped += 1

        if dropped:
            logger.debug(f"Dropped {dropped} invalid extraction items")

        return Extraction(entities=entities, relationships=relationships, dropped=dropped)

    async def extract_batch(
        self,
        passages: list[Passage],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> BatchExtractionSummary:
        """
        Extract from passages one at a time.

        The generation backend is assumed to serve one request at a time,
        so passages are never dispatched concurrently. A failing passage is
        counted in `errors` and the batch moves on.

        Args:
            passages: Passages to extract from
            on_progress: Called with (done, total) after each passage

        Returns:
            BatchExtractionSummary with per-passage results and totals
        """
        summary = BatchExtractionSummary()
        start = time.perf_counter_ns()

        for index, passage in enumerate(passages, start=1):
            try:
                extraction = await self.extract(passage.text)
            except Exception as e:
                # Return empty result on error, don't fail entire batch
                logger.error(f"Extraction of passage {passage.chunk_id} raised: {e}")
                extraction = Extraction.empty(str(e))

            summary.processed += 1
            summary.entities += len(extraction.entities)
            summary.relationships += len(extraction.relationships)
            if extraction.error:
                summary.errors += 1
            summary.results.append(PassageExtraction(passage=passage, extraction=extraction))

            if on_progress:
                on_progress(index, len(passages))

        elapsed_ms = (time.perf_counter_ns() - start) // 1_000_000
        logger.info(
            f"Extracted {summary.entities} entities, {summary.relationships} relationships "
            f"from {summary.processed} passages ({summary.errors} errors) in {elapsed_ms}ms"
        )
        return summary
