"""
Query Orchestrator

Sequences retrieval and answer generation for one question and owns the
fallback policy.

State machine (QueryState):
    IDLE → RETRIEVING → EMPTY_EVIDENCE
                      → PROMPT_BUILDING → GENERATING → ANSWERED
                                                     → GENERATION_TIMED_OUT
                                                     → GENERATION_FAILED

Only connectivity failures in retrieval's first step (embedding backend,
unreachable chunk store) are raised to the caller. Every other failure
becomes a terminal state with a fixed answer; citations and paths gathered
so far are always returned.

Citations are derived from the evidence set, never from the model's text.
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING

from hybrid_kg.errors import (
    GenerationTimeout,
    ProviderError,
    StoreConnectionError,
    StoreError,
)
from hybrid_kg.query.prompt import (
    PromptAssembler,
    build_verification_prompt,
    extract_citations,
)
from hybrid_kg.types import (
    QueryResult,
    QueryState,
    QueryStats,
    RetrievalResult,
    VerificationResult,
    VerificationVerdict,
)
from hybrid_kg.utils.deadline import run_with_deadline

if TYPE_CHECKING:
    from hybrid_kg.config.settings import KGConfig
    from hybrid_kg.providers.base import LLMProvider
    from hybrid_kg.query.retriever import HybridRetriever

logger = logging.getLogger(__name__)

NO_INFORMATION_ANSWER = "I could not find relevant information to answer your question."
GENERATION_TIMEOUT_ANSWER = (
    "Unable to generate answer due to timeout. "
    "Try reducing graph depth or asking a simpler question."
)
GENERATION_FAILED_ANSWER = (
    "Unable to generate answer because the language model request failed. "
    "The sources below were retrieved for your question."
)

GENERATION_TEMPERATURE = 0.3
GENERATION_MAX_TOKENS = 300

_VERDICT_PATTERN = re.compile(r"\b(VERIFIED|PARTIAL|UNSUPPORTED)\b")


class QueryOrchestrator:
    """
    Retrieval plus bounded generation.

    Args:
        retriever: Hybrid retriever (owns store and embedding handles)
        llm: LLM provider for answer generation
        config: Supplies generation_timeout and prompt caps
    """

    def __init__(
        self,
        retriever: "HybridRetriever",
        llm: "LLMProvider",
        config: "KGConfig | None" = None,
    ) -> None:
        self.retriever = retriever
        self.llm = llm
        self.generation_timeout = config.generation_timeout if config else 180.0
        self.max_chunks = config.prompt_max_chunks if config else 2
        self.max_paths = config.prompt_max_paths if config else 3

    async def query(
        self,
        question: str,
        top_k: int | None = None,
        graph_depth: int | None = None,
    ) -> QueryResult:
        """
        Answer `question` from hybrid evidence.

        Args:
            question: Natural-language question
            top_k: Semantic hits (config default if None)
            graph_depth: Expansion depth; 0 is vector-only (config default if None)

        Returns:
            QueryResult in a terminal state

        Raises:
            ProviderError: If the question cannot be embedded
            StoreConnectionError: If the chunk store is unreachable
        """
        timing: dict[str, int] = {}

        # Phase 1: Retrieval
        _log_state(QueryState.RETRIEVING)
        retrieval, retrieval_error, timing["retrieval"] = await self._phase_retrieval(
            question, top_k, graph_depth
        )

        if retrieval.is_empty:
            logger.info("No evidence found, returning fixed answer")
            return QueryResult(
                query=question,
                answer=NO_INFORMATION_ANSWER,
                state=QueryState.EMPTY_EVIDENCE,
                timing=timing,
                error=retrieval_error,
            )

        passages = retrieval.passages
        citations = extract_citations(passages)
        stats = QueryStats(
            vector_chunks=len(retrieval.semantic),
            graph_chunks=len(retrieval.graph),
            total_chunks=len(passages),
            graph_path_count=len(retrieval.paths),
        )

        # Phase 2: Prompt
        _log_state(QueryState.PROMPT_BUILDING)
        start = time.perf_counter_ns()
        effective_depth = (
            self.retriever.default_graph_depth if graph_depth is None else graph_depth
        )
        assembler = PromptAssembler(max_chunks=self.max_chunks, max_paths=self.max_paths)
        prompt = assembler.build(
            question, retrieval, include_graph_paths=effective_depth > 0
        )
        timing["prompt"] = (time.perf_counter_ns() - start) // 1_000_000

        # Phase 3: Generation
        _log_state(QueryState.GENERATING)
        answer, state, error, timing["generation"] = await self._phase_generation(prompt)

        logger.info(
            f"Query {state.value} in {sum(timing.values())}ms: "
            f"{len(citations)} citations, {len(retrieval.paths)} paths"
        )
        return QueryResult(
            query=question,
            answer=answer,
            state=state,
            citations=citations,
            graph_paths=retrieval.paths,
            passages=passages,
            stats=stats,
            timing=timing,
            error=error,
        )

    async def query_vector_only(self, question: str, top_k: int | None = None) -> QueryResult:
        """Answer from semantic hits only (graph_depth=0)."""
        return await self.query(question, top_k=top_k, graph_depth=0)

    async def verify_answer(self, result: QueryResult) -> VerificationResult:
        """
        Check whether an answer is supported by its own evidence passages.

        Never raises; failures map to UNKNOWN with the error as explanation.
        """
        if not result.passages:
            return VerificationResult(
                verdict=VerificationVerdict.UNKNOWN,
                explanation="No evidence passages to verify against.",
            )

        prompt = build_verification_prompt(result.query, result.answer, result.passages)
        try:
            reply = await run_with_deadline(
                self.llm.generate(
                    prompt,
                    temperature=0.0,
                    max_tokens=GENERATION_MAX_TOKENS,
                    timeout=self.generation_timeout,
                ),
                self.generation_timeout,
                GenerationTimeout,
            )
        except Exception as e:
            logger.warning(f"Answer verification failed: {e}")
            return VerificationResult(verdict=VerificationVerdict.UNKNOWN, explanation=str(e))

        return parse_verification(reply)

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    async def _phase_retrieval(
        self,
        question: str,
        top_k: int | None,
        graph_depth: int | None,
    ) -> tuple[RetrievalResult, str | None, int]:
        """
        Phase 1: Retrieve evidence.

        Connectivity failures (store unreachable, embedding backend down) are
        raised. Any other store error, such as a rejected filter, yields an
        empty evidence set with the error as diagnostic.

        Returns:
            Tuple of (retrieval, error, time_ms)
        """
        start = time.perf_counter_ns()
        error: str | None = None
        try:
            retrieval = await self.retriever.retrieve(question, top_k, graph_depth)
        except (StoreConnectionError, ProviderError) as e:
            logger.error(f"Retrieval failed: {e}")
            raise
        except StoreError as e:
            logger.warning(f"Vector search failed, continuing without evidence: {e}")
            retrieval = RetrievalResult(query=question)
            error = str(e)
        elapsed_ms = (time.perf_counter_ns() - start) // 1_000_000
        logger.info(
            f"Retrieval: {len(retrieval.semantic)} semantic, {len(retrieval.graph)} graph, "
            f"{elapsed_ms}ms"
        )
        return retrieval, error, elapsed_ms

    async def _phase_generation(
        self, prompt: str
    ) -> tuple[str, QueryState, str | None, int]:
        """
        Phase 3: Generate under the deadline.

        Returns:
            Tuple of (answer, terminal state, error, time_ms)
        """
        start = time.perf_counter_ns()
        try:
            answer = await run_with_deadline(
                self.llm.generate(
                    prompt,
                    temperature=GENERATION_TEMPERATURE,
                    max_tokens=GENERATION_MAX_TOKENS,
                    timeout=self.generation_timeout,
                ),
                self.generation_timeout,
                GenerationTimeout,
            )
            answer, state, error = answer.strip(), QueryState.ANSWERED, None
        except GenerationTimeout as e:
            logger.warning(f"{e}, returning fallback answer")
            answer, state, error = GENERATION_TIMEOUT_ANSWER, QueryState.GENERATION_TIMED_OUT, str(e)
        except Exception as e:
            logger.warning(f"Generation failed, returning fallback answer: {e}")
            answer, state, error = GENERATION_FAILED_ANSWER, QueryState.GENERATION_FAILED, str(e)

        elapsed_ms = (time.perf_counter_ns() - start) // 1_000_000
        return answer, state, error, elapsed_ms


def _log_state(state: QueryState) -> None:
    logger.debug(f"Query state -> {state.value}")


def parse_verification(reply: str) -> VerificationResult:
    """Map a verification reply onto a verdict; the first keyword wins."""
    match = _VERDICT_PATTERN.search(reply.upper())
    if not match:
        return VerificationResult(verdict=VerificationVerdict.UNKNOWN, explanation=reply.strip())
    explanation = reply[match.end() :].strip(" \n\t:-\"'")
    return VerificationResult(
        verdict=VerificationVerdict(match.group(1)),
        explanation=explanation,
    )
