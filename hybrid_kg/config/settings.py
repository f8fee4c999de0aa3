"""
KGConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> engine = HybridKG("./kb")

    >>> # Explicit configuration
    >>> config = KGConfig(default_top_k=2, default_graph_depth=1)
    >>> engine = HybridKG("./kb", config=config)

    >>> # From config file
    >>> config = KGConfig.from_file("./hybrid_kg.toml")

Environment Variables:
    HYBRID_KG_LLM_PROVIDER - LLM provider name
    HYBRID_KG_LLM_MODEL - Model for extraction and answer generation
    HYBRID_KG_LLM_BASE_URL - OpenAI-compatible endpoint (e.g. a local Ollama)
    HYBRID_KG_EMBEDDING_MODEL - Embedding model name
    HYBRID_KG_EMBEDDING_DIMENSIONS - Embedding vector dimensions
    HYBRID_KG_TOP_K - Default number of semantic hits per query
    HYBRID_KG_GRAPH_DEPTH - Default graph expansion depth (0 = vector only)
    HYBRID_KG_GENERATION_TIMEOUT - Answer generation timeout (seconds)
    HYBRID_KG_EXTRACTION_TIMEOUT - Per-passage extraction timeout (seconds)
    HYBRID_KG_EXTRACTION_BATCH_SIZE - Passages per extraction batch
    OPENAI_API_KEY - OpenAI API key (standard name)
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any


class KGConfig:
    """Configuration for HybridKG."""

    # === Provider Configuration ===

    llm_provider: str = "openai"
    """LLM provider: "openai" (any OpenAI-compatible endpoint)"""

    llm_model: str = "gpt-4o-mini"
    """Model for extraction and answer generation"""

    llm_base_url: str | None = None
    """Optional OpenAI-compatible base URL, e.g. http://localhost:11434/v1"""

    embedding_provider: str = "openai"
    """Embedding provider: "openai" """

    embedding_model: str = "text-embedding-3-small"
    """Embedding model name"""

    embedding_dimensions: int = 768
    """Embedding vector dimensions (must match the chunk index)"""

    openai_api_key: str | None = None

    # === Retrieval Configuration ===

    default_top_k: int = 5
    """Semantic hits requested per query"""

    default_graph_depth: int = 2
    """Maximum hops of graph expansion (0 disables expansion)"""

    # === Generation Configuration ===

    generation_timeout: float = 180.0
    """Wall-clock budget for answer generation (seconds)"""

    # === Extraction Configuration ===

    extraction_timeout: float = 45.0
    """Wall-clock budget for one passage's extraction call (seconds)"""

    extraction_max_chars: int = 800
    """Passage text is hard-truncated to this many characters before extraction"""

    extraction_batch_size: int = 10
    """Passages read and extracted per batch"""

    # === Prompt Configuration ===

    prompt_max_chunks: int = 2
    """Maximum evidence passages rendered into the answer prompt"""

    prompt_max_paths: int = 3
    """Maximum relationship paths rendered into the answer prompt"""

    # === Storage Configuration ===

    chunk_table: str = "chunks"
    """LanceDB table holding indexed passages"""

    graph_db_file: str = "graph.duckdb"
    """DuckDB database file (relative to the knowledge base directory)"""

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        # Load from environment first
        self._load_from_env()

        # Apply explicit overrides
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        import os

        self.openai_api_key = os.getenv("OPENAI_API_KEY")

        # HYBRID_KG_* prefixed settings
        if provider := os.getenv("HYBRID_KG_LLM_PROVIDER"):
            self.llm_provider = provider
        if model := os.getenv("HYBRID_KG_LLM_MODEL"):
            self.llm_model = model
        if base_url := os.getenv("HYBRID_KG_LLM_BASE_URL"):
            self.llm_base_url = base_url
        if model := os.getenv("HYBRID_KG_EMBEDDING_MODEL"):
            self.embedding_model = model
        if dims := os.getenv("HYBRID_KG_EMBEDDING_DIMENSIONS"):
            self.embedding_dimensions = int(dims)
        if top_k := os.getenv("HYBRID_KG_TOP_K"):
            self.default_top_k = int(top_k)
        if depth := os.getenv("HYBRID_KG_GRAPH_DEPTH"):
            self.default_graph_depth = int(depth)
        if timeout := os.getenv("HYBRID_KG_GENERATION_TIMEOUT"):
            self.generation_timeout = float(timeout)
        if timeout := os.getenv("HYBRID_KG_EXTRACTION_TIMEOUT"):
            self.extraction_timeout = float(timeout)
        if batch_size := os.getenv("HYBRID_KG_EXTRACTION_BATCH_SIZE"):
            self.extraction_batch_size = int(batch_size)

    @classmethod
    def from_file(cls, path: str | Path) -> "KGConfig":
        """
        Load configuration from TOML file.

        Nested sections are flattened into config keys.

        Example TOML:
            [llm]
            model = "llama3.1"
            base_url = "http://localhost:11434/v1"

            [retrieval]
            top_k = 2
            graph_depth = 1

            [prompt]
            max_chunks = 2

        Args:
            path: Path to TOML configuration file

        Returns:
            KGConfig instance with values from file

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data: dict[str, Any] = tomllib.load(f)

        flat_config: dict[str, Any] = {}

        # Map section names to config key prefixes
        section_mapping = {
            "llm": "llm_",
            "embedding": "embedding_",
            "api_keys": "",  # api_keys.openai -> openai_api_key
            "retrieval": "default_",
            "generation": "generation_",
            "extraction": "extraction_",
            "prompt": "prompt_",
            "storage": "",
        }

        for section, prefix in section_mapping.items():
            if section in data:
                for key, value in data[section].items():
                    if section == "api_keys":
                        flat_config[f"{key}_api_key"] = value
                    else:
                        flat_config[f"{prefix}{key}"] = value

        # Also support flat top-level keys
        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "KGConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        API keys are never written; set them via environment variables.

        Args:
            path: Path to write TOML configuration file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, str | int | float | bool | None]] = {
            "llm": {
                "provider": self.llm_provider,
                "model": self.llm_model,
                "base_url": self.llm_base_url,
            },
            "embedding": {
                "provider": self.embedding_provider,
                "model": self.embedding_model,
                "dimensions": self.embedding_dimensions,
            },
            "retrieval": {
                "top_k": self.default_top_k,
                "graph_depth": self.default_graph_depth,
            },
            "generation": {
                "timeout": self.generation_timeout,
            },
            "extraction": {
                "timeout": self.extraction_timeout,
                "max_chars": self.extraction_max_chars,
                "batch_size": self.extraction_batch_size,
            },
            "prompt": {
                "max_chunks": self.prompt_max_chunks,
                "max_paths": self.prompt_max_paths,
            },
            "storage": {
                "chunk_table": self.chunk_table,
                "graph_db_file": self.graph_db_file,
            },
        }

        lines = ["# HybridKG Configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                # TOML has no null; unset options are omitted
                if isinstance(value, str):
                    lines.append(f'{key} = "{value}"')
                elif isinstance(value, bool):
                    lines.append(f"{key} = {str(value).lower()}")
                elif isinstance(value, (int, float)):
                    lines.append(f"{key} = {value}")
            lines.append("")

        lines.extend([
            "# API keys should be set via environment variables:",
            "# OPENAI_API_KEY",
            "",
        ])

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> "KGConfig":
        """Return new config with specified overrides."""
        new_config = KGConfig.__new__(KGConfig)
        for key in dir(self):
            if not key.startswith("_") and not callable(getattr(self, key)):
                setattr(new_config, key, getattr(self, key))
        for key, value in kwargs.items():
            if not hasattr(new_config, key):
                raise ValueError(f"Unknown configuration option: {key}")
            setattr(new_config, key, value)
        return new_config
