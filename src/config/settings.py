"""
Configuration management for the refinement engine.
Loads settings from environment variables (prefix SAFEQL_) and the .env file.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from loguru import logger

# This file is at src/config/settings.py, so project root is 3 levels up
_project_root = Path(__file__).resolve().parent.parent.parent

PROJECT_ROOT = _project_root

# Load environment variables from project root
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(dotenv_path=_env_file, override=False)
    logger.debug(f"Loaded .env from: {_env_file}")


class RefinementSettings(BaseSettings):
    """Refinement engine settings from environment variables."""

    # Master switch
    enable_safeql_refinement: bool = Field(default=True)  # False returns the failing query unchanged

    # Category toggles
    enable_table_refinement: bool = Field(default=True)
    enable_column_refinement: bool = Field(default=True)
    enable_table_for_column: bool = Field(default=True)
    enable_column_table_reference: bool = Field(default=True)
    enable_join_refinement: bool = Field(default=True)
    enable_operand_column_refinement: bool = Field(default=True)
    enable_operand_table_for_column_refinement: bool = Field(default=True)
    enable_operand_column_table_reference_refinement: bool = Field(default=True)
    enable_operand_typecast_refinement: bool = Field(default=False)
    enable_argument_column_refinement: bool = Field(default=True)
    enable_argument_table_for_column_refinement: bool = Field(default=True)
    enable_argument_column_table_reference_refinement: bool = Field(default=True)
    enable_argument_typecast_refinement: bool = Field(default=True)
    enable_function_name_refinement: bool = Field(default=True)
    enable_column_ambiguity_refinement: bool = Field(default=True)
    enable_value_refinement: bool = Field(default=True)
    # Empty-result refinements beyond values
    enable_result_table_refinement: bool = Field(default=True)  # Swap a FROM table
    enable_result_operand_refinement: bool = Field(default=True)  # Swap a compared WHERE column
    enable_result_join_refinement: bool = Field(default=True)  # Join a table one foreign key away

    # Pruning / ranking
    enable_type_based_refinement: bool = Field(default=True)  # Drop type-incompatible candidates
    top_k_expansion: int = Field(default=3, ge=1)  # Candidates kept per category per span
    ranker_workers: int = Field(default=1, ge=1)  # >1 scores candidates in a thread pool

    # Cache
    enable_search_cache: bool = Field(default=True)

    # Bounds
    max_refinement_hop: int = Field(default=5, ge=0)  # Max stacked edits on one query
    max_refinement_num: int = Field(default=300, ge=1)  # Max candidate executions per session
    value_refinement_samples: int = Field(default=1_000_000, ge=0)  # Distinct values sampled per column

    # Priority weights (lower = explored first)
    table_weight: float = Field(default=1.0, ge=0)
    column_weight: float = Field(default=1.0, ge=0)
    table_for_column_weight: float = Field(default=1.0, ge=0)
    column_table_reference_weight: float = Field(default=1.0, ge=0)
    join_weight: float = Field(default=2.0, ge=0)
    operand_column_weight: float = Field(default=1.0, ge=0)
    operand_table_for_column_weight: float = Field(default=1.0, ge=0)
    operand_column_table_reference_weight: float = Field(default=1.0, ge=0)
    operand_typecast_weight: float = Field(default=0.1, ge=0)
    argument_column_weight: float = Field(default=1.0, ge=0)
    argument_table_for_column_weight: float = Field(default=1.0, ge=0)
    argument_column_table_reference_weight: float = Field(default=1.0, ge=0)
    argument_typecast_weight: float = Field(default=0.1, ge=0)
    function_name_weight: float = Field(default=1.0, ge=0)
    column_ambiguity_weight: float = Field(default=0.0, ge=0)
    value_weight: float = Field(default=1.0, ge=0)
    result_table_weight: float = Field(default=1.0, ge=0)
    result_operand_weight: float = Field(default=1.0, ge=0)
    result_join_weight: float = Field(default=2.0, ge=0)

    # Session behaviour
    treat_empty_result_as_error: bool = Field(default=True)  # Empty result is refined like an error

    # Database / execution
    database_url: str = Field(default="sqlite://")
    sql_dialect: str = Field(default="postgres")  # sqlglot dialect name
    max_result_rows: int = Field(default=100, ge=1)
    catalog_file: str = Field(default="")  # JSON snapshot; empty introspects database_url

    # Similarity backend
    similarity_backend: str = Field(default="lexical")  # Options: "lexical" | "embedding"
    embedding_provider: str = Field(default="openai")  # Options: "openai" | "local"
    embedding_model: str = Field(default="text-embedding-3-small")
    openai_api_key: str = Field(default="")
    embedding_cache_file: str = Field(default="")  # JSON file persisting vectors; empty keeps them in memory

    # Logging
    log_level: str = Field(default="INFO")
    log_file: str = Field(default="")  # Empty disables the file sink

    class Config:
        env_prefix = "SAFEQL_"
        env_file = str(_project_root / ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"

    def snapshot(self) -> "RefinementSettings":
        """Copy held fixed for the duration of one refinement session."""
        return self.model_copy(deep=True)

    def ranking_signature(self, similarity: Optional[Any] = None) -> Tuple[Any, ...]:
        """
        Settings that change the ranked candidate lists (part of cache keys).

        Args:
            similarity: Backend actually scoring the candidates; its identity
                replaces the configured backend name when given
        """
        weights: Dict[str, float] = {
            name: value for name, value in self.model_dump().items()
            if name.endswith("_weight")
        }
        if similarity is not None:
            backend = getattr(similarity, "identity", None) or (type(similarity).__qualname__,)
        else:
            backend = (
                self.similarity_backend,
                self.embedding_model if self.similarity_backend == "embedding" else "",
            )
        return (
            self.enable_type_based_refinement,
            self.top_k_expansion,
            self.value_refinement_samples,
            tuple(backend),
            tuple(sorted(weights.items())),
        )


# Create global settings instance
settings = RefinementSettings()
