"""Runtime configuration for the document chunking pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path
import re

from .processing.chunking import ChunkOptions


@dataclass(frozen=True)
class Settings:
    """Environment-backed application settings."""

    # Postgres / pgvector
    postgres_dsn: str

    # OpenAI
    openai_api_key: str
    openai_embedding_model: str

    # Chunking
    chunk_size: int
    overlap_size: int

    # Embedding and search
    embedding_batch_size: int
    search_limit: int
    search_min_similarity: float

    def chunk_options(self) -> ChunkOptions:
        return ChunkOptions(chunk_size=self.chunk_size, overlap_size=self.overlap_size)


def _load_settings_from_markdown(path: Path) -> dict[str, str]:
    """Parse ``| Setting | Value |`` rows from a markdown file.

    Only rows whose setting name matches ``[A-Z0-9_]+`` are returned so that
    separator and header lines are silently ignored.
    """
    if not path.exists():
        return {}

    row_pattern = re.compile(r"^\|\s*([A-Z0-9_]+)\s*\|\s*(\S+)\s*\|")
    settings: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        m = row_pattern.match(line)
        if m:
            settings[m.group(1)] = m.group(2)
    return settings


_SETTINGS_FILE = Path(__file__).resolve().parent / "settings.md"


def _get_env(name: str, *, default: str | None = None, required: bool = False) -> str:
    value = os.getenv(name, default)
    if required and (value is None or value == ""):
        raise ValueError(f"Missing required environment variable: {name}")
    if value is None:
        return ""
    return value


def _get_int(name: str, default: str) -> int:
    raw = _get_env(name, default=default).strip()
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from error


def _get_float(name: str, default: str) -> float:
    raw = _get_env(name, default=default).strip()
    try:
        return float(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be a number, got {raw!r}") from error


def load_chunk_options() -> ChunkOptions:
    """Build chunking options without requiring any service credentials.

    ``CHUNK_SIZE`` and ``CHUNK_OVERLAP_SIZE`` are read from the environment,
    falling back to ``docchunk/settings.md`` and then to the built-in defaults.
    """
    md = _load_settings_from_markdown(_SETTINGS_FILE)
    defaults = ChunkOptions()
    return ChunkOptions(
        chunk_size=_get_int("CHUNK_SIZE", md.get("CHUNK_SIZE", str(defaults.chunk_size))),
        overlap_size=_get_int("CHUNK_OVERLAP_SIZE", md.get("CHUNK_OVERLAP_SIZE", str(defaults.overlap_size))),
    )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache Settings from environment variables.

    Non-secret defaults are read from ``docchunk/settings.md``. Environment
    variables always take precedence over values defined in that file.
    """
    md = _load_settings_from_markdown(_SETTINGS_FILE)

    def _md(name: str, fallback: str) -> str:
        return md.get(name, fallback)

    chunk_options = load_chunk_options()

    return Settings(
        postgres_dsn=_get_env("POSTGRES_DSN", required=True),
        openai_api_key=_get_env("OPENAI_API_KEY", required=True),
        openai_embedding_model=_get_env(
            "OPENAI_EMBEDDING_MODEL", default=_md("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
        ),
        chunk_size=chunk_options.chunk_size,
        overlap_size=chunk_options.overlap_size,
        embedding_batch_size=_get_int("EMBEDDING_BATCH_SIZE", _md("EMBEDDING_BATCH_SIZE", "64")),
        search_limit=_get_int("SEARCH_LIMIT", _md("SEARCH_LIMIT", "5")),
        search_min_similarity=_get_float("SEARCH_MIN_SIMILARITY", _md("SEARCH_MIN_SIMILARITY", "0.1")),
    )
