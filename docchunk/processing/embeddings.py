"""Embedding generation and persistence utilities."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
import time
from typing import Iterable, Sequence

from ..config import Settings
from ..ingestion.documents import DocumentChunk

LOGGER = logging.getLogger("docchunk.processing.embeddings")


class EmbeddingError(RuntimeError):
    """Raised when embedding generation fails after retries."""


@dataclass(frozen=True)
class EmbeddedChunk:
    chunk: DocumentChunk
    embedding: list[float]
    model: str


def _vector_literal(values: Sequence[float]) -> str:
    return "[" + ",".join(f"{float(value):.12g}" for value in values) + "]"


def _chunked(items: Sequence[DocumentChunk], batch_size: int) -> Iterable[Sequence[DocumentChunk]]:
    for index in range(0, len(items), batch_size):
        yield items[index : index + batch_size]


def _build_client(settings: Settings) -> object:
    from openai import OpenAI

    return OpenAI(api_key=settings.openai_api_key)


def _backoff_seconds(attempt: int, initial_backoff_s: float) -> float:
    delay = initial_backoff_s * (2**attempt)
    return delay + random.uniform(0, delay * 0.2)


def _embed_batch(
    *,
    client: object,
    model: str,
    texts: Sequence[str],
    max_retries: int,
    initial_backoff_s: float,
) -> list[list[float]]:
    attempts = max_retries + 1
    last_error: Exception | None = None

    for attempt in range(attempts):
        if last_error is not None:
            wait_s = _backoff_seconds(attempt - 1, initial_backoff_s)
            LOGGER.warning(
                "Embedding %d text(s) with %s failed (attempt %d/%d); retrying in %.2fs: %s",
                len(texts),
                model,
                attempt,
                attempts,
                wait_s,
                last_error,
            )
            time.sleep(wait_s)

        try:
            response = client.embeddings.create(model=model, input=list(texts), encoding_format="float")
        except Exception as error:  # noqa: BLE001
            last_error = error
            continue
        return [list(row.embedding) for row in response.data]

    raise EmbeddingError(
        f"Embedding {len(texts)} text(s) with {model} failed after {attempts} attempts"
    ) from last_error


def embed_chunks(
    chunks: Sequence[DocumentChunk],
    *,
    settings: Settings,
    model: str | None = None,
    batch_size: int = 64,
    max_retries: int = 4,
    initial_backoff_s: float = 1.0,
    client: object | None = None,
) -> list[EmbeddedChunk]:
    """Generate one embedding per document chunk, in batches."""

    if not chunks:
        return []

    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    selected_model = model or settings.openai_embedding_model
    client = client or _build_client(settings)

    embedded: list[EmbeddedChunk] = []
    for chunk_batch in _chunked(chunks, batch_size):
        vectors = _embed_batch(
            client=client,
            model=selected_model,
            texts=[chunk.content for chunk in chunk_batch],
            max_retries=max_retries,
            initial_backoff_s=initial_backoff_s,
        )
        embedded.extend(
            EmbeddedChunk(chunk=chunk, embedding=vector, model=selected_model)
            for chunk, vector in zip(chunk_batch, vectors, strict=True)
        )

    return embedded


def embed_query(
    text: str,
    *,
    settings: Settings,
    model: str | None = None,
    max_retries: int = 4,
    initial_backoff_s: float = 1.0,
    client: object | None = None,
) -> list[float]:
    """Embed a search query with the same model used for chunks."""

    vectors = _embed_batch(
        client=client or _build_client(settings),
        model=model or settings.openai_embedding_model,
        texts=[text],
        max_retries=max_retries,
        initial_backoff_s=initial_backoff_s,
    )
    return vectors[0]


def upsert_embeddings(connection: object, rows: Sequence[EmbeddedChunk]) -> int:
    """Upsert chunk vectors keyed by workspace, document, range and model."""

    if not rows:
        return 0

    with connection.cursor() as cursor:
        cursor.executemany(
            """
            INSERT INTO document_chunks (
                workspace_id, document_id, start_char, end_char, model, url, content, embedding
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s::vector)
            ON CONFLICT (workspace_id, document_id, start_char, end_char, model)
            DO UPDATE SET
                url = EXCLUDED.url,
                content = EXCLUDED.content,
                embedding = EXCLUDED.embedding,
                updated_at = NOW()
            """,
            [
                (
                    row.chunk.workspace_id,
                    row.chunk.document_id,
                    row.chunk.start_char,
                    row.chunk.end_char,
                    row.model,
                    row.chunk.url,
                    row.chunk.content,
                    _vector_literal(row.embedding),
                )
                for row in rows
            ],
        )

    return len(rows)
