"""Workspace-scoped semantic search over stored chunk embeddings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

MAX_SEARCH_LIMIT = 20


def _vector_literal(values: Sequence[float]) -> str:
    return "[" + ",".join(f"{float(value):.12g}" for value in values) + "]"


@dataclass(frozen=True)
class RetrievedChunk:
    document_id: str
    url: str | None
    content: str
    start_char: int
    end_char: int
    model: str
    similarity: float


def search_chunks(
    connection: object,
    *,
    workspace_id: str,
    query_embedding: Sequence[float],
    limit: int = 5,
    min_similarity: float = 0.1,
) -> list[RetrievedChunk]:
    """Return up to ``limit`` chunks of one workspace, most similar first.

    Twice as many candidates as requested are fetched by cosine distance, then
    anything below ``min_similarity`` is dropped before trimming to ``limit``.
    """

    if not 1 <= limit <= MAX_SEARCH_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_SEARCH_LIMIT}")
    if not 0.0 <= min_similarity <= 1.0:
        raise ValueError("min_similarity must be between 0 and 1")

    embedding_literal = _vector_literal(query_embedding)

    with connection.cursor() as cursor:
        cursor.execute(
            """
            SELECT
                document_id,
                url,
                content,
                start_char,
                end_char,
                model,
                1 - (embedding <=> %s::vector) AS similarity
            FROM document_chunks
            WHERE workspace_id = %s
            ORDER BY embedding <=> %s::vector, document_id, start_char
            LIMIT %s
            """,
            (embedding_literal, workspace_id, embedding_literal, limit * 2),
        )
        rows = cursor.fetchall()

    results = [
        RetrievedChunk(
            document_id=row[0],
            url=row[1],
            content=row[2],
            start_char=row[3],
            end_char=row[4],
            model=row[5],
            similarity=float(row[6]),
        )
        for row in rows
        if row[2] and float(row[6]) >= min_similarity
    ]
    results.sort(key=lambda result: result.similarity, reverse=True)
    return results[:limit]
