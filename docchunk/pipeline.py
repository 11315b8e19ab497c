"""Pipeline entrypoints: chunk, ingest and search."""

from __future__ import annotations

import argparse
from dataclasses import asdict, replace
import json
import logging
import os
import time
import uuid

from .config import load_chunk_options, load_settings
from .ingestion.documents import chunk_documents, load_documents
from .processing.chunking import ChunkOptions, chunk_text
from .processing.embeddings import embed_chunks, embed_query, upsert_embeddings
from .processing.retrieval import RetrievedChunk, search_chunks

LOGGER = logging.getLogger("docchunk.pipeline")
if not LOGGER.handlers:
    configured_level = os.getenv("DOCCHUNK_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    logging.basicConfig(level=getattr(logging, configured_level, logging.INFO), format="%(message)s")


def _log_event(*, pipeline_run_id: str, stage: str, event: str, elapsed_s: float | None = None, **extra: object) -> None:
    payload: dict[str, object] = {
        "pipeline_run_id": pipeline_run_id,
        "stage": stage,
        "event": event,
    }
    if elapsed_s is not None:
        payload["elapsed_s"] = round(elapsed_s, 3)
    payload.update(extra)
    LOGGER.info(json.dumps(payload, sort_keys=True, default=str))


def _resolve_chunk_options(
    base: ChunkOptions,
    *,
    chunk_size: int | None,
    overlap_size: int | None,
) -> ChunkOptions:
    if chunk_size is not None:
        base = replace(base, chunk_size=chunk_size)
    if overlap_size is not None:
        base = replace(base, overlap_size=overlap_size)
    return base.validate()


def run_chunk(
    path: str,
    *,
    chunk_size: int | None = None,
    overlap_size: int | None = None,
) -> list[dict[str, object]]:
    """Chunk a single local file without touching any external service."""

    options = _resolve_chunk_options(load_chunk_options(), chunk_size=chunk_size, overlap_size=overlap_size)
    with open(path, encoding="utf-8") as handle:
        text = handle.read()
    return [asdict(chunk) for chunk in chunk_text(text, options)]


def run_ingestion(
    paths: list[str],
    *,
    workspace_id: str,
    pipeline_run_id: str | None = None,
    chunk_size: int | None = None,
    overlap_size: int | None = None,
    embedding_batch_size: int | None = None,
    embedding_model_override: str | None = None,
    dry_run: bool = False,
) -> str:
    pipeline_run_id = pipeline_run_id or str(uuid.uuid4())

    start = time.perf_counter()
    _log_event(pipeline_run_id=pipeline_run_id, stage="ingestion", event="start", workspace_id=workspace_id)

    if dry_run:
        options = _resolve_chunk_options(load_chunk_options(), chunk_size=chunk_size, overlap_size=overlap_size)
    else:
        settings = load_settings()
        options = _resolve_chunk_options(
            settings.chunk_options(), chunk_size=chunk_size, overlap_size=overlap_size
        )

    documents = load_documents(paths, workspace_id=workspace_id)
    document_chunks = chunk_documents(documents, options)

    embeddings_upserted = 0
    embedding_model = None
    if not dry_run and document_chunks:
        embedding_model = embedding_model_override or settings.openai_embedding_model
        embedded = embed_chunks(
            document_chunks,
            settings=settings,
            model=embedding_model,
            batch_size=embedding_batch_size or settings.embedding_batch_size,
        )

        import psycopg

        with psycopg.connect(settings.postgres_dsn) as connection:
            embeddings_upserted = upsert_embeddings(connection, embedded)
            connection.commit()

    elapsed = time.perf_counter() - start
    _log_event(
        pipeline_run_id=pipeline_run_id,
        stage="ingestion",
        event="complete",
        elapsed_s=elapsed,
        workspace_id=workspace_id,
        documents_loaded=len(documents),
        chunks_created=len(document_chunks),
        embeddings_upserted=embeddings_upserted,
        embedding_model=embedding_model,
        chunk_size=options.chunk_size,
        overlap_size=options.overlap_size,
        dry_run=dry_run,
    )
    return pipeline_run_id


def run_search(
    query: str,
    *,
    workspace_id: str,
    limit: int | None = None,
    min_similarity: float | None = None,
    pipeline_run_id: str | None = None,
) -> list[RetrievedChunk]:
    pipeline_run_id = pipeline_run_id or str(uuid.uuid4())

    start = time.perf_counter()
    _log_event(pipeline_run_id=pipeline_run_id, stage="search", event="start", workspace_id=workspace_id)

    settings = load_settings()
    limit = limit if limit is not None else settings.search_limit
    min_similarity = min_similarity if min_similarity is not None else settings.search_min_similarity

    query_embedding = embed_query(query, settings=settings)

    import psycopg

    with psycopg.connect(settings.postgres_dsn) as connection:
        results = search_chunks(
            connection,
            workspace_id=workspace_id,
            query_embedding=query_embedding,
            limit=limit,
            min_similarity=min_similarity,
        )

    elapsed = time.perf_counter() - start
    _log_event(
        pipeline_run_id=pipeline_run_id,
        stage="search",
        event="complete",
        elapsed_s=elapsed,
        workspace_id=workspace_id,
        match_count=len(results),
        scores=[round(result.similarity, 4) for result in results],
    )
    return results


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chunk, ingest and search documents")
    parser.add_argument("--pipeline-run-id", default=None, help="Run identifier used in log events")

    subparsers = parser.add_subparsers(dest="stage", required=True)

    chunk_parser = subparsers.add_parser("chunk", help="Print the chunks of one file as JSON")
    chunk_parser.add_argument("path")
    chunk_parser.add_argument("--chunk-size", type=int, default=None)
    chunk_parser.add_argument("--overlap-size", type=int, default=None)

    ingest_parser = subparsers.add_parser("ingest", help="Chunk, embed and store documents")
    ingest_parser.add_argument("paths", nargs="+")
    ingest_parser.add_argument("--workspace-id", required=True)
    ingest_parser.add_argument("--chunk-size", type=int, default=None)
    ingest_parser.add_argument("--overlap-size", type=int, default=None)
    ingest_parser.add_argument("--embedding-batch-size", type=int, default=None)
    ingest_parser.add_argument("--embedding-model", default=None)
    ingest_parser.add_argument("--dry-run", action="store_true", help="Stop after chunking")

    search_parser = subparsers.add_parser("search", help="Semantic search within a workspace")
    search_parser.add_argument("query")
    search_parser.add_argument("--workspace-id", required=True)
    search_parser.add_argument("--limit", type=int, default=None)
    search_parser.add_argument("--min-similarity", type=float, default=None)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.stage == "chunk":
        chunks = run_chunk(args.path, chunk_size=args.chunk_size, overlap_size=args.overlap_size)
        print(json.dumps(chunks, indent=2))
    elif args.stage == "ingest":
        pipeline_run_id = run_ingestion(
            args.paths,
            workspace_id=args.workspace_id,
            pipeline_run_id=args.pipeline_run_id,
            chunk_size=args.chunk_size,
            overlap_size=args.overlap_size,
            embedding_batch_size=args.embedding_batch_size,
            embedding_model_override=args.embedding_model,
            dry_run=args.dry_run,
        )
        print(pipeline_run_id)
    else:
        results = run_search(
            args.query,
            workspace_id=args.workspace_id,
            limit=args.limit,
            min_similarity=args.min_similarity,
            pipeline_run_id=args.pipeline_run_id,
        )
        print(json.dumps([asdict(result) for result in results], indent=2))


if __name__ == "__main__":
    main()
