"""Document loading and per-document chunking for ingestion."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import logging
from pathlib import Path

from ..processing.chunking import ChunkOptions, InvalidConfiguration, chunk_text

LOGGER = logging.getLogger("docchunk.ingestion.documents")


@dataclass(frozen=True)
class Document:
    """Source text owned by a workspace."""

    document_id: str
    workspace_id: str
    content: str
    url: str | None = None


@dataclass(frozen=True)
class DocumentChunk:
    """A chunk tagged with the document and workspace it came from."""

    document_id: str
    workspace_id: str
    url: str | None
    content: str
    start_char: int
    end_char: int

    @property
    def position_key(self) -> str:
        return f"{self.workspace_id}:{self.document_id}:{self.start_char}-{self.end_char}"


def load_documents(paths: Iterable[str | Path], *, workspace_id: str) -> list[Document]:
    """Read UTF-8 text files into documents, skipping empty ones."""

    documents: list[Document] = []
    for path in sorted(Path(item) for item in paths):
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            LOGGER.error("Failed to read document %s for workspace %s", path, workspace_id)
            raise

        if not content.strip():
            LOGGER.info("Skipping empty document %s", path)
            continue

        documents.append(
            Document(
                document_id=path.as_posix(),
                workspace_id=workspace_id,
                content=content,
                url=path.resolve().as_uri(),
            )
        )

    return documents


def chunk_documents(documents: Sequence[Document], options: ChunkOptions) -> list[DocumentChunk]:
    """Chunk every document in order.

    A configuration error aborts ingestion at the document that hit it; the
    document and options are logged before the error propagates.
    """

    document_chunks: list[DocumentChunk] = []
    for document in documents:
        try:
            chunks = chunk_text(document.content, options)
        except InvalidConfiguration:
            LOGGER.error(
                "Chunking failed for document %s in workspace %s (chunk_size=%s, overlap_size=%s)",
                document.document_id,
                document.workspace_id,
                options.chunk_size,
                options.overlap_size,
            )
            raise

        if not chunks:
            LOGGER.info("Document %s produced no chunks", document.document_id)
            continue

        document_chunks.extend(
            DocumentChunk(
                document_id=document.document_id,
                workspace_id=document.workspace_id,
                url=document.url,
                content=chunk.content,
                start_char=chunk.start_char,
                end_char=chunk.end_char,
            )
            for chunk in chunks
        )

    return document_chunks
