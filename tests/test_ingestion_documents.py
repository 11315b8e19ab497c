import logging

import pytest

from docchunk.ingestion.documents import Document, chunk_documents, load_documents
from docchunk.processing.chunking import ChunkOptions, InvalidConfiguration


def test_load_documents_sorts_paths_and_skips_empty_files(tmp_path) -> None:
    (tmp_path / "b.md").write_text("# Second\n\nBody", encoding="utf-8")
    (tmp_path / "a.md").write_text("First body", encoding="utf-8")
    (tmp_path / "empty.md").write_text("  \n", encoding="utf-8")

    documents = load_documents(
        [tmp_path / "b.md", tmp_path / "empty.md", tmp_path / "a.md"],
        workspace_id="ws-1",
    )

    assert [document.document_id for document in documents] == [
        (tmp_path / "a.md").as_posix(),
        (tmp_path / "b.md").as_posix(),
    ]
    assert all(document.workspace_id == "ws-1" for document in documents)
    assert documents[0].url.startswith("file://")


def test_chunk_documents_tags_chunks_with_their_document() -> None:
    documents = [
        Document(document_id="faq", workspace_id="ws-1", content="Short answer."),
        Document(document_id="blank", workspace_id="ws-1", content="   "),
        Document(document_id="guide", workspace_id="ws-1", content="Step one. " * 60, url="https://example.com/guide"),
    ]

    chunks = chunk_documents(documents, ChunkOptions(chunk_size=200, overlap_size=20))

    assert chunks[0].document_id == "faq"
    assert chunks[0].position_key == "ws-1:faq:0-13"
    assert {chunk.document_id for chunk in chunks} == {"faq", "guide"}
    assert len([chunk for chunk in chunks if chunk.document_id == "guide"]) > 1
    assert all(chunk.url == "https://example.com/guide" for chunk in chunks if chunk.document_id == "guide")


def test_chunk_documents_logs_document_and_configuration_on_failure(caplog) -> None:
    documents = [Document(document_id="broken-doc", workspace_id="ws-9", content="Some text.")]

    with caplog.at_level(logging.ERROR, logger="docchunk.ingestion.documents"):
        with pytest.raises(InvalidConfiguration):
            chunk_documents(documents, ChunkOptions(chunk_size=0))

    assert "broken-doc" in caplog.text
    assert "chunk_size=0" in caplog.text


def test_load_documents_logs_path_of_missing_file(tmp_path, caplog) -> None:
    missing = tmp_path / "missing.md"

    with caplog.at_level(logging.ERROR, logger="docchunk.ingestion.documents"):
        with pytest.raises(FileNotFoundError):
            load_documents([missing], workspace_id="ws-3")

    assert str(missing) in caplog.text
    assert "ws-3" in caplog.text


def test_load_documents_logs_path_of_undecodable_file(tmp_path, caplog) -> None:
    binary = tmp_path / "image.md"
    binary.write_bytes(b"\xff\xfe\x00broken")

    with caplog.at_level(logging.ERROR, logger="docchunk.ingestion.documents"):
        with pytest.raises(UnicodeDecodeError):
            load_documents([binary], workspace_id="ws-3")

    assert str(binary) in caplog.text
