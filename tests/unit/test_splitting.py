"""Tests for markdown parsing, chunking and document splitting."""
import pytest

from docsqa.loaders.base import LoadedDocument
from docsqa.rag.chunker import TextChunker
from docsqa.rag.md_parser import MarkdownParser
from docsqa.rag.splitter import MarkdownSplitter, point_id_for

DOC = """---
title: Handbook
tags: [ops]
created: 2024-05-01
---
Intro text.

# Setup

Install it.

## Linux

Use the package.

```bash
# not a heading
make install
```

# Usage

Run it.
"""


def test_frontmatter_is_parsed_and_stripped():
    doc = MarkdownParser().parse(DOC, source="handbook.md")

    assert doc.frontmatter["title"] == "Handbook"
    assert doc.body.startswith("Intro text.")


def test_invalid_frontmatter_is_ignored():
    doc = MarkdownParser().parse("---\n: [\n---\nBody\n")

    assert doc.frontmatter == {}


def test_headings_inside_code_fences_are_ignored():
    doc = MarkdownParser().parse(DOC)

    assert [h.text for h in doc.headings] == ["Setup", "Linux", "Usage"]


def test_sections_carry_heading_breadcrumbs():
    parser = MarkdownParser()
    sections = parser.split_sections(parser.parse(DOC))

    assert [s.heading_context for s in sections] == [
        "",
        "# Setup",
        "# Setup > ## Linux",
        "# Usage",
    ]
    assert sections[0].text == "Intro text."
    assert sections[2].text.startswith("## Linux")
    assert "# not a heading" in sections[2].text


def test_document_metadata_from_frontmatter():
    parser = MarkdownParser()
    metadata = parser.get_document_metadata(parser.parse(DOC))

    assert metadata == {"title": "Handbook", "tags": ["ops"], "created": "2024-05-01"}


def test_title_falls_back_to_first_heading():
    parser = MarkdownParser()

    assert parser.get_document_metadata(parser.parse("# Guide\n\ntext"))["title"] == "Guide"


def test_short_text_is_one_chunk():
    chunks = TextChunker(chunk_size=100, chunk_overlap=10).chunk_text("short text")

    assert len(chunks) == 1
    assert chunks[0].content == "short text"


def test_long_text_is_chunked_with_overlap_and_full_coverage():
    text = " ".join(f"Sentence number {i}." for i in range(200))
    chunker = TextChunker(chunk_size=200, chunk_overlap=40)

    chunks = chunker.chunk_text(text)

    assert len(chunks) > 1
    assert all(len(c.content) <= 200 for c in chunks)
    assert chunks[0].char_start == 0
    assert chunks[-1].char_end == len(text)
    for previous, current in zip(chunks, chunks[1:]):
        assert current.char_start < previous.char_end
        assert current.char_start > previous.char_start
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))


def test_overlap_must_be_smaller_than_chunk_size():
    with pytest.raises(ValueError):
        TextChunker(chunk_size=100, chunk_overlap=100)


def test_splitter_builds_nodes_with_stable_ids():
    splitter = MarkdownSplitter(chunker=TextChunker(chunk_size=2400, chunk_overlap=320))
    document = LoadedDocument("handbook.md", DOC, {"source": "local"})

    nodes = splitter.split(document)

    assert [n.chunk_index for n in nodes] == [0, 1, 2, 3]
    assert nodes[1].node_id == point_id_for("handbook.md", 1)
    assert splitter.split(document)[1].node_id == nodes[1].node_id

    payload = nodes[2].payload()
    assert payload["doc_id"] == "handbook.md"
    assert payload["heading_context"] == "# Setup > ## Linux"
    assert payload["metadata"]["title"] == "Handbook"
    assert payload["metadata"]["source"] == "local"
    assert payload["text"].startswith("## Linux")


def test_loader_title_wins_over_headings():
    document = LoadedDocument("page-1", "# Other\n\nBody", {"title": "Notion Title"})

    nodes = MarkdownSplitter().split(document)

    assert nodes[0].metadata["title"] == "Notion Title"


def test_oversized_sections_are_rechunked():
    body = "# Big\n\n" + " ".join(f"Line {i}." for i in range(100))
    splitter = MarkdownSplitter(chunker=TextChunker(chunk_size=120, chunk_overlap=20))

    nodes = splitter.split(LoadedDocument("big.md", body))

    assert len(nodes) > 1
    assert all(n.heading_context == "# Big" for n in nodes)
    assert all(len(n.text) <= 120 for n in nodes)


def test_empty_document_has_no_nodes():
    assert MarkdownSplitter().split(LoadedDocument("empty.md", "  \n")) == []
