from __future__ import annotations

import pytest

from courserag.ingestion.chunker import chunk_text


def test_short_text_is_single_chunk():
    assert chunk_text("Photosynthesis converts light into energy.") == [
        "Photosynthesis converts light into energy."
    ]


def test_text_exactly_chunk_size_is_returned_unchanged():
    text = "x" * 1000
    assert chunk_text(text) == [text]


@pytest.mark.parametrize("text", ["", "   ", "\n\n"])
def test_empty_or_blank_text_has_no_chunks(text):
    assert chunk_text(text) == []


def test_long_text_without_breaks_yields_three_overlapping_chunks():
    text = "abcdefghij" * 250
    chunks = chunk_text(text, chunk_size=1000, overlap=200)

    assert [len(chunk) for chunk in chunks] == [1000, 1000, 900]
    assert chunks[0][-200:] == chunks[1][:200]
    assert chunks[1][-200:] == chunks[2][:200]
    assert chunks[2] == text[1600:]


def test_window_snaps_to_sentence_boundary_in_second_half():
    text = "A" * 600 + "." + "B" * 600
    chunks = chunk_text(text, chunk_size=1000, overlap=200)

    assert chunks[0] == "A" * 600 + "."
    assert chunks[-1].endswith("B" * 600)


def test_boundary_exactly_at_window_end_is_kept():
    text = "A" * 1000 + "." + "B" * 600
    chunks = chunk_text(text, chunk_size=1000, overlap=200)

    assert chunks == ["A" * 1000 + ".", text[801:]]


def test_newline_at_window_end_is_kept():
    text = "A" * 1000 + "\n" + "B" * 600
    chunks = chunk_text(text, chunk_size=1000, overlap=200)

    assert chunks[0] == "A" * 1000
    assert chunks[1] == text[801:]


def test_boundary_in_first_half_is_ignored():
    text = "A" * 100 + "." + "B" * 1400
    chunks = chunk_text(text, chunk_size=1000, overlap=200)

    assert len(chunks[0]) == 1000


def test_every_non_whitespace_character_is_covered():
    text = " ".join(f"Sentence {i} covers topic number {i}." for i in range(200))
    chunks = chunk_text(text, chunk_size=300, overlap=50)

    covered = set()
    for chunk in chunks:
        assert len(chunk) <= 301
        position = text.find(chunk)
        assert position >= 0
        covered.update(range(position, position + len(chunk)))
    missing = [index for index, char in enumerate(text) if not char.isspace() and index not in covered]
    assert missing == []


def test_overlap_not_smaller_than_chunk_size_still_terminates():
    chunks = chunk_text("x" * 50, chunk_size=10, overlap=10)

    assert len(chunks) == 41
    assert all(len(chunk) == 10 for chunk in chunks)


def test_overlap_larger_than_chunk_size_terminates():
    chunks = chunk_text("y" * 30, chunk_size=5, overlap=25)

    assert chunks
    assert all(len(chunk) == 5 for chunk in chunks)


def test_invalid_parameters_are_rejected():
    with pytest.raises(ValueError):
        chunk_text("text", chunk_size=0)
    with pytest.raises(ValueError):
        chunk_text("text", chunk_size=10, overlap=-1)
