"""Tests for text normalization."""

from __future__ import annotations

import pytest

from avatar_rag.ingest.normalizer import (
    clean,
    clean_transcript,
    estimate_token_count,
    extract_keywords,
)


# ------------------------------------------------------------------
# clean
# ------------------------------------------------------------------


def test_clean_collapses_whitespace():
    assert clean("  a \t b\r\n\n\n c  ") == "a b\nc"


def test_clean_empty():
    assert clean("") == ""
    assert clean("   \n\t ") == ""


@pytest.mark.parametrize(
    "text",
    [
        "plain text",
        "  lots   of\t\tspace  ",
        "line one\r\n\r\n\r\nline two",
        " \n leading newline and trailing \n ",
        "mixed \n \n \t tabs\n\n",
    ],
)
def test_clean_is_idempotent(text):
    once = clean(text)
    assert clean(once) == once


def test_clean_keeps_single_newlines():
    assert clean("first\nsecond") == "first\nsecond"


# ------------------------------------------------------------------
# clean_transcript
# ------------------------------------------------------------------


def test_clean_transcript_removes_timestamps_and_speakers():
    raw = "[00:01] Speaker 1: Hello there\n(01:23) Host: welcome back [1:02:03]"
    assert clean_transcript(raw) == "Hello there\nwelcome back"


def test_clean_transcript_strips_full_name_labels():
    assert clean_transcript("Jane Doe: So today we cook pasta.") == "So today we cook pasta."


def test_clean_transcript_keeps_unlabelled_lines():
    raw = "Today we talk about lenses and why they matter."
    assert clean_transcript(raw) == raw


def test_clean_transcript_keeps_colons_inside_sentences():
    raw = "the ratio is 3:2 for this sensor"
    assert clean_transcript(raw) == raw


def test_clean_transcript_empty():
    assert clean_transcript("") == ""


# ------------------------------------------------------------------
# estimate_token_count
# ------------------------------------------------------------------


def test_estimate_token_count_empty_is_zero():
    assert estimate_token_count("") == 0


@pytest.mark.parametrize("length,expected", [(1, 1), (4, 1), (5, 2), (8, 2), (1501, 376)])
def test_estimate_token_count_rounds_up(length, expected):
    assert estimate_token_count("x" * length) == expected


def test_estimate_token_count_monotonic():
    counts = [estimate_token_count("y" * n) for n in range(0, 200)]
    assert counts == sorted(counts)


# ------------------------------------------------------------------
# extract_keywords
# ------------------------------------------------------------------


def test_extract_keywords_ranks_by_frequency():
    text = "Camera settings. Camera lenses! The camera and the lenses, and light."
    assert extract_keywords(text, 2) == ["camera", "lenses"]


def test_extract_keywords_drops_stop_words_and_short_words():
    keywords = extract_keywords("the and of to is an a it go")
    assert keywords == []


def test_extract_keywords_empty():
    assert extract_keywords("") == []
