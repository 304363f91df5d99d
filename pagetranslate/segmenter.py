"""Split oversized text into boundary-respecting segments.

Boundaries are tried from coarse to fine: blank-line paragraphs, sentence
punctuation, comma/semicolon punctuation and finally whitespace. Pieces are
packed greedily; an accumulator that is still shorter than ``min_length``
keeps absorbing finer pieces instead of being flushed as a tiny segment.
"""
from __future__ import annotations

import re
from typing import Callable, List, Sequence

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

# Latin punctuation needs trailing whitespace to count as a boundary ("3.5",
# "e.g.x"); CJK punctuation is a boundary on its own. A punctuation run at the
# start of a piece is a piece of its own.
SENTENCE_PATTERN = re.compile(
    r".*?(?:[.!?]+(?:\s+|$)|[。！？]+\s*|$)", re.DOTALL
)
CLAUSE_PATTERN = re.compile(
    r".*?(?:[,;]+(?:\s+|$)|[，；]+\s*|$)", re.DOTALL
)
WORD_PATTERN = re.compile(r"\S+\s*|\s+")

CJK_SENTENCE_END = "。！？，；"


def _consume_pattern(pattern: re.Pattern, text: str) -> List[str]:
    """Split text by greedily consuming matches from the start of a string."""

    pieces: List[str] = []
    index = 0
    length = len(text)
    while index < length:
        match = pattern.match(text, index)
        if not match or match.end() == index:
            pieces.append(text[index:])
            break
        pieces.append(text[index:match.end()])
        index = match.end()
    return pieces


def _split_sentences(text: str) -> List[str]:
    return _consume_pattern(SENTENCE_PATTERN, text)


def _split_clauses(text: str) -> List[str]:
    return _consume_pattern(CLAUSE_PATTERN, text)


def _split_words(text: str) -> List[str]:
    return WORD_PATTERN.findall(text)


_REFINERS: Sequence[Callable[[str], List[str]]] = (
    _split_sentences,
    _split_clauses,
    _split_words,
)


class _Accumulator:
    """Greedy packer shared by every refinement level."""

    def __init__(self, max_length: int, min_length: int):
        self.max_length = max_length
        self.min_length = min_length
        self.segments: List[str] = []
        self.current = ""

    def flush(self) -> None:
        segment = self.current.strip()
        if segment:
            self.segments.append(segment)
        self.current = ""

    def add(self, piece: str, level: int) -> None:
        if not piece:
            return
        if len(self.current) + len(piece) <= self.max_length:
            self.current += piece
            return
        if len(piece) <= self.max_length and len(self.current.strip()) >= self.min_length:
            self.flush()
            self.current = piece
            return

        # Either the piece is too big on its own or the accumulator is still
        # too short to stand alone: retry with finer boundaries.
        while level < len(_REFINERS):
            parts = _REFINERS[level](piece)
            level += 1
            if len(parts) > 1:
                for part in parts:
                    self.add(part, level)
                return

        # Indivisible piece. Staying under max_length wins over min_length.
        self.flush()
        if len(piece) > self.max_length:
            self.current = piece
            self.flush()
        else:
            self.current = piece


def split_into_segments(text: str, max_length: int, min_length: int = 0) -> List[str]:
    """Split ``text`` into ordered segments of at most ``max_length`` chars.

    Every segment except possibly the last of a paragraph is at least
    ``min_length`` chars long where the boundaries allow it. A single token
    longer than ``max_length`` cannot be split and is returned as is.
    """
    if max_length < 1:
        raise ValueError(f"max_length must be positive, got {max_length}")

    segments: List[str] = []
    for paragraph in PARAGRAPH_BREAK.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= max_length:
            segments.append(paragraph)
            continue

        accumulator = _Accumulator(max_length, min(min_length, max_length))
        accumulator.add(paragraph, 0)
        accumulator.flush()
        segments.extend(accumulator.segments)
    return segments


def join_segments(parts: Sequence[str]) -> str:
    """Rejoin translated segments of one text in order."""

    joined = ""
    for part in parts:
        if not part:
            continue
        if joined and joined[-1] not in CJK_SENTENCE_END:
            joined += " "
        joined += part
    return joined
