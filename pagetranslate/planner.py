"""Group translation units into size-capped batches.

Each batch remembers, per item, which unit it came from and which
sub-segment of that unit it is, so translated text can be written back by
index regardless of the order in which batches complete.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

from pagetranslate.config.constants import (
    BATCH_SEPARATOR,
    DEFAULT_MAX_SEGMENT_LENGTH,
    DEFAULT_MIN_SEGMENT_LENGTH,
)
from pagetranslate.segmenter import split_into_segments

logger = logging.getLogger(__name__)


class HasText(Protocol):
    text: str


@dataclass(frozen=True)
class BatchItem:
    """One text sent inside a batch.

    ``part`` is the sub-segment position within the source unit and
    ``parts`` the number of sub-segments that unit was split into.
    """

    unit_index: int
    part: int
    parts: int
    text: str


@dataclass
class Batch:
    """Ordered items sent to the translation API in a single call."""

    batch_id: int
    items: List[BatchItem] = field(default_factory=list)

    def text(self, separator: str = BATCH_SEPARATOR) -> str:
        return separator.join(item.text for item in self.items)

    @property
    def char_count(self) -> int:
        return sum(len(item.text) for item in self.items)

    def __len__(self) -> int:
        return len(self.items)


def _flatten(text: str, separator: str) -> str:
    """Remove the separator from a text so the demux split stays aligned."""
    if separator not in text:
        return text
    return " ".join(part.strip() for part in text.split(separator) if part.strip())


def plan_batches(
    units: Sequence[HasText],
    max_batch_chars: int,
    *,
    max_segment_length: int = DEFAULT_MAX_SEGMENT_LENGTH,
    min_segment_length: int = DEFAULT_MIN_SEGMENT_LENGTH,
    separator: str = BATCH_SEPARATOR,
) -> List[Batch]:
    """Plan the batches needed to translate ``units`` in order.

    Args:
        units: Objects with a ``text`` attribute, in caller order
        max_batch_chars: Cap on the joined batch text (separators included)
        max_segment_length: Longer unit texts are pre-split by the segmenter
        min_segment_length: Lower bound passed to the segmenter
        separator: String used to join item texts within a batch

    Returns:
        Batches in dispatch order; an item larger than the cap gets a batch
        of its own.
    """
    items: List[BatchItem] = []
    for index, unit in enumerate(units):
        text = unit.text
        if len(text) > max_segment_length:
            pieces = split_into_segments(text, max_segment_length, min_segment_length)
            logger.debug("Unit %d (%d chars) split into %d segments", index, len(text), len(pieces))
        else:
            pieces = [text]
        pieces = [_flatten(piece, separator) for piece in pieces]
        pieces = [piece for piece in pieces if piece] or [text.strip()]
        for part, piece in enumerate(pieces):
            items.append(BatchItem(unit_index=index, part=part, parts=len(pieces), text=piece))

    batches: List[Batch] = []
    current: List[BatchItem] = []
    running_total = 0

    for item in items:
        size = len(item.text)
        joined_size = running_total + len(separator) + size if current else size
        if current and joined_size > max_batch_chars:
            batches.append(Batch(batch_id=len(batches) + 1, items=current))
            current = []
            joined_size = size
        current.append(item)
        running_total = joined_size

    if current:
        batches.append(Batch(batch_id=len(batches) + 1, items=current))

    return batches
