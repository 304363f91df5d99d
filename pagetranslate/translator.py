"""Caller-side helpers: filter raw texts, submit them, write results back."""

from __future__ import annotations

import logging
import re
from typing import Hashable, Iterable, Mapping, Optional, Tuple

from pagetranslate.config import MIN_TEXT_LENGTH
from pagetranslate.scheduler import (
    ProgressCallback,
    RequestScheduler,
    SubmissionResult,
    TranslationUnit,
)

logger = logging.getLogger(__name__)

_MAX_LOG_SNIPPET = 80


def _normalize_text(text: str) -> str:
    """Remove soft hyphens and other invisible characters."""

    return (
        text.replace("\u00AD", "")  # Soft hyphen
        .replace("\u200B", "")  # Zero-width space
        .replace("\u200C", "")  # Zero-width non-joiner
        .replace("\u200D", "")  # Zero-width joiner
    )


def _is_punctuation_only(text: str) -> bool:
    """Return True when the string contains only punctuation/separators."""

    cleaned = text.strip()
    if not cleaned:
        return True
    return all(c in "|·•\u00A0\u2022\u2023-–—\t " for c in cleaned)


def _snip(text: str, length: int = _MAX_LOG_SNIPPET) -> str:
    """Return a compact single-line snippet for logging."""

    cleaned = re.sub(r"\s+", " ", text).strip()
    if len(cleaned) <= length:
        return cleaned
    return cleaned[: length - 3] + "..."


def is_translatable(text: Optional[str]) -> bool:
    """Heuristic filter applied to raw text nodes before submission."""

    if not text:
        return False
    normalized = _normalize_text(text).strip()
    if len(normalized) < MIN_TEXT_LENGTH:
        return False
    return not _is_punctuation_only(normalized)


def build_units(items: Iterable[Tuple[Hashable, str]]) -> list[TranslationUnit]:
    """Turn ``(id, text)`` pairs into units, dropping untranslatable texts."""

    units: list[TranslationUnit] = []
    skipped = 0
    for unit_id, text in items:
        if not is_translatable(text):
            skipped += 1
            continue
        units.append(TranslationUnit(id=unit_id, text=_normalize_text(text)))
    if skipped:
        logger.debug("Skipped %d untranslatable texts", skipped)
    return units


async def translate_texts(
    texts: list[str],
    scheduler: RequestScheduler,
    progress: Optional[ProgressCallback] = None,
) -> list[str]:
    """Translate a list of strings while preserving order.

    Skipped or failed entries keep their original text.

    Raises:
        TranslationError: The whole submission failed (e.g. missing or
            rejected API key)
    """
    if not texts:
        return []

    units = build_units(enumerate(texts))
    results = list(texts)
    logger.info("Starting translation: %d texts, %d need translation", len(texts), len(units))
    if not units:
        return results

    outcome = await scheduler.submit(units, progress=progress)
    for index, result in outcome.items():
        if result.ok:
            results[index] = result.text
        else:
            logger.warning("Keeping original for idx %d (%s): %s", index, result.error, _snip(texts[index]))

    logger.info("Translation complete: %d/%d texts translated", len(outcome.translations), len(units))
    return results


class TranslationSession:
    """Tracks which texts of a page were translated so they can be restored.

    New texts (e.g. revealed by scrolling) can be submitted repeatedly;
    ids that were already translated are not sent again.
    """

    def __init__(self, scheduler: RequestScheduler):
        self.scheduler = scheduler
        self.originals: dict[Hashable, str] = {}
        self.translations: dict[Hashable, str] = {}

    def is_translated(self, unit_id: Hashable) -> bool:
        return unit_id in self.translations

    async def translate(
        self,
        items: Mapping[Hashable, str],
        progress: Optional[ProgressCallback] = None,
    ) -> SubmissionResult:
        """Translate the texts of ``items`` not translated yet."""

        fresh = [(unit_id, text) for unit_id, text in items.items() if unit_id not in self.translations]
        units = build_units(fresh)
        if not units:
            return SubmissionResult({})

        result = await self.scheduler.submit(units, progress=progress)
        for unit_id, unit_result in result.items():
            if unit_result.ok:
                self.originals[unit_id] = items[unit_id]
                self.translations[unit_id] = unit_result.text
        return result

    def stop(self) -> int:
        """Stop pending work; already translated texts stay translated."""
        return self.scheduler.stop()

    def restore(self) -> dict[Hashable, str]:
        """Return the original texts of translated ids and forget them."""

        originals = dict(self.originals)
        self.originals.clear()
        self.translations.clear()
        return originals
