"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Transcript text helpers: timestamp cleanup, hallucination filtering and assembly.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Callable, Iterable

from .models import ChunkResult, ChunkStatus
from .pipeline_config import HallucinationThresholds

logger = logging.getLogger(__name__)

HallucinationPredicate = Callable[[str], bool]

_TIMESTAMP_PATTERNS = (
    re.compile(r"\[\d{2}:\d{2}\.\d{3}\s*-->\s*\d{2}:\d{2}\.\d{3}\]"),
    re.compile(r"\[\d{2}:\d{2}:\d{2}\.\d{3}\s*-->\s*\d{2}:\d{2}:\d{2}\.\d{3}\]"),
    re.compile(r"\[\d{2}:\d{2}\.\d{3}\]"),
)


def clean_transcription(text: str) -> str:
    """Strip timestamp markers and collapse whitespace, keeping line breaks between speakers."""

    for pattern in _TIMESTAMP_PATTERNS:
        text = pattern.sub("", text)
    lines = (re.sub(r"\s+", " ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


@lru_cache(maxsize=16)
def _repetition_patterns(thresholds: HallucinationThresholds) -> tuple[re.Pattern, re.Pattern]:
    char_pattern = re.compile(r"(.)\1{%d,}" % (thresholds.char_repeat - 1))
    substring_pattern = re.compile(
        r"(.{1,%d})\1{%d,}" % (thresholds.max_pattern_length, thresholds.pattern_repeat - 1)
    )
    return char_pattern, substring_pattern


def is_likely_hallucination(text: str, thresholds: HallucinationThresholds = HallucinationThresholds()) -> bool:
    """Return True when ``text`` shows the pathological repetition of a hallucinating model.

    A single character repeated ``char_repeat`` times in a row, or a substring of up to
    ``max_pattern_length`` characters repeated ``pattern_repeat`` times in a row, counts.
    """

    char_pattern, substring_pattern = _repetition_patterns(thresholds)
    if char_pattern.search(text):
        logger.warning("Detected excessive character repetition")
        return True
    if substring_pattern.search(text):
        logger.warning("Detected excessive pattern repetition")
        return True
    return False


def make_hallucination_filter(thresholds: HallucinationThresholds) -> HallucinationPredicate:
    def predicate(text: str) -> bool:
        return is_likely_hallucination(text, thresholds)

    return predicate


def filter_chunk_text(index: int, text: str, predicate: HallucinationPredicate) -> ChunkResult:
    """Wrap a chunk transcript in a result, discarding it if the predicate flags it."""

    text = clean_transcription(text)
    if text and predicate(text):
        logger.warning("Detected likely hallucination in chunk %d, skipping", index)
        return ChunkResult(index=index, text="", status=ChunkStatus.DISCARDED)
    return ChunkResult(index=index, text=text, status=ChunkStatus.OK)


def assemble_transcript(results: Iterable[ChunkResult]) -> str:
    """Join non-empty chunk texts in index order with single spaces."""

    ordered = sorted(results, key=lambda result: result.index)
    return " ".join(result.text for result in ordered if result.text)
