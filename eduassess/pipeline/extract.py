"""Structured field extraction from the free-text evaluation response."""

from __future__ import annotations

import re
from dataclasses import dataclass

from eduassess.pipeline.prompt import SCORE_LABEL, SUMMARY_LABEL, bold

SCORE_NOT_FOUND = "Baholanmagan"
SUMMARY_NOT_FOUND = "Xulosa mavjud emas"


def _label_pattern(label: str) -> re.Pattern[str]:
    # "." stops at the newline, so only the rest of the label's line is captured.
    return re.compile(re.escape(bold(label)) + r"[ \t]*(.*)")


_SCORE_PATTERN = _label_pattern(SCORE_LABEL)
_SUMMARY_PATTERN = _label_pattern(SUMMARY_LABEL)


@dataclass
class ExtractedEvaluation:
    score: str
    summary: str
    details: str


def _first_line_value(pattern: re.Pattern[str], text: str, fallback: str) -> str:
    match = pattern.search(text)
    if not match:
        return fallback
    value = match.group(1).strip()
    return value or fallback


def extract(raw_text: str) -> ExtractedEvaluation:
    return ExtractedEvaluation(
        score=_first_line_value(_SCORE_PATTERN, raw_text, SCORE_NOT_FOUND),
        summary=_first_line_value(_SUMMARY_PATTERN, raw_text, SUMMARY_NOT_FOUND),
        details=raw_text,
    )
