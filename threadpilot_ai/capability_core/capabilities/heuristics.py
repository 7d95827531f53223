"""Deterministic keyword heuristics.

Used as the fallback path of ``categorizeMessage`` when the generation
collaborator is unavailable, and as the cheap pre-filter of
``detectSchedulingNeed`` so threads without any scheduling vocabulary never
reach the generation service.

Alphabetic phrases match on word boundaries; punctuation indicators match
literally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from ..schemas.capabilities import (
    CategorizationMethod,
    MessageCategory,
    MessageCategoryType,
    SchedulingUrgency,
)

URGENCY_KEYWORDS: Tuple[str, ...] = (
    # time-sensitive
    "urgent", "asap", "immediately", "right now", "deadline", "due today",
    "emergency", "crisis", "critical", "important", "priority",
    # meetings with urgency modifiers
    "meeting now", "call now", "call asap", "schedule now", "meeting urgent", "call urgent",
    # business critical
    "decision now", "approval now", "signature now", "approval urgent", "signature urgent",
    # problem indicators
    "issue now", "problem now", "error now", "bug now", "down now", "broken now", "failed now",
    # action required
    "need now", "required now", "must now", "please respond now", "need urgent",
)

URGENCY_PUNCTUATION: Tuple[str, ...] = ("!", "??")

URGENCY_MODIFIERS: Tuple[str, ...] = (
    "now", "asap", "immediately", "right now", "urgent", "critical",
    "emergency", "important", "priority", "deadline", "due today",
)

ACTION_WORDS: Tuple[str, ...] = ("call", "meeting", "text", "email", "respond", "reply", "check", "look", "review")

NORMAL_INDICATORS: Tuple[str, ...] = (
    "thanks", "thank you", "hi", "hello", "good morning", "good afternoon",
    "how are you", "hope you", "have a good", "weekend", "vacation",
    "casual", "just checking", "no rush", "when you have time",
    "when you have a sec", "when you have a second", "when you're free",
    "when you're available", "when convenient", "take your time", "no hurry",
    "whenever you can", "at your convenience", "whenever",
    "call me later", "text me later", "get back to me later",
    "when you get a chance", "when you can", "if you have time",
)

ACKNOWLEDGEMENT_INDICATORS: Tuple[str, ...] = (
    "ok", "okay", "got it", "noted", "fyi", "sounds good", "thanks", "thank you",
    "will do", "done", "cool", "great", "perfect", "lol",
)

SCHEDULING_KEYWORDS: Tuple[str, ...] = (
    "meet", "meeting", "call", "schedule", "reschedule", "sync", "catch up",
    "hop on", "availability", "available", "calendar", "invite",
    "when are you free", "what time works", "does tomorrow work",
)

_DURATION_RE = re.compile(r"\b(\d{1,3})\s*(minutes?|mins?|hours?|hrs?|h)\b", re.IGNORECASE)

DEFAULT_MEETING_MINUTES = 30
MIN_MEETING_MINUTES = 15
MAX_MEETING_MINUTES = 180


def _phrase_pattern(phrase: str) -> Pattern[str]:
    return re.compile(r"\b" + re.escape(phrase) + r"\b")


def _compile(phrases: Iterable[str]) -> List[Tuple[str, Pattern[str]]]:
    return [(p, _phrase_pattern(p)) for p in phrases]


_URGENCY = _compile(URGENCY_KEYWORDS)
_NORMAL = _compile(NORMAL_INDICATORS)
_ACK = _compile(ACKNOWLEDGEMENT_INDICATORS)
_SCHEDULING = _compile(SCHEDULING_KEYWORDS)
_CONTEXT = [
    re.compile(rf"\b{a}\s+{re.escape(m)}\b|\b{re.escape(m)}\s+{a}\b") for a in ACTION_WORDS for m in URGENCY_MODIFIERS
]


def _matches(text: str, compiled: Sequence[Tuple[str, Pattern[str]]]) -> Tuple[int, List[str]]:
    total = 0
    hits: List[str] = []
    for phrase, pattern in compiled:
        n = len(pattern.findall(text))
        if n:
            total += n
            hits.append(phrase)
    return total, hits


@dataclass(frozen=True)
class KeywordScores:
    urgency: int
    normal: int
    context: int
    acknowledgement: int
    signals: List[str]

    @property
    def total(self) -> int:
        return self.urgency + self.normal + self.context


def score_text(text: str) -> KeywordScores:
    lowered = text.lower()
    urgency, urgent_hits = _matches(lowered, _URGENCY)
    for mark in URGENCY_PUNCTUATION:
        n = lowered.count(mark)
        if n:
            urgency += n
            urgent_hits.append(mark)
    normal, normal_hits = _matches(lowered, _NORMAL)
    context = sum(len(p.findall(lowered)) for p in _CONTEXT)
    ack, ack_hits = _matches(lowered, _ACK)
    signals = list(dict.fromkeys(urgent_hits + normal_hits + ack_hits))
    return KeywordScores(urgency=urgency, normal=normal, context=context, acknowledgement=ack, signals=signals)


def heuristic_confidence(matches: int) -> float:
    if matches <= 0:
        return 0.3
    return min(0.8, 0.3 + 0.1 * matches)


def categorize_by_keywords(text: str) -> MessageCategory:
    """
    Classify a message into the urgency taxonomy without calling any model.

    Rules:
        - Normal indicators override urgency indicators, unless the urgency
          or contextual urgency score reaches 3.
        - Short acknowledgements without a question are ``aiHandled``.
        - Everything else is ``canWait``.
    """
    stripped = text.strip()
    if not stripped:
        return MessageCategory(
            category=MessageCategoryType.ai_handled,
            confidence=0.5,
            reasoning="Empty message; nothing to act on",
            method=CategorizationMethod.heuristic,
        )

    scores = score_text(stripped)
    urgent = (scores.normal == 0 and (scores.urgency > 0 or scores.context > 0)) or (
        scores.urgency >= 3 or scores.context >= 3
    )
    if urgent:
        category = MessageCategoryType.urgent
        reasoning = "Urgency keywords detected"
    elif scores.acknowledgement > 0 and "?" not in stripped and len(stripped.split()) <= 8:
        category = MessageCategoryType.ai_handled
        reasoning = "Short acknowledgement with no request"
    else:
        category = MessageCategoryType.can_wait
        reasoning = "No urgency indicators" if scores.normal == 0 else "Non-urgent phrasing detected"

    return MessageCategory(
        category=category,
        confidence=heuristic_confidence(scores.total + scores.acknowledgement),
        reasoning=f"{reasoning} (keyword fallback)",
        signals=scores.signals,
        method=CategorizationMethod.heuristic,
    )


def has_scheduling_intent(text: str) -> bool:
    lowered = text.lower()
    return any(p.search(lowered) for _, p in _SCHEDULING)


def clamp_duration(minutes: Optional[int]) -> int:
    if minutes is None or minutes <= 0:
        return DEFAULT_MEETING_MINUTES
    return max(MIN_MEETING_MINUTES, min(int(minutes), MAX_MEETING_MINUTES))


def guess_duration(text: str) -> int:
    """First explicit duration mentioned in ``text`` ("30 min", "1 hour"), clamped."""
    m = _DURATION_RE.search(text)
    if m is None:
        return DEFAULT_MEETING_MINUTES
    value = int(m.group(1))
    if m.group(2).lower().startswith("h"):
        value *= 60
    return clamp_duration(value)


def guess_urgency(text: str) -> SchedulingUrgency:
    scores = score_text(text)
    if scores.urgency > 0 or scores.context > 0:
        return SchedulingUrgency.high
    if scores.normal > 0:
        return SchedulingUrgency.low
    return SchedulingUrgency.medium
