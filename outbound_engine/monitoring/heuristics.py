"""Keyword heuristics applied to live call transcripts."""

import re
from typing import List, Tuple

POSITIVE_PHRASES = ("great", "interested", "yes", "sounds good", "perfect", "excellent")
NEGATIVE_PHRASES = ("not interested", "no thanks", "busy", "not now", "remove", "unsubscribe")

OBJECTION_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"not interested",
        r"don'?t have time",
        r"already have",
        r"too expensive",
        r"send me (some )?information",
        r"call (me )?back later",
        r"not the right time",
    )
]

AGENT_SPEAKERS = ("ai", "agent", "assistant", "bot")
PROSPECT_SPEAKERS = ("user", "customer", "prospect")

_SPEAKER_PREFIX = re.compile(r"^\s*([A-Za-z]+)\s*:\s*")

NEUTRAL_SENTIMENT = 0.5
POSITIVE_WEIGHT = 0.05
NEGATIVE_WEIGHT = 0.08


def analyze_sentiment(text: str) -> float:
    """
    Score a transcript between 0 and 1.

    Starts at 0.5, adds 0.05 per case-insensitive occurrence of a positive
    phrase and subtracts 0.08 per occurrence of a negative phrase, then
    clamps. Substrings count, so "interested" also matches inside
    "not interested".
    """
    lowered = (text or "").lower()
    positive = sum(lowered.count(phrase) for phrase in POSITIVE_PHRASES)
    negative = sum(lowered.count(phrase) for phrase in NEGATIVE_PHRASES)
    score = NEUTRAL_SENTIMENT + positive * POSITIVE_WEIGHT - negative * NEGATIVE_WEIGHT
    return max(0.0, min(1.0, score))


def extract_objections(text: str) -> List[str]:
    """Return the matched text of every objection pattern found, in pattern order."""
    if not text:
        return []
    found = []
    for pattern in OBJECTION_PATTERNS:
        match = pattern.search(text)
        if match:
            found.append(match.group(0))
    return found


def split_utterances(transcript: str) -> List[str]:
    """Split a transcript into non-empty lines."""
    return [line.strip() for line in (transcript or "").splitlines() if line.strip()]


def speaker_of(utterance: str) -> Tuple[str, str]:
    """Split an utterance into (speaker, text); speaker is '' when unlabeled."""
    match = _SPEAKER_PREFIX.match(utterance)
    if not match:
        return "", utterance
    speaker = match.group(1).lower()
    if speaker not in AGENT_SPEAKERS and speaker not in PROSPECT_SPEAKERS:
        return "", utterance
    return speaker, utterance[match.end():]


def is_prospect_line(utterance: str) -> bool:
    speaker, _ = speaker_of(utterance)
    return speaker not in AGENT_SPEAKERS
