"""Keyword and token heuristics that pull command parameters out of voice text."""
from __future__ import annotations

import re
from typing import Dict, FrozenSet, Optional

from pattern_registry import DIGIT_GROUP, WORD_GROUP

APPROVE_BUILD_TOKEN = re.compile(r"approve\s+build\s+(\S+)")
DIGIT_RUN = re.compile(r"\d+")
WORD_TOKEN = re.compile(r"\w+")
BUILD_ID_SHAPE = re.compile(r"^[a-z]+-\d+$")

FILLER_WORDS: FrozenSet[str] = frozenset(
    {
        "a", "an", "and", "branch", "for", "from", "in", "into", "it", "me", "my",
        "new", "now", "of", "on", "please", "that", "the", "this", "to", "up", "with",
    }
)


def pattern_keywords(pattern: str) -> FrozenSet[str]:
    """Literal words of a pattern, capture groups removed."""
    stripped = pattern.replace(DIGIT_GROUP, " ").replace(WORD_GROUP, " ")
    return frozenset(re.findall(r"[a-z]+", stripped))


def first_free_token(text: str, pattern: str) -> Optional[str]:
    """First word token that is neither one of the pattern's keywords nor filler."""
    skip = pattern_keywords(pattern) | FILLER_WORDS
    for match in WORD_TOKEN.finditer(text):
        token = match.group(0)
        if token not in skip:
            return token
    return None


def canonical_build_id(value: str) -> str:
    """Build identifiers are upper-case in every build system we talk to."""
    if BUILD_ID_SHAPE.match(value):
        return value.upper()
    return value


def extract(normalized_text: str, pattern: Optional[str]) -> Dict[str, str]:
    """
    Derive buildId, branch, target and apiName from the text.

    Rules run in order and later rules overwrite earlier ones for the same
    key: explicit keywords (production, staging, main, develop) correct the
    generic token guesses made before them.

    Args:
        normalized_text: Lower-cased, trimmed command text
        pattern: The catalog pattern that matched (None when recognized without one)

    Returns:
        Mapping of parameter name to value
    """
    text = normalized_text
    pattern = pattern or ""
    parameters: Dict[str, str] = {}

    # 1. "approve build <token>"
    if "approve" in text and "build" in text:
        match = APPROVE_BUILD_TOKEN.search(text)
        if match:
            parameters["buildId"] = match.group(1)

    # 2. Digit-capturing pattern: first digit run, unless it is part of the id already bound
    if DIGIT_GROUP in pattern:
        match = DIGIT_RUN.search(text)
        if match:
            digits = match.group(0)
            bound = parameters.get("buildId")
            if not (bound and digits in bound and bound != digits):
                parameters["buildId"] = digits

    # 3. Word-capturing pattern: classify the first free token by context
    if WORD_GROUP in pattern:
        value = first_free_token(text, pattern)
        if value:
            if "api" in text:
                parameters["apiName"] = value
            elif "production" in text or "staging" in text:
                parameters["target"] = value
            else:
                parameters["branch"] = value

    # 4. Explicit target environment
    if "production" in text:
        parameters["target"] = "production"
    elif "staging" in text:
        parameters["target"] = "staging"

    # 5. Explicit well-known branch
    if "main" in text or "master" in text:
        parameters["branch"] = "main"
    elif "develop" in text:
        parameters["branch"] = "develop"

    if "buildId" in parameters:
        parameters["buildId"] = canonical_build_id(parameters["buildId"])

    return parameters
