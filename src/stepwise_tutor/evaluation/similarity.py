from __future__ import annotations

import re
from typing import List, Sequence

KEYWORD_OPERATORS = ("+", "-", "*", "/", "=", "^", "\\sqrt", "\\frac")
_NUMBER_PATTERN = re.compile(r"\d+")


def calculate_similarity(first: str | None, second: str | None) -> float:
    """
    Positional character agreement between two answers, in [0, 1].

    Characters are compared index by index up to the shorter length and the
    matches are divided by the longer length, so "x=4" vs "x=45" scores 0.75.
    Surrounding whitespace is ignored.
    """
    if not first or not second:
        return 0.0
    left, right = first.strip(), second.strip()
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    matches = sum(1 for a, b in zip(left, right) if a == b)
    return matches / longest


def extract_validation_keywords(answer: str) -> List[str]:
    """Return the operators present in `answer` followed by its numeric literals."""
    keywords = [op for op in KEYWORD_OPERATORS if op in answer]
    keywords.extend(_NUMBER_PATTERN.findall(answer))
    return keywords


def keyword_coverage(student_input: str, keywords: Sequence[str]) -> float:
    """Fraction of validation keywords that appear somewhere in the learner input."""
    if not keywords:
        return 0.0
    matched = [keyword for keyword in keywords if keyword in student_input]
    return len(matched) / len(keywords)
