"""
Response Validator

Content gate for generated coach text. Coach replies are for children in
school, so adult and workplace vocabulary is rejected.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

BANNED_TERMS: Tuple[str, ...] = (
    "coworker",
    "colleague",
    "colleagues",
    "workplace",
    "office",
    "professional",
    "business",
    "corporate",
    "employee",
    "supervisor",
    "HR",
    "networking",
    "resume",
    "interview",
    "client",
    "customer",
    "boss",
    "manager",
    "management",
    "work meeting",
    "business meeting",
    "staff meeting",
    "team meeting",
    "career advice",
    "career counseling",
    "career development",
    "career path",
)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    violating_term: Optional[str] = None


@lru_cache(maxsize=256)
def _term_pattern(term: str) -> Pattern:
    return re.compile(r"\b" + re.escape(term) + r"\b", re.IGNORECASE)


def validate(text: str, banned_terms: Iterable[str] = BANNED_TERMS) -> ValidationResult:
    """
    Check text against the banned vocabulary using whole-word matching.

    Returns on the first banned term found, in list order.
    """
    if not text:
        return ValidationResult(is_valid=True)

    for term in banned_terms:
        if _term_pattern(term).search(text):
            logger.warning(f"🚫 [Validator] Banned term detected: {term!r}")
            return ValidationResult(is_valid=False, violating_term=term)

    return ValidationResult(is_valid=True)
