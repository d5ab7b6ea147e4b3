"""Keyword compilation and matching logic (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterable, List, Optional

from core.errors import KeywordPatternError

# "[^\W_]" is any Unicode letter or number. A keyword only matches when it is
# not glued to another letter/number on either side, so "Київ" does not match
# inside "Київстар" while "(Київ)" and "Київ," still do.
_BOUNDARY_BEFORE = r"(?<![^\W_])"
_BOUNDARY_AFTER = r"(?![^\W_])"


@dataclass(frozen=True)
class Matcher:
    """Compiled keyword used by the poller."""

    keyword: str
    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def normalize_keywords(raw_keywords: Iterable[str]) -> List[str]:
    """Strip whitespace and drop empty entries, keeping configuration order."""

    keywords: List[str] = []
    for raw in raw_keywords:
        keyword = (raw or "").strip()
        if keyword:
            keywords.append(keyword)
    return keywords


def compile_keyword(keyword: str) -> Matcher:
    """Compile one keyword into a standalone-token, case-insensitive matcher.

    Keywords are treated as pattern fragments, so an operator can configure an
    alternation like ``Чернігів|Chernihiv``. A fragment that does not compile
    raises KeywordPatternError, which callers must treat as fatal.
    """

    source = f"{_BOUNDARY_BEFORE}(?:{keyword}){_BOUNDARY_AFTER}"
    try:
        pattern = re.compile(source, re.IGNORECASE)
    except re.error as exc:
        raise KeywordPatternError(keyword, str(exc)) from exc
    return Matcher(keyword=keyword, pattern=pattern)


def build_matchers(raw_keywords: Iterable[str]) -> List[Matcher]:
    """Normalize keywords and compile them once at startup."""

    return [compile_keyword(keyword) for keyword in normalize_keywords(raw_keywords)]


def match_keywords(text: Optional[str], matchers: Iterable[Matcher]) -> List[str]:
    """Return the keywords that occur in ``text`` as standalone tokens."""

    if not text:
        return []
    return [matcher.keyword for matcher in matchers if matcher.matches(text)]
