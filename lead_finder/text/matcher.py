"""
Keyword matching over post text.

Substring containment by default, `\\b`-bounded whole-word matching when
enabled; case-folded unless case_sensitive is set. Instances are mutated in
place by the scanner when the keyword list or settings change.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any, Iterable

from pydantic import BaseModel, Field


class MatchResult(BaseModel):
    matched: bool = False
    keywords: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class KeywordHit:
    keyword: str
    position: int
    length: int
    matched: str


class KeywordMatcher:
    def __init__(
        self,
        keywords: Iterable[str] | None = None,
        *,
        case_sensitive: bool = False,
        whole_word: bool = False,
    ) -> None:
        self.keywords: list[str] = list(keywords or [])
        self.case_sensitive = case_sensitive
        self.whole_word = whole_word

    def set_keywords(self, keywords: Iterable[str] | None) -> None:
        self.keywords = list(keywords or [])

    def set_options(self, **options: Any) -> None:
        """Accepts case_sensitive / whole_word; unknown options are ignored."""
        if options.get("case_sensitive") is not None:
            self.case_sensitive = bool(options["case_sensitive"])
        if options.get("whole_word") is not None:
            self.whole_word = bool(options["whole_word"])

    def match(self, text: str | None) -> MatchResult:
        if not text or not self.keywords:
            return MatchResult()
        hits = [kw for kw in self.keywords if self.match_single(text, kw)]
        return MatchResult(matched=bool(hits), keywords=hits)

    def match_single(self, text: str | None, keyword: str | None) -> bool:
        if not text or not keyword:
            return False
        haystack, needle = self._fold(text), self._fold(keyword)
        if self.whole_word:
            return self._word_pattern(needle).search(haystack) is not None
        return needle in haystack

    def find_all_matches(self, text: str | None) -> list[KeywordHit]:
        if not text or not self.keywords:
            return []
        hits: list[KeywordHit] = []
        for keyword in self.keywords:
            hits.extend(self._find_keyword(text, keyword))
        return hits

    def highlight(self, text: str | None, css_class: str = "keyword-highlight") -> str:
        """Wrap every hit in a span; overlapping hits keep the right-most wrap."""
        if not text:
            return ""
        hits = sorted(self.find_all_matches(text), key=lambda h: h.position, reverse=True)
        result = text
        for hit in hits:
            before = result[: hit.position]
            matched = result[hit.position : hit.position + hit.length]
            after = result[hit.position + hit.length :]
            result = (
                f'{before}<span class="{css_class}" data-keyword="{html.escape(hit.keyword)}">'
                f"{matched}</span>{after}"
            )
        return result

    # -------- internals --------

    def _fold(self, s: str) -> str:
        return s if self.case_sensitive else s.lower()

    @staticmethod
    def _word_pattern(needle: str) -> re.Pattern[str]:
        return re.compile(rf"\b{re.escape(needle)}\b")

    def _find_keyword(self, text: str, keyword: str) -> list[KeywordHit]:
        if not keyword:
            return []
        haystack, needle = self._fold(text), self._fold(keyword)
        hits: list[KeywordHit] = []
        if self.whole_word:
            for m in self._word_pattern(needle).finditer(haystack):
                hits.append(
                    KeywordHit(keyword, m.start(), len(keyword), text[m.start() : m.start() + len(keyword)])
                )
            return hits
        index = haystack.find(needle)
        while index != -1:
            hits.append(KeywordHit(keyword, index, len(keyword), text[index : index + len(keyword)]))
            index = haystack.find(needle, index + len(needle))
        return hits
