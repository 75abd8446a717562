"""
Data contracts shared by page analysis, goal planning and execution.
- PageAnalysis: what kind of page this is and which landmarks it exposes
- Goal / ActiveGoal: a named extraction intent (template / activated copy)
- Strategy: an ordered, immutable plan of Steps for one page
"""
# @file purpose: Define planning data contracts.

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..actions.params import Step

ALL_PAGES = "all"


class PageType(str, Enum):
    JOB_LISTING = "job_listing"
    JOB_SEARCH = "job_search"
    FEED = "feed"
    POST_DETAIL = "post_detail"
    PROFILE = "profile"
    SEARCH_RESULTS = "search_results"
    PEOPLE_SEARCH = "people_search"
    COMPANY_PAGE = "company_page"
    MESSAGING = "messaging"
    UNKNOWN = "unknown"


class ExtractableElement(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    count: Optional[int] = None
    extractable: frozenset[str] = Field(default_factory=frozenset)


class PageAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_type: PageType
    url: str
    extractable_elements: tuple[ExtractableElement, ...] = ()
    recommended_strategy: Optional[str] = None

    def has_element(self, type_: str) -> bool:
        return any(e.type == type_ for e in self.extractable_elements)


class Goal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    compatible_page_types: frozenset[str]
    extraction_targets: tuple[str, ...] = ()
    custom_instructions: str = ""

    def is_compatible(self, page_type: PageType | str) -> bool:
        value = page_type.value if isinstance(page_type, PageType) else page_type
        return ALL_PAGES in self.compatible_page_types or value in self.compatible_page_types


class ActiveGoal(Goal):
    active: bool = True
    activated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Strategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal_name: str
    goal_id: str
    page_type: PageType
    steps: tuple[Step, ...]
    ai_prompt: str = ""
    user_goal: str = ""
