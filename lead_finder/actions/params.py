"""
Step models: the closed, tagged union of actions a Strategy may contain.
Why: strategies come from two sources (compiled goals and oracle JSON); both are
validated here before any handler touches the page.
Each step carries:
- name / description: semantic label ("detect_applicant_count") and prose
- required: a failure aborts the whole execution
- wait_after_ms: overrides the executor's inter-step delay
"""
# @file purpose: Define the Step tagged union using Pydantic v2.

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

NonEmptyStr = Annotated[str, Field(min_length=1)]
DurationMs = Annotated[int, Field(ge=0, le=120_000)]
Selectors = Annotated[tuple[NonEmptyStr, ...], Field(min_length=1)]
FieldNames = Annotated[tuple[NonEmptyStr, ...], Field(min_length=1)]


class StepKind(str, Enum):
    CLICK = "click"
    EXPAND = "expand"
    SCROLL = "scroll"
    SCROLL_TO = "scroll-to"
    WAIT = "wait"
    DETECT_COUNT = "detect-count"
    EXTRACT_LIST = "extract-list"
    EXTRACT_SOCIAL = "extract-social"
    EXTRACT_COMMENTS = "extract-comments"
    EXTRACT_PAGE_FIELDS = "extract-page-fields"
    EXTRACT_CONTACTS = "extract-contacts"
    EXTRACT_CONTACT_SECTION = "extract-contact-section"
    SCAN_KEYWORDS = "scan-keywords"
    DOWNLOAD = "download"
    NAVIGATE = "navigate"
    DELEGATE_TO_AI = "delegate-to-ai"
    AI_STRATEGY = "ai-strategy"


class BaseStep(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: NonEmptyStr
    description: str = ""
    required: bool = False
    wait_after_ms: Optional[DurationMs] = None


class ClickStep(BaseStep):
    """Click the first visible match; with repeat_until_gone, keep clicking until it disappears."""

    kind: Literal["click"] = "click"
    selectors: Selectors
    wait_for: Optional[str] = None
    repeat_until_gone: bool = False
    max_attempts: Annotated[int, Field(ge=1, le=200)] = 20


class ExpandStep(BaseStep):
    """Click every visible "see more" toggle (text contains "more", not "less")."""

    kind: Literal["expand"] = "expand"
    selectors: Selectors


class ScrollStep(BaseStep):
    kind: Literal["scroll"] = "scroll"
    scroll_cycles: Annotated[int, Field(ge=1, le=100)] = 5
    scroll_delay_ms: DurationMs = 1500
    viewport_fraction: Annotated[float, Field(gt=0, le=2)] = 0.9


class ScrollToStep(BaseStep):
    kind: Literal["scroll-to"] = "scroll-to"
    selectors: Selectors


class WaitStep(BaseStep):
    """Sleep, or wait (bounded) for a selector when one is given."""

    kind: Literal["wait"] = "wait"
    duration_ms: DurationMs = 1000
    selector: Optional[str] = None


class DetectCountStep(BaseStep):
    kind: Literal["detect-count"] = "detect-count"
    selectors: Selectors
    count_from: Literal["text", "elements"] = "text"


class ExtractListStep(BaseStep):
    kind: Literal["extract-list"] = "extract-list"
    selectors: Selectors
    data_fields: FieldNames


class ExtractSocialStep(BaseStep):
    """Reactors / commenters: same semantics as extract-list."""

    kind: Literal["extract-social"] = "extract-social"
    selectors: Selectors
    data_fields: FieldNames


class ExtractCommentsStep(BaseStep):
    kind: Literal["extract-comments"] = "extract-comments"
    selectors: Selectors
    data_fields: FieldNames = ("author_name", "author_profile", "comment_text", "timestamp")


class ExtractPageFieldsStep(BaseStep):
    """One record built from the whole page (company header, job header)."""

    kind: Literal["extract-page-fields"] = "extract-page-fields"
    data_fields: FieldNames


class ExtractContactsStep(BaseStep):
    kind: Literal["extract-contacts"] = "extract-contacts"


class ExtractContactSectionStep(BaseStep):
    kind: Literal["extract-contact-section"] = "extract-contact-section"
    selectors: Selectors


class ScanKeywordsStep(BaseStep):
    kind: Literal["scan-keywords"] = "scan-keywords"
    selectors: Selectors
    data_fields: tuple[NonEmptyStr, ...] = ("author", "content", "url", "keywords_matched")


class DownloadStep(BaseStep):
    kind: Literal["download"] = "download"
    selectors: Selectors


class NavigateStep(BaseStep):
    """Append `path` to the current origin+path; ends the in-page execution."""

    kind: Literal["navigate"] = "navigate"
    path: NonEmptyStr


class DelegateToAIStep(BaseStep):
    kind: Literal["delegate-to-ai"] = "delegate-to-ai"
    ai_task: Literal["relevance_assessment", "engagement_quality", "role_filter"] = "relevance_assessment"


class AIStrategyStep(BaseStep):
    """Ask the strategy oracle for a plan for this page and run it."""

    kind: Literal["ai-strategy"] = "ai-strategy"
    max_items: Annotated[int, Field(ge=1, le=1000)] = 100


Step = Annotated[
    Union[
        ClickStep,
        ExpandStep,
        ScrollStep,
        ScrollToStep,
        WaitStep,
        DetectCountStep,
        ExtractListStep,
        ExtractSocialStep,
        ExtractCommentsStep,
        ExtractPageFieldsStep,
        ExtractContactsStep,
        ExtractContactSectionStep,
        ScanKeywordsStep,
        DownloadStep,
        NavigateStep,
        DelegateToAIStep,
        AIStrategyStep,
    ],
    Field(discriminator="kind"),
]
