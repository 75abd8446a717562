"""
Goal catalog and goal -> strategy compilation.

The catalog is ordered; `recommend_goal` returns the first compatible entry,
so ties are broken by declaration order. Each built-in goal has one step
generator, a pure function of the page analysis; equal inputs give equal
(frozen) strategies.
"""
# @file purpose: Compile (goal, page analysis) pairs into strategies.

from __future__ import annotations

from typing import Callable, Optional

from loguru import logger

from ..actions.params import (
    AIStrategyStep,
    ClickStep,
    DelegateToAIStep,
    DetectCountStep,
    DownloadStep,
    ExpandStep,
    ExtractCommentsStep,
    ExtractContactSectionStep,
    ExtractContactsStep,
    ExtractListStep,
    ExtractPageFieldsStep,
    ExtractSocialStep,
    NavigateStep,
    ScanKeywordsStep,
    ScrollStep,
    ScrollToStep,
    Step,
)
from ..actions.sites.linkedin import DEFAULT_SELECTORS
from ..core.strategy import ALL_PAGES, ActiveGoal, Goal, PageAnalysis, PageType, Strategy

CUSTOM_GOAL_ID = "custom"


def _goal(id: str, name: str, description: str, pages: list[str], targets: list[str]) -> Goal:
    return Goal(
        id=id,
        name=name,
        description=description,
        compatible_page_types=frozenset(pages),
        extraction_targets=tuple(targets),
    )


GOAL_CATALOG: dict[str, Goal] = {
    g.id: g
    for g in (
        _goal(
            "job_applicants",
            "Extract Job Applicants & Resumes",
            "Download applicant profiles and resumes from job listings",
            ["job_listing"],
            ["applicant_profiles", "resumes", "contact_info"],
        ),
        _goal(
            "comment_mining",
            "Mine Comments for Contacts",
            "Extract emails and contacts from post comments",
            ["post_detail", "feed", "search_results"],
            ["comment_authors", "emails", "phones", "profiles"],
        ),
        _goal(
            "post_engagement",
            "Target Audience from Posts",
            "Find people engaging with relevant posts",
            ["feed", "search_results", "post_detail"],
            ["likers", "commenters", "sharers", "profiles"],
        ),
        _goal(
            "people_discovery",
            "Discover People by Criteria",
            "Find and extract profiles matching your criteria",
            ["people_search", "company_page"],
            ["profiles", "contact_info", "job_titles", "companies"],
        ),
        _goal(
            "company_intel",
            "Company Intelligence Gathering",
            "Extract company employees and decision makers",
            ["company_page", "people_search"],
            ["employees", "executives", "contact_info"],
        ),
        _goal(
            "keyword_hunting",
            "Keyword-Based Lead Generation",
            "Find leads based on keywords in posts/profiles",
            ["feed", "search_results", "profile"],
            ["posts", "profiles", "contact_info"],
        ),
        _goal(
            CUSTOM_GOAL_ID,
            "Custom Goal",
            "Define your own extraction goal",
            [ALL_PAGES],
            [],
        ),
    )
}

AI_PROMPT_TEMPLATE = """You are an intelligent data extraction assistant. Your task is to help extract relevant information from LinkedIn pages.

**Current Goal**: {name}
**Goal Description**: {description}
**Page Type**: {page_type}
**Target Data**: {targets}

**Custom Instructions**: {instructions}

Analyze the provided content and determine:
1. Is this content relevant to the goal?
2. What specific data should be extracted?
3. What is the quality/priority of this lead (0-100)?

Return a JSON response with:
{{
  "relevant": boolean,
  "reason": "explanation",
  "priority": number (0-100),
  "extractionTargets": ["field1", "field2"],
  "suggestedFields": {{
    "field_name": "extracted_value"
  }}
}}"""


# ------------------------------------------------------------------------------
# step generators
# ------------------------------------------------------------------------------


def job_applicant_steps(analysis: PageAnalysis) -> list[Step]:
    return [
        DetectCountStep(
            name="detect_applicant_count",
            description="Check number of applicants",
            selectors=(".jobs-unified-top-card__applicant-count",),
        ),
        ClickStep(
            name="click_view_applicants",
            description="Click to view applicants",
            selectors=('button[aria-label*="applicant" i]', 'button[aria-label*="application" i]'),
            wait_for=".job-details-applicant-list",
        ),
        ScrollStep(name="scroll_applicant_list", description="Scroll through applicant list", scroll_cycles=10),
        ExtractListStep(
            name="extract_applicant_data",
            description="Extract applicant profiles",
            selectors=(".job-details-applicant-list li", ".hiring-applicants__list-item"),
            data_fields=("name", "headline", "profile_url", "resume_url", "application_date"),
        ),
        DownloadStep(
            name="download_resumes",
            description="Download available resumes",
            selectors=('a[href*="resume"]', "a[download]"),
        ),
    ]


def comment_mining_steps(analysis: PageAnalysis) -> list[Step]:
    steps: list[Step] = [
        ExpandStep(
            name="expand_post_content",
            description="Expand post to full content",
            selectors=DEFAULT_SELECTORS.see_more[:1],
        ),
        ScrollToStep(
            name="scroll_to_comments",
            description="Scroll to comments section",
            selectors=(".comments-comments-list",),
        ),
    ]
    # "load more" loop: permalinks, or pages that expose the button
    if analysis.page_type == PageType.POST_DETAIL or analysis.has_element("expandable_comments"):
        steps.append(
            ClickStep(
                name="load_all_comments",
                description="Click to load all comments",
                selectors=('button[aria-label*="more comment" i]',),
                repeat_until_gone=True,
            )
        )
    steps += [
        ExtractCommentsStep(
            name="extract_comments",
            description="Extract comment data",
            selectors=(".comments-comment-item",),
        ),
        ExtractContactsStep(
            name="extract_contacts_from_comments",
            description="Find emails and phones in comments",
        ),
        DelegateToAIStep(
            name="analyze_comment_relevance",
            description="Use AI to assess comment relevance",
        ),
    ]
    return steps


def post_engagement_steps(analysis: PageAnalysis) -> list[Step]:
    return [
        DetectCountStep(
            name="identify_post",
            description="Identify target post",
            selectors=('[data-id^="urn:li:activity"]',),
            count_from="elements",
        ),
        ClickStep(
            name="click_reactions",
            description="View people who reacted",
            selectors=('button[aria-label*="reaction" i]', "button.reactions-react-button"),
        ),
        ExtractSocialStep(
            name="extract_reactors",
            description="Extract profiles of people who reacted",
            selectors=(".social-details-reactors-tab-body-list-item", ".artdeco-modal .artdeco-list__item"),
            data_fields=("name", "headline", "profile_url"),
        ),
        ExtractSocialStep(
            name="extract_commenters",
            description="Extract commenter profiles",
            selectors=(".comments-comment-item",),
            data_fields=("author_name", "author_profile", "comment_text"),
        ),
        DelegateToAIStep(
            name="assess_engagement_quality",
            description="Use AI to rate lead quality based on engagement",
            ai_task="engagement_quality",
        ),
    ]


def people_discovery_steps(analysis: PageAnalysis) -> list[Step]:
    return [
        ScrollStep(name="scroll_results", description="Scroll through search results", scroll_cycles=10),
        ExtractListStep(
            name="extract_profile_cards",
            description="Extract profile card data",
            selectors=(".entity-result", ".reusable-search__result-container"),
            data_fields=("name", "headline", "location", "profile_url", "mutual_connections"),
        ),
        ExtractContactSectionStep(
            name="extract_contact_info",
            description="Extract contact information from profiles",
            selectors=("#top-card-text-details-contact-info",),
        ),
    ]


def company_intel_steps(analysis: PageAnalysis) -> list[Step]:
    return [
        ExtractPageFieldsStep(
            name="extract_company_info",
            description="Extract company details",
            data_fields=("company_name", "website", "industry", "size", "headquarters"),
        ),
        NavigateStep(name="navigate_to_people", description="Go to company people page", path="/people/"),
        ExtractListStep(
            name="extract_employee_list",
            description="Extract employee profiles",
            selectors=(".org-people-profile-card", ".org-people-profiles-module__profile-item"),
            data_fields=("name", "title", "profile_url", "tenure"),
        ),
        DelegateToAIStep(
            name="filter_by_role",
            description="Filter employees by role (e.g., decision makers)",
            ai_task="role_filter",
        ),
    ]


def keyword_hunting_steps(analysis: PageAnalysis) -> list[Step]:
    if analysis.page_type == PageType.SEARCH_RESULTS:
        selectors = (".search-results__list li", *DEFAULT_SELECTORS.posts)
    else:
        selectors = DEFAULT_SELECTORS.posts
    return [
        ScanKeywordsStep(
            name="scan_content",
            description="Scan page content for keywords and extract matches",
            selectors=selectors,
        ),
        ExtractContactsStep(name="extract_contacts", description="Extract contact information"),
        DelegateToAIStep(name="assess_relevance", description="Use AI to assess lead quality"),
    ]


def custom_steps(analysis: PageAnalysis) -> list[Step]:
    return [
        AIStrategyStep(
            name="analyze_with_ai",
            description="Ask AI for an extraction strategy for this page and execute it",
        ),
        DelegateToAIStep(name="assess_relevance", description="Use AI to assess lead quality"),
    ]


STEP_GENERATORS: dict[str, Callable[[PageAnalysis], list[Step]]] = {
    "job_applicants": job_applicant_steps,
    "comment_mining": comment_mining_steps,
    "post_engagement": post_engagement_steps,
    "people_discovery": people_discovery_steps,
    "company_intel": company_intel_steps,
    "keyword_hunting": keyword_hunting_steps,
    CUSTOM_GOAL_ID: custom_steps,
}


# ------------------------------------------------------------------------------
# engine
# ------------------------------------------------------------------------------


def render_ai_prompt(goal: Goal, analysis: PageAnalysis) -> str:
    return AI_PROMPT_TEMPLATE.format(
        name=goal.name,
        description=goal.description,
        page_type=analysis.page_type.value,
        targets=", ".join(goal.extraction_targets),
        instructions=goal.custom_instructions or "None",
    )


class GoalEngine:
    def __init__(self) -> None:
        self.current_goal: Optional[ActiveGoal] = None

    @staticmethod
    def goal_templates() -> dict[str, Goal]:
        return dict(GOAL_CATALOG)

    @staticmethod
    def get_goal(goal_id: str) -> Optional[Goal]:
        return GOAL_CATALOG.get(goal_id)

    def set_goal(self, goal_id: str, custom_instructions: str = "") -> bool:
        template = GOAL_CATALOG.get(goal_id)
        if template is None:
            logger.error("invalid goal id: {}", goal_id)
            return False
        self.current_goal = ActiveGoal(
            **template.model_dump(exclude={"custom_instructions"}),
            custom_instructions=custom_instructions,
        )
        return True

    @staticmethod
    def recommend_goal(analysis: PageAnalysis) -> Goal:
        for goal in GOAL_CATALOG.values():
            if goal.is_compatible(analysis.page_type):
                return goal
        return GOAL_CATALOG[CUSTOM_GOAL_ID]

    @staticmethod
    def is_goal_compatible(goal_id: str, page_type: PageType | str) -> bool:
        goal = GOAL_CATALOG.get(goal_id)
        return goal is not None and goal.is_compatible(page_type)

    @staticmethod
    def generate_strategy(goal: Goal, analysis: PageAnalysis) -> Strategy:
        generator = STEP_GENERATORS.get(goal.id, custom_steps)
        return Strategy(
            goal_name=goal.name,
            goal_id=goal.id,
            page_type=analysis.page_type,
            steps=tuple(generator(analysis)),
            ai_prompt=render_ai_prompt(goal, analysis),
            user_goal=goal.custom_instructions or goal.description,
        )
