import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from company_analyzer import errors
from company_analyzer.llm_service import LLMClient
from company_analyzer.normalizer import ANALYSIS, PLAN, normalize
from company_analyzer.plan_store import PlanStore
from company_analyzer.prompts import SYSTEM_PROMPT, build_analysis_prompt, build_plan_prompt
from company_analyzer.schemas import (
    PLAN_SECTIONS,
    AnalysisResult,
    CompanyProfile,
    PlanResult,
    StoredPlan,
    TocEntry,
)

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.5
PLAN_TEMPERATURE = 0.6
PLAN_MAX_TOKENS = 4000

REQUIRED_FIELDS = ("companyName", "industry")

TABLE_OF_CONTENTS = [
    TocEntry(section="Executive Summary", page=1),
    TocEntry(section="Company Description", page=2),
    TocEntry(section="Market Analysis", page=3),
    TocEntry(section="Organization & Management", page=5),
    TocEntry(section="Products & Services", page=6),
    TocEntry(section="Marketing Strategy", page=7),
    TocEntry(section="Financial Projections", page=9),
    TocEntry(section="Funding Requirements", page=11),
    TocEntry(section="Action Plan & Milestones", page=12),
    TocEntry(section="Risk Assessment", page=13),
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _stage(name: str):
    """Tag pipeline errors raised inside the block with the stage they came from."""
    try:
        yield
    except errors.AnalyzerError as e:
        if e.stage is None:
            e.stage = name
        raise


def build_summary(analysis: Mapping[str, Any]) -> str:
    strengths = len(analysis.get("strengths") or [])
    weaknesses = len(analysis.get("weaknesses") or [])
    opportunities = len(analysis.get("opportunities") or [])
    threats = len(analysis.get("threats") or [])
    score = analysis.get("growthScore") or "N/A"

    return (
        f"Analysis identified {strengths} key strengths and {weaknesses} areas for improvement. "
        f"Found {opportunities} market opportunities and {threats} potential threats. "
        f"Overall growth potential score: {score}/10."
    )


class CompanyAnalyzer:
    """
    Runs the analysis and business plan pipelines.

    Both pipelines validate the profile, build a prompt, make one model call
    and normalize the reply. Business plans are then stored under a freshly
    minted id. Errors keep their type and gain a ``stage`` of ``model``,
    ``normalization`` or ``storage``.
    """

    def __init__(self, llm: LLMClient, store: PlanStore):
        self.llm = llm
        self.store = store

    # ------------------------------------------------------------------
    # 🔹 VALIDATION
    # ------------------------------------------------------------------
    @staticmethod
    def validate_profile(profile: Union[CompanyProfile, Mapping[str, Any]]) -> CompanyProfile:
        if not isinstance(profile, CompanyProfile):
            try:
                profile = CompanyProfile.model_validate(dict(profile))
            except PydanticValidationError as e:
                raise errors.ValidationError(
                    f"Invalid company profile: {e}", stage="validation"
                ) from e

        data = profile.as_data()
        missing = [
            field for field in REQUIRED_FIELDS
            if not isinstance(data.get(field), str) or not data[field].strip()
        ]
        if missing:
            raise errors.ValidationError(
                "Missing required fields: companyName and industry are required",
                missing_fields=missing,
                stage="validation",
            )
        return profile

    # ------------------------------------------------------------------
    # 🔹 ANALYSIS
    # ------------------------------------------------------------------
    async def run_analysis(self, profile: Union[CompanyProfile, Mapping[str, Any]]) -> AnalysisResult:
        profile = self.validate_profile(profile)
        prompt = build_analysis_prompt(profile)

        with _stage("model"):
            raw = await self.llm.complete(
                SYSTEM_PROMPT, prompt, temperature=ANALYSIS_TEMPERATURE
            )

        with _stage("normalization"):
            analysis = normalize(raw, ANALYSIS)

        if analysis.get("isFallback"):
            logger.warning(f"Returning fallback analysis for {profile.company_name}")

        analysis.update(
            companyName=profile.company_name,
            industry=profile.industry,
            analyzedAt=_now(),
            summary=build_summary(analysis),
        )
        return AnalysisResult.model_validate(analysis)

    # ------------------------------------------------------------------
    # 🔹 BUSINESS PLAN
    # ------------------------------------------------------------------
    async def run_plan(self, profile: Union[CompanyProfile, Mapping[str, Any]]) -> PlanResult:
        profile = self.validate_profile(profile)
        prompt = build_plan_prompt(profile)

        with _stage("model"):
            raw = await self.llm.complete(
                SYSTEM_PROMPT,
                prompt,
                max_tokens=PLAN_MAX_TOKENS,
                temperature=PLAN_TEMPERATURE,
            )

        with _stage("normalization"):
            sections = normalize(raw, PLAN)

        plan_id = str(uuid.uuid4())
        row: Dict[str, Any] = {name: sections[name] for name in PLAN_SECTIONS}
        row.update(
            planId=plan_id,
            companyData=profile.as_data(),
            generatedAt=_now(),
        )

        with _stage("storage"):
            stored = self.store.create(StoredPlan.model_validate(row))

        logger.info(f"Business plan {plan_id} generated for {profile.company_name}")
        return self.to_result(stored)

    def get_plan(self, plan_id: str) -> StoredPlan:
        with _stage("storage"):
            plan = self.store.find_by_id(plan_id)
        if plan is None:
            raise errors.NotFoundError(f"Business plan {plan_id} not found", stage="storage")
        return plan

    def list_plans(self) -> List[StoredPlan]:
        with _stage("storage"):
            return self.store.find_all()

    @staticmethod
    def to_result(plan: StoredPlan) -> PlanResult:
        return PlanResult(
            plan_id=plan.plan_id,
            company_name=plan.company_name,
            industry=plan.industry,
            generated_at=plan.generated_at,
            created_at=plan.created_at,
            company_data=plan.company_data,
            sections=plan.sections(),
            table_of_contents=list(TABLE_OF_CONTENTS),
        )
