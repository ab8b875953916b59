from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any

# Ten business plan sections in document order.
PLAN_SECTIONS = [
    "executiveSummary",
    "companyDescription",
    "marketAnalysis",
    "organizationStructure",
    "productsServices",
    "marketingStrategy",
    "financialProjections",
    "fundingRequirements",
    "actionPlan",
    "risks",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompanyProfile(CamelModel):
    """Company description submitted by the caller. Unknown keys are kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    company_name: Optional[str] = None
    industry: Optional[str] = None
    stage: Optional[Any] = None
    products: Optional[Any] = None
    target_market: Optional[Any] = None
    competitors: Optional[Any] = None
    revenue: Optional[Any] = None
    team_size: Optional[Any] = None
    challenges: Optional[Any] = None
    goals: Optional[Any] = None
    funding: Optional[Any] = None
    business_model: Optional[Any] = None

    def as_data(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RiskItem(CamelModel):
    risk: str = ""
    severity: str = "medium"
    mitigation: str = ""


class AnalysisResult(CamelModel):
    company_name: str
    industry: str
    analyzed_at: str
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    threats: List[str] = Field(default_factory=list)
    market_analysis: str
    competitive_position: str
    risk_assessment: List[RiskItem] = Field(default_factory=list)
    growth_score: Optional[int] = None
    recommendations: List[str] = Field(default_factory=list)
    summary: str = ""
    is_fallback: bool = False


class TocEntry(CamelModel):
    section: str
    page: int


class StoredPlan(CamelModel):
    """One persisted business plan row."""

    plan_id: str
    company_data: Dict[str, Any]
    generated_at: str
    created_at: Optional[str] = None

    executive_summary: Any = None
    company_description: Any = None
    market_analysis: Any = None
    organization_structure: Any = None
    products_services: Any = None
    marketing_strategy: Any = None
    financial_projections: Any = None
    funding_requirements: Any = None
    action_plan: Any = None
    risks: Any = None

    @property
    def company_name(self) -> str:
        return str(self.company_data.get("companyName", ""))

    @property
    def industry(self) -> str:
        return str(self.company_data.get("industry", ""))

    def sections(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        return {name: data[name] for name in PLAN_SECTIONS}


class PlanResult(CamelModel):
    plan_id: str
    company_name: str
    industry: str
    generated_at: str
    created_at: Optional[str] = None
    company_data: Dict[str, Any] = Field(default_factory=dict)
    sections: Dict[str, Any]
    table_of_contents: List[TocEntry]


class HealthStatus(BaseModel):
    status: str
    message: str
