from typing import Any, Mapping, Union

from company_analyzer.schemas import CompanyProfile

NOT_SPECIFIED = "Not specified"

SYSTEM_PROMPT = """You are a senior business consultant with more than twenty years of experience helping companies grow. Your expertise covers:
- Business strategy and planning
- Market analysis and competitive intelligence
- Financial planning and projections
- Organizational development
- Marketing and growth strategies
- Risk assessment and mitigation

Study the company data you are given and produce thorough, actionable insights. Be specific, practical and grounded in the data. Structure your answer exactly as requested."""

JSON_ONLY_RULES = """CRITICAL REQUIREMENTS:
- Respond ONLY with valid JSON
- Do NOT wrap the response in markdown code blocks (no ```json and no plain ```)
- Do NOT add any text before or after the JSON object
- Return pure JSON only"""

ANALYSIS_TEMPLATE = """Analyze the following company and provide a structured assessment:

Company Name: {company_name}
Industry: {industry}
Stage: {stage}
Products/Services: {products}
Target Market: {target_market}
Competitors: {competitors}
Business Model: {business_model}
Revenue: {revenue}
Team Size: {team_size}
Challenges: {challenges}
Goals: {goals}

Provide your analysis in the following JSON format:
{{
  "strengths": ["strength1", "strength2", ...],
  "weaknesses": ["weakness1", "weakness2", ...],
  "opportunities": ["opportunity1", "opportunity2", ...],
  "threats": ["threat1", "threat2", ...],
  "marketAnalysis": "detailed market analysis as plain text only - NO JSON, NO code blocks, just readable sentences",
  "competitivePosition": "competitive positioning analysis as plain text only - NO JSON, NO code blocks, just readable sentences",
  "riskAssessment": [{{"risk": "risk description", "severity": "high/medium/low", "mitigation": "suggested mitigation"}}],
  "growthScore": 1-10,
  "recommendations": ["recommendation1", "recommendation2", ...]
}}

{rules}
- The "marketAnalysis" field must be plain text only - readable sentences, NO JSON objects, NO code blocks
- The "competitivePosition" field must be plain text only - readable sentences, NO JSON objects, NO code blocks
- "growthScore" must be a single integer between 1 and 10"""

PLAN_TEMPLATE = """Create a comprehensive business plan for the following company:

Company Name: {company_name}
Industry: {industry}
Stage: {stage}
Products/Services: {products}
Target Market: {target_market}
Competitors: {competitors}
Business Model: {business_model}
Current Revenue: {revenue}
Team Size: {team_size}
Current Challenges: {challenges}
Business Goals: {goals}
Funding Status: {funding}

Generate a complete business plan with the following sections in JSON format:
{{
  "executiveSummary": "comprehensive executive summary (2-3 paragraphs)",
  "companyDescription": "detailed company description including mission, vision, and values",
  "marketAnalysis": {{
    "industryOverview": "industry analysis",
    "targetMarket": "target market analysis",
    "marketSize": "estimated market size and growth",
    "competitiveAnalysis": "analysis of key competitors"
  }},
  "organizationStructure": "recommended organizational structure and key roles",
  "productsServices": "detailed description of products/services and value proposition",
  "marketingStrategy": {{
    "positioning": "market positioning strategy",
    "channels": ["marketing channel 1", "channel 2"],
    "tactics": ["specific tactic 1", "tactic 2"]
  }},
  "financialProjections": {{
    "year1": {{"revenue": "projected", "expenses": "projected", "profit": "projected"}},
    "year2": {{"revenue": "projected", "expenses": "projected", "profit": "projected"}},
    "year3": {{"revenue": "projected", "expenses": "projected", "profit": "projected"}},
    "assumptions": ["key assumption 1", "assumption 2"]
  }},
  "fundingRequirements": {{
    "amount": "funding needed",
    "use": ["use of funds 1", "use 2"],
    "timeline": "funding timeline"
  }},
  "actionPlan": [
    {{"milestone": "milestone description", "timeline": "timeframe", "priority": "high/medium/low"}}
  ],
  "risks": [
    {{"risk": "risk description", "mitigation": "mitigation strategy"}}
  ]
}}

{rules}"""

ProfileLike = Union[CompanyProfile, Mapping[str, Any]]


def _as_profile(profile: ProfileLike) -> CompanyProfile:
    if isinstance(profile, CompanyProfile):
        return profile
    return CompanyProfile.model_validate(dict(profile))


def _field(value: Any, default: str = NOT_SPECIFIED) -> str:
    """Render one profile value, falling back to ``default`` when absent."""
    if value is None:
        return default
    if isinstance(value, (list, tuple, set)):
        parts = [_field(item, "") for item in value]
        value = ", ".join(part for part in parts if part)
    elif isinstance(value, Mapping):
        parts = [f"{key}: {_field(item, '')}" for key, item in value.items() if item is not None]
        value = "; ".join(parts)
    text = str(value).strip()
    return text or default


def build_analysis_prompt(profile: ProfileLike) -> str:
    p = _as_profile(profile)
    return ANALYSIS_TEMPLATE.format(
        company_name=_field(p.company_name),
        industry=_field(p.industry),
        stage=_field(p.stage),
        products=_field(p.products),
        target_market=_field(p.target_market),
        competitors=_field(p.competitors),
        business_model=_field(p.business_model),
        revenue=_field(p.revenue),
        team_size=_field(p.team_size),
        challenges=_field(p.challenges),
        goals=_field(p.goals),
        rules=JSON_ONLY_RULES,
    )


def build_plan_prompt(profile: ProfileLike) -> str:
    p = _as_profile(profile)
    return PLAN_TEMPLATE.format(
        company_name=_field(p.company_name),
        industry=_field(p.industry),
        stage=_field(p.stage, "Startup"),
        products=_field(p.products),
        target_market=_field(p.target_market),
        competitors=_field(p.competitors),
        business_model=_field(p.business_model),
        revenue=_field(p.revenue, "Pre-revenue"),
        team_size=_field(p.team_size),
        challenges=_field(p.challenges),
        goals=_field(p.goals, "Growth and profitability"),
        funding=_field(p.funding),
        rules=JSON_ONLY_RULES,
    )
