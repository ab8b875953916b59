"""Shared fixtures: canned model replies and a fake model client."""

import json
from typing import Any, Dict, List

import pytest

from company_analyzer.analyzer import CompanyAnalyzer
from company_analyzer.plan_store import InMemoryPlanStore


ANALYSIS_REPLY: Dict[str, Any] = {
    "strengths": ["Experienced founding team", "Proprietary routing algorithm"],
    "weaknesses": ["Limited brand awareness"],
    "opportunities": [],
    "threats": [],
    "marketAnalysis": "Demand for logistics software keeps growing among mid-sized retailers.",
    "competitivePosition": "Acme competes on price and integration speed against larger incumbents.",
    "riskAssessment": [
        {"risk": "Key engineer leaves", "severity": "high", "mitigation": "Document core systems"}
    ],
    "growthScore": 7,
    "recommendations": ["Hire a marketing lead"],
}

PLAN_REPLY: Dict[str, Any] = {
    "executiveSummary": "Acme builds routing software for regional couriers.",
    "companyDescription": "Founded in 2023, Acme aims to make same-day delivery affordable.",
    "marketAnalysis": {
        "industryOverview": "Logistics software is consolidating.",
        "targetMarket": "Regional courier companies with 10-200 vehicles.",
        "marketSize": "About $4B in North America.",
        "competitiveAnalysis": "Two national incumbents and several start-ups.",
    },
    "organizationStructure": "CEO, CTO and a four-person engineering team.",
    "productsServices": "A SaaS dispatch and route optimisation platform.",
    "marketingStrategy": {
        "positioning": "The fastest setup in the market.",
        "channels": ["Trade shows", "Direct sales"],
        "tactics": ["Free pilot for the first month"],
    },
    "financialProjections": {
        "year1": {"revenue": "$300k", "expenses": "$500k", "profit": "-$200k"},
        "year2": {"revenue": "$1.2M", "expenses": "$1M", "profit": "$200k"},
        "year3": {"revenue": "$3M", "expenses": "$2.1M", "profit": "$900k"},
        "assumptions": ["20 new customers per quarter"],
    },
    "fundingRequirements": {
        "amount": "$750k",
        "use": ["Engineering", "Sales"],
        "timeline": "Next 6 months",
    },
    "actionPlan": [
        {"milestone": "Launch v2", "timeline": "Q1", "priority": "high"}
    ],
    "risks": [{"risk": "Slow sales cycles", "mitigation": "Offer monthly plans"}],
}


class FakeLLM:
    """Stands in for LLMClient. Replies are returned in order; the last one repeats."""

    def __init__(self, *replies: Any):
        self.replies: List[Any] = list(replies) or [""]
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system_prompt, user_prompt, *, max_tokens=4000, temperature=0.7):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class CountingStore(InMemoryPlanStore):
    def __init__(self):
        super().__init__()
        self.create_calls = 0

    def create(self, plan):
        self.create_calls += 1
        return super().create(plan)


@pytest.fixture
def analysis_reply() -> str:
    return json.dumps(ANALYSIS_REPLY)


@pytest.fixture
def plan_reply() -> str:
    return json.dumps(PLAN_REPLY)


@pytest.fixture
def acme() -> Dict[str, Any]:
    return {"companyName": "Acme", "industry": "Technology"}


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def make_analyzer(store):
    def _make(*replies):
        llm = FakeLLM(*replies)
        return CompanyAnalyzer(llm=llm, store=store), llm

    return _make
