import json

import pytest

from company_analyzer import errors
from company_analyzer.normalizer import (
    ANALYSIS,
    PLAN,
    PLAN_SECTION_DEFAULTS,
    PROSE_PLACEHOLDERS,
    clean_prose,
    extract_json_object,
    normalize,
)
from company_analyzer.schemas import PLAN_SECTIONS

from conftest import ANALYSIS_REPLY, PLAN_REPLY

EXPECTED_FALLBACK = {
    "strengths": ["Analysis in progress"],
    "weaknesses": ["Unable to parse structured data"],
    "opportunities": ["Please try again"],
    "threats": ["Data parsing error"],
    "marketAnalysis": "Unable to parse market analysis. Please try regenerating the analysis.",
    "competitivePosition": "Unable to parse competitive position. Please try regenerating the analysis.",
    "riskAssessment": [],
    "growthScore": 5,
    "recommendations": ["Please regenerate analysis"],
    "isFallback": True,
}


def test_clean_analysis_passes_through():
    result = normalize(json.dumps(ANALYSIS_REPLY), ANALYSIS)

    assert result["strengths"] == ANALYSIS_REPLY["strengths"]
    assert result["marketAnalysis"] == ANALYSIS_REPLY["marketAnalysis"]
    assert result["riskAssessment"] == ANALYSIS_REPLY["riskAssessment"]
    assert result["growthScore"] == 7
    assert result["isFallback"] is False


@pytest.mark.parametrize(
    "wrapper",
    [
        "```json\n{}\n```",
        "```JSON\n{}\n```",
        "```\n{}\n```",
        "  ```json{}```  ",
        "Here is the analysis you asked for:\n{}\nLet me know if you need more.",
        "Sure!\n```json\n{}\n```\nHope this helps.",
    ],
)
def test_wrapped_reply_matches_unwrapped(wrapper):
    payload = json.dumps(ANALYSIS_REPLY, indent=2)
    wrapped = wrapper.replace("{}", payload)

    assert normalize(wrapped, ANALYSIS) == normalize(payload, ANALYSIS)


def test_nested_market_analysis_becomes_placeholder():
    reply = dict(ANALYSIS_REPLY, marketAnalysis={"size": "large", "growth": "fast"})

    result = normalize(json.dumps(reply), ANALYSIS)

    assert result["marketAnalysis"] == PROSE_PLACEHOLDERS["marketAnalysis"]
    assert result["competitivePosition"] == ANALYSIS_REPLY["competitivePosition"]


def test_nested_competitive_position_becomes_placeholder():
    reply = dict(ANALYSIS_REPLY, competitivePosition=["leader"])

    result = normalize(json.dumps(reply), ANALYSIS)

    assert result["competitivePosition"] == PROSE_PLACEHOLDERS["competitivePosition"]


def test_missing_prose_field_gets_placeholder():
    reply = dict(ANALYSIS_REPLY)
    del reply["marketAnalysis"]

    result = normalize(json.dumps(reply), ANALYSIS)

    assert result["marketAnalysis"] == PROSE_PLACEHOLDERS["marketAnalysis"]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('Strong demand {"size": 5} across segments', "Strong demand  across segments"),
        ("Growth continues.\n```json\n[1, 2]\n```", "Growth continues."),
        ('{"marketSize": "big", "trend": "up"}', None),
        ("```json", None),
        ("too short", None),
        ("   ", None),
    ],
)
def test_clean_prose(raw, expected):
    placeholder = PROSE_PLACEHOLDERS["marketAnalysis"]

    assert clean_prose(raw, placeholder) == (expected or placeholder)


@pytest.mark.parametrize(
    "raw",
    ["", "I could not produce an analysis today.", "{not json at all}", "[1, 2, 3]"],
)
def test_unparsable_analysis_returns_fixed_fallback(raw):
    assert normalize(raw, ANALYSIS) == EXPECTED_FALLBACK


def test_fallback_is_a_fresh_copy():
    first = normalize("nope", ANALYSIS)
    first["strengths"].append("mutated")

    assert normalize("nope", ANALYSIS)["strengths"] == ["Analysis in progress"]


def test_list_and_risk_fields_are_coerced():
    reply = dict(
        ANALYSIS_REPLY,
        strengths="Single strength",
        threats=[{"name": "Recession", "impact": "high"}, "", None],
        riskAssessment=[
            {"risk": "Churn", "severity": "HIGH", "mitigation": "Onboarding"},
            {"risk": "Fraud", "severity": "critical"},
            "Regulation",
        ],
    )

    result = normalize(json.dumps(reply), ANALYSIS)

    assert result["strengths"] == ["Single strength"]
    assert result["threats"] == ["Recession - high"]
    assert result["riskAssessment"] == [
        {"risk": "Churn", "severity": "high", "mitigation": "Onboarding"},
        {"risk": "Fraud", "severity": "medium", "mitigation": ""},
        {"risk": "Regulation", "severity": "medium", "mitigation": ""},
    ]


@pytest.mark.parametrize(
    "score, expected",
    [
        (7, 7), (7.6, 8), ("8", 8), ("6/10", 6), (15, 10), (0, 1),
        (-3, 1), ("-3", 1), ("high", None), (None, None), (True, None),
    ],
)
def test_growth_score_is_an_integer_between_1_and_10(score, expected):
    reply = dict(ANALYSIS_REPLY, growthScore=score)

    assert normalize(json.dumps(reply), ANALYSIS)["growthScore"] == expected


@pytest.mark.parametrize(
    "reply",
    [
        ANALYSIS_REPLY,
        dict(ANALYSIS_REPLY, marketAnalysis={"nested": True}, growthScore="9"),
        dict(ANALYSIS_REPLY, competitivePosition='Leader {"x": 1} in the niche market'),
    ],
)
def test_analysis_normalization_is_idempotent(reply):
    first = normalize(json.dumps(reply), ANALYSIS)
    second = normalize(json.dumps(first), ANALYSIS)

    assert second == first


def test_fallback_output_is_stable_when_renormalized():
    fallback = normalize("garbage", ANALYSIS)

    assert normalize(json.dumps(fallback), ANALYSIS) == fallback


def test_plan_passes_through_unchanged():
    result = normalize("```json\n" + json.dumps(PLAN_REPLY) + "\n```", PLAN)

    assert result == PLAN_REPLY


def test_plan_prose_is_flattened_not_replaced():
    reply = dict(PLAN_REPLY, executiveSummary={"text": "Acme routes parcels."})

    result = normalize(json.dumps(reply), PLAN)

    assert result["executiveSummary"] == "Acme routes parcels."


def _null_paths(value, path="$"):
    if value is None:
        return [path]
    if isinstance(value, dict):
        return [p for key, item in value.items() for p in _null_paths(item, f"{path}.{key}")]
    if isinstance(value, list):
        return [p for i, item in enumerate(value) for p in _null_paths(item, f"{path}[{i}]")]
    return []


def test_plan_nested_nulls_are_filled():
    raw = json.dumps(
        {
            "executiveSummary": "Acme plan.",
            "marketAnalysis": {"industryOverview": None, "marketSize": None},
            "financialProjections": {"year1": None, "year2": {"revenue": "$1M", "profit": None}},
            "marketingStrategy": {"channels": ["Direct sales", None], "tactics": None},
            "actionPlan": [{"milestone": "Launch", "timeline": None}, None],
            "risks": [{"risk": "Churn"}],
        }
    )

    result = normalize(raw, PLAN)

    assert _null_paths(result) == []
    assert result["marketAnalysis"] == PLAN_SECTION_DEFAULTS["marketAnalysis"]
    assert result["financialProjections"]["year1"] == {"revenue": "", "expenses": "", "profit": ""}
    assert result["financialProjections"]["year2"] == {"revenue": "$1M", "expenses": "", "profit": ""}
    assert result["marketingStrategy"]["channels"] == ["Direct sales"]
    assert result["actionPlan"] == [{"milestone": "Launch", "timeline": "", "priority": ""}]
    assert result["risks"] == [{"risk": "Churn", "mitigation": ""}]
    assert normalize(json.dumps(result), PLAN) == result


def test_deeply_nested_analysis_falls_back():
    raw = '{"marketAnalysis": ' + "[" * 100000 + "]" * 100000 + "}"

    assert normalize(raw, ANALYSIS) == EXPECTED_FALLBACK


def test_plan_missing_sections_are_filled():
    result = normalize(json.dumps({"executiveSummary": "Short plan."}), PLAN)

    assert set(PLAN_SECTIONS) <= set(result)
    assert result["executiveSummary"] == "Short plan."
    assert result["marketingStrategy"] == {"positioning": "", "channels": [], "tactics": []}
    assert result["actionPlan"] == []


@pytest.mark.parametrize("raw", ["", "Sorry, I cannot help with that.", "[]", "{broken"])
def test_unparsable_plan_raises(raw):
    with pytest.raises(errors.StructuredGenerationError):
        normalize(raw, PLAN)


def test_plan_normalization_is_idempotent():
    first = normalize(json.dumps({"executiveSummary": "Short plan."}), PLAN)

    assert normalize(json.dumps(first), PLAN) == first


def test_unknown_kind_is_rejected():
    with pytest.raises(ValueError):
        normalize("{}", "memo")


def test_extract_json_object_uses_outer_braces():
    text = 'Result: {"a": {"b": 1}} trailing'

    assert extract_json_object(text) == {"a": {"b": 1}}
    assert extract_json_object("no braces here") is None
