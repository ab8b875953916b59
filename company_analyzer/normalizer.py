"""
Turn raw model replies into schema-shaped dictionaries.

The model is asked for pure JSON but routinely wraps it in code fences,
adds a sentence before or after it, or returns a nested object where a
plain-text field was requested. Everything here works on the untyped text
and only hands typed data onward once it has been reshaped.

Analysis replies never fail: an unreadable reply yields ``ANALYSIS_FALLBACK``
(flagged with ``isFallback``). Plan replies have no safe partial form, so an
unreadable plan raises ``StructuredGenerationError``.
"""

import copy
import json
import logging
import math
import re
from typing import Any, Dict, List, Optional

from company_analyzer import errors
from company_analyzer.schemas import PLAN_SECTIONS

logger = logging.getLogger(__name__)

ANALYSIS = "analysis"
PLAN = "plan"

_LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```$", re.IGNORECASE)
_OUTER_OBJECT = re.compile(r"\{[\s\S]*\}")

_INLINE_OBJECT = re.compile(r"\{[^}]*\}")
_FENCED_BLOCK = re.compile(r"```[^`]*```")
_WHOLE_OBJECT = re.compile(r"^\{[\s\S]*\}$", re.MULTILINE)
_STRAY_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)

MIN_PROSE_LENGTH = 10

PROSE_PLACEHOLDERS = {
    "marketAnalysis": "Market analysis is available. Please see other sections for detailed insights.",
    "competitivePosition": "Competitive position analysis is available. Please see other sections for detailed insights.",
}

LIST_FIELDS = ["strengths", "weaknesses", "opportunities", "threats", "recommendations"]
SEVERITIES = ("high", "medium", "low")

ANALYSIS_FALLBACK: Dict[str, Any] = {
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

# Shape each plan section takes when the model leaves it out.
PLAN_SECTION_DEFAULTS: Dict[str, Any] = {
    "executiveSummary": "",
    "companyDescription": "",
    "marketAnalysis": {
        "industryOverview": "",
        "targetMarket": "",
        "marketSize": "",
        "competitiveAnalysis": "",
    },
    "organizationStructure": "",
    "productsServices": "",
    "marketingStrategy": {"positioning": "", "channels": [], "tactics": []},
    "financialProjections": {
        "year1": {"revenue": "", "expenses": "", "profit": ""},
        "year2": {"revenue": "", "expenses": "", "profit": ""},
        "year3": {"revenue": "", "expenses": "", "profit": ""},
        "assumptions": [],
    },
    "fundingRequirements": {"amount": "", "use": [], "timeline": ""},
    "actionPlan": [],
    "risks": [],
}

# Shape of each entry in the list-valued plan sections.
PLAN_ITEM_DEFAULTS: Dict[str, Dict[str, str]] = {
    "actionPlan": {"milestone": "", "timeline": "", "priority": ""},
    "risks": {"risk": "", "mitigation": ""},
}


def normalize(raw_text: str, kind: str) -> Dict[str, Any]:
    """Parse ``raw_text`` as a reply of the given ``kind`` (``analysis`` or ``plan``)."""
    if kind not in (ANALYSIS, PLAN):
        raise ValueError(f"Unknown schema kind: {kind}")

    data = extract_json_object(raw_text or "")

    if kind == ANALYSIS:
        if data is None:
            logger.error(f"Failed to parse analysis response as JSON. Preview: {(raw_text or '')[:500]}")
            return copy.deepcopy(ANALYSIS_FALLBACK)
        return _repair_analysis(data)

    if data is None:
        logger.error(f"Failed to parse business plan response as JSON. Preview: {(raw_text or '')[:500]}")
        raise errors.StructuredGenerationError("Failed to generate structured business plan")
    return _sanitize_plan_data(data)


# ----------------------------------------------------------------------
# 🔹 JSON EXTRACTION
# ----------------------------------------------------------------------
def strip_code_fences(text: str) -> str:
    text = text.strip()
    text = _LEADING_FENCE.sub("", text)
    return _TRAILING_FENCE.sub("", text)


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the JSON object hidden in ``text``, or None if there is none."""
    cleaned = strip_code_fences(text)

    data = _loads(cleaned)
    if data is None:
        match = _OUTER_OBJECT.search(cleaned)
        if match:
            data = _loads(match.group(0))

    if not isinstance(data, dict):
        return None
    return data


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


# ----------------------------------------------------------------------
# 🔹 ANALYSIS REPAIR
# ----------------------------------------------------------------------
def _repair_analysis(data: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(data)

    for field, placeholder in PROSE_PLACEHOLDERS.items():
        result[field] = clean_prose(result.get(field), placeholder)

    for field in LIST_FIELDS:
        result[field] = _string_list(result.get(field))

    result["riskAssessment"] = [
        _risk_item(item) for item in _as_list(result.get("riskAssessment"))
    ]
    result["growthScore"] = _growth_score(result.get("growthScore"))
    result["isFallback"] = bool(result.get("isFallback", False))
    return result


def clean_prose(value: Any, placeholder: str) -> str:
    """Force a free-text field back to readable text."""
    if not isinstance(value, str):
        return placeholder

    text = value.strip()
    text = _INLINE_OBJECT.sub("", text).strip()
    text = _FENCED_BLOCK.sub("", text).strip()
    text = _WHOLE_OBJECT.sub("", text).strip()
    text = _STRAY_FENCE.sub("", text).strip()

    if not text or text.startswith("{") or len(text) < MIN_PROSE_LENGTH:
        return placeholder
    return text


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return " - ".join(_to_text(v) for v in value.values() if _to_text(v))
    if isinstance(value, list):
        return ", ".join(_to_text(v) for v in value if _to_text(v))
    if value is None:
        return ""
    return str(value)


def _string_list(value: Any) -> List[str]:
    items = [_to_text(item) for item in _as_list(value)]
    return [item for item in items if item]


def _risk_item(item: Any) -> Dict[str, str]:
    if not isinstance(item, dict):
        return {"risk": _to_text(item), "severity": "medium", "mitigation": ""}

    severity = _to_text(item.get("severity")).lower()
    if severity not in SEVERITIES:
        severity = "medium"
    return {
        "risk": _to_text(item.get("risk")),
        "severity": severity,
        "mitigation": _to_text(item.get("mitigation")),
    }


def _growth_score(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value)
        if not match:
            return None
        value = float(match.group(0))
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return max(1, min(10, int(round(value))))


# ----------------------------------------------------------------------
# 🔹 PLAN SANITIZATION
# ----------------------------------------------------------------------
def _sanitize_plan_data(data: Dict[str, Any]) -> Dict[str, Any]:
    for section in PLAN_SECTIONS:
        data[section] = _fill_shape(
            data.get(section),
            PLAN_SECTION_DEFAULTS[section],
            PLAN_ITEM_DEFAULTS.get(section),
        )
    return data


def _fill_shape(value: Any, default: Any, item_default: Optional[Dict[str, Any]] = None) -> Any:
    """Give ``value`` the declared shape of ``default`` without rewriting any text."""
    if value is None:
        return copy.deepcopy(default)

    if isinstance(default, str):
        # Scalar slot: keep strings as written, flatten anything nested.
        return value if isinstance(value, str) else _to_text(value)

    if isinstance(default, dict):
        if not isinstance(value, dict):
            return _to_text(value)
        filled = {key: _drop_nulls(item) for key, item in value.items()}
        for key, item_shape in default.items():
            filled[key] = _fill_shape(value.get(key), item_shape)
        return filled

    items = [item for item in _as_list(value) if item is not None]
    if item_default is None:
        return [_to_text(item) for item in items]
    return [
        _fill_shape(item, item_default) if isinstance(item, dict) else _to_text(item)
        for item in items
    ]


def _drop_nulls(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: "" if item is None else _drop_nulls(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_drop_nulls(item) for item in value if item is not None]
    return value
