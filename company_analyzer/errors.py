from typing import Any, Dict, List, Optional


class AnalyzerError(Exception):
    """Base class for every failure the generation pipeline reports."""

    status_code = 500
    remediation = "Please try again."

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_detail(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "details": self.message,
            "stage": self.stage,
            "remediation": self.remediation,
        }


class ValidationError(AnalyzerError):
    status_code = 400
    remediation = "Fill in the required fields and submit again."

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.missing_fields = list(missing_fields or [])

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["missingFields"] = self.missing_fields
        return detail


class ConfigurationError(AnalyzerError):
    remediation = "Check the OPENAI_API_KEY setting and the configured model."


class RateLimitedError(AnalyzerError):
    status_code = 429
    remediation = "The AI provider is busy. Try again in a few moments."


class QuotaExceededError(AnalyzerError):
    status_code = 402
    remediation = "The AI provider quota is exhausted. Check billing and add credits."


class UpstreamError(AnalyzerError):
    status_code = 502


class UpstreamProtocolError(UpstreamError):
    pass


class StructuredGenerationError(AnalyzerError):
    status_code = 502
    remediation = "The generated business plan could not be read. Please regenerate it."


class NotFoundError(AnalyzerError):
    status_code = 404
    remediation = "Check the plan id or generate a new business plan."


class PlanStoreError(AnalyzerError):
    remediation = "The plan could not be saved or loaded. Please try again."
