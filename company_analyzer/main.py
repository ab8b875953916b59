import logging
from functools import lru_cache
from typing import List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from company_analyzer import errors
from company_analyzer.analyzer import TABLE_OF_CONTENTS, CompanyAnalyzer
from company_analyzer.config import settings
from company_analyzer.llm_service import llm_client
from company_analyzer.pdf_report import render_plan_pdf
from company_analyzer.plan_store import build_plan_store
from company_analyzer.schemas import (
    AnalysisResult,
    CompanyProfile,
    HealthStatus,
    PlanResult,
)

# Configure Logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("CompanyAnalyzer")

app = FastAPI(title="AI Company Analyzer", version="1.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache
def get_analyzer() -> CompanyAnalyzer:
    store = build_plan_store(settings.plan_store_backend, settings.plan_db_path)
    return CompanyAnalyzer(llm=llm_client, store=store)


def _http_error(e: errors.AnalyzerError, action: str) -> HTTPException:
    if e.status_code >= 500:
        logger.error(f"{action} failed at stage {e.stage}: {e.message}")
    else:
        logger.info(f"{action} rejected: {e.message}")
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


def _unexpected(e: Exception, action: str) -> HTTPException:
    logger.exception(f"Unexpected error during {action.lower()}")
    return HTTPException(
        status_code=500,
        detail={"error": f"Failed to {action.lower()}", "details": str(e)},
    )


@app.get("/health", response_model=HealthStatus)
def health():
    return HealthStatus(status="ok", message="AI Company Analyzer API is running")


@app.post("/api/analyze", response_model=AnalysisResult)
async def analyze(
    profile: CompanyProfile,
    analyzer: CompanyAnalyzer = Depends(get_analyzer),
):
    """Run the SWOT analysis for a company profile. Nothing is stored."""
    try:
        return await analyzer.run_analysis(profile)
    except errors.AnalyzerError as e:
        raise _http_error(e, "Analysis")
    except Exception as e:
        raise _unexpected(e, "Analyze company data")


@app.post("/api/business-plan", response_model=PlanResult)
async def generate_plan(
    profile: CompanyProfile,
    analyzer: CompanyAnalyzer = Depends(get_analyzer),
):
    """Generate and store a full business plan; the response carries its planId."""
    try:
        return await analyzer.run_plan(profile)
    except errors.AnalyzerError as e:
        raise _http_error(e, "Business plan")
    except Exception as e:
        raise _unexpected(e, "Generate business plan")


@app.get("/api/business-plans", response_model=List[PlanResult])
def list_plans(analyzer: CompanyAnalyzer = Depends(get_analyzer)):
    try:
        return [analyzer.to_result(plan) for plan in analyzer.list_plans()]
    except errors.AnalyzerError as e:
        raise _http_error(e, "Plan listing")


@app.get("/api/business-plan/{plan_id}", response_model=PlanResult)
def get_plan(plan_id: str, analyzer: CompanyAnalyzer = Depends(get_analyzer)):
    try:
        return analyzer.to_result(analyzer.get_plan(plan_id))
    except errors.AnalyzerError as e:
        raise _http_error(e, "Plan lookup")


def _download_filename(company_name: str) -> str:
    # Header-safe: printable ASCII only, no quotes or backslashes.
    name = f"{company_name}-business-plan.pdf".encode("ascii", "ignore").decode("ascii")
    return "".join(ch for ch in name if ch.isprintable() and ch not in '"\\')


@app.get("/api/business-plan/{plan_id}/pdf")
def download_plan_pdf(plan_id: str, analyzer: CompanyAnalyzer = Depends(get_analyzer)):
    try:
        plan = analyzer.get_plan(plan_id)
    except errors.AnalyzerError as e:
        raise _http_error(e, "PDF download")

    try:
        content = render_plan_pdf(plan, TABLE_OF_CONTENTS)
    except Exception as e:
        raise _unexpected(e, "Generate PDF")

    filename = _download_filename(plan.company_name)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
