"""Render a stored business plan as a PDF document."""

from io import BytesIO
from typing import Any, List, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from company_analyzer.schemas import PLAN_SECTIONS, StoredPlan, TocEntry

MARGIN = 0.75 * inch
BODY_FONT = ("Helvetica", 10)
HEADING_FONT = ("Helvetica-Bold", 14)
LABEL_FONT = ("Helvetica-Bold", 10)
LINE_HEIGHT = 14

SECTION_TITLES = {
    "executiveSummary": "Executive Summary",
    "companyDescription": "Company Description",
    "marketAnalysis": "Market Analysis",
    "organizationStructure": "Organization & Management",
    "productsServices": "Products & Services",
    "marketingStrategy": "Marketing Strategy",
    "financialProjections": "Financial Projections",
    "fundingRequirements": "Funding Requirements",
    "actionPlan": "Action Plan & Milestones",
    "risks": "Risk Assessment",
}


def _label(key: str) -> str:
    """``industryOverview`` -> ``Industry Overview``."""
    words: List[str] = []
    current = ""
    for char in str(key):
        if char.isupper() and current:
            words.append(current)
            current = char
        else:
            current += char
    if current:
        words.append(current)
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _leaf(item: Any) -> str:
    return "Not provided" if item is None or item == "" else str(item)


class _PlanWriter:
    def __init__(self, buffer: BytesIO, title: str):
        self.doc = canvas.Canvas(buffer, pagesize=A4)
        self.doc.setTitle(title)
        self.doc.setAuthor("AI Company Analyzer")
        self.doc.setSubject("Business Plan")
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def new_page(self):
        self.doc.showPage()
        self.y = self.height - MARGIN

    def line(self, text: str, font=BODY_FONT, indent: float = 0):
        max_width = self.width - 2 * MARGIN - indent
        for chunk in simpleSplit(text, font[0], font[1], max_width) or [""]:
            if self.y <= MARGIN:
                self.new_page()
            self.doc.setFont(*font)
            self.doc.drawString(MARGIN + indent, self.y, chunk)
            self.y -= LINE_HEIGHT

    def gap(self):
        self.y -= LINE_HEIGHT / 2

    def value(self, value: Any, indent: float = 0):
        if value is None or value == "" or value == [] or value == {}:
            self.line("Not provided", indent=indent)
        elif isinstance(value, dict):
            for key, item in value.items():
                if isinstance(item, (dict, list)):
                    self.line(_label(key), font=LABEL_FONT, indent=indent)
                    self.value(item, indent + 12)
                else:
                    self.line(f"{_label(key)}: {_leaf(item)}", indent=indent)
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    text = " | ".join(f"{_label(k)}: {_leaf(v)}" for k, v in item.items())
                    self.line(f"• {text}", indent=indent)
                else:
                    self.line(f"• {_leaf(item)}", indent=indent)
        else:
            for paragraph in str(value).split("\n"):
                self.line(paragraph.strip(), indent=indent)

    def save(self):
        self.doc.save()


def render_plan_pdf(plan: StoredPlan, table_of_contents: Sequence[TocEntry]) -> bytes:
    buffer = BytesIO()
    writer = _PlanWriter(buffer, f"{plan.company_name} - Business Plan")

    # Cover
    writer.y = writer.height / 2 + 2 * LINE_HEIGHT
    writer.line(plan.company_name, font=("Helvetica-Bold", 24))
    writer.gap()
    writer.line("Business Plan", font=HEADING_FONT)
    writer.line(f"Industry: {plan.industry}")
    writer.line(f"Generated: {plan.generated_at[:10]}")

    writer.new_page()
    writer.line("Table of Contents", font=HEADING_FONT)
    writer.gap()
    for entry in table_of_contents:
        writer.line(f"{entry.section} .......... {entry.page}")

    sections = plan.sections()
    for name in PLAN_SECTIONS:
        writer.new_page()
        writer.line(SECTION_TITLES[name], font=HEADING_FONT)
        writer.gap()
        writer.value(sections.get(name))

    writer.save()
    return buffer.getvalue()
