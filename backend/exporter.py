"""
Report assembler for the monthly attendance recap ("rekap absensi").

Turns a validated ``AttendanceExportRequest`` into a self-contained HTML
document that the renderer prints to PDF. Pure: no I/O beyond loading
the Jinja2 template, same output for the same input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import DEFAULT_HEADER_IMAGE_URL
from models import AttendanceExportRequest

log = logging.getLogger("discipline-dashboard.exporter")

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
TEMPLATE_NAME = "rekap_absensi.html"

# Rendered in place of a percentage when no row reports any effective day
NO_PERCENTAGE = "-"
# Rendered in place of a signer name that was not supplied
SIGNER_PLACEHOLDER = "...................................."

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass
class ReportRow:
    """One rendered line of the recap table."""

    number: int
    student_name: str
    student_nis: str
    unexcused: int
    sick: int
    permitted: int
    total_absent: int
    sick_pct: str
    permitted_pct: str
    unexcused_pct: str
    present: int
    present_pct: str


def format_percentage(count: int, total_days: int) -> str:
    """``count / total_days * 100`` with two decimals and a comma separator."""
    if total_days <= 0:
        return NO_PERCENTAGE
    return f"{count / total_days * 100:.2f}".replace(".", ",")


def split_month_label(month: str) -> tuple[str, int]:
    """
    Split ``"JULI 2025"`` into ``("Juli", 2025)``.

    Raises:
        ValueError: If the label has no space or the year is not a number.
    """
    word, sep, year = month.strip().partition(" ")
    if not sep:
        raise ValueError(f"Month label {month!r} has no year part")
    return word.capitalize(), int(year)


def build_report_rows(request: AttendanceExportRequest) -> tuple[list[ReportRow], int]:
    """Compute table rows (input order, 1-indexed) and the shared denominator."""
    max_days = max(row.total_effective_days for row in request.rows)
    if max_days == 0:
        log.warning(
            f"[EXPORT] Every row of class '{request.class_name}' reports 0 effective days; "
            f"percentages rendered as '{NO_PERCENTAGE}'"
        )

    rows: list[ReportRow] = []
    for number, row in enumerate(request.rows, start=1):
        rows.append(
            ReportRow(
                number=number,
                student_name=row.student_name,
                student_nis=row.student_nis,
                unexcused=row.unexcused_absence_count,
                sick=row.sick_count,
                permitted=row.permitted_absence_count,
                total_absent=row.unexcused_absence_count + row.sick_count + row.permitted_absence_count,
                sick_pct=format_percentage(row.sick_count, max_days),
                permitted_pct=format_percentage(row.permitted_absence_count, max_days),
                unexcused_pct=format_percentage(row.unexcused_absence_count, max_days),
                present=row.present_count,
                present_pct=format_percentage(row.present_count, max_days),
            )
        )
    return rows, max_days


def build_report_html(
    request: AttendanceExportRequest,
    header_image_url: str = DEFAULT_HEADER_IMAGE_URL,
) -> str:
    """
    Render the recap document for one class and month.

    Args:
        request: Validated export request (non-empty rows, "WORD YEAR" month).
        header_image_url: Banner shown at the top of the page.

    Returns:
        The complete HTML document as a string.
    """
    month_word, year = split_month_label(request.month)
    rows, max_days = build_report_rows(request)

    template = _env.get_template(TEMPLATE_NAME)
    return template.render(
        header_image_url=header_image_url,
        month_label=f"{month_word} {year}".upper(),
        month_word=month_word,
        year=year,
        school_year=f"{year}-{year + 1}",
        class_name=request.class_name,
        homeroom_teacher_name=request.homeroom_teacher_name or SIGNER_PLACEHOLDER,
        principal_name=request.principal_name or SIGNER_PLACEHOLDER,
        counselor_name=request.counselor_name or SIGNER_PLACEHOLDER,
        total_effective_days=max_days,
        rows=rows,
    )
