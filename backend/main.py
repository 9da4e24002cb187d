"""
FastAPI gateway for the student-discipline dashboard.

Relays staff login to the school backend, proxies the monthly attendance
tally, and renders the monthly attendance recap to a downloadable PDF.
"""

from __future__ import annotations

import io
import logging
import re
import unicodedata
from urllib.parse import quote

from fastapi import Depends, FastAPI, Request

# ── Logging setup ──────────────────────────────────────────────────
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt="%H:%M:%S",
)
log = logging.getLogger("discipline-dashboard")
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from starlette.middleware.sessions import SessionMiddleware

from auth import (
    EXPORT_ROLES,
    SESSION_COOKIE,
    AuthError,
    clear_session,
    current_user,
    require_role,
    store_session,
)
from config import Settings, load_settings
from exporter import build_report_html
from models import AttendanceExportRequest, LoginRequest, SessionUser
from renderer import RenderError, RenderFailure, generate_pdf
from upstream import UpstreamClient, UpstreamError

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------
settings = load_settings()

app = FastAPI(
    title="Student Discipline Dashboard Gateway",
    description="Staff login relay, attendance proxy and monthly attendance PDF export.",
    version="1.0.0",
)
app.state.settings = settings

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie=SESSION_COOKIE,
    max_age=settings.session_max_age,
    https_only=settings.cookie_secure,
    same_site="lax",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

log.info("=" * 60)
log.info("Discipline dashboard gateway starting up")
log.info(f"Environment  : {settings.app_env}")
log.info(f"Backend API  : {settings.api_base_url}")
log.info(f"Browser      : {settings.render_profile.executable_path or 'playwright bundled chromium'}")
log.info(f"PDF retries  : {settings.pdf_max_retries}")
log.info("=" * 60)

GENERIC_PDF_ERROR = "Gagal membuat PDF. Silakan coba lagi dalam beberapa saat."

RENDER_FAILURE_MESSAGES: dict[RenderFailure, str] = {
    RenderFailure.LAUNCH_FAILED: "Browser untuk membuat PDF tidak tersedia di server. Hubungi administrator.",
    RenderFailure.NAVIGATION_TIMEOUT: "Waktu memuat laporan habis. Silakan coba lagi.",
    RenderFailure.NAVIGATION_FAILED: "Gagal memuat halaman laporan. Periksa koneksi server lalu coba lagi.",
    RenderFailure.RENDER_TIMEOUT: "Waktu pembuatan PDF habis. Silakan coba lagi.",
    RenderFailure.UNKNOWN: GENERIC_PDF_ERROR,
}

INVALID_EXPORT_BODY = "Data tidak valid. Pastikan Anda mengirimkan data, month, className, dan waliKelas"
EMPTY_EXPORT_DATA = "Data siswa tidak boleh kosong"

MONTH_PARAM_RE = re.compile(r"^\d{4}-\d{1,2}$")


# ---------------------------------------------------------------------------
# Dependencies & error handlers
# ---------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upstream(settings: Settings = Depends(get_settings)) -> UpstreamClient:
    return UpstreamClient(settings.api_base_url)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    log.warning(f"[AUTH] {request.method} {request.url.path} → {exc.status_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    log.warning(f"[UPSTREAM] {request.method} {request.url.path} → {exc.status_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _error_list(exc: ValidationError) -> list[dict]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def _export_validation_message(exc: ValidationError) -> str:
    for err in exc.errors():
        if err["loc"] and err["loc"][0] == "data" and err["type"] == "too_short":
            return EMPTY_EXPORT_DATA
    return INVALID_EXPORT_BODY


def _slug(text: str) -> str:
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")


def export_filename(month: str, class_name: str) -> str:
    """ASCII-only download name, e.g. ``rekap-absensi-juli-2025-xii-ipa-1.pdf``."""
    return f"rekap-absensi-{_slug(month) or 'bulan'}-{_slug(class_name) or 'kelas'}.pdf"


def content_disposition(month: str, class_name: str) -> str:
    """Attachment header with the ASCII name plus an RFC 5987 UTF-8 name."""
    utf8_name = "rekap-absensi-{}-{}.pdf".format(
        month.lower().replace(" ", "-", 1),
        re.sub(r"\s+", "-", class_name.lower()),
    )
    return (
        f'attachment; filename="{export_filename(month, class_name)}"; '
        f"filename*=UTF-8''{quote(utf8_name, safe='')}"
    )


# ---------------------------------------------------------------------------
# Routes — auth
# ---------------------------------------------------------------------------

@app.post("/api/auth/login")
async def login(request: Request, upstream: UpstreamClient = Depends(get_upstream)):
    """Log in against the backend and keep its token in the session cookie."""
    try:
        payload = LoginRequest.model_validate(await request.json())
    except ValidationError as e:
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request body", "errors": _error_list(e)},
        )
    except ValueError:
        return JSONResponse(status_code=400, content={"message": "Invalid request body", "errors": []})

    log.info(f"[AUTH] Login attempt for {payload.email}")
    data = await upstream.login(payload.email, payload.password)
    user = store_session(request, data["access_token"], data["teacher"])
    log.info(f"[AUTH] ✓ {user.name} logged in (role={user.role or '-'})")

    return {"message": "Login successful", "user": user.public()}


@app.post("/api/auth/logout")
async def logout(request: Request):
    clear_session(request)
    return {"message": "Logout successful"}


@app.get("/api/auth/session")
async def session_info(user: SessionUser = Depends(current_user)):
    return {"user": user.public()}


# ---------------------------------------------------------------------------
# Routes — attendance
# ---------------------------------------------------------------------------

@app.get("/api/attendances/get-month/{month}")
async def monthly_attendance(
    month: str,
    user: SessionUser = Depends(current_user),
    upstream: UpstreamClient = Depends(get_upstream),
):
    """Per-student attendance tally for a ``YYYY-MM`` month."""
    if not MONTH_PARAM_RE.match(month):
        return JSONResponse(status_code=400, content={"message": "Invalid month format. Use YYYY-MM"})

    year, month_num = month.split("-")
    formatted = f"{year}-{month_num.zfill(2)}"
    log.info(f"[ATTENDANCE] {user.name} fetching month {formatted}")

    return await upstream.get_monthly_attendance(user.jwt, formatted)


@app.post("/api/attendances/export")
async def export_attendance_pdf(
    request: Request,
    user: SessionUser = Depends(require_role(*EXPORT_ROLES)),
    settings: Settings = Depends(get_settings),
):
    """
    Render the monthly attendance recap of one class to PDF.

    Returns the PDF as a download, or a JSON ``{error, details?}`` body.
    """
    try:
        export_request = AttendanceExportRequest.model_validate(await request.json())
    except ValidationError as e:
        log.warning(f"[EXPORT] Invalid request from {user.name}: {_error_list(e)}")
        return JSONResponse(status_code=400, content={"error": _export_validation_message(e)})
    except ValueError:
        return JSONResponse(status_code=400, content={"error": INVALID_EXPORT_BODY})

    log.info(
        f"[EXPORT] {user.name} requested '{export_request.month}' / '{export_request.class_name}' "
        f"({len(export_request.rows)} students)"
    )

    html = build_report_html(export_request, header_image_url=settings.report_header_image_url)

    try:
        pdf_bytes = await generate_pdf(html, settings.render_profile, max_retries=settings.pdf_max_retries)
    except RenderError as e:
        log.error(f"[EXPORT] ✗ PDF generation failed ({e.kind.name}): {e.message}")
        return JSONResponse(
            status_code=500,
            content={"error": RENDER_FAILURE_MESSAGES[e.kind], "details": e.message},
        )
    except Exception:
        log.exception("[EXPORT] ✗ PDF generation failed")
        return JSONResponse(status_code=500, content={"error": GENERIC_PDF_ERROR})

    filename = export_filename(export_request.month, export_request.class_name)
    disposition = content_disposition(export_request.month, export_request.class_name)
    log.info(f"[EXPORT] ✓ Sending {filename} ({len(pdf_bytes)} bytes)")

    return StreamingResponse(
        io.BytesIO(pdf_bytes),
        media_type="application/pdf",
        headers={
            "Content-Disposition": disposition,
            "Content-Length": str(len(pdf_bytes)),
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
            "Access-Control-Expose-Headers": "Content-Disposition",
        },
    )
