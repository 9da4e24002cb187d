"""
Headless PDF renderer for the attendance recap.

Uses Playwright's async Chromium API:
  - ``RenderJob`` is one attempt: its own browser process and page,
    released by ``close()`` whatever happened.
  - ``generate_pdf`` runs up to ``max_retries`` attempts in sequence
    with a linear backoff and re-raises the last failure.
"""

from __future__ import annotations

import asyncio
import enum
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from config import RenderProfile

log = logging.getLogger("discipline-dashboard.renderer")

DEFAULT_MAX_RETRIES = 2
BACKOFF_SECONDS = 1.0

PDF_OPTIONS = {
    "format": "A4",
    "print_background": True,
    "margin": {"top": "10mm", "right": "10mm", "bottom": "10mm", "left": "10mm"},
    "landscape": False,
    "display_header_footer": False,
    "prefer_css_page_size": False,
}

# Resolves once every <img> has loaded, failed, or hit its own timeout
WAIT_FOR_IMAGES_JS = """
async (timeoutMs) => {
    const images = Array.from(document.images);
    await Promise.all(images.map((img) => {
        if (img.complete) {
            return Promise.resolve();
        }
        return new Promise((resolve) => {
            const timer = setTimeout(resolve, timeoutMs);
            const done = () => { clearTimeout(timer); resolve(); };
            img.addEventListener("load", done, { once: true });
            img.addEventListener("error", done, { once: true });
        });
    }));
}
"""


class RenderFailure(enum.Enum):
    LAUNCH_FAILED = "launch_failed"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION_FAILED = "navigation_failed"
    RENDER_TIMEOUT = "render_timeout"
    UNKNOWN = "unknown"


class RenderError(Exception):
    """A render attempt failed; ``kind`` says at which stage."""

    def __init__(self, kind: RenderFailure, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"RenderError({self.kind.name}, {self.message!r})"


class RenderJob:
    """One attempt at printing HTML to PDF bytes."""

    def __init__(self, playwright, profile: RenderProfile):
        self.playwright = playwright
        self.profile = profile
        self.browser = None
        self.page = None

    async def _launch(self) -> None:
        options = {
            "headless": True,
            "args": self.profile.args,
            "timeout": self.profile.launch_timeout_ms,
        }
        if self.profile.executable_path:
            options["executable_path"] = self.profile.executable_path
        try:
            self.browser = await self.playwright.chromium.launch(**options)
            context = await self.browser.new_context(
                viewport=self.profile.viewport,
                ignore_https_errors=self.profile.ignore_https_errors,
            )
            self.page = await context.new_page()
        except PlaywrightError as e:
            raise RenderError(RenderFailure.LAUNCH_FAILED, f"Browser launch failed: {e}") from e

    async def _load(self, html: str) -> None:
        try:
            await self.page.set_content(
                html,
                wait_until="networkidle",
                timeout=self.profile.content_timeout_ms,
            )
            await self.page.evaluate(WAIT_FOR_IMAGES_JS, self.profile.image_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise RenderError(RenderFailure.NAVIGATION_TIMEOUT, f"Loading report HTML timed out: {e}") from e
        except PlaywrightError as e:
            raise RenderError(RenderFailure.NAVIGATION_FAILED, f"Loading report HTML failed: {e}") from e

    async def _print(self) -> bytes:
        if self.page.is_closed():
            raise RenderError(RenderFailure.UNKNOWN, "Page was closed before PDF generation")
        try:
            return await asyncio.wait_for(
                self.page.pdf(**PDF_OPTIONS),
                timeout=self.profile.pdf_timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            raise RenderError(
                RenderFailure.RENDER_TIMEOUT,
                f"PDF generation exceeded {self.profile.pdf_timeout_ms} ms",
            ) from e
        except PlaywrightError as e:
            raise RenderError(RenderFailure.UNKNOWN, f"PDF generation failed: {e}") from e

    async def render(self, html: str) -> bytes:
        await self._launch()
        await self._load(html)
        return await self._print()

    async def close(self) -> None:
        """Close the page and the browser; failures are logged, never raised."""
        try:
            if self.page is not None and not self.page.is_closed():
                await self.page.close()
        except Exception:
            log.exception("[PDF] Failed to close page")
        finally:
            self.page = None

        try:
            if self.browser is not None:
                await self.browser.close()
        except Exception:
            log.exception("[PDF] Failed to close browser")
        finally:
            self.browser = None


async def generate_pdf(
    html: str,
    profile: RenderProfile,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> bytes:
    """
    Render ``html`` to PDF bytes, retrying failed attempts.

    Attempts run strictly one after another; attempt ``n`` that fails is
    followed by a ``BACKOFF_SECONDS * n`` pause. Each attempt's browser
    is closed before the next one starts or before returning.

    Raises:
        Exception: Whatever the final attempt raised, unchanged
            (normally a ``RenderError``).
    """
    async with async_playwright() as playwright:
        for attempt in range(1, max_retries + 1):
            log.info(f"[PDF] Attempt {attempt}/{max_retries} (profile={profile.name})")
            job = RenderJob(playwright, profile)
            try:
                pdf_bytes = await job.render(html)
                log.info(f"[PDF] ✓ Generated {len(pdf_bytes)} bytes on attempt {attempt}")
                return pdf_bytes
            except Exception as e:
                log.error(f"[PDF] ✗ Attempt {attempt} failed: {e!r}")
                if attempt >= max_retries:
                    raise
            finally:
                await job.close()

            await asyncio.sleep(BACKOFF_SECONDS * attempt)

    raise RuntimeError("max_retries must be at least 1")
