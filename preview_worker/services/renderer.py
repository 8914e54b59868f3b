"""
Client for the remote document rendering service.

The service speaks a three-step protocol: upload the document as a
template, ask for a render of that template converted to PDF, then
download the rendered file. The pipeline only sees :meth:`render_pdf`;
the template and render identifiers stay inside this module.
"""

from pathlib import Path
from typing import Any

import requests
from loguru import logger

from preview_worker.exceptions import RenderStepFailure
from preview_worker.services.routing import LEGACY_EXTENSION, LEGACY_MIME_TYPE, MODERN_MIME_TYPE

STEP_UPLOAD = "upload"
STEP_RENDER = "render"
STEP_DOWNLOAD = "download"

MAX_ERROR_BODY = 500
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class CarboneRenderer:
    """Renders documents to PDF through a Carbone-compatible HTTP service."""

    def __init__(self, base_url: str, timeout: int = 60, session: requests.Session | None = None):
        """
        Initialize the renderer client.

        Args:
            base_url: Base URL of the rendering service
            timeout: Per-request timeout in seconds
            session: Session to reuse; a new one is opened per render otherwise
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session

    def render_pdf(self, source: Path, output_path: Path) -> Path:
        """
        Render a document to PDF.

        Args:
            source: ``.docx`` document to render
            output_path: Where the PDF is written

        Returns:
            Path to the written PDF

        Raises:
            RenderStepFailure: If any of the three calls fails
        """
        source = Path(source)
        output_path = Path(output_path)

        session = self._session or requests.Session()
        try:
            template_id = self._upload_template(session, source)
            logger.debug(f"Template uploaded: {template_id}")

            render_id = self._render(session, template_id)
            logger.debug(f"Render created: {render_id}")

            self._download(session, render_id, output_path)
        finally:
            if self._session is None:
                session.close()

        if not output_path.is_file():
            raise RenderStepFailure(
                f"Rendered PDF was not written to {output_path}", STEP_DOWNLOAD
            )

        logger.info(f"Rendered {source.name} -> {output_path.name}")
        return output_path

    def _upload_template(self, session: requests.Session, source: Path) -> str:
        with source.open("rb") as handle:
            response = self._request(
                session,
                STEP_UPLOAD,
                "POST",
                f"{self.base_url}/template",
                files={"template": (source.name, handle, _content_type(source))},
            )
        return self._extract_id(response, STEP_UPLOAD, "templateId")

    def _render(self, session: requests.Session, template_id: str) -> str:
        response = self._request(
            session,
            STEP_RENDER,
            "POST",
            f"{self.base_url}/render/{template_id}",
            json={"data": {}, "convertTo": "pdf"},
        )
        return self._extract_id(response, STEP_RENDER, "renderId")

    def _download(self, session: requests.Session, render_id: str, output_path: Path) -> None:
        response = self._request(
            session,
            STEP_DOWNLOAD,
            "GET",
            f"{self.base_url}/render/{render_id}",
            stream=True,
        )
        try:
            with output_path.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        handle.write(chunk)
        except requests.RequestException as exc:
            raise RenderStepFailure(
                f"Renderer {STEP_DOWNLOAD} interrupted: {exc}", STEP_DOWNLOAD
            ) from exc
        finally:
            response.close()

    def _request(self, session: requests.Session, step: str, method: str, url: str, **kwargs: Any) -> requests.Response:
        """
        Send one protocol request and enforce a 2xx status.

        Raises:
            RenderStepFailure: On transport errors or non-2xx responses
        """
        try:
            response = session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise RenderStepFailure(f"Renderer {step} request failed: {exc}", step) from exc

        if not 200 <= response.status_code < 300:
            body = (response.text or "")[:MAX_ERROR_BODY]
            response.close()
            raise RenderStepFailure(
                f"Renderer {step} failed with HTTP {response.status_code}: {body}",
                step,
                status_code=response.status_code,
                body=body,
            )
        return response

    def _extract_id(self, response: requests.Response, step: str, field: str) -> str:
        """Pull ``data.<field>`` out of a JSON protocol response."""
        try:
            payload = response.json()
        except ValueError as exc:
            raise RenderStepFailure(
                f"Renderer {step} returned a non-JSON body (HTTP {response.status_code})",
                step,
                status_code=response.status_code,
            ) from exc

        if not isinstance(payload, dict):
            raise RenderStepFailure(f"Renderer {step} returned an unexpected payload", step, response.status_code)

        if payload.get("success") is False:
            raise RenderStepFailure(
                f"Renderer {step} reported failure (HTTP {response.status_code}): {payload.get('error')}",
                step,
                status_code=response.status_code,
            )

        data = payload.get("data") or {}
        value = data.get(field) if isinstance(data, dict) else None
        if not value:
            raise RenderStepFailure(
                f"Renderer {step} response is missing {field} (HTTP {response.status_code})",
                step,
                status_code=response.status_code,
            )
        return str(value)


def _content_type(source: Path) -> str:
    if source.suffix.lower() == LEGACY_EXTENSION:
        return LEGACY_MIME_TYPE
    return MODERN_MIME_TYPE
