"""
Test the three-step rendering client.
"""

import json
from unittest.mock import Mock

import pytest
import requests

from preview_worker.exceptions import RenderStepFailure
from preview_worker.services.renderer import STEP_DOWNLOAD, STEP_RENDER, STEP_UPLOAD, CarboneRenderer

BASE_URL = "http://carbone:4000"


def make_response(status_code=200, payload=None, content=None):
    response = requests.Response()
    response.status_code = status_code
    if content is None:
        content = json.dumps(payload).encode() if payload is not None else b""
    response._content = content
    response._content_consumed = True
    response.encoding = "utf-8"
    return response


def happy_responses(pdf=b"%PDF-1.7 rendered"):
    return [
        make_response(payload={"success": True, "data": {"templateId": "tpl-123"}}),
        make_response(payload={"success": True, "data": {"renderId": "rnd-456.pdf"}}),
        make_response(content=pdf),
    ]


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "plano.docx"
    path.write_bytes(b"PK\x03\x04docx")
    return path


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


class TestCarboneRenderer:
    """Test rendering functionality."""

    def test_happy_path(self, session, source, tmp_path):
        """Test upload, render and download against the expected endpoints."""
        session.request.side_effect = happy_responses()
        renderer = CarboneRenderer(BASE_URL + "/", timeout=15, session=session)
        output = tmp_path / "plano.pdf"

        result = renderer.render_pdf(source, output)

        assert result == output
        assert output.read_bytes() == b"%PDF-1.7 rendered"

        calls = session.request.call_args_list
        assert [call.args for call in calls] == [
            ("POST", f"{BASE_URL}/template"),
            ("POST", f"{BASE_URL}/render/tpl-123"),
            ("GET", f"{BASE_URL}/render/rnd-456.pdf"),
        ]
        assert all(call.kwargs["timeout"] == 15 for call in calls)

    def test_request_bodies(self, session, source, tmp_path):
        """Test the multipart upload field and the render JSON body."""
        session.request.side_effect = happy_responses()

        CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

        upload_call, render_call, download_call = session.request.call_args_list
        name, _handle, content_type = upload_call.kwargs["files"]["template"]
        assert name == "plano.docx"
        assert content_type == "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        assert render_call.kwargs["json"] == {"data": {}, "convertTo": "pdf"}
        assert download_call.kwargs["stream"] is True

    def test_injected_session_not_closed(self, session, source, tmp_path):
        """Test that a caller-owned session stays open."""
        session.request.side_effect = happy_responses()

        CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

        session.close.assert_not_called()

    def test_upload_server_error(self, session, source, tmp_path):
        """Test that a 500 on upload stops the protocol."""
        session.request.side_effect = [make_response(500, content=b"template storage unavailable")]

        with pytest.raises(RenderStepFailure) as exc_info:
            CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

        error = exc_info.value
        assert error.step == STEP_UPLOAD
        assert error.status_code == 500
        assert "500" in str(error)
        assert "template storage unavailable" in str(error)
        assert session.request.call_count == 1

    def test_render_not_found(self, session, source, tmp_path):
        """Test that a 404 on render is reported as a render step failure."""
        session.request.side_effect = [
            make_response(payload={"success": True, "data": {"templateId": "tpl-123"}}),
            make_response(404, payload={"success": False, "error": "Template not found"}),
        ]

        with pytest.raises(RenderStepFailure) as exc_info:
            CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

        assert exc_info.value.step == STEP_RENDER
        assert exc_info.value.status_code == 404
        assert "404" in str(exc_info.value)

    def test_download_bad_gateway(self, session, source, tmp_path):
        """Test that a failed download leaves no PDF behind."""
        responses = happy_responses()
        responses[2] = make_response(502, content=b"bad gateway")
        session.request.side_effect = responses
        output = tmp_path / "out.pdf"

        with pytest.raises(RenderStepFailure) as exc_info:
            CarboneRenderer(BASE_URL, session=session).render_pdf(source, output)

        assert exc_info.value.step == STEP_DOWNLOAD
        assert "502" in str(exc_info.value)
        assert not output.exists()

    def test_non_json_body(self, session, source, tmp_path):
        """Test that an HTML body on a 200 is rejected."""
        session.request.side_effect = [make_response(content=b"<html>proxy</html>")]

        with pytest.raises(RenderStepFailure, match="non-JSON"):
            CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

    def test_missing_template_id(self, session, source, tmp_path):
        """Test that a JSON body without templateId is rejected."""
        session.request.side_effect = [make_response(payload={"success": True, "data": {}})]

        with pytest.raises(RenderStepFailure, match="templateId"):
            CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

    def test_success_false_on_200(self, session, source, tmp_path):
        """Test that an explicit failure flag is honored."""
        session.request.side_effect = [
            make_response(payload={"success": True, "data": {"templateId": "tpl-123"}}),
            make_response(payload={"success": False, "error": "bad template"}),
        ]

        with pytest.raises(RenderStepFailure, match="bad template"):
            CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

    def test_connection_error(self, session, source, tmp_path):
        """Test that transport failures are wrapped."""
        session.request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(RenderStepFailure) as exc_info:
            CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

        assert exc_info.value.step == STEP_UPLOAD
        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)

    def test_legacy_content_type(self, session, tmp_path):
        """Test that a .doc source is uploaded with the legacy MIME type."""
        source = tmp_path / "old.doc"
        source.write_bytes(b"legacy")
        session.request.side_effect = happy_responses()

        CarboneRenderer(BASE_URL, session=session).render_pdf(source, tmp_path / "out.pdf")

        _name, _handle, content_type = session.request.call_args_list[0].kwargs["files"]["template"]
        assert content_type == "application/msword"
