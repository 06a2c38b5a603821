"""
Tests for odata_writer.core module.
"""

import json

import pytest
from unittest.mock import Mock, patch, MagicMock

from odata_writer.core.errors import (
    ODataWriterError,
    UnresolvableName,
    UnsupportedConversion,
    UnsupportedSchemaKind,
    ODataUpstreamError,
)
from odata_writer.core.session import (
    ODataAuth,
    ODataConfig,
    ODataSession,
)
from odata_writer.core.connection import ConnectionContext
from odata_writer.odata.batch import BatchWriter
from odata_writer.odata.request_writer import ODataRequest

BASE_URL = "https://test.example.com/odata/Shop/"


def _response(status=200, body=b"", headers=None):
    r = Mock()
    r.status_code = status
    r.content = body
    r.text = body.decode("utf-8") if isinstance(body, bytes) else body
    r.headers = headers or {}
    r.json.side_effect = lambda: json.loads(r.text)
    return r


class TestODataAuth:
    """Tests for ODataAuth dataclass."""

    def test_basic_auth(self):
        auth = ODataAuth("basic", ("user", "pass"))
        assert auth.kind == "basic"
        assert auth.value == ("user", "pass")

    def test_bearer_auth(self):
        auth = ODataAuth("bearer", "token123")
        assert auth.kind == "bearer"
        assert auth.value == "token123"


class TestODataConfig:
    """Tests for ODataConfig dataclass."""

    def test_default_values(self):
        cfg = ODataConfig(
            base_url="https://test.com/odata/",
            auth=ODataAuth("basic", ("user", "pass")),
        )
        assert cfg.payload_format == "json"
        assert cfg.indent is False
        assert cfg.timeout == 60.0
        assert cfg.retries == 3
        assert cfg.verify is True

    def test_custom_values(self):
        cfg = ODataConfig(
            base_url="https://test.com/odata/",
            auth=ODataAuth("bearer", "token"),
            payload_format="atom",
            timeout=30.0,
            verify=False,
        )
        assert cfg.payload_format == "atom"
        assert cfg.timeout == 30.0
        assert cfg.verify is False


class TestErrors:
    """Tests for the error taxonomy."""

    def test_all_errors_share_base(self):
        for err in (
            UnresolvableName("Qty", "Restock"),
            UnsupportedConversion(list, "Edm.Int32"),
            UnsupportedSchemaKind("Weird"),
            ODataUpstreamError(500, "boom", "https://test.com"),
        ):
            assert isinstance(err, ODataWriterError)

    def test_unresolvable_name_attributes(self):
        err = UnresolvableName("Qty", "Restock")
        assert err.name == "Qty"
        assert err.container == "Restock"
        assert "Qty" in str(err)

    def test_unsupported_conversion_message(self):
        err = UnsupportedConversion(list, "Edm.Int32")
        assert str(err) == "Conversion is not supported from type list to OData type Edm.Int32"


class TestODataUpstreamError:
    """Tests for ODataUpstreamError exception."""

    def test_error_attributes(self):
        err = ODataUpstreamError(
            status=404,
            body="Not found",
            url="https://test.com/entity",
            headers={"x-request-id": "123"},
        )
        assert err.status == 404
        assert err.body == "Not found"
        assert err.url == "https://test.com/entity"
        assert err.headers == {"x-request-id": "123"}

    def test_error_message_truncation(self):
        long_body = "x" * 2000
        err = ODataUpstreamError(500, long_body, "https://test.com")
        # Message should be truncated
        assert len(str(err)) < 1500


class TestODataSession:
    """Tests for ODataSession."""

    @patch("odata_writer.core.session.requests.Session")
    def test_session_creation_basic_auth(self, mock_session_class):
        mock_session = MagicMock()
        mock_session_class.return_value = mock_session

        cfg = ODataConfig(
            base_url="https://test.com/odata",
            auth=ODataAuth("basic", ("user", "pass")),
        )

        sess = ODataSession(cfg)
        assert sess.base == "https://test.com/odata/"
        assert mock_session.auth == ("user", "pass")

    @patch("odata_writer.core.session.requests.Session")
    def test_session_creation_bearer_auth(self, mock_session_class):
        mock_session = MagicMock()
        mock_session_class.return_value = mock_session

        cfg = ODataConfig(
            base_url="https://test.com/odata",
            auth=ODataAuth("bearer", "mytoken"),
        )

        ODataSession(cfg)
        mock_session.headers.update.assert_any_call({"Authorization": "Bearer mytoken"})

    def test_invalid_auth_kind_raises(self):
        cfg = ODataConfig(base_url="https://test.com/odata", auth=ODataAuth("digest", "x"))
        with pytest.raises(ValueError, match="auth.kind"):
            ODataSession(cfg)

    @patch("odata_writer.core.session.requests.Session")
    def test_context_manager(self, mock_session_class):
        mock_session = MagicMock()
        mock_session_class.return_value = mock_session

        cfg = ODataConfig(
            base_url="https://test.com/odata",
            auth=ODataAuth("basic", ("user", "pass")),
        )

        with ODataSession(cfg) as sess:
            assert sess is not None

        mock_session.close.assert_called_once()

    @patch("odata_writer.core.session.requests.Session")
    def test_send_posts_written_body(self, mock_session_class):
        mock_session = MagicMock()
        mock_session.headers = {}
        mock_session.request.return_value = _response(
            201, b'{"Id": 1}', {"Content-Type": "application/json"}
        )
        mock_session_class.return_value = mock_session

        sess = ODataSession(ODataConfig(base_url=BASE_URL, auth=ODataAuth("basic", ("u", "p"))))
        request = ODataRequest(
            method="POST",
            uri=BASE_URL + "Products",
            headers={"Content-Type": "application/json", "Prefer": "return=representation"},
            body=b'{"Name":"Widget"}',
        )

        assert sess.send(request) == {"Id": 1}
        kwargs = mock_session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == BASE_URL + "Products"
        assert kwargs["data"] == b'{"Name":"Widget"}'
        assert kwargs["headers"]["Prefer"] == "return=representation"

    @patch("odata_writer.core.session.requests.Session")
    def test_send_no_content_returns_none(self, mock_session_class):
        mock_session = MagicMock()
        mock_session.headers = {}
        mock_session.request.return_value = _response(204)
        mock_session_class.return_value = mock_session

        sess = ODataSession(ODataConfig(base_url=BASE_URL, auth=ODataAuth("basic", ("u", "p"))))
        assert sess.send(ODataRequest("DELETE", BASE_URL + "Products(1)")) is None

    @patch("odata_writer.core.session.requests.Session")
    def test_send_rejects_batched_request(self, mock_session_class):
        mock_session_class.return_value = MagicMock()
        sess = ODataSession(ODataConfig(base_url=BASE_URL, auth=ODataAuth("basic", ("u", "p"))))
        request = ODataRequest("POST", BASE_URL + "Products", batch_message=Mock())
        with pytest.raises(ValueError, match="send_batch"):
            sess.send(request)

    @patch("odata_writer.core.session.requests.Session")
    def test_upstream_error_extracted(self, mock_session_class):
        mock_session = MagicMock()
        mock_session.headers = {}
        body = json.dumps({"error": {"code": "BadRequest", "message": "Price is invalid", "target": "Price"}})
        mock_session.request.return_value = _response(400, body.encode("utf-8"))
        mock_session_class.return_value = mock_session

        sess = ODataSession(ODataConfig(base_url=BASE_URL, auth=ODataAuth("basic", ("u", "p"))))
        with pytest.raises(ODataUpstreamError) as exc:
            sess.send(ODataRequest("POST", BASE_URL + "Products", body=b"{}"))
        assert exc.value.status == 400
        assert exc.value.body == "code=BadRequest | message=Price is invalid | target=Price"

    @patch("odata_writer.core.session.requests.Session")
    def test_csrf_token_fetched_once(self, mock_session_class):
        mock_session = MagicMock()
        mock_session.headers = {}
        mock_session.request.side_effect = [
            _response(200, b"<xml/>", {"x-csrf-token": "tok"}),
            _response(204),
            _response(204),
        ]
        mock_session_class.return_value = mock_session

        cfg = ODataConfig(base_url=BASE_URL, auth=ODataAuth("basic", ("u", "p")), csrf=True)
        sess = ODataSession(cfg)
        sess.send(ODataRequest("DELETE", BASE_URL + "Products(1)"))
        sess.send(ODataRequest("DELETE", BASE_URL + "Products(2)"))

        assert mock_session.request.call_count == 3
        last = mock_session.request.call_args.kwargs
        assert last["headers"]["X-CSRF-Token"] == "tok"

    @patch("odata_writer.core.session.requests.Session")
    def test_get_text_requests_xml_for_metadata(self, mock_session_class):
        mock_session = MagicMock()
        mock_session.headers = {"Accept": "application/json"}
        mock_session.request.return_value = _response(200, b"<edmx/>")
        mock_session_class.return_value = mock_session

        sess = ODataSession(ODataConfig(base_url=BASE_URL, auth=ODataAuth("basic", ("u", "p"))))
        assert sess.get_text("$metadata") == "<edmx/>"
        kwargs = mock_session.request.call_args.kwargs
        assert kwargs["url"] == BASE_URL + "$metadata"
        assert kwargs["headers"]["Accept"] == "application/xml"

    @patch("odata_writer.core.session.requests.Session")
    def test_send_batch_posts_multipart(self, mock_session_class):
        mock_session = MagicMock()
        mock_session.headers = {}
        mock_session.request.return_value = _response(200, b"--batch--")
        mock_session_class.return_value = mock_session

        sess = ODataSession(ODataConfig(base_url=BASE_URL, auth=ODataAuth("basic", ("u", "p"))))
        batch = BatchWriter(BASE_URL, boundary="batch_1")
        batch.create_operation_message("Products(1)", "DELETE")
        sess.send_batch(batch)

        kwargs = mock_session.request.call_args.kwargs
        assert kwargs["url"] == BASE_URL + "$batch"
        assert kwargs["headers"]["Content-Type"] == "multipart/mixed;boundary=batch_1"
        assert b"DELETE " + BASE_URL.encode("utf-8") + b"Products(1) HTTP/1.1" in kwargs["data"]


class TestConnectionContext:
    """Tests for ConnectionContext."""

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_base_url_raises(self):
        with pytest.raises(ValueError, match="Missing base_url"):
            ConnectionContext(base_url="")

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_credentials_raises(self):
        with pytest.raises(ValueError, match="Missing credentials"):
            ConnectionContext(base_url="https://test.com/odata/")

    @patch.dict("os.environ", {}, clear=True)
    def test_unsupported_payload_format_raises(self):
        with pytest.raises(ValueError, match="Unsupported payload format"):
            ConnectionContext(base_url="https://test.com/odata/", bearer_token="t", payload_format="csv")

    @patch.dict("os.environ", {
        "ODATA_BASE_URL": "https://env.test.com/odata/",
        "ODATA_USER": "envuser",
        "ODATA_PASS": "envpass",
        "ODATA_PAYLOAD_FORMAT": "atom",
    }, clear=True)
    def test_reads_from_environment(self):
        conn = ConnectionContext()
        assert conn.base_url == "https://env.test.com/odata/"
        assert conn.payload_format == "atom"

    @patch.dict("os.environ", {"ODATA_PAYLOAD_FORMAT": "atom"}, clear=True)
    def test_explicit_params_override_env(self):
        conn = ConnectionContext(
            base_url="https://explicit.com/odata/",
            user="explicituser",
            password="explicitpass",
            payload_format="json",
        )
        assert conn.base_url == "https://explicit.com/odata/"
        assert conn.payload_format == "json"

    @patch("odata_writer.core.session.requests.Session")
    def test_request_writer_uses_service_schema(self, mock_session_class, sample_metadata_xml):
        mock_session = MagicMock()
        mock_session.headers = {}
        mock_session.request.return_value = _response(200, sample_metadata_xml.encode("utf-8"))
        mock_session_class.return_value = mock_session

        with ConnectionContext(base_url=BASE_URL, bearer_token="t") as conn:
            writer = conn.request_writer()
            request = writer.create_insert_request("Products", {"Name": "Widget"})

        assert request.uri == BASE_URL + "Products"
        assert json.loads(request.body) == {"@odata.type": "#Shop.Product", "Name": "Widget"}
        # $metadata fetched once
        assert mock_session.request.call_count == 1

    @patch("odata_writer.core.session.requests.Session")
    def test_batch_writer_bound_to_service(self, mock_session_class):
        mock_session_class.return_value = MagicMock()
        conn = ConnectionContext(base_url=BASE_URL, bearer_token="t")
        assert conn.batch().base_uri == BASE_URL
