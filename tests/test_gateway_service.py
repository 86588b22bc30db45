import asyncio
import json

import httpx

from ad_work_order.config import OpenAPISettings
from ad_work_order.models.operation import GatewayOutcome
from ad_work_order.services.gateway_service import (
    TIMEOUT_MESSAGE,
    Endpoints,
    HttpGatewayAdapter,
    MockGatewayAdapter,
    build_gateway,
    normalize_gateway_response,
)


def _settings() -> OpenAPISettings:
    return OpenAPISettings(
        OPEN_API_URL="https://gateway.test/uni-agency/",
        ACCESS_TOKEN_SECRET="secret-token",
        OPEN_API_TIMEOUT=5,
        GATEWAY_MODE="http",
    )


def test_code_zero_dialect_is_success():
    result = normalize_gateway_response(
        200, json.dumps({"code": "0", "message": "ok", "data": {"taskId": 98765}})
    )

    assert result.outcome == GatewayOutcome.SUCCESS
    assert result.external_task_id == "98765"


def test_numeric_code_zero_is_success():
    result = normalize_gateway_response(200, json.dumps({"code": 0, "data": {"taskId": "T-1"}}))

    assert result.succeeded
    assert result.external_task_id == "T-1"


def test_success_flag_dialect_is_success_even_with_nonzero_code():
    result = normalize_gateway_response(200, json.dumps({"code": "200", "success": True}))

    assert result.succeeded
    assert result.external_task_id is None


def test_failure_message_is_taken_from_msg_field():
    result = normalize_gateway_response(200, json.dumps({"code": "E100", "msg": "余额不足"}))

    assert result.outcome == GatewayOutcome.FAILED
    assert result.error_message == "余额不足"


def test_success_false_without_code_is_failure():
    result = normalize_gateway_response(500, json.dumps({"success": False}))

    assert result.outcome == GatewayOutcome.FAILED
    assert "HTTP 500" in result.error_message


def test_non_json_body_is_malformed_and_raw_text_is_kept():
    result = normalize_gateway_response(502, "<html>Bad Gateway</html>")

    assert result.outcome == GatewayOutcome.MALFORMED_RESPONSE
    assert result.raw_response == "<html>Bad Gateway</html>"
    assert result.error_message


def test_json_array_body_is_malformed():
    result = normalize_gateway_response(200, "[1, 2, 3]")

    assert result.outcome == GatewayOutcome.MALFORMED_RESPONSE


def test_http_adapter_posts_body_with_trace_id_and_headers():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["headers"] = dict(request.headers)
        captured["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(200, json={"code": "0", "data": {"taskId": "EXT-42"}})

    adapter = HttpGatewayAdapter(_settings(), transport=httpx.MockTransport(handler))
    result = asyncio.run(
        adapter.call(Endpoints.GOOGLE_CREATE, {"taskNumber": "AAG-1"}, "trace-abc")
    )

    assert result.succeeded
    assert result.external_task_id == "EXT-42"
    assert captured["url"] == (
        "https://gateway.test/uni-agency/openApi/v1/mediaAccountApplication/google/create"
    )
    assert captured["headers"]["access-token"] == "secret-token"
    assert captured["headers"]["trace-id"] == "trace-abc"
    assert captured["body"] == {"taskNumber": "AAG-1", "traceId": "trace-abc"}


def test_http_adapter_timeout_is_failed_outcome():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    adapter = HttpGatewayAdapter(_settings(), transport=httpx.MockTransport(handler))
    result = asyncio.run(adapter.call(Endpoints.DEPOSIT, {}, "trace-1"))

    assert result.outcome == GatewayOutcome.FAILED
    assert result.error_message == TIMEOUT_MESSAGE


def test_http_adapter_connection_error_is_failed_outcome():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    adapter = HttpGatewayAdapter(_settings(), transport=httpx.MockTransport(handler))
    result = asyncio.run(adapter.call(Endpoints.DEPOSIT, {}, "trace-2"))

    assert result.outcome == GatewayOutcome.FAILED
    assert "connection refused" in result.error_message


def test_http_adapter_html_error_page_is_malformed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>502</html>")

    adapter = HttpGatewayAdapter(_settings(), transport=httpx.MockTransport(handler))
    result = asyncio.run(adapter.call(Endpoints.TRANSFER, {}, "trace-3"))

    assert result.outcome == GatewayOutcome.MALFORMED_RESPONSE
    assert result.status_code == 502


def test_mock_gateway_records_calls_and_issues_sequential_ids():
    gateway = MockGatewayAdapter()

    first = asyncio.run(gateway.call("/a", {"x": 1}, "t1"))
    second = asyncio.run(gateway.call("/b", {"x": 2}, "t2"))

    assert (first.external_task_id, second.external_task_id) == ("EXT000001", "EXT000002")
    assert [call[0] for call in gateway.calls] == ["/a", "/b"]


def test_build_gateway_respects_mode():
    assert isinstance(build_gateway(OpenAPISettings(GATEWAY_MODE="mock")), MockGatewayAdapter)
    assert isinstance(build_gateway(_settings()), HttpGatewayAdapter)
