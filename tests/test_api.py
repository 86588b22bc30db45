import re

import pytest
from fastapi.testclient import TestClient

from ad_work_order.api.deps import ServiceContainer
from ad_work_order.config import Settings
from ad_work_order.main import create_app
from ad_work_order.models.operation import GatewayOutcome
from ad_work_order.services.dictionary_service import StaticDictionaryService
from ad_work_order.services.gateway_service import MockGatewayAdapter

from test_oss_service import FakeBucket, _settings as oss_settings

USER = {"X-User-Id": "u-1001", "X-User-Name": "zhangsan"}
OTHER = {"X-User-Id": "u-2002"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
CALLBACK = {"X-Callback-Token": "cb-secret"}


@pytest.fixture
def container(session_factory, clock):
    from ad_work_order.services.oss_service import OSSUploadService

    settings = Settings()
    settings.open_api.callback_secret = "cb-secret"
    return ServiceContainer(
        settings,
        session_factory,
        gateway=MockGatewayAdapter(),
        dictionary=StaticDictionaryService(),
        oss=OSSUploadService(oss_settings(), bucket=FakeBucket()),
        clock=clock,
    )


@pytest.fixture
def client(container):
    return TestClient(create_app(container))


def _submit_deposit(client, deposit_payload):
    response = client.post(
        "/api/v1/work-orders/account-management/deposit", json=deposit_payload, headers=USER
    )
    assert response.status_code == 200
    return response.json()["data"]


def test_submit_google_application(client, google_payload):
    response = client.post(
        "/api/v1/work-orders/account-applications/google", json=google_payload, headers=USER
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["code"] == "0"
    assert re.fullmatch(r"AAG-\d{8}-[A-Z0-9]{10}", body["data"]["taskNumber"])
    assert body["data"]["status"] == "PROCESSING"
    assert body["data"]["taskId"] == "EXT000001"
    assert body["data"]["workOrderId"]


def test_missing_session_is_unauthorized(client, google_payload):
    response = client.post("/api/v1/work-orders/account-applications/google", json=google_payload)

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "code": "AUTH5001",
        "message": "未授权，请先登录",
    }


def test_validation_failure_envelope(client, google_payload):
    google_payload.pop("currencyCode")

    response = client.post(
        "/api/v1/work-orders/account-applications/google", json=google_payload, headers=USER
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "VAL2000"
    assert "currencyCode" in body["message"]
    assert {"path": "currencyCode", "message": "必填字段不能为空"} in body["data"]["errors"]


def test_unknown_platform_is_invalid_parameter(client, google_payload):
    response = client.post(
        "/api/v1/work-orders/account-applications/myspace", json=google_payload, headers=USER
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VAL2001"


def test_non_object_body_uses_envelope(client):
    response = client.post(
        "/api/v1/work-orders/account-applications/google", json=[1, 2], headers=USER
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_gateway_failure_still_returns_order(client, container, google_payload):
    container.gateway.outcome = GatewayOutcome.MALFORMED_RESPONSE

    body = client.post(
        "/api/v1/work-orders/account-applications/google", json=google_payload, headers=USER
    ).json()

    assert body["success"] is True
    assert body["code"] == "TPE4002"
    assert body["data"]["status"] == "FAILED"
    assert body["data"]["syncError"] == "第三方接口返回了无法解析的响应"
    detail = client.get(f"/api/v1/work-orders/{body['data']['taskNumber']}", headers=USER).json()
    assert detail["data"]["rawData"]["syncStatus"] == "FAILED"
    assert detail["data"]["rawData"]["syncError"]


def test_review_flow_over_http(client, deposit_payload):
    created = _submit_deposit(client, deposit_payload)
    order_id = created["workOrderId"]

    forbidden = client.post(f"/api/v1/review/{order_id}/approve", json={}, headers=USER)
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "AUTH5004"

    actions = client.get(f"/api/v1/review/{order_id}/actions", headers=ADMIN).json()
    assert actions["data"]["approve"] is True

    approved = client.post(
        f"/api/v1/review/{order_id}/approve", json={"remarks": "同意"}, headers=ADMIN
    )
    assert approved.status_code == 200
    assert approved.json()["data"]["status"] == "PROCESSING"

    again = client.post(f"/api/v1/review/{order_id}/approve", json={}, headers=ADMIN)
    assert again.status_code == 409
    assert again.json()["code"] == "BIZ3003"

    callback = client.post(
        "/api/v1/work-orders/callback",
        json={"taskId": approved.json()["data"]["taskId"], "status": "SUCCESS"},
        headers=CALLBACK,
    )
    assert callback.json()["data"]["status"] == "COMPLETED"

    logs = client.get(f"/api/v1/work-orders/{order_id}/audit-logs", headers=USER).json()
    assert [log["action"] for log in logs["data"]] == ["CREATE", "APPROVE", "CALLBACK"]


def test_reject_without_reason_is_validation_error(client, deposit_payload):
    created = _submit_deposit(client, deposit_payload)

    response = client.post(
        f"/api/v1/review/{created['workOrderId']}/reject", json={}, headers=ADMIN
    )

    assert response.status_code == 400
    assert response.json()["message"] == "拒绝原因不能为空"


def test_return_then_update_then_cancel(client, deposit_payload):
    created = _submit_deposit(client, deposit_payload)
    order_id = created["workOrderId"]

    returned = client.post(
        f"/api/v1/review/{order_id}/return", json={"reason": "请修改金额"}, headers=ADMIN
    )
    assert returned.json()["data"]["status"] == "RETURNED"

    deposit_payload["amount"] = "66"
    updated = client.put(
        f"/api/v1/work-orders/account-management/{order_id}", json=deposit_payload, headers=USER
    )
    assert updated.json()["data"]["status"] == "PENDING"

    canceled = client.post(f"/api/v1/work-orders/{order_id}/cancel", headers=USER)
    assert canceled.json()["data"]["status"] == "CANCELED"
    assert canceled.json()["data"]["statusCode"] == 80


def test_bind_external_task_id(client, deposit_payload):
    created = _submit_deposit(client, deposit_payload)

    response = client.post(
        f"/api/v1/work-orders/{created['workOrderId']}/external-task-id",
        json={"taskId": "900001"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["data"]["taskId"] == "900001"
    assert response.json()["data"]["status"] == "PROCESSING"


def test_listing_is_scoped_to_owner_for_plain_users(client, deposit_payload):
    _submit_deposit(client, deposit_payload)
    client.post(
        "/api/v1/work-orders/account-management/withdrawal",
        json={"mediaAccountId": "act_9", "mediaPlatform": 1, "amount": "5"},
        headers=OTHER,
    )

    mine = client.get("/api/v1/work-orders", headers=USER).json()["data"]
    everything = client.get(
        "/api/v1/work-orders", params={"pageSize": 1}, headers=ADMIN
    ).json()["data"]
    pending = client.get(
        "/api/v1/work-orders", params={"status": "PENDING,FAILED"}, headers=ADMIN
    ).json()["data"]

    assert mine["total"] == 1
    assert mine["items"][0]["applicant"] == "zhangsan"
    assert everything["total"] == 2
    assert everything["pageSize"] == 1
    assert len(everything["items"]) == 1
    assert pending["total"] == 2


def test_record_of_other_user_is_not_found(client, deposit_payload):
    created = _submit_deposit(client, deposit_payload)

    response = client.get(f"/api/v1/work-orders/{created['taskNumber']}", headers=OTHER)

    assert response.status_code == 404
    assert response.json()["code"] == "BIZ3001"


def test_stats_endpoints(client, deposit_payload):
    _submit_deposit(client, deposit_payload)

    count = client.get("/api/v1/work-orders/stats/pending-count", headers=ADMIN).json()
    summary = client.get("/api/v1/work-orders/stats/summary", headers=USER).json()

    assert count["data"] == {"count": 1}
    assert summary["data"]["total"] == 1
    assert summary["data"]["byType"] == {"DEPOSIT": 1}


def test_upload(client):
    response = client.post(
        "/api/v1/upload",
        files={"file": ("license.pdf", b"%PDF-1.4 test", "application/pdf")},
        data={"directory": "company"},
        headers=USER,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["fileName"] == "license.pdf"
    assert data["fileSize"] == 13
    assert data["fileType"] == "application/pdf"
    assert data["fileUrl"].startswith("https://ad-bucket.oss-cn-hangzhou.aliyuncs.com/workorder/company/")


def test_health_and_root(client):
    health = client.get("/health").json()
    root = client.get("/").json()

    assert health["status"] == "healthy"
    assert health["services"]["database"] == "connected"
    assert root["data"]["status"] == "running"


def test_rejected_submission_reports_reason(client, container, google_payload):
    container.gateway.outcome = GatewayOutcome.FAILED
    container.gateway.error_message = "账户名称重复"

    response = client.post(
        "/api/v1/work-orders/account-applications/google", json=google_payload, headers=USER
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["code"] == "TPE4001"
    assert "账户名称重复" in body["message"]
    assert body["data"]["syncError"] == "账户名称重复"
    assert body["data"]["statusCode"] == 50


def test_failed_approval_reports_reason(client, container, deposit_payload):
    created = _submit_deposit(client, deposit_payload)
    container.gateway.outcome = GatewayOutcome.FAILED
    container.gateway.error_message = "余额不足"

    body = client.post(
        f"/api/v1/review/{created['workOrderId']}/approve", json={}, headers=ADMIN
    ).json()

    assert body["success"] is True
    assert body["code"] == "TPE4001"
    assert body["data"]["status"] == "FAILED"
    assert body["data"]["syncError"] == "余额不足"


def test_callback_requires_token(client, google_payload):
    created = client.post(
        "/api/v1/work-orders/account-applications/google", json=google_payload, headers=USER
    ).json()["data"]
    callback = {"taskId": created["taskId"], "status": "SUCCESS"}

    anonymous = client.post("/api/v1/work-orders/callback", json=callback)
    forged = client.post(
        "/api/v1/work-orders/callback", json=callback, headers={"X-Callback-Token": "guess"}
    )
    session_only = client.post("/api/v1/work-orders/callback", json=callback, headers=ADMIN)

    for response in (anonymous, forged, session_only):
        assert response.status_code == 401
        assert response.json()["code"] == "AUTH5001"
    detail = client.get(f"/api/v1/work-orders/{created['taskNumber']}", headers=USER).json()
    assert detail["data"]["status"] == "PROCESSING"


def test_callback_refused_without_configured_secret(session_factory, clock, google_payload):
    settings = Settings()
    settings.open_api.callback_secret = ""
    settings.app.api_key = ""
    client = TestClient(
        create_app(
            ServiceContainer(
                settings,
                session_factory,
                gateway=MockGatewayAdapter(),
                dictionary=StaticDictionaryService(),
                clock=clock,
            )
        )
    )
    created = client.post(
        "/api/v1/work-orders/account-applications/google", json=google_payload, headers=USER
    ).json()["data"]

    response = client.post(
        "/api/v1/work-orders/callback",
        json={"taskId": created["taskId"], "status": "SUCCESS"},
        headers={"X-Callback-Token": ""},
    )

    assert response.status_code == 401


@pytest.mark.parametrize(
    "subtype, payload, prefix",
    [
        ("bind_email", {"mediaAccountId": "msa_1", "mediaPlatform": 7, "value": "ops@acme.com", "role": 10}, "AMBE-"),
        ("bind_pixel", {"pixelId": "px_1", "type": 1, "mediaPlatform": 1, "value": "bm_1", "role": 1}, "AMBP-"),
        ("unbind_account", {"mediaAccountId": "act_1", "mediaPlatform": 1, "value": "bm_1"}, "AMUB-"),
        (
            "update_account_name",
            {"mediaAccountId": "act_1", "mediaAccountName": "Old", "mediaPlatform": 2, "newAccountName": "New"},
            "AMNU-",
        ),
    ],
)
def test_binding_and_rename_orders_over_http(client, subtype, payload, prefix):
    response = client.post(
        f"/api/v1/work-orders/account-management/{subtype}", json=payload, headers=USER
    )

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["status"] == "PENDING"
    assert body["data"]["taskNumber"].startswith(prefix)


def test_email_binding_rejects_other_platforms(client):
    response = client.post(
        "/api/v1/work-orders/account-management/bind_email",
        json={"mediaAccountId": "msa_1", "mediaPlatform": 1, "value": "ops@acme.com", "role": 10},
        headers=USER,
    )

    assert response.status_code == 400
    assert "当前仅支持Microsoft Advertising平台" in response.json()["message"]
