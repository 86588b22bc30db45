import asyncio
from datetime import datetime

import pytest

from ad_work_order.config import WorkflowSettings
from ad_work_order.db.engine import session_scope
from ad_work_order.db.tables import WorkOrderRecord
from ad_work_order.exceptions import ResourceNotFoundError, ValidationError
from ad_work_order.models.operation import GatewayOutcome
from ad_work_order.services.query_service import QueryService, WorkOrderFilters, parse_metadata


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, {}),
        ("", {}),
        ("{not json", {}),
        ("[1, 2]", {}),
        ('"text"', {}),
        ('{"platform": "GOOGLE"}', {"platform": "GOOGLE"}),
        ({"a": 1}, {"a": 1}),
    ],
)
def test_parse_metadata_is_tolerant(raw, expected):
    assert parse_metadata(raw) == expected


def _seed(orchestrator, gateway, user, other_user, google_payload, deposit_payload):
    google = asyncio.run(orchestrator.submit("GOOGLE_ACCOUNT", google_payload, user))
    deposit = asyncio.run(orchestrator.submit("DEPOSIT", deposit_payload, user))
    gateway.outcome = GatewayOutcome.FAILED
    google_payload["name"] = "Other Corp"
    failed = asyncio.run(orchestrator.submit("GOOGLE_ACCOUNT", google_payload, other_user))
    return google, deposit, failed


def test_list_merges_business_data_and_metadata(orchestrator, gateway, query, user, other_user, google_payload, deposit_payload):
    google, _, _ = _seed(orchestrator, gateway, user, other_user, google_payload, deposit_payload)

    page = query.list(WorkOrderFilters(owner_id=user.user_id))

    assert page.total == 2
    item = next(i for i in page.items if i.id == google.id)
    assert item.platform == "GOOGLE"
    assert item.account_name == "Acme Ads"
    assert item.applicant == "张三"
    assert item.status_code == 60
    assert item.metadata["mediaPlatformNumber"] == 2


def test_list_filters(orchestrator, gateway, query, user, other_user, google_payload, deposit_payload):
    google, deposit, failed = _seed(orchestrator, gateway, user, other_user, google_payload, deposit_payload)

    by_status = query.list(WorkOrderFilters(statuses=["FAILED"]))
    assert [i.id for i in by_status.items] == [failed.id]

    by_code = query.list(WorkOrderFilters(statuses=["10"]))
    assert [i.id for i in by_code.items] == [deposit.id]

    by_subtype = query.list(WorkOrderFilters(subtypes=["deposit"]))
    assert [i.id for i in by_subtype.items] == [deposit.id]

    by_type = query.list(WorkOrderFilters(work_order_type="account_application"))
    assert by_type.total == 2

    by_platform = query.list(WorkOrderFilters(platform="google"))
    assert by_platform.total == 3

    by_keyword = query.list(WorkOrderFilters(keyword="Other"))
    assert [i.id for i in by_keyword.items] == [failed.id]

    by_task_number = query.list(WorkOrderFilters(keyword=google.task_number))
    assert [i.id for i in by_task_number.items] == [google.id]

    by_date = query.list(WorkOrderFilters(created_from=datetime(2030, 1, 1)))
    assert by_date.total == 0


def test_list_rejects_unknown_status(query):
    with pytest.raises(ValidationError):
        query.list(WorkOrderFilters(statuses=["SLEEPING"]))


def test_list_is_newest_first_and_paginated(orchestrator, session_factory, user, deposit_payload):
    created = [asyncio.run(orchestrator.submit("DEPOSIT", deposit_payload, user)) for _ in range(5)]
    query = QueryService(WorkflowSettings(MAX_PAGE_SIZE=2), session_factory)

    first = query.list(page=1, page_size=50)
    third = query.list(page=3, page_size=2)

    assert first.page_size == 2
    assert first.total == 5
    assert [i.id for i in first.items] == [created[4].id, created[3].id]
    assert [i.id for i in third.items] == [created[0].id]
    assert third.page_number == 3


def test_list_survives_malformed_metadata(orchestrator, session_factory, query, user, deposit_payload):
    order = asyncio.run(orchestrator.submit("DEPOSIT", deposit_payload, user))
    with session_scope(session_factory) as session:
        session.get(WorkOrderRecord, order.id).metadata_json = "{broken"

    page = query.list()

    assert page.items[0].metadata == {}
    assert page.items[0].account_name == "Acme 主账户"


def test_get_record_returns_full_view(orchestrator, query, user, google_payload):
    google_payload["companyInfo"] = {
        "companyNameCN": "艾克米科技",
        "attachments": [
            {
                "fileName": "license.pdf",
                "fileType": "application/pdf",
                "fileSize": 1024,
                "filePath": "workorder/license.pdf",
                "ossObjectKey": "workorder/license.pdf",
                "fileUrl": "https://bucket.oss.test/workorder/license.pdf",
            }
        ],
    }
    order = asyncio.run(orchestrator.submit("GOOGLE_ACCOUNT", google_payload, user))

    view = query.get_record(order.task_id)

    assert view.task_number == order.task_number
    assert view.raw_data.sync_status == "SUCCESS"
    assert view.raw_data.request_data["mediaAccountInfos"][0]["name"] == "Acme Ads"
    assert view.raw_data.response_data["data"]["taskId"] == order.task_id
    assert view.business_data.promotion_links == ["https://acme.com"]
    assert view.company_info.company_name_cn == "艾克米科技"
    assert view.company_info.attachments[0].file_name == "license.pdf"

    dumped = view.model_dump(by_alias=True, mode="json")
    assert dumped["companyInfo"]["companyNameCN"] == "艾克米科技"
    assert dumped["statusCode"] == 60


def test_get_record_respects_owner_and_deletion(orchestrator, session_factory, query, user, other_user, deposit_payload):
    order = asyncio.run(orchestrator.submit("DEPOSIT", deposit_payload, user))

    with pytest.raises(ResourceNotFoundError):
        query.get_record(order.id, owner_id=other_user.user_id)

    with session_scope(session_factory) as session:
        session.get(WorkOrderRecord, order.id).is_deleted = True
    with pytest.raises(ResourceNotFoundError):
        query.get_record(order.id)


def test_pending_count_and_statistics(orchestrator, gateway, query, user, other_user, google_payload, deposit_payload):
    _seed(orchestrator, gateway, user, other_user, google_payload, deposit_payload)

    assert query.pending_count() == 1
    assert query.pending_count(other_user.user_id) == 0

    stats = query.statistics()
    assert stats["total"] == 3
    assert stats["byStatus"] == {"PROCESSING": 1, "PENDING": 1, "FAILED": 1}
    assert stats["byGroup"]["failure"] == 1
    assert stats["byType"] == {"GOOGLE_ACCOUNT": 2, "DEPOSIT": 1}
    assert len(stats["recent"]) == 3

    mine = query.statistics(user.user_id)
    assert mine["total"] == 2


def test_audit_logs_by_entity_and_range(orchestrator, clock, query, user, admin, deposit_payload):
    order = asyncio.run(orchestrator.submit("DEPOSIT", deposit_payload, user))
    midpoint = clock()
    asyncio.run(orchestrator.reject(order.id, admin, "金额不对"))

    logs = query.list_audit_logs(order.id)
    assert [log.action for log in logs] == ["CREATE", "REJECT"]
    assert logs[1].previous_value["status"] == "PENDING"
    assert logs[1].new_value["reason"] == "金额不对"

    later = query.list_audit_logs(order.id, start=midpoint)
    assert [log.action for log in later] == ["REJECT"]
