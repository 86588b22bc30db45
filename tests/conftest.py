from __future__ import annotations

import os
from datetime import datetime, timedelta

# 测试环境：不写日志文件，网关使用内存实现
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("GATEWAY_MODE", "mock")
os.environ.setdefault("DB_CREATE_TABLES", "false")
os.environ.setdefault("API_KEY", "")

import pytest

from ad_work_order.config import WorkflowSettings
from ad_work_order.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine,
    reset_engine,
)
from ad_work_order.models.operation import SessionUser
from ad_work_order.services.gateway_service import MockGatewayAdapter
from ad_work_order.services.query_service import QueryService
from ad_work_order.services.validation_service import ValidationService
from ad_work_order.workflows.orchestrator import WorkOrderOrchestrator
from ad_work_order.workflows.review import ReviewEngine


class FakeClock:
    """每次调用前进一秒的时钟"""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 8, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def workflow_settings() -> WorkflowSettings:
    return WorkflowSettings()


@pytest.fixture
def session_factory():
    init_engine("sqlite://")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> MockGatewayAdapter:
    return MockGatewayAdapter()


@pytest.fixture
def validator(workflow_settings) -> ValidationService:
    return ValidationService(workflow_settings)


@pytest.fixture
def orchestrator(validator, gateway, session_factory, clock) -> WorkOrderOrchestrator:
    return WorkOrderOrchestrator(validator, gateway, session_factory, clock=clock)


@pytest.fixture
def review(orchestrator, workflow_settings, session_factory) -> ReviewEngine:
    return ReviewEngine(orchestrator, workflow_settings, session_factory)


@pytest.fixture
def query(workflow_settings, session_factory) -> QueryService:
    return QueryService(workflow_settings, session_factory)


@pytest.fixture
def user() -> SessionUser:
    return SessionUser(user_id="u-1001", display_name="张三")


@pytest.fixture
def other_user() -> SessionUser:
    return SessionUser(user_id="u-2002", display_name="李四")


@pytest.fixture
def admin() -> SessionUser:
    return SessionUser(user_id="admin-1", display_name="审核员", role="ADMIN")


@pytest.fixture
def google_payload() -> dict:
    return {
        "name": "Acme Ads",
        "currencyCode": "USD",
        "timezone": "Asia/Shanghai",
        "promotionLinks": ["https://acme.com"],
        "auths": [{"role": 1, "value": "a@acme.com"}],
    }


@pytest.fixture
def deposit_payload() -> dict:
    return {
        "mediaAccountId": "act_123456",
        "mediaAccountName": "Acme 主账户",
        "mediaPlatform": 2,
        "amount": "100.50",
        "currency": "USD",
    }
