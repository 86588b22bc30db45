"""
API 依赖

按配置组装服务，并通过 FastAPI 依赖注入提供给路由
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from ..config import Settings
from ..db.base import utcnow
from ..exceptions import http_status_for
from ..models.operation import SessionUser
from ..services.audit_service import AuditService
from ..services.dictionary_service import HttpDictionaryService
from ..services.gateway_service import build_gateway
from ..services.oss_service import OSSUploadService
from ..services.query_service import QueryService
from ..services.session_service import CallbackVerifier, HeaderSessionProvider
from ..services.validation_service import ValidationService
from ..workflows.facade import WorkOrderFacade
from ..workflows.orchestrator import WorkOrderOrchestrator
from ..workflows.review import ReviewEngine


class ServiceContainer:
    """服务容器"""

    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker,
        gateway=None,
        dictionary=None,
        oss: Optional[OSSUploadService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        组装服务

        Args:
            settings: 全局配置
            session_factory: 会话工厂
            gateway: 第三方网关，默认按配置创建
            dictionary: 字典服务，默认远程字典（失败回退内置）
            oss: OSS 上传服务，默认首次使用时创建
            clock: 时间来源
        """
        self.settings = settings
        self.session_factory = session_factory
        self.gateway = gateway or build_gateway(settings.open_api)
        self.dictionary = dictionary or HttpDictionaryService(settings.workflow)
        self.validator = ValidationService(settings.workflow, self.dictionary)
        self.orchestrator = WorkOrderOrchestrator(
            self.validator, self.gateway, session_factory, AuditService(), clock
        )
        self.review = ReviewEngine(self.orchestrator, settings.workflow, session_factory)
        self.query = QueryService(settings.workflow, session_factory)
        self.facade = WorkOrderFacade(self.orchestrator, self.review, self.query)
        self.sessions = HeaderSessionProvider(settings.app)
        self.callback_verifier = CallbackVerifier(
            settings.open_api.callback_secret or settings.app.api_key
        )
        self._oss = oss

    @property
    def oss(self) -> OSSUploadService:
        if self._oss is None:
            self._oss = OSSUploadService(self.settings.oss)
        return self._oss


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_facade(container: ServiceContainer = Depends(get_container)) -> WorkOrderFacade:
    return container.facade


def get_session(
    request: Request, container: ServiceContainer = Depends(get_container)
) -> Optional[SessionUser]:
    """当前会话（未登录为 None，由门面返回未授权）"""
    return container.sessions.get_current_session(request)


def get_callback_authorized(
    request: Request, container: ServiceContainer = Depends(get_container)
) -> bool:
    """第三方回调令牌是否有效"""
    return container.callback_verifier.is_authorized(request)


def respond(envelope: Dict[str, Any]) -> JSONResponse:
    """按信封错误码设置 HTTP 状态码（success 为 true 时始终 200）"""
    status_code = 200 if envelope.get("success") else http_status_for(envelope["code"])
    return JSONResponse(status_code=status_code, content=envelope)
