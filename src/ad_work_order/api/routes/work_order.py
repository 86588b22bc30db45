"""
工单相关 API 路由
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from ..deps import get_callback_authorized, get_facade, get_session, respond
from ..schemas.request import BindTaskIdRequest, CallbackRequest
from ..schemas.response import Envelope
from ...models.operation import SessionUser
from ...services.query_service import WorkOrderFilters
from ...utils.logger import get_logger
from ...workflows.facade import WorkOrderFacade

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/work-orders", tags=["work-orders"])


def _split(values: Optional[List[str]]) -> List[str]:
    """支持重复参数与逗号分隔两种写法"""
    result = []
    for value in values or []:
        result.extend(v.strip() for v in value.split(",") if v.strip())
    return result


# ============ 开户申请 ============


@router.post("/account-applications/{platform}", response_model=Envelope)
async def submit_account_application(
    platform: str,
    payload: Dict[str, Any] = Body(...),
    permissive: Optional[bool] = Query(None, description="宽松校验"),
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """
    提交开户申请

    创建工单后立即提交第三方，返回工单编号与第三方任务 ID
    """
    logger.info(f"收到开户申请: platform={platform}")
    return respond(
        await facade.submit_account_application(platform, payload, session, permissive)
    )


@router.put("/account-applications/{platform}/{task_id}", response_model=Envelope)
async def update_account_application(
    platform: str,
    task_id: str,
    payload: Dict[str, Any] = Body(...),
    permissive: Optional[bool] = Query(None, description="宽松校验"),
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """修改开户申请（全量重新提交）"""
    return respond(
        await facade.update_account_application(platform, task_id, payload, session, permissive)
    )


# ============ 账户管理 ============


@router.post("/account-management/{subtype}", response_model=Envelope)
async def submit_account_management(
    subtype: str,
    payload: Dict[str, Any] = Body(...),
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """提交充值 / 减款 / 转账 / 清零 / 账户绑定工单，审批后提交第三方"""
    logger.info(f"收到账户管理工单: subtype={subtype}")
    return respond(await facade.submit_account_management(subtype, payload, session))


@router.put("/account-management/{task_id}", response_model=Envelope)
async def update_account_management(
    task_id: str,
    payload: Dict[str, Any] = Body(...),
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    return respond(await facade.update_account_management(task_id, payload, session))


# ============ 查询 ============


@router.get("", response_model=Envelope)
async def list_work_orders(
    status: Optional[List[str]] = Query(None, description="状态（名称或状态码）"),
    work_order_type: Optional[str] = Query(None, alias="type"),
    subtype: Optional[List[str]] = Query(None),
    platform: Optional[str] = Query(None),
    keyword: Optional[str] = Query(None, description="工单编号 / 第三方任务 ID / 账户名称"),
    start: Optional[datetime] = Query(None, description="创建时间起"),
    end: Optional[datetime] = Query(None, description="创建时间止"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, alias="pageSize"),
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """分页查询工单"""
    filters = WorkOrderFilters(
        statuses=_split(status),
        work_order_type=work_order_type,
        subtypes=_split(subtype),
        platform=platform,
        created_from=start,
        created_to=end,
        keyword=keyword,
    )
    return respond(facade.list_work_orders(filters, page, page_size, session))


@router.get("/stats/pending-count", response_model=Envelope)
async def pending_count(
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """待处理工单数量（供前端轮询）"""
    return respond(facade.pending_count(session))


@router.get("/stats/summary", response_model=Envelope)
async def statistics(
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    return respond(facade.statistics(session))


@router.get("/{task_id}", response_model=Envelope)
async def get_application_record(
    task_id: str,
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """工单详情：工单、最新原始数据、业务数据与企业信息"""
    return respond(facade.get_application_record(task_id, session))


@router.get("/{work_order_id}/audit-logs", response_model=Envelope)
async def list_audit_logs(
    work_order_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    return respond(facade.list_audit_logs(work_order_id, session, start, end))


# ============ 状态操作 ============


@router.post("/{work_order_id}/cancel", response_model=Envelope)
async def cancel_work_order(
    work_order_id: str,
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    return respond(await facade.cancel_work_order(work_order_id, session))


@router.post("/{work_order_id}/external-task-id", response_model=Envelope)
async def bind_external_task_id(
    work_order_id: str,
    request: BindTaskIdRequest,
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """人工绑定第三方任务 ID（待处理 → 处理中）"""
    return respond(await facade.bind_external_task_id(work_order_id, request.task_id, session))


@router.post("/callback", response_model=Envelope)
async def handle_callback(
    request: CallbackRequest,
    facade: WorkOrderFacade = Depends(get_facade),
    authorized: bool = Depends(get_callback_authorized),
):
    """第三方处理结果回调（请求头 X-Callback-Token 鉴权）"""
    logger.info(f"[{request.task_id}] 收到第三方回调: status={request.status}")
    return respond(
        await facade.handle_callback(
            request.task_id,
            request.status,
            request.message,
            request.model_dump(by_alias=True),
            authorized=authorized,
        )
    )
