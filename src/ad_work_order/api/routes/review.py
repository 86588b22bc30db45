"""
审核相关 API 路由
"""

from typing import Optional

from fastapi import APIRouter, Depends

from ..deps import get_facade, get_session, respond
from ..schemas.request import ApproveRequest, RejectRequest, ReturnRequest
from ..schemas.response import Envelope
from ...models.operation import SessionUser
from ...workflows.facade import WorkOrderFacade

router = APIRouter(prefix="/api/v1/review", tags=["review"])


@router.post("/{work_order_id}/approve", response_model=Envelope)
async def approve_work_order(
    work_order_id: str,
    request: ApproveRequest,
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """
    审批通过

    资金类工单在此时提交第三方
    """
    return respond(await facade.approve_work_order(work_order_id, session, request.remarks))


@router.post("/{work_order_id}/reject", response_model=Envelope)
async def reject_work_order(
    work_order_id: str,
    request: RejectRequest,
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    return respond(await facade.reject_work_order(work_order_id, session, request.reason))


@router.post("/{work_order_id}/return", response_model=Envelope)
async def return_work_order(
    work_order_id: str,
    request: ReturnRequest,
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """退回修改"""
    return respond(await facade.return_work_order(work_order_id, session, request.reason))


@router.get("/{work_order_id}/actions", response_model=Envelope)
async def get_available_actions(
    work_order_id: str,
    facade: WorkOrderFacade = Depends(get_facade),
    session: Optional[SessionUser] = Depends(get_session),
):
    """当前用户对工单可执行的动作"""
    return respond(facade.get_available_actions(work_order_id, session))
