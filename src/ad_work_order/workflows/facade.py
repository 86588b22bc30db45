"""
工单门面

对外暴露的全部操作都返回统一响应信封 {success, code, message, data}，
业务异常在此转换，不向调用方抛出
"""

from datetime import datetime
from typing import Any, Dict, Optional

from ..db.tables import WorkOrderRecord
from ..exceptions import SUCCESS_CODE, BusinessError
from ..models.enums import WorkOrderStatus, status_to_code
from ..models.operation import SessionUser
from ..services.gateway_service import third_party_error
from ..services.query_service import QueryService, WorkOrderFilters
from ..services.session_service import require_callback, require_session
from ..utils.logger import get_logger
from .handlers import handler_for_platform, management_handler
from .orchestrator import WorkOrderOrchestrator
from .review import ReviewEngine

logger = get_logger(__name__)


def success(data: Any = None, message: str = "操作成功") -> Dict[str, Any]:
    envelope = {"success": True, "code": SUCCESS_CODE, "message": message}
    if data is not None:
        envelope["data"] = data
    return envelope


def failure(error: BusinessError) -> Dict[str, Any]:
    return error.to_dict()


def _order_result(order: WorkOrderRecord) -> Dict[str, Any]:
    return {
        "taskId": order.task_id,
        "taskNumber": order.task_number,
        "workOrderId": order.id,
        "status": order.status,
        "statusCode": status_to_code(order.status),
    }


class WorkOrderFacade:
    """工单门面"""

    def __init__(
        self,
        orchestrator: WorkOrderOrchestrator,
        review: ReviewEngine,
        query: QueryService,
    ):
        self.orchestrator = orchestrator
        self.review = review
        self.query = query

    def _submission_result(self, order: WorkOrderRecord, message: str) -> Dict[str, Any]:
        """
        提交类操作的响应

        工单已落库，第三方失败时仍返回 success=true，但错误码与消息带上失败原因

        Args:
            order: 工单记录
            message: 成功提示

        Returns:
            响应信封
        """
        data = _order_result(order)
        if order.status != WorkOrderStatus.FAILED.value:
            return success(data, message)

        view = self.query.get_record(order.id)
        error = third_party_error(view.raw_data.sync_error if view.raw_data else None)
        data["syncError"] = error.message
        logger.warning(f"[{order.task_number}] 第三方处理失败: code={error.code}, error={error.message}")
        return {
            "success": True,
            "code": error.code,
            "message": f"工单已保存，第三方处理失败: {error.message}",
            "data": data,
        }

    # ============ 提交与修改 ============

    async def submit_account_application(
        self,
        platform: str,
        payload: Any,
        session: Optional[SessionUser],
        permissive: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        提交开户申请

        Args:
            platform: 平台（google / facebook / tiktok）
            payload: 申请数据
            session: 当前会话
            permissive: 是否宽松校验

        Returns:
            {success, code, message, data: {taskId, taskNumber, workOrderId, status}}
        """
        try:
            user = require_session(session)
            handler = handler_for_platform(platform)
            order = await self.orchestrator.submit(handler.subtype.value, payload, user, permissive)
        except BusinessError as e:
            logger.warning(f"开户申请提交失败: platform={platform}, code={e.code}, message={e.message}")
            return failure(e)
        return self._submission_result(order, "提交成功")

    async def update_account_application(
        self,
        platform: str,
        task_id: str,
        payload: Any,
        session: Optional[SessionUser],
        permissive: Optional[bool] = None,
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            handler = handler_for_platform(platform)
            order = await self.orchestrator.update(
                task_id, payload, user, permissive, expected_subtype=handler.subtype.value
            )
        except BusinessError as e:
            logger.warning(f"[{task_id}] 开户申请修改失败: code={e.code}, message={e.message}")
            return failure(e)
        return self._submission_result(order, "修改成功")

    async def submit_account_management(
        self,
        subtype: str,
        payload: Any,
        session: Optional[SessionUser],
    ) -> Dict[str, Any]:
        """提交账户管理类工单（资金类、绑定解绑与改名）"""
        try:
            user = require_session(session)
            handler = management_handler(subtype)
            order = await self.orchestrator.submit(handler.subtype.value, payload, user)
        except BusinessError as e:
            logger.warning(f"账户管理工单提交失败: subtype={subtype}, code={e.code}, message={e.message}")
            return failure(e)
        return self._submission_result(order, "提交成功")

    async def update_account_management(
        self,
        task_id: str,
        payload: Any,
        session: Optional[SessionUser],
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            order = await self.orchestrator.update(task_id, payload, user)
        except BusinessError as e:
            logger.warning(f"[{task_id}] 账户管理工单修改失败: code={e.code}, message={e.message}")
            return failure(e)
        return self._submission_result(order, "修改成功")

    # ============ 查询 ============

    def _owner_scope(self, user: SessionUser) -> Optional[str]:
        """审核人员可查看全部工单，普通用户只能查看自己的"""
        return None if self.review.is_reviewer(user) else user.user_id

    def get_application_record(self, task_id: str, session: Optional[SessionUser]) -> Dict[str, Any]:
        try:
            user = require_session(session)
            view = self.query.get_record(task_id, owner_id=self._owner_scope(user))
        except BusinessError as e:
            return failure(e)
        return success(view.model_dump(by_alias=True, mode="json"), "查询成功")

    def list_work_orders(
        self,
        filters: Optional[WorkOrderFilters],
        page: int,
        page_size: int,
        session: Optional[SessionUser],
    ) -> Dict[str, Any]:
        """
        分页查询工单

        Args:
            filters: 筛选条件（普通用户的 owner 会被强制为本人）
            page: 页码
            page_size: 每页条数
            session: 当前会话
        """
        try:
            user = require_session(session)
            filters = filters or WorkOrderFilters()
            owner = self._owner_scope(user)
            if owner is not None:
                filters.owner_id = owner
            result = self.query.list(filters, page, page_size)
        except BusinessError as e:
            return failure(e)
        return success(result.model_dump(by_alias=True, mode="json"), "查询成功")

    def pending_count(self, session: Optional[SessionUser]) -> Dict[str, Any]:
        try:
            user = require_session(session)
            count = self.query.pending_count(self._owner_scope(user))
        except BusinessError as e:
            return failure(e)
        return success({"count": count}, "查询成功")

    def statistics(self, session: Optional[SessionUser]) -> Dict[str, Any]:
        try:
            user = require_session(session)
            data = self.query.statistics(self._owner_scope(user))
        except BusinessError as e:
            return failure(e)
        return success(data, "查询成功")

    def list_audit_logs(
        self,
        work_order_id: str,
        session: Optional[SessionUser],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            # 先按可见范围确认工单存在
            view = self.query.get_record(work_order_id, owner_id=self._owner_scope(user))
            logs = self.query.list_audit_logs(view.id, start, end)
        except BusinessError as e:
            return failure(e)
        return success([log.model_dump(by_alias=True, mode="json") for log in logs], "查询成功")

    # ============ 审核 ============

    async def approve_work_order(
        self,
        work_order_id: str,
        session: Optional[SessionUser],
        remarks: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            order = await self.review.approve(work_order_id, user, remarks)
        except BusinessError as e:
            logger.warning(f"[{work_order_id}] 审批失败: code={e.code}, message={e.message}")
            return failure(e)
        return self._submission_result(order, "审批成功")

    async def reject_work_order(
        self,
        work_order_id: str,
        session: Optional[SessionUser],
        reason: Optional[str],
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            order = await self.review.reject(work_order_id, user, reason)
        except BusinessError as e:
            logger.warning(f"[{work_order_id}] 拒绝失败: code={e.code}, message={e.message}")
            return failure(e)
        return success(_order_result(order), "已拒绝")

    async def return_work_order(
        self,
        work_order_id: str,
        session: Optional[SessionUser],
        reason: Optional[str],
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            order = await self.review.return_for_modification(work_order_id, user, reason)
        except BusinessError as e:
            return failure(e)
        return success(_order_result(order), "已退回修改")

    async def cancel_work_order(
        self, work_order_id: str, session: Optional[SessionUser]
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            order = await self.orchestrator.cancel(work_order_id, user)
        except BusinessError as e:
            return failure(e)
        return success(_order_result(order), "已取消")

    async def bind_external_task_id(
        self,
        work_order_id: str,
        external_task_id: Optional[str],
        session: Optional[SessionUser],
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            order = await self.review.bind_external_task_id(work_order_id, external_task_id, user)
        except BusinessError as e:
            return failure(e)
        return success(_order_result(order), "绑定成功")

    async def handle_callback(
        self,
        task_id: str,
        status: Any,
        message: Optional[str] = None,
        payload: Any = None,
        authorized: bool = False,
    ) -> Dict[str, Any]:
        """第三方回调，无需用户会话，但必须通过回调令牌校验"""
        try:
            require_callback(authorized)
            order = await self.orchestrator.handle_callback(task_id, status, message, payload)
        except BusinessError as e:
            logger.warning(f"[{task_id}] 回调处理失败: code={e.code}, message={e.message}")
            return failure(e)
        return success(_order_result(order), "回调已处理")

    def get_available_actions(
        self, work_order_id: str, session: Optional[SessionUser]
    ) -> Dict[str, Any]:
        try:
            user = require_session(session)
            actions = self.review.get_actions(work_order_id, user)
        except BusinessError as e:
            return failure(e)
        return success(actions, "查询成功")
