"""
审核引擎

在编排器之上校验审核角色与指派人，并统一给出工单可执行动作
"""

from typing import Callable, Dict, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import sessionmaker

from ..config import WorkflowSettings
from ..db.engine import session_scope
from ..db.tables import WorkOrderRecord
from ..exceptions import AuthorizationError, ResourceNotFoundError
from ..models.enums import WorkOrderStatus
from ..models.operation import SessionUser
from ..utils.logger import get_logger
from .handlers import get_handler
from .orchestrator import WorkOrderOrchestrator
from .state import CANCELABLE_STATUSES, EDITABLE_STATUSES, can_transition

logger = get_logger(__name__)

SUPER_ADMIN = "SUPER_ADMIN"


class ReviewEngine:
    """审核引擎"""

    def __init__(
        self,
        orchestrator: WorkOrderOrchestrator,
        settings: WorkflowSettings,
        session_factory: sessionmaker,
    ):
        self.orchestrator = orchestrator
        self.settings = settings
        self.session_factory = session_factory

    def is_reviewer(self, actor: SessionUser) -> bool:
        return actor.role.upper() in self.settings.reviewer_role_list

    def _is_assignee(self, order: WorkOrderRecord, actor: SessionUser) -> bool:
        if not order.assignee_id or actor.role.upper() == SUPER_ADMIN:
            return True
        return order.assignee_id == actor.user_id

    def _load(self, work_order_id: str) -> WorkOrderRecord:
        with session_scope(self.session_factory) as session:
            order = session.execute(
                select(WorkOrderRecord).where(
                    or_(
                        WorkOrderRecord.id == work_order_id,
                        WorkOrderRecord.task_number == work_order_id,
                    ),
                    WorkOrderRecord.is_deleted.is_(False),
                )
            ).scalars().first()
            if order is None:
                raise ResourceNotFoundError("工单不存在或已删除")
            session.expunge(order)
            return order

    def _ensure_can_review(self, order: WorkOrderRecord, actor: SessionUser) -> None:
        if not self.is_reviewer(actor):
            raise AuthorizationError.forbidden("仅审核人员可执行此操作")
        if not self._is_assignee(order, actor):
            raise AuthorizationError.forbidden("该工单已指派给其他审核人员")
        # 子类型必须在能力表中
        get_handler(order.work_order_subtype)

    def _review_guard(self, actor: SessionUser, action: str) -> Callable[[WorkOrderRecord], None]:
        """权限与指派人检查，在编排器加锁读取工单后执行"""

        def guard(order: WorkOrderRecord) -> None:
            self._ensure_can_review(order, actor)
            logger.info(f"[{order.task_number}] {action}: reviewer={actor.user_id}")

        return guard

    async def approve(self, work_order_id: str, actor: SessionUser, remarks: Optional[str] = None):
        return await self.orchestrator.approve(
            work_order_id, actor, remarks, guard=self._review_guard(actor, "审核通过")
        )

    async def reject(self, work_order_id: str, actor: SessionUser, reason: str):
        return await self.orchestrator.reject(
            work_order_id, actor, reason, guard=self._review_guard(actor, "审核拒绝")
        )

    async def return_for_modification(self, work_order_id: str, actor: SessionUser, reason: str):
        return await self.orchestrator.return_for_modification(
            work_order_id, actor, reason, guard=self._review_guard(actor, "退回修改")
        )

    async def bind_external_task_id(
        self, work_order_id: str, external_task_id: str, actor: SessionUser
    ):
        return await self.orchestrator.bind_external_task_id(
            work_order_id, external_task_id, actor, guard=self._review_guard(actor, "绑定第三方任务ID")
        )

    def list_actions_available(self, order: WorkOrderRecord, actor: SessionUser) -> Dict[str, bool]:
        """
        工单对当前用户可执行的动作

        Args:
            order: 工单记录
            actor: 当前用户

        Returns:
            {"approve", "reject", "edit", "return", "cancel"} 布尔值
        """
        status = order.status
        can_review = self.is_reviewer(actor) and self._is_assignee(order, actor)
        is_owner = order.user_id == actor.user_id
        pending = status == WorkOrderStatus.PENDING.value
        return {
            "approve": can_review and pending,
            "reject": can_review and pending,
            "edit": is_owner and status in {s.value for s in EDITABLE_STATUSES},
            "return": can_review and can_transition(status, WorkOrderStatus.RETURNED),
            "cancel": is_owner and status in {s.value for s in CANCELABLE_STATUSES},
        }

    def get_actions(self, work_order_id: str, actor: SessionUser) -> Dict[str, bool]:
        return self.list_actions_available(self._load(work_order_id), actor)
