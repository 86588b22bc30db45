"""
工单状态机

所有状态变更必须经过此处的迁移表校验
"""

from typing import Dict, FrozenSet

from ..exceptions import StatusTransitionError
from ..models.enums import WorkOrderStatus

S = WorkOrderStatus

TRANSITIONS: Dict[WorkOrderStatus, FrozenSet[WorkOrderStatus]] = {
    S.PENDING: frozenset(
        {S.PROCESSING, S.APPROVED, S.REJECTED, S.FAILED, S.CANCELED, S.RETURNED}
    ),
    S.PROCESSING: frozenset({S.COMPLETED, S.FAILED}),
    # 退回修改后重新提交
    S.RETURNED: frozenset({S.PENDING, S.CANCELED}),
    # 失败只能通过 update 重新提交
    S.FAILED: frozenset({S.PENDING, S.CANCELED}),
    S.APPROVED: frozenset(),
    S.COMPLETED: frozenset(),
    S.REJECTED: frozenset(),
    S.CANCELED: frozenset(),
}

TERMINAL_STATUSES = frozenset({S.APPROVED, S.COMPLETED, S.REJECTED, S.CANCELED})

EDITABLE_STATUSES = frozenset({S.PENDING, S.RETURNED, S.FAILED})

CANCELABLE_STATUSES = frozenset({S.PENDING, S.RETURNED, S.FAILED})

STATUS_LABELS = {
    S.PENDING: "待处理",
    S.PROCESSING: "处理中",
    S.APPROVED: "已通过",
    S.COMPLETED: "已完成",
    S.REJECTED: "已拒绝",
    S.FAILED: "失败",
    S.CANCELED: "已取消",
    S.RETURNED: "待修改",
}


def label(status) -> str:
    try:
        return STATUS_LABELS[WorkOrderStatus(status)]
    except ValueError:
        return str(status)


def can_transition(current, target) -> bool:
    """迁移是否合法"""
    try:
        current, target = WorkOrderStatus(current), WorkOrderStatus(target)
    except ValueError:
        return False
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current, target, action: str) -> None:
    """
    校验状态迁移

    Args:
        current: 当前状态
        target: 目标状态
        action: 操作名称（用于提示）

    Raises:
        StatusTransitionError: 迁移不合法
    """
    if not can_transition(current, target):
        raise StatusTransitionError(
            f"当前状态[{label(current)}]不允许{action}",
            current_status=str(getattr(current, "value", current)),
            target=str(getattr(target, "value", target)),
        )


def ensure_status_in(current, allowed: FrozenSet[WorkOrderStatus], action: str) -> None:
    """校验当前状态属于允许集合"""
    try:
        status = WorkOrderStatus(current)
    except ValueError:
        status = None
    if status not in allowed:
        raise StatusTransitionError(
            f"当前状态[{label(current)}]不允许{action}",
            current_status=str(getattr(current, "value", current)),
        )


def is_terminal(status) -> bool:
    try:
        return WorkOrderStatus(status) in TERMINAL_STATUSES
    except ValueError:
        return False
