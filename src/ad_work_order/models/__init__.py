"""
数据模型模块
"""

from .enums import (
    AuditAction,
    MediaPlatform,
    SyncStatus,
    WorkOrderStatus,
    WorkOrderSubtype,
    WorkOrderType,
)
from .operation import GatewayOutcome, GatewayResult, SessionUser, UploadedFile, DictionaryItem
from .work_order import WorkOrderView, WorkOrderListItem, PageResult, AuditLogView

__all__ = [
    "AuditAction",
    "MediaPlatform",
    "SyncStatus",
    "WorkOrderStatus",
    "WorkOrderSubtype",
    "WorkOrderType",
    "GatewayOutcome",
    "GatewayResult",
    "SessionUser",
    "UploadedFile",
    "DictionaryItem",
    "WorkOrderView",
    "WorkOrderListItem",
    "PageResult",
    "AuditLogView",
]
