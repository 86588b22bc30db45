"""
工单枚举定义

状态以字符串枚举为唯一权威来源，数字状态码只用于展示层转换
"""

from enum import Enum
from typing import Optional


class WorkOrderType(str, Enum):
    """工单类型"""

    ACCOUNT_APPLICATION = "ACCOUNT_APPLICATION"
    ACCOUNT_MANAGEMENT = "ACCOUNT_MANAGEMENT"


class WorkOrderSubtype(str, Enum):
    """工单子类型"""

    GOOGLE_ACCOUNT = "GOOGLE_ACCOUNT"
    FACEBOOK_ACCOUNT = "FACEBOOK_ACCOUNT"
    TIKTOK_ACCOUNT = "TIKTOK_ACCOUNT"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    ZEROING = "ZEROING"
    BIND_ACCOUNT = "BIND_ACCOUNT"
    BIND_EMAIL = "BIND_EMAIL"
    BIND_PIXEL = "BIND_PIXEL"
    UNBIND_ACCOUNT = "UNBIND_ACCOUNT"
    UPDATE_ACCOUNT_NAME = "UPDATE_ACCOUNT_NAME"


class WorkOrderStatus(str, Enum):
    """工单状态"""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    RETURNED = "RETURNED"


class SyncStatus(str, Enum):
    """原始数据同步状态"""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class AuditAction(str, Enum):
    """审计动作"""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"
    CANCEL = "CANCEL"
    CALLBACK = "CALLBACK"
    UPDATE_EXTERNAL_TASK_ID = "UPDATE_EXTERNAL_TASK_ID"


class MediaPlatform(str, Enum):
    """媒体平台"""

    GOOGLE = "GOOGLE"
    FACEBOOK = "FACEBOOK"
    TIKTOK = "TIKTOK"
    MICROSOFT = "MICROSOFT"


# 第三方接口使用的平台编号
MEDIA_PLATFORM_NUMBERS = {
    MediaPlatform.FACEBOOK: 1,
    MediaPlatform.GOOGLE: 2,
    MediaPlatform.TIKTOK: 5,
    MediaPlatform.MICROSOFT: 7,
}

# 状态展示码（旧版列表页使用的数字方言）
STATUS_CODES = {
    WorkOrderStatus.PENDING: 10,
    WorkOrderStatus.APPROVED: 20,
    WorkOrderStatus.RETURNED: 30,
    WorkOrderStatus.REJECTED: 40,
    WorkOrderStatus.FAILED: 50,
    WorkOrderStatus.PROCESSING: 60,
    WorkOrderStatus.COMPLETED: 70,
    WorkOrderStatus.CANCELED: 80,
}

_CODE_TO_STATUS = {code: status for status, code in STATUS_CODES.items()}


def status_to_code(status: str) -> Optional[int]:
    """状态转展示码"""
    try:
        return STATUS_CODES[WorkOrderStatus(status)]
    except ValueError:
        return None


def parse_status(value) -> WorkOrderStatus:
    """
    将任意状态方言（字符串名或数字码）解析为规范状态

    Args:
        value: "PENDING" / "pending" / 10 / "10"

    Returns:
        WorkOrderStatus

    Raises:
        ValueError: 无法识别的状态
    """
    if isinstance(value, WorkOrderStatus):
        return value
    if isinstance(value, int) or (isinstance(value, str) and value.strip().isdigit()):
        code = int(value)
        if code in _CODE_TO_STATUS:
            return _CODE_TO_STATUS[code]
        raise ValueError(f"未知的状态码: {value}")
    if isinstance(value, str):
        return WorkOrderStatus(value.strip().upper())
    raise ValueError(f"未知的状态: {value}")
