"""
工单编号与追踪 ID 生成工具
"""

import string
import uuid
from datetime import datetime, timezone
from typing import Optional

from ..models.enums import WorkOrderSubtype, WorkOrderType

_BASE36_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 10

TYPE_PREFIXES = {
    WorkOrderType.ACCOUNT_APPLICATION: "AA",
    WorkOrderType.ACCOUNT_MANAGEMENT: "AM",
}
DEFAULT_TYPE_PREFIX = "WO"

SUBTYPE_CODES = {
    WorkOrderSubtype.GOOGLE_ACCOUNT: "G",
    WorkOrderSubtype.FACEBOOK_ACCOUNT: "F",
    WorkOrderSubtype.TIKTOK_ACCOUNT: "T",
    WorkOrderSubtype.DEPOSIT: "DP",
    WorkOrderSubtype.WITHDRAWAL: "WD",
    WorkOrderSubtype.TRANSFER: "TR",
    WorkOrderSubtype.ZEROING: "ZR",
    WorkOrderSubtype.BIND_ACCOUNT: "BA",
    WorkOrderSubtype.BIND_EMAIL: "BE",
    WorkOrderSubtype.BIND_PIXEL: "BP",
    WorkOrderSubtype.UNBIND_ACCOUNT: "UB",
    WorkOrderSubtype.UPDATE_ACCOUNT_NAME: "NU",
}


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def _unique_suffix() -> str:
    """UUID4 的 base36 表示，截取后 10 位"""
    encoded = _to_base36(uuid.uuid4().int)
    return encoded[-SUFFIX_LENGTH:].rjust(SUFFIX_LENGTH, "0")


def generate_task_number(
    work_order_type: Optional[str] = None,
    subtype: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    生成工单编号

    格式: {类型前缀}{子类型代码}-{yyyymmdd}-{10位大写字母数字}
    例如 Google 开户申请: AAG-20250101-3K9Z0QW1XE

    Args:
        work_order_type: 工单类型，未知类型使用 WO 前缀
        subtype: 工单子类型，未知子类型不附加代码
        now: 日期来源，默认当前 UTC 时间

    Returns:
        新的工单编号，每次调用都不同
    """
    prefix = TYPE_PREFIXES.get(work_order_type, DEFAULT_TYPE_PREFIX)
    code = SUBTYPE_CODES.get(subtype, "")
    date_part = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    return f"{prefix}{code}-{date_part}-{_unique_suffix()}"


def generate_trace_id() -> str:
    """生成跨系统追踪 ID（32 位十六进制），与工单编号互不相关"""
    return uuid.uuid4().hex
