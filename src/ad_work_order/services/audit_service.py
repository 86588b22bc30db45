"""
审计日志服务

只提供追加写入，读取通过查询服务
"""

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..db.tables import AuditLogRecord
from ..utils.logger import get_logger

logger = get_logger(__name__)

WORK_ORDER_ENTITY = "WORK_ORDER"


def dump_json(value: Any) -> Optional[str]:
    """序列化为 JSON 文本（中文不转义，日期转字符串）"""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


class AuditService:
    """审计日志写入"""

    def record(
        self,
        session: Session,
        entity_id: str,
        action: str,
        actor: str,
        snapshot: Any,
        entity_type: str = WORK_ORDER_ENTITY,
        previous: Any = None,
        now: Optional[datetime] = None,
    ) -> AuditLogRecord:
        """
        追加一条审计记录（随当前事务提交）

        Args:
            session: 当前事务会话
            entity_id: 实体 ID
            action: 审计动作
            actor: 操作人
            snapshot: 变更后快照
            entity_type: 实体类型
            previous: 变更前快照
            now: 记录时间

        Returns:
            新建的审计记录
        """
        entry = AuditLogRecord(
            entity_type=entity_type,
            entity_id=entity_id,
            action=str(getattr(action, "value", action)),
            performed_by=actor,
            previous_value=dump_json(previous),
            new_value=dump_json(snapshot),
        )
        if now is not None:
            entry.created_at = now
        session.add(entry)
        logger.debug(f"审计记录: entity={entity_type}/{entity_id}, action={entry.action}, actor={actor}")
        return entry
