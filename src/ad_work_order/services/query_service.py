"""
工单查询服务

合并工单、业务数据与元数据为读模型；元数据缺失或格式错误时按空对象处理
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload, sessionmaker

from ..config import WorkflowSettings
from ..db.engine import session_scope
from ..db.tables import AuditLogRecord, BusinessDataRecord, WorkOrderRecord
from ..exceptions import ErrorCode, ResourceNotFoundError, ValidationError
from ..models.enums import WorkOrderStatus, parse_status, status_to_code
from ..models.work_order import (
    AuditLogView,
    BusinessDataView,
    CompanyAttachmentView,
    CompanyInfoView,
    PageResult,
    RawDataView,
    WorkOrderListItem,
    WorkOrderView,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

S = WorkOrderStatus

STATUS_GROUPS = {
    "pending": (S.PENDING, S.RETURNED),
    "processing": (S.PROCESSING,),
    "success": (S.APPROVED, S.COMPLETED),
    "failure": (S.REJECTED, S.FAILED),
    "canceled": (S.CANCELED,),
}


def parse_metadata(value: Any) -> Dict[str, Any]:
    """容错解析元数据：None、非对象、非法 JSON 一律返回空字典"""
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _parse_json_text(value: Optional[str]) -> Any:
    """原始数据 JSON 文本，非 JSON 时返回原文"""
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


@dataclass
class WorkOrderFilters:
    """列表筛选条件"""

    statuses: List[str] = field(default_factory=list)
    work_order_type: Optional[str] = None
    subtypes: List[str] = field(default_factory=list)
    platform: Optional[str] = None
    owner_id: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    keyword: Optional[str] = None


class QueryService:
    """工单读服务"""

    def __init__(self, settings: WorkflowSettings, session_factory: sessionmaker):
        self.settings = settings
        self.session_factory = session_factory

    # ============ 读模型 ============

    @staticmethod
    def _list_item(order: WorkOrderRecord, business: Optional[BusinessDataRecord]) -> Dict[str, Any]:
        metadata = parse_metadata(order.metadata_json)
        platform = (business.media_platform if business else None) or metadata.get("platform")
        account_name = (business.account_name if business else None) or metadata.get(
            "mediaAccountName"
        )
        return {
            "id": order.id,
            "task_number": order.task_number,
            "task_id": order.task_id,
            "work_order_type": order.work_order_type,
            "work_order_subtype": order.work_order_subtype,
            "status": order.status,
            "status_code": status_to_code(order.status),
            "user_id": order.user_id,
            "remark": order.remark,
            "created_at": order.created_at,
            "updated_at": order.updated_at,
            "platform": platform if isinstance(platform, str) else None,
            "account_name": account_name if isinstance(account_name, str) else None,
            "currency": business.currency if business else None,
            "amount": business.recharge_amount if business else None,
            "application_status": business.application_status if business else None,
            "failure_reason": business.failure_reason if business else None,
            "applicant": metadata.get("applicant") if isinstance(metadata.get("applicant"), str) else None,
            "metadata": metadata,
        }

    def _to_view(self, order: WorkOrderRecord) -> WorkOrderView:
        business = order.business_data
        data = self._list_item(order, business)

        raw = order.latest_raw_data
        if raw is not None:
            data["raw_data"] = RawDataView(
                id=raw.id,
                request_data=_parse_json_text(raw.request_data),
                response_data=_parse_json_text(raw.response_data),
                sync_status=raw.sync_status,
                sync_error=raw.sync_error,
                last_sync_time=raw.last_sync_time,
                created_at=raw.created_at,
            )
        if business is not None:
            data["business_data"] = BusinessDataView(
                media_platform=business.media_platform,
                account_name=business.account_name,
                media_account_id=business.media_account_id,
                currency=business.currency,
                timezone=business.timezone,
                product_type=business.product_type,
                recharge_amount=business.recharge_amount,
                daily_budget=business.daily_budget,
                promotion_links=business.promotion_links or [],
                authorizations=business.authorizations or [],
                application_status=business.application_status,
                failure_reason=business.failure_reason,
                updated_at=business.updated_at,
            )
        company = order.company_info
        if company is not None:
            data["company_info"] = CompanyInfoView(
                user_company_info_id=company.user_company_info_id,
                company_name_cn=company.company_name_cn,
                company_name_en=company.company_name_en,
                business_license_no=company.business_license_no,
                location=company.location,
                legal_rep_name=company.legal_rep_name,
                id_type=company.id_type,
                id_number=company.id_number,
                legal_rep_phone=company.legal_rep_phone,
                legal_rep_bank_card_number=company.legal_rep_bank_card_number,
                attachments=[
                    CompanyAttachmentView(
                        file_name=a.file_name,
                        file_type=a.file_type,
                        file_size=a.file_size,
                        file_path=a.file_path,
                        oss_object_key=a.oss_object_key,
                        file_url=a.file_url,
                        description=a.description,
                    )
                    for a in company.attachments
                ],
            )
        return WorkOrderView(**data)

    # ============ 查询 ============

    def get_record(self, task_id: str, owner_id: Optional[str] = None) -> WorkOrderView:
        """
        工单详情（按 id / 工单编号 / 第三方任务 ID）

        Args:
            task_id: 工单标识
            owner_id: 仅查询该用户的工单

        Raises:
            ResourceNotFoundError: 不存在或已删除
        """
        with session_scope(self.session_factory) as session:
            stmt = (
                select(WorkOrderRecord)
                .options(
                    selectinload(WorkOrderRecord.raw_data),
                    selectinload(WorkOrderRecord.business_data),
                    selectinload(WorkOrderRecord.company_info),
                )
                .where(
                    or_(
                        WorkOrderRecord.id == task_id,
                        WorkOrderRecord.task_number == task_id,
                        WorkOrderRecord.task_id == task_id,
                    ),
                    WorkOrderRecord.is_deleted.is_(False),
                )
            )
            if owner_id:
                stmt = stmt.where(WorkOrderRecord.user_id == owner_id)
            order = session.execute(stmt).scalars().first()
            if order is None:
                raise ResourceNotFoundError("工单不存在或已删除")
            return self._to_view(order)

    def _apply_filters(self, stmt, filters: WorkOrderFilters):
        if filters.statuses:
            try:
                statuses = [parse_status(s).value for s in filters.statuses]
            except ValueError as e:
                raise ValidationError(str(e), code=ErrorCode.INVALID_PARAMETER)
            stmt = stmt.where(WorkOrderRecord.status.in_(statuses))
        if filters.work_order_type:
            stmt = stmt.where(WorkOrderRecord.work_order_type == filters.work_order_type.upper())
        if filters.subtypes:
            stmt = stmt.where(
                WorkOrderRecord.work_order_subtype.in_([s.upper() for s in filters.subtypes])
            )
        if filters.platform:
            stmt = stmt.where(BusinessDataRecord.media_platform == filters.platform.upper())
        if filters.owner_id:
            stmt = stmt.where(WorkOrderRecord.user_id == filters.owner_id)
        if filters.created_from:
            stmt = stmt.where(WorkOrderRecord.created_at >= filters.created_from)
        if filters.created_to:
            stmt = stmt.where(WorkOrderRecord.created_at <= filters.created_to)
        if filters.keyword and filters.keyword.strip():
            pattern = f"%{filters.keyword.strip()}%"
            stmt = stmt.where(
                or_(
                    WorkOrderRecord.task_number.like(pattern),
                    WorkOrderRecord.task_id.like(pattern),
                    BusinessDataRecord.account_name.like(pattern),
                )
            )
        return stmt

    def list(
        self,
        filters: Optional[WorkOrderFilters] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> PageResult:
        """
        分页查询工单

        Args:
            filters: 筛选条件
            page: 页码（从 1 开始）
            page_size: 每页条数（上限由配置决定）

        Returns:
            PageResult(items, total, pageNumber, pageSize)
        """
        filters = filters or WorkOrderFilters()
        page = max(1, int(page or 1))
        page_size = min(max(1, int(page_size or 10)), self.settings.max_page_size)

        base = (
            select(WorkOrderRecord, BusinessDataRecord)
            .outerjoin(BusinessDataRecord, BusinessDataRecord.work_order_id == WorkOrderRecord.id)
            .where(WorkOrderRecord.is_deleted.is_(False))
        )
        base = self._apply_filters(base, filters)

        with session_scope(self.session_factory) as session:
            total = session.execute(
                select(func.count()).select_from(base.subquery())
            ).scalar_one()
            rows = session.execute(
                base.order_by(WorkOrderRecord.created_at.desc(), WorkOrderRecord.id)
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).all()
            items = [WorkOrderListItem(**self._list_item(order, business)) for order, business in rows]

        return PageResult(items=items, total=total, page_number=page, page_size=page_size)

    def pending_count(self, owner_id: Optional[str] = None) -> int:
        """待处理工单数量（只读，可周期轮询）"""
        with session_scope(self.session_factory) as session:
            stmt = select(func.count(WorkOrderRecord.id)).where(
                WorkOrderRecord.status == S.PENDING.value,
                WorkOrderRecord.is_deleted.is_(False),
            )
            if owner_id:
                stmt = stmt.where(WorkOrderRecord.user_id == owner_id)
            return session.execute(stmt).scalar_one()

    def statistics(self, owner_id: Optional[str] = None) -> Dict[str, Any]:
        """
        工单统计：按状态分组、按类型计数，以及最近 10 条

        Args:
            owner_id: 仅统计该用户的工单

        Returns:
            {"total", "byStatus", "byGroup", "byType", "recent"}
        """
        with session_scope(self.session_factory) as session:
            def _scoped(stmt):
                stmt = stmt.where(WorkOrderRecord.is_deleted.is_(False))
                if owner_id:
                    stmt = stmt.where(WorkOrderRecord.user_id == owner_id)
                return stmt

            by_status = dict(
                session.execute(
                    _scoped(
                        select(WorkOrderRecord.status, func.count(WorkOrderRecord.id))
                    ).group_by(WorkOrderRecord.status)
                ).all()
            )
            by_type = dict(
                session.execute(
                    _scoped(
                        select(WorkOrderRecord.work_order_subtype, func.count(WorkOrderRecord.id))
                    ).group_by(WorkOrderRecord.work_order_subtype)
                ).all()
            )
            recent_rows = session.execute(
                _scoped(
                    select(WorkOrderRecord, BusinessDataRecord).outerjoin(
                        BusinessDataRecord, BusinessDataRecord.work_order_id == WorkOrderRecord.id
                    )
                )
                .order_by(WorkOrderRecord.created_at.desc())
                .limit(10)
            ).all()
            recent = [
                WorkOrderListItem(**self._list_item(order, business)).model_dump(
                    by_alias=True, mode="json"
                )
                for order, business in recent_rows
            ]

        by_group = {
            group: sum(by_status.get(s.value, 0) for s in statuses)
            for group, statuses in STATUS_GROUPS.items()
        }
        return {
            "total": sum(by_status.values()),
            "byStatus": by_status,
            "byGroup": by_group,
            "byType": by_type,
            "recent": recent,
        }

    def list_audit_logs(
        self,
        entity_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[AuditLogView]:
        """按实体与时间范围读取审计记录（时间正序）"""
        with session_scope(self.session_factory) as session:
            stmt = select(AuditLogRecord).where(AuditLogRecord.entity_id == entity_id)
            if start:
                stmt = stmt.where(AuditLogRecord.created_at >= start)
            if end:
                stmt = stmt.where(AuditLogRecord.created_at <= end)
            records = session.execute(stmt.order_by(AuditLogRecord.created_at)).scalars().all()
            return [
                AuditLogView(
                    id=r.id,
                    entity_type=r.entity_type,
                    entity_id=r.entity_id,
                    action=r.action,
                    performed_by=r.performed_by,
                    previous_value=_parse_json_text(r.previous_value),
                    new_value=_parse_json_text(r.new_value),
                    created_at=r.created_at,
                )
                for r in records
            ]

