"""
工单相关表定义
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base, TimestampMixin, utcnow


class WorkOrderRecord(TimestampMixin, Base):
    """工单（聚合根）"""

    __tablename__ = "work_orders"

    task_number: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    task_id: Mapped[str] = mapped_column(String(64), index=True)
    work_order_type: Mapped[str] = mapped_column(String(32), index=True)
    work_order_subtype: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(16), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    assignee_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    raw_data_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    business_data_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # 非权威的展示数据，读取时需容错
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", Text, nullable=True)
    remark: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    raw_data: Mapped[List["RawDataRecord"]] = relationship(
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="RawDataRecord.created_at",
    )
    business_data: Mapped[Optional["BusinessDataRecord"]] = relationship(
        back_populates="work_order",
        cascade="all, delete-orphan",
        uselist=False,
    )
    company_info: Mapped[Optional["WorkOrderCompanyInfoRecord"]] = relationship(
        back_populates="work_order",
        cascade="all, delete-orphan",
        uselist=False,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def latest_raw_data(self) -> Optional["RawDataRecord"]:
        """WorkOrder.raw_data_id 指向的最新快照"""
        for raw in self.raw_data:
            if raw.id == self.raw_data_id:
                return raw
        return self.raw_data[-1] if self.raw_data else None


class RawDataRecord(TimestampMixin, Base):
    """原始数据：每次提交/重新提交追加一行"""

    __tablename__ = "raw_data"

    work_order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("work_orders.id", ondelete="CASCADE"), index=True
    )
    request_data: Mapped[str] = mapped_column(Text, nullable=False)
    response_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sync_status: Mapped[str] = mapped_column(String(16), nullable=False)
    sync_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sync_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_sync_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    work_order: Mapped[WorkOrderRecord] = relationship(back_populates="raw_data")


class BusinessDataRecord(TimestampMixin, Base):
    """业务数据投影：每个工单一行"""

    __tablename__ = "business_data"

    work_order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("work_orders.id", ondelete="CASCADE"), unique=True
    )
    media_platform: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    account_name: Mapped[Optional[str]] = mapped_column(String(128), index=True, nullable=True)
    media_account_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    product_type: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    recharge_amount: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    daily_budget: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    promotion_links: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    authorizations: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    application_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    work_order: Mapped[WorkOrderRecord] = relationship(back_populates="business_data")


class CompanyFieldsMixin:
    """企业信息字段"""

    company_name_cn: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    company_name_en: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    business_license_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    location: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    legal_rep_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    id_type: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    id_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    legal_rep_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    legal_rep_bank_card_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)


class AttachmentFieldsMixin:
    """附件元数据字段"""

    file_name: Mapped[str] = mapped_column(String(255))
    file_type: Mapped[str] = mapped_column(String(64))
    file_size: Mapped[int] = mapped_column(Integer)
    file_path: Mapped[str] = mapped_column(String(512))
    oss_object_key: Mapped[str] = mapped_column(String(512))
    file_url: Mapped[str] = mapped_column(String(1024))
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class WorkOrderCompanyInfoRecord(CompanyFieldsMixin, TimestampMixin, Base):
    """工单提交时的企业信息快照"""

    __tablename__ = "work_order_company_info"

    work_order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("work_orders.id", ondelete="CASCADE"), unique=True
    )
    user_company_info_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    work_order: Mapped[WorkOrderRecord] = relationship(back_populates="company_info")
    attachments: Mapped[List["WorkOrderCompanyAttachmentRecord"]] = relationship(
        back_populates="company_info", cascade="all, delete-orphan"
    )


class WorkOrderCompanyAttachmentRecord(AttachmentFieldsMixin, TimestampMixin, Base):
    __tablename__ = "work_order_company_attachments"

    company_info_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("work_order_company_info.id", ondelete="CASCADE"), index=True
    )

    company_info: Mapped[WorkOrderCompanyInfoRecord] = relationship(back_populates="attachments")


class UserCompanyInfoRecord(CompanyFieldsMixin, TimestampMixin, Base):
    """用户保存的企业信息模板"""

    __tablename__ = "user_company_info"

    user_id: Mapped[str] = mapped_column(String(64), index=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    attachments: Mapped[List["UserCompanyAttachmentRecord"]] = relationship(
        back_populates="company_info", cascade="all, delete-orphan"
    )


class UserCompanyAttachmentRecord(AttachmentFieldsMixin, TimestampMixin, Base):
    __tablename__ = "user_company_attachments"

    company_info_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_company_info.id", ondelete="CASCADE"), index=True
    )

    company_info: Mapped[UserCompanyInfoRecord] = relationship(back_populates="attachments")


class AuditLogRecord(Base):
    """审计日志：只追加，不更新不删除"""

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(String(32), index=True)
    entity_id: Mapped[str] = mapped_column(String(36), index=True)
    action: Mapped[str] = mapped_column(String(32))
    performed_by: Mapped[str] = mapped_column(String(64))
    previous_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class ImmutableRecordError(RuntimeError):
    """尝试修改或删除审计记录"""


@event.listens_for(Session, "before_flush")
def _guard_audit_log(session, flush_context, instances):
    for obj in session.dirty:
        if isinstance(obj, AuditLogRecord) and session.is_modified(obj):
            raise ImmutableRecordError("审计日志不可修改")
    for obj in session.deleted:
        if isinstance(obj, AuditLogRecord):
            raise ImmutableRecordError("审计日志不可删除")
