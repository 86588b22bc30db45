"""
工单读模型
"""

from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import Field

from .types import CamelModel


class RawDataView(CamelModel):
    """原始数据快照"""

    id: str
    request_data: Any = None
    response_data: Any = None
    sync_status: str
    sync_error: Optional[str] = None
    last_sync_time: Optional[datetime] = None
    created_at: datetime


class BusinessDataView(CamelModel):
    """业务数据投影"""

    media_platform: Optional[str] = None
    account_name: Optional[str] = None
    media_account_id: Optional[str] = None
    currency: Optional[str] = None
    timezone: Optional[str] = None
    product_type: Optional[int] = None
    recharge_amount: Optional[str] = None
    daily_budget: Optional[str] = None
    promotion_links: List[str] = Field(default_factory=list)
    authorizations: List[Dict[str, Any]] = Field(default_factory=list)
    application_status: Optional[str] = None
    failure_reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class CompanyAttachmentView(CamelModel):
    """企业附件"""

    file_name: str
    file_type: str
    file_size: int
    file_path: str
    oss_object_key: str
    file_url: str
    description: Optional[str] = None


class CompanyInfoView(CamelModel):
    """工单企业信息快照"""

    user_company_info_id: Optional[str] = None
    company_name_cn: Optional[str] = Field(None, alias="companyNameCN")
    company_name_en: Optional[str] = Field(None, alias="companyNameEN")
    business_license_no: Optional[str] = None
    location: Optional[int] = None
    legal_rep_name: Optional[str] = None
    id_type: Optional[int] = None
    id_number: Optional[str] = None
    legal_rep_phone: Optional[str] = None
    legal_rep_bank_card_number: Optional[str] = None
    attachments: List[CompanyAttachmentView] = Field(default_factory=list)


class WorkOrderListItem(CamelModel):
    """列表行：工单字段 + 业务数据 + 元数据合并"""

    id: str
    task_number: str
    task_id: str
    work_order_type: str
    work_order_subtype: str
    status: str
    status_code: Optional[int] = None
    user_id: str
    remark: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    platform: Optional[str] = None
    account_name: Optional[str] = None
    currency: Optional[str] = None
    amount: Optional[str] = None
    application_status: Optional[str] = None
    failure_reason: Optional[str] = None
    applicant: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WorkOrderView(WorkOrderListItem):
    """工单详情"""

    raw_data: Optional[RawDataView] = None
    business_data: Optional[BusinessDataView] = None
    company_info: Optional[CompanyInfoView] = None


class PageResult(CamelModel):
    """分页结果"""

    items: List[WorkOrderListItem]
    total: int
    page_number: int
    page_size: int


class AuditLogView(CamelModel):
    """审计记录"""

    id: str
    entity_type: str
    entity_id: str
    action: str
    performed_by: str
    previous_value: Any = None
    new_value: Any = None
    created_at: datetime
