"""
企业信息快照服务

工单提交时将企业信息复制为工单自有的快照，后续修改模板不影响历史工单
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..db.tables import (
    UserCompanyInfoRecord,
    WorkOrderCompanyAttachmentRecord,
    WorkOrderCompanyInfoRecord,
)
from ..exceptions import AuthorizationError, ResourceNotFoundError
from ..models.company_info import CompanyInfoPayload

COMPANY_FIELDS = (
    "company_name_cn",
    "company_name_en",
    "business_license_no",
    "location",
    "legal_rep_name",
    "id_type",
    "id_number",
    "legal_rep_phone",
    "legal_rep_bank_card_number",
)

ATTACHMENT_FIELDS = (
    "file_name",
    "file_type",
    "file_size",
    "file_path",
    "oss_object_key",
    "file_url",
    "description",
)


def load_user_company_info(
    session: Session, user_company_info_id: str, owner_id: str
) -> UserCompanyInfoRecord:
    """
    读取用户保存的企业信息并校验归属

    Raises:
        ResourceNotFoundError: 不存在或已删除
        AuthorizationError: 不属于当前用户
    """
    record = session.get(UserCompanyInfoRecord, user_company_info_id)
    if record is None or record.is_deleted:
        raise ResourceNotFoundError("所选企业信息不存在")
    if record.user_id != owner_id:
        raise AuthorizationError.forbidden("无权使用此企业信息")
    return record


def build_company_snapshot(
    session: Session,
    payload: Optional[CompanyInfoPayload],
    owner_id: str,
) -> Optional[WorkOrderCompanyInfoRecord]:
    """
    根据入参构建工单企业信息快照（未挂载到工单）

    Args:
        session: 当前事务会话
        payload: 企业信息入参
        owner_id: 提交人

    Returns:
        快照记录，未提供企业信息时返回 None
    """
    if payload is None:
        return None

    snapshot = WorkOrderCompanyInfoRecord()
    attachments: List[WorkOrderCompanyAttachmentRecord] = []

    if payload.user_company_info_id:
        source = load_user_company_info(session, payload.user_company_info_id, owner_id)
        snapshot.user_company_info_id = source.id
        for field in COMPANY_FIELDS:
            setattr(snapshot, field, getattr(source, field))
        for attachment in source.attachments:
            attachments.append(
                WorkOrderCompanyAttachmentRecord(
                    **{field: getattr(attachment, field) for field in ATTACHMENT_FIELDS}
                )
            )
    else:
        for field in COMPANY_FIELDS:
            setattr(snapshot, field, getattr(payload, field))
        for attachment in payload.attachments:
            attachments.append(
                WorkOrderCompanyAttachmentRecord(
                    **{field: getattr(attachment, field) for field in ATTACHMENT_FIELDS}
                )
            )

    snapshot.attachments = attachments
    return snapshot


def company_snapshot_to_dict(snapshot: Optional[WorkOrderCompanyInfoRecord]) -> Optional[dict]:
    """快照转为请求数据中内嵌的企业信息"""
    if snapshot is None:
        return None
    data = {
        "userCompanyInfoId": snapshot.user_company_info_id,
        "companyNameCN": snapshot.company_name_cn,
        "companyNameEN": snapshot.company_name_en,
        "businessLicenseNo": snapshot.business_license_no,
        "location": snapshot.location,
        "legalRepName": snapshot.legal_rep_name,
        "idType": snapshot.id_type,
        "idNumber": snapshot.id_number,
        "legalRepPhone": snapshot.legal_rep_phone,
        "legalRepBankCardNumber": snapshot.legal_rep_bank_card_number,
        "attachments": [
            {
                "fileName": a.file_name,
                "fileType": a.file_type,
                "fileSize": a.file_size,
                "filePath": a.file_path,
                "ossObjectKey": a.oss_object_key,
                "fileUrl": a.file_url,
                "description": a.description,
            }
            for a in snapshot.attachments
        ],
    }
    return data
