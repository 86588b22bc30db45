"""
企业信息载荷模型
"""

from typing import List, Optional

from pydantic import Field, model_validator

from .types import CamelModel


class CompanyAttachmentPayload(CamelModel):
    """企业资质附件（仅元数据，文件已由上传服务写入 OSS）"""

    file_name: str = Field(..., min_length=1, description="文件名")
    file_type: str = Field(..., min_length=1, description="文件类型")
    file_size: int = Field(..., gt=0, description="文件大小（字节）")
    file_path: str = Field(..., min_length=1, description="存储路径")
    oss_object_key: str = Field(..., min_length=1, description="OSS 对象键")
    file_url: str = Field(..., min_length=1, description="文件访问地址")
    description: Optional[str] = Field(None, description="附件说明")


class CompanyInfoPayload(CamelModel):
    """
    企业信息

    提供 userCompanyInfoId 时其余字段全部取自已保存的企业信息快照
    """

    user_company_info_id: Optional[str] = Field(None, description="已保存企业信息 ID")
    company_name_cn: Optional[str] = Field(
        None, alias="companyNameCN", max_length=100, description="公司中文名"
    )
    company_name_en: Optional[str] = Field(
        None, alias="companyNameEN", max_length=100, description="公司英文名"
    )
    business_license_no: Optional[str] = Field(None, max_length=50, description="营业执照号")
    location: Optional[int] = Field(None, ge=0, le=1, description="公司所在地 0=境内 1=境外")
    legal_rep_name: Optional[str] = Field(None, max_length=50, description="法人姓名")
    id_type: Optional[int] = Field(None, ge=1, le=5, description="证件类型")
    id_number: Optional[str] = Field(None, max_length=50, description="证件号码")
    legal_rep_phone: Optional[str] = Field(None, max_length=20, description="法人电话")
    legal_rep_bank_card_number: Optional[str] = Field(
        None, max_length=30, description="法人银行卡号"
    )
    attachments: List[CompanyAttachmentPayload] = Field(
        default_factory=list, description="附件列表"
    )

    @model_validator(mode="after")
    def check_source(self) -> "CompanyInfoPayload":
        if not self.user_company_info_id and not (self.company_name_cn or self.company_name_en):
            raise ValueError("请选择已保存的企业信息或填写公司名称")
        return self
