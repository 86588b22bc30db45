"""
开户申请载荷模型

各平台共享基础字段，平台特有字段在子类中扩展
"""

from typing import Any, List, Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator, validate_email
from pydantic_core import PydanticCustomError

from .company_info import CompanyInfoPayload
from .types import Amount, CamelModel, PromotionLink

DEFAULT_LINKS_MAX_LENGTH = 1800


class AuthEntry(CamelModel):
    """账户授权（角色 + 邮箱），要么都填要么都不填"""

    role: Optional[int] = Field(None, description="授权角色")
    value: Optional[str] = Field(None, description="授权邮箱")

    @field_validator("value", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def check_pairing(self) -> "AuthEntry":
        if self.role is None and self.value is None:
            return self
        if self.role is None or self.value is None:
            raise PydanticCustomError("auth_pairing", "角色和邮箱必须同时填写")
        try:
            validate_email(self.value)
        except (PydanticCustomError, ValueError):
            raise PydanticCustomError("auth_email", "授权邮箱格式不正确")
        return self

    @property
    def is_empty(self) -> bool:
        return self.role is None and self.value is None


class BaseAccountApplication(CamelModel):
    """开户申请基础字段"""

    name: str = Field(..., min_length=1, max_length=64, description="账户名称")
    currency_code: str = Field(..., min_length=1, description="币种")
    timezone: str = Field(..., min_length=1, description="时区")
    product_type: int = Field(0, ge=0, description="产品类型")
    recharge_amount: Optional[Amount] = Field(None, description="充值金额")
    promotion_links: List[PromotionLink] = Field(..., description="推广链接")
    auths: List[AuthEntry] = Field(default_factory=list, description="授权列表")
    company_info: Optional[CompanyInfoPayload] = Field(None, description="企业信息")

    @field_validator("currency_code")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("promotion_links")
    @classmethod
    def check_links(cls, v: List[str], info: ValidationInfo) -> List[str]:
        if not v:
            raise PydanticCustomError("links_empty", "至少需要一个推广链接")
        max_length = DEFAULT_LINKS_MAX_LENGTH
        if info.context and info.context.get("links_max_length"):
            max_length = info.context["links_max_length"]
        if sum(len(link) for link in v) > max_length:
            raise PydanticCustomError(
                "links_too_long",
                "推广链接总长度不能超过{max_length}",
                {"max_length": max_length},
            )
        return v

    @field_validator("auths")
    @classmethod
    def drop_empty_auths(cls, v: List[AuthEntry]) -> List[AuthEntry]:
        return [entry for entry in v if not entry.is_empty]


class GoogleRegistrationDetails(CamelModel):
    """Google 开户注册信息"""

    company_name: str = Field(..., min_length=1, max_length=100, description="公司名称")
    company_name_en: Optional[str] = Field(None, alias="companyNameEN", max_length=100)
    business_license_no: Optional[str] = Field(None, max_length=50)
    legal_rep_name: Optional[str] = Field(None, max_length=50)
    legal_rep_phone: Optional[str] = Field(None, max_length=20)


class GoogleAccountApplication(BaseAccountApplication):
    """Google 开户申请"""

    registration_details: Optional[GoogleRegistrationDetails] = Field(
        None, description="注册信息"
    )


class FacebookAccountApplication(BaseAccountApplication):
    """Facebook 开户申请"""


class TikTokRegistrationDetails(CamelModel):
    """TikTok 开户注册信息，全部必填"""

    company_name: str = Field(..., min_length=1, max_length=100)
    company_name_en: str = Field(..., alias="companyNameEN", min_length=1, max_length=100)
    business_license_no: str = Field(..., min_length=15, max_length=50)
    legal_rep_name: str = Field(..., min_length=1, max_length=50)
    id_number: str = Field(..., min_length=1, max_length=50)
    legal_rep_phone: str = Field(..., min_length=1, max_length=20)
    legal_rep_bank_card_number: str = Field(..., min_length=1, max_length=30)


class TikTokAccountApplication(BaseAccountApplication):
    """TikTok 开户申请"""

    advertising_countries: List[str] = Field(..., min_length=1, description="投放国家")
    registration_details: TikTokRegistrationDetails = Field(..., description="注册信息")


# 宽松模式下可回退为默认值的可选字段
PERMISSIVE_DEFAULTS = {
    "productType": 0,
    "rechargeAmount": None,
}

# 宽松模式下仍必须严格失败的身份字段
IDENTITY_FIELDS = ("name", "currencyCode", "timezone")
