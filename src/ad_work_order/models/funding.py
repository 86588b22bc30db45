"""
账户管理（资金类与绑定类）载荷模型
"""

from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from .types import Amount, CamelModel


class MediaAccountRef(CamelModel):
    """媒体账户引用"""

    media_account_id: str = Field(..., min_length=1, description="媒体账户 ID")
    media_account_name: Optional[str] = Field(None, max_length=128, description="媒体账户名称")
    media_platform: int = Field(..., ge=1, description="媒体平台编号 1=Facebook 2=Google 5=TikTok 7=Microsoft")
    remarks: Optional[str] = Field(None, max_length=500, description="备注")


class DepositRequest(MediaAccountRef):
    """充值申请"""

    amount: Amount = Field(..., description="充值金额")
    currency: str = Field("CNY", min_length=1, description="币种")
    daily_budget: Optional[Amount] = Field(None, description="日预算")


class WithdrawalRequest(MediaAccountRef):
    """减款申请"""

    amount: Amount = Field(..., description="减款金额")
    currency: str = Field("CNY", min_length=1, description="币种")


class ZeroingRequest(MediaAccountRef):
    """清零申请"""


class BindAccountRequest(MediaAccountRef):
    """账户绑定申请，由人工处理，不提交第三方"""

    email: EmailStr = Field(..., description="绑定邮箱")
    role: str = Field(..., min_length=1, description="绑定角色")


class TransferRequest(CamelModel):
    """转账申请，金额与全部余额转移二选一"""

    source_account_id: str = Field(..., min_length=1, description="转出账户 ID")
    source_account_name: Optional[str] = Field(None, max_length=128)
    target_account_id: str = Field(..., min_length=1, description="转入账户 ID")
    target_account_name: Optional[str] = Field(None, max_length=128)
    media_platform: int = Field(..., ge=1, description="媒体平台编号")
    amount: Optional[Amount] = Field(None, description="转账金额")
    is_move_all_balance: bool = Field(False, description="是否转移全部余额")
    currency: str = Field("CNY", min_length=1, description="币种")
    remarks: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_amount_choice(self) -> "TransferRequest":
        if self.source_account_id == self.target_account_id:
            raise PydanticCustomError("transfer_same_account", "转出账户与转入账户不能相同")
        if bool(self.amount) == self.is_move_all_balance:
            raise PydanticCustomError(
                "transfer_amount_choice", "转账金额与转移全部余额必须二选一"
            )
        return self


# ============ 绑定 / 解绑 / 改名 ============

FACEBOOK_PLATFORM = 1
MICROSOFT_PLATFORM = 7
UNBIND_PLATFORMS = frozenset({1, 2, 7})
EMAIL_BINDING_ROLES = frozenset({10, 20, 30})
PIXEL_BINDING_TYPES = frozenset({0, 1})
PIXEL_BINDING_ROLES = frozenset({1, 2})


class BindEmailRequest(MediaAccountRef):
    """邮箱绑定申请，仅支持 Microsoft Advertising"""

    value: EmailStr = Field(..., description="绑定邮箱")
    role: int = Field(..., description="角色 10=查看 20=标准 30=管理员")

    @field_validator("media_platform")
    @classmethod
    def check_platform(cls, v: int) -> int:
        if v != MICROSOFT_PLATFORM:
            raise PydanticCustomError("media_platform", "当前仅支持Microsoft Advertising平台")
        return v

    @field_validator("role")
    @classmethod
    def check_role(cls, v: int) -> int:
        if v not in EMAIL_BINDING_ROLES:
            raise PydanticCustomError("binding_role", "无效的角色权限")
        return v


class BindPixelRequest(CamelModel):
    """
    Pixel 绑定申请，仅支持 Facebook

    value 为被授权的广告账户或 BM 的 ID，由 type 区分
    """

    pixel_id: str = Field(..., min_length=1, max_length=64, description="像素 ID")
    binding_type: int = Field(..., alias="type", description="授权类型 0=广告账户 1=BM")
    media_platform: int = Field(..., ge=1, description="媒体平台编号")
    value: str = Field(..., min_length=1, max_length=64, description="广告账户 / BM ID")
    role: int = Field(..., description="角色 1=查看 2=管理员")
    remarks: Optional[str] = Field(None, max_length=500)

    @field_validator("binding_type")
    @classmethod
    def check_type(cls, v: int) -> int:
        if v not in PIXEL_BINDING_TYPES:
            raise PydanticCustomError("binding_type", "无效的授权类型")
        return v

    @field_validator("media_platform")
    @classmethod
    def check_platform(cls, v: int) -> int:
        if v != FACEBOOK_PLATFORM:
            raise PydanticCustomError("media_platform", "当前仅支持Facebook平台")
        return v

    @field_validator("role")
    @classmethod
    def check_role(cls, v: int) -> int:
        if v not in PIXEL_BINDING_ROLES:
            raise PydanticCustomError("binding_role", "无效的角色权限")
        return v


class UnbindAccountRequest(MediaAccountRef):
    """账户解绑申请"""

    value: str = Field(..., min_length=1, max_length=128, description="解绑 ID")

    @field_validator("media_platform")
    @classmethod
    def check_platform(cls, v: int) -> int:
        if v not in UNBIND_PLATFORMS:
            raise PydanticCustomError("media_platform", "无效的媒体平台")
        return v


class UpdateAccountNameRequest(MediaAccountRef):
    """账户改名申请，由人工处理，不提交第三方"""

    media_account_name: str = Field(..., min_length=1, max_length=128, description="当前账户名称")
    new_account_name: str = Field(..., min_length=1, max_length=128, description="新账户名称")

    @model_validator(mode="after")
    def check_name_changed(self) -> "UpdateAccountNameRequest":
        if self.media_account_name == self.new_account_name:
            raise PydanticCustomError("account_name_unchanged", "新账户名与当前账户名相同")
        return self
