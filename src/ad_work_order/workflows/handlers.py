"""
工单子类型能力表

每个子类型声明校验、第三方请求构建、业务数据投影与元数据构建方式，
编排器只通过此表分派，不按名称硬编码
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from ..exceptions import ErrorCode, ValidationError
from ..models.account_application import BaseAccountApplication
from ..models.enums import (
    MEDIA_PLATFORM_NUMBERS,
    MediaPlatform,
    WorkOrderSubtype,
    WorkOrderType,
)
from ..models.operation import SessionUser
from ..services.gateway_service import Endpoints

PLATFORM_BY_NUMBER = {number: platform for platform, number in MEDIA_PLATFORM_NUMBERS.items()}


def platform_name(number: Optional[int]) -> Optional[str]:
    platform = PLATFORM_BY_NUMBER.get(number)
    return platform.value if platform else None


# ============ 开户申请 ============

def _application_request(model: BaseAccountApplication) -> Dict[str, Any]:
    info = {
        "productType": model.product_type,
        "timezone": model.timezone,
        "currencyCode": model.currency_code,
        "promotionLinks": list(model.promotion_links),
        "name": model.name,
        "rechargeAmount": model.recharge_amount,
        "auths": [{"role": a.role, "value": a.value} for a in model.auths],
    }
    details = getattr(model, "registration_details", None)
    if details is not None:
        info["registrationDetails"] = details.model_dump(by_alias=True, exclude_none=True)
    countries = getattr(model, "advertising_countries", None)
    if countries:
        info["advertisingCountries"] = list(countries)
    return {"mediaAccountInfos": [info]}


def _application_business(model: BaseAccountApplication) -> Dict[str, Any]:
    return {
        "account_name": model.name,
        "currency": model.currency_code,
        "timezone": model.timezone,
        "product_type": model.product_type,
        "recharge_amount": model.recharge_amount,
        "daily_budget": None,
        "media_account_id": None,
        "promotion_links": list(model.promotion_links),
        "authorizations": [{"role": a.role, "value": a.value} for a in model.auths],
    }


def _application_metadata(handler: "SubtypeHandler", model: BaseAccountApplication) -> Dict[str, Any]:
    return {
        "mediaAccountName": model.name,
        "hasCompanyInfo": model.company_info is not None,
    }


# ============ 账户管理 ============

def _funding_request(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)


def _account_of(model: BaseModel) -> Tuple[str, Optional[str]]:
    """工单所针对的账户 (ID, 名称)；Pixel 绑定以被授权账户为准"""
    if hasattr(model, "source_account_id"):
        return model.source_account_id, model.source_account_name
    if hasattr(model, "pixel_id"):
        return model.value, None
    return model.media_account_id, model.media_account_name


def _funding_business(model: BaseModel) -> Dict[str, Any]:
    data = {
        "timezone": None,
        "product_type": None,
        "promotion_links": [],
        "authorizations": [],
        "currency": getattr(model, "currency", None),
        "recharge_amount": getattr(model, "amount", None),
        "daily_budget": getattr(model, "daily_budget", None),
    }
    account_id, account_name = _account_of(model)
    data["media_account_id"] = account_id
    data["account_name"] = account_name or account_id
    if hasattr(model, "email"):
        data["authorizations"] = [{"role": model.role, "value": model.email}]
    elif hasattr(model, "role"):
        # 邮箱绑定与 Pixel 绑定的授权对象都在 value 中
        data["authorizations"] = [{"role": model.role, "value": model.value}]
    return data


def _funding_metadata(handler: "SubtypeHandler", model: BaseModel) -> Dict[str, Any]:
    metadata = {
        "mediaPlatformNumber": model.media_platform,
        "platform": platform_name(model.media_platform),
        "mediaPlatform": platform_name(model.media_platform),
    }
    if hasattr(model, "source_account_id"):
        metadata.update(
            {
                "mediaAccountId": model.source_account_id,
                "mediaAccountName": model.source_account_name,
                "targetAccountId": model.target_account_id,
                "targetAccountName": model.target_account_name,
                "isMoveAllBalance": model.is_move_all_balance,
            }
        )
    else:
        account_id, account_name = _account_of(model)
        metadata.update({"mediaAccountId": account_id, "mediaAccountName": account_name})
    if hasattr(model, "pixel_id"):
        metadata["pixelId"] = model.pixel_id
    if hasattr(model, "new_account_name"):
        metadata["newAccountName"] = model.new_account_name
    return metadata


@dataclass(frozen=True)
class SubtypeHandler:
    """子类型能力描述"""

    subtype: WorkOrderSubtype
    work_order_type: WorkOrderType
    title: str
    platform: Optional[MediaPlatform] = None
    # 开户类创建即提交第三方；资金类需审批后提交
    submit_on_create: bool = False
    submit_on_approve: bool = False
    create_endpoint: Optional[str] = None
    update_endpoint: Optional[str] = None
    request_builder: Callable[[Any], Dict[str, Any]] = _funding_request
    business_builder: Callable[[Any], Dict[str, Any]] = _funding_business
    metadata_builder: Callable[["SubtypeHandler", Any], Dict[str, Any]] = _funding_metadata

    @property
    def calls_gateway(self) -> bool:
        return self.submit_on_create or self.submit_on_approve

    def validate(self, validator, payload: Any, permissive: Optional[bool] = None) -> BaseModel:
        return validator.validate(self.subtype.value, payload, permissive)

    def build_gateway_request(
        self,
        model: BaseModel,
        task_number: str,
        external_task_id: Optional[str] = None,
        company_info: Optional[dict] = None,
    ) -> Dict[str, Any]:
        """构建发往第三方的请求体（不含 traceId，由网关追加）"""
        body = {"taskNumber": task_number, **self.request_builder(model)}
        if external_task_id:
            body["taskId"] = external_task_id
        if company_info:
            body["companyInfo"] = company_info
        return body

    def build_business_data(self, model: BaseModel) -> Dict[str, Any]:
        data = self.business_builder(model)
        if self.platform is not None:
            data["media_platform"] = self.platform.value
        elif hasattr(model, "media_platform"):
            data["media_platform"] = platform_name(model.media_platform)
        return data

    def build_metadata(self, model: BaseModel, user: SessionUser) -> Dict[str, Any]:
        metadata = self.metadata_builder(self, model)
        if self.platform is not None:
            metadata["platform"] = self.platform.value
            metadata["mediaPlatform"] = self.platform.value
            metadata["mediaPlatformNumber"] = MEDIA_PLATFORM_NUMBERS[self.platform]
        metadata["createdBy"] = user.user_id
        metadata["applicant"] = user.display_name or user.user_id
        return metadata

    def endpoint_for(self, is_update: bool) -> Optional[str]:
        if is_update and self.update_endpoint:
            return self.update_endpoint
        return self.create_endpoint


def _application(subtype, platform, title, create, update) -> SubtypeHandler:
    return SubtypeHandler(
        subtype=subtype,
        work_order_type=WorkOrderType.ACCOUNT_APPLICATION,
        title=title,
        platform=platform,
        submit_on_create=True,
        create_endpoint=create,
        update_endpoint=update,
        request_builder=_application_request,
        business_builder=_application_business,
        metadata_builder=_application_metadata,
    )


def _management(subtype, title, endpoint=None, update_endpoint=None) -> SubtypeHandler:
    return SubtypeHandler(
        subtype=subtype,
        work_order_type=WorkOrderType.ACCOUNT_MANAGEMENT,
        title=title,
        submit_on_approve=endpoint is not None,
        create_endpoint=endpoint,
        update_endpoint=update_endpoint,
    )


HANDLERS: Dict[WorkOrderSubtype, SubtypeHandler] = {
    h.subtype: h
    for h in (
        _application(
            WorkOrderSubtype.GOOGLE_ACCOUNT,
            MediaPlatform.GOOGLE,
            "Google账户申请",
            Endpoints.GOOGLE_CREATE,
            Endpoints.GOOGLE_UPDATE,
        ),
        _application(
            WorkOrderSubtype.FACEBOOK_ACCOUNT,
            MediaPlatform.FACEBOOK,
            "Facebook账户申请",
            Endpoints.FACEBOOK_CREATE,
            Endpoints.FACEBOOK_UPDATE,
        ),
        _application(
            WorkOrderSubtype.TIKTOK_ACCOUNT,
            MediaPlatform.TIKTOK,
            "TikTok账户申请",
            Endpoints.TIKTOK_CREATE,
            Endpoints.TIKTOK_UPDATE,
        ),
        _management(WorkOrderSubtype.DEPOSIT, "充值", Endpoints.DEPOSIT),
        _management(WorkOrderSubtype.WITHDRAWAL, "减款", Endpoints.WITHDRAWAL),
        _management(WorkOrderSubtype.TRANSFER, "转账", Endpoints.TRANSFER),
        _management(WorkOrderSubtype.ZEROING, "清零", Endpoints.ZEROING),
        # 账户绑定与改名由人工处理
        _management(WorkOrderSubtype.BIND_ACCOUNT, "账户绑定"),
        _management(WorkOrderSubtype.UPDATE_ACCOUNT_NAME, "账户改名"),
        _management(
            WorkOrderSubtype.BIND_EMAIL,
            "邮箱绑定",
            Endpoints.BIND_EMAIL_CREATE,
            Endpoints.BIND_EMAIL_UPDATE,
        ),
        _management(
            WorkOrderSubtype.BIND_PIXEL,
            "Pixel绑定",
            Endpoints.BIND_PIXEL_CREATE,
            Endpoints.BIND_PIXEL_UPDATE,
        ),
        _management(
            WorkOrderSubtype.UNBIND_ACCOUNT,
            "账户解绑",
            Endpoints.UNBIND_CREATE,
            Endpoints.UNBIND_UPDATE,
        ),
    )
}

PLATFORM_ALIASES = {
    "google": WorkOrderSubtype.GOOGLE_ACCOUNT,
    "facebook": WorkOrderSubtype.FACEBOOK_ACCOUNT,
    "fb": WorkOrderSubtype.FACEBOOK_ACCOUNT,
    "tiktok": WorkOrderSubtype.TIKTOK_ACCOUNT,
    "tt": WorkOrderSubtype.TIKTOK_ACCOUNT,
}


def get_handler(subtype: str) -> SubtypeHandler:
    """按子类型取能力描述"""
    try:
        return HANDLERS[WorkOrderSubtype(str(subtype).upper())]
    except (ValueError, KeyError):
        raise ValidationError(
            f"不支持的工单子类型: {subtype}", code=ErrorCode.INVALID_PARAMETER
        ) from None


def handler_for_platform(platform: str) -> SubtypeHandler:
    """按平台名取开户申请能力描述"""
    subtype = PLATFORM_ALIASES.get(str(platform).strip().lower())
    if subtype is None:
        raise ValidationError(f"不支持的平台: {platform}", code=ErrorCode.INVALID_PARAMETER)
    return HANDLERS[subtype]


def management_handler(subtype: str) -> SubtypeHandler:
    """账户管理类能力描述"""
    handler = get_handler(subtype)
    if handler.work_order_type != WorkOrderType.ACCOUNT_MANAGEMENT:
        raise ValidationError(
            f"不是账户管理类工单: {subtype}", code=ErrorCode.INVALID_PARAMETER
        )
    return handler
