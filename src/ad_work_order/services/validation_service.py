"""
请求校验服务

按子类型选择 schema 校验入参，失败时列出全部字段问题
"""

import copy
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..config import WorkflowSettings
from ..exceptions import FieldIssue, ValidationError
from ..models.account_application import (
    BaseAccountApplication,
    FacebookAccountApplication,
    GoogleAccountApplication,
    IDENTITY_FIELDS,
    PERMISSIVE_DEFAULTS,
    TikTokAccountApplication,
)
from ..models.enums import WorkOrderSubtype
from ..models.funding import (
    BindAccountRequest,
    BindEmailRequest,
    BindPixelRequest,
    DepositRequest,
    TransferRequest,
    UnbindAccountRequest,
    UpdateAccountNameRequest,
    WithdrawalRequest,
    ZeroingRequest,
)
from ..utils.logger import get_logger
from .dictionary_service import PRODUCT_TYPE, TIMEZONE, StaticDictionaryService

logger = get_logger(__name__)

SCHEMAS: Dict[str, Type[BaseModel]] = {
    WorkOrderSubtype.GOOGLE_ACCOUNT: GoogleAccountApplication,
    WorkOrderSubtype.FACEBOOK_ACCOUNT: FacebookAccountApplication,
    WorkOrderSubtype.TIKTOK_ACCOUNT: TikTokAccountApplication,
    WorkOrderSubtype.DEPOSIT: DepositRequest,
    WorkOrderSubtype.WITHDRAWAL: WithdrawalRequest,
    WorkOrderSubtype.TRANSFER: TransferRequest,
    WorkOrderSubtype.ZEROING: ZeroingRequest,
    WorkOrderSubtype.BIND_ACCOUNT: BindAccountRequest,
    WorkOrderSubtype.BIND_EMAIL: BindEmailRequest,
    WorkOrderSubtype.BIND_PIXEL: BindPixelRequest,
    WorkOrderSubtype.UNBIND_ACCOUNT: UnbindAccountRequest,
    WorkOrderSubtype.UPDATE_ACCOUNT_NAME: UpdateAccountNameRequest,
}

TITLES = {
    WorkOrderSubtype.GOOGLE_ACCOUNT: "Google账户申请数据验证失败",
    WorkOrderSubtype.FACEBOOK_ACCOUNT: "Facebook账户申请数据验证失败",
    WorkOrderSubtype.TIKTOK_ACCOUNT: "TikTok账户申请数据验证失败",
    WorkOrderSubtype.DEPOSIT: "充值申请数据验证失败",
    WorkOrderSubtype.WITHDRAWAL: "减款申请数据验证失败",
    WorkOrderSubtype.TRANSFER: "转账申请数据验证失败",
    WorkOrderSubtype.ZEROING: "清零申请数据验证失败",
    WorkOrderSubtype.BIND_ACCOUNT: "账户绑定申请数据验证失败",
    WorkOrderSubtype.BIND_EMAIL: "邮箱绑定申请数据验证失败",
    WorkOrderSubtype.BIND_PIXEL: "Pixel绑定申请数据验证失败",
    WorkOrderSubtype.UNBIND_ACCOUNT: "账户解绑申请数据验证失败",
    WorkOrderSubtype.UPDATE_ACCOUNT_NAME: "账户改名申请数据验证失败",
}

ROOT_PATH = "payload"


def _translate(error: Dict[str, Any]) -> str:
    """pydantic 错误转中文提示"""
    kind = error.get("type", "")
    ctx = error.get("ctx") or {}
    msg = error.get("msg", "")

    if kind == "missing":
        return "必填字段不能为空"
    if kind == "string_too_short":
        if ctx.get("min_length", 1) <= 1:
            return "不能为空"
        return f"长度不能少于{ctx['min_length']}个字符"
    if kind == "string_too_long":
        return f"长度不能超过{ctx.get('max_length')}个字符"
    if kind == "too_short":
        return "至少需要填写一项"
    if kind == "greater_than":
        return f"必须大于{ctx.get('gt')}"
    if kind == "greater_than_equal":
        return f"不能小于{ctx.get('ge')}"
    if kind == "less_than_equal":
        return f"不能大于{ctx.get('le')}"
    if kind in ("int_parsing", "int_type", "int_from_float"):
        return "必须为整数"
    if kind in ("string_type",):
        return "必须为字符串"
    if kind in ("bool_parsing", "bool_type"):
        return "必须为布尔值"
    if kind in ("list_type",):
        return "必须为列表"
    if kind in ("model_type", "dict_type", "model_attributes_type"):
        return "格式不正确"
    if "email address" in msg:
        return "邮箱格式不正确"
    if kind == "value_error" and msg.startswith("Value error, "):
        return msg[len("Value error, "):]
    return msg


def issues_from_pydantic(exc: PydanticValidationError) -> List[FieldIssue]:
    """将 pydantic 异常展开为字段问题列表，路径以点号连接"""
    issues = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ())) or ROOT_PATH
        issues.append(FieldIssue(path=path, message=_translate(error)))
    return issues


def _root(path: str) -> str:
    return path.split(".", 1)[0]


def _index(path: str) -> Optional[int]:
    parts = path.split(".")
    if len(parts) > 1 and parts[1].isdigit():
        return int(parts[1])
    return None


class ValidationService:
    """校验服务"""

    def __init__(self, settings: WorkflowSettings, dictionary=None):
        """
        Args:
            settings: 流程配置（宽松模式、推广链接长度上限）
            dictionary: 字典服务，默认使用内置字典
        """
        self.settings = settings
        self.dictionary = dictionary or StaticDictionaryService()

    def validate(
        self,
        subtype: str,
        payload: Any,
        permissive: Optional[bool] = None,
    ) -> BaseModel:
        """
        校验入参

        Args:
            subtype: 工单子类型
            payload: 未类型化的入参
            permissive: 是否宽松模式，None 时取配置；仅对开户申请生效

        Returns:
            规范化后的 pydantic 模型

        Raises:
            ValidationError: 列出全部字段问题
        """
        schema = SCHEMAS.get(subtype)
        if schema is None:
            raise ValidationError(f"不支持的工单子类型: {subtype}")

        if isinstance(payload, BaseModel):
            payload = payload.model_dump(by_alias=True)
        if not isinstance(payload, Mapping):
            raise ValidationError(
                "请求数据格式不正确", [FieldIssue(path=ROOT_PATH, message="必须为对象")]
            )
        payload = dict(payload)

        title = TITLES.get(subtype, "数据验证失败")
        model, issues = self._run(schema, payload)
        if not issues:
            return model

        is_application = issubclass(schema, BaseAccountApplication)
        if permissive is None:
            permissive = self.settings.validation_permissive_mode
        if not (permissive and is_application):
            raise ValidationError.from_issues(issues, title)

        if any(_root(issue.path) in IDENTITY_FIELDS for issue in issues):
            raise ValidationError.from_issues(issues, title)

        degraded = self._degrade(payload, issues)
        model, remaining = self._run(schema, degraded)
        if remaining:
            raise ValidationError.from_issues(remaining, title)

        logger.warning(
            f"宽松模式校验通过，已回退字段: {sorted({_root(issue.path) for issue in issues})}"
        )
        return model

    def _run(
        self, schema: Type[BaseModel], payload: Dict[str, Any]
    ) -> Tuple[Optional[BaseModel], List[FieldIssue]]:
        """执行 schema 校验与字典校验，返回 (模型, 问题列表)"""
        model = None
        issues: List[FieldIssue] = []
        try:
            model = schema.model_validate(
                payload,
                context={"links_max_length": self.settings.promotion_links_max_length},
            )
        except PydanticValidationError as e:
            issues.extend(issues_from_pydantic(e))

        if issubclass(schema, BaseAccountApplication):
            seen = {issue.path for issue in issues}
            for issue in self._dictionary_issues(payload):
                if issue.path not in seen:
                    issues.append(issue)

        return (None if issues else model), issues

    def _dictionary_issues(self, payload: Dict[str, Any]) -> List[FieldIssue]:
        """字典项校验（产品类型、时区）"""
        issues = []

        timezone = payload.get("timezone")
        if isinstance(timezone, str) and timezone.strip():
            allowed = {item.item_value for item in self.dictionary.get_items(*TIMEZONE)}
            if allowed and timezone.strip() not in allowed:
                issues.append(FieldIssue(path="timezone", message=f"不支持的时区: {timezone}"))

        product_type = payload.get("productType")
        if product_type not in (None, "", 0, "0"):
            allowed = {item.item_value for item in self.dictionary.get_items(*PRODUCT_TYPE)}
            if allowed and str(product_type) not in allowed:
                issues.append(
                    FieldIssue(path="productType", message=f"不支持的产品类型: {product_type}")
                )

        return issues

    def _degrade(self, payload: Dict[str, Any], issues: List[FieldIssue]) -> Dict[str, Any]:
        """宽松模式：可选字段回退默认值，无效授权与链接剔除"""
        degraded = copy.deepcopy(payload)
        bad_auths = set()
        bad_links = set()

        for issue in issues:
            root = _root(issue.path)
            if root in PERMISSIVE_DEFAULTS:
                degraded[root] = PERMISSIVE_DEFAULTS[root]
            elif root == "auths":
                index = _index(issue.path)
                if index is not None:
                    bad_auths.add(index)
            elif root == "promotionLinks":
                index = _index(issue.path)
                if index is not None:
                    bad_links.add(index)

        if bad_auths and isinstance(degraded.get("auths"), list):
            degraded["auths"] = [
                entry for i, entry in enumerate(degraded["auths"]) if i not in bad_auths
            ]
        if bad_links and isinstance(degraded.get("promotionLinks"), list):
            degraded["promotionLinks"] = [
                link for i, link in enumerate(degraded["promotionLinks"]) if i not in bad_links
            ]
        return degraded
