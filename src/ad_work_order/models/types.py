"""
通用字段类型

金额使用字符串 + Decimal 校验，推广链接自动补全协议头
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    HttpUrl,
    TypeAdapter,
    ValidationError as PydanticValidationError,
)
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

AMOUNT_PATTERN = re.compile(r"^\d+(\.\d{1,2})?$")

_http_url = TypeAdapter(HttpUrl)


class CamelModel(BaseModel):
    """以驼峰字段名收发的载荷基类"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def _coerce_amount(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("金额格式不正确，最多支持两位小数")
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, float):
        # 浮点数按其十进制表示校验，不做舍入
        return repr(value)
    return value


def _check_amount(value: str) -> str:
    if not AMOUNT_PATTERN.match(value):
        raise ValueError("金额格式不正确，最多支持两位小数")
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError("金额格式不正确，最多支持两位小数")
    if amount <= 0:
        raise ValueError("金额必须大于0")
    return value


Amount = Annotated[str, BeforeValidator(_coerce_amount), AfterValidator(_check_amount)]


def _prefix_scheme(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        if value and not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", value):
            value = f"https://{value}"
    return value


def _check_url(value: str) -> str:
    if not value:
        raise ValueError("推广链接不能为空")
    try:
        _http_url.validate_python(value)
    except PydanticValidationError:
        raise ValueError("请输入有效的URL")
    return value


PromotionLink = Annotated[str, BeforeValidator(_prefix_scheme), AfterValidator(_check_url)]
