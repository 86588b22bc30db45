"""
协作方交互相关数据模型
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class GatewayOutcome(str, Enum):
    """第三方调用结果"""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"


class GatewayResult(BaseModel):
    """统一的第三方调用结果"""

    outcome: GatewayOutcome = Field(..., description="调用结果")
    external_task_id: Optional[str] = Field(None, description="第三方任务 ID")
    raw_response: Any = Field(None, description="第三方原始响应（JSON 或原始文本）")
    error_message: Optional[str] = Field(None, description="错误信息")
    status_code: Optional[int] = Field(None, description="HTTP 状态码")

    @property
    def succeeded(self) -> bool:
        return self.outcome == GatewayOutcome.SUCCESS


class SessionUser(BaseModel):
    """当前登录用户"""

    user_id: str = Field(..., description="用户 ID")
    display_name: Optional[str] = Field(None, description="显示名称")
    role: str = Field("USER", description="角色")


class UploadedFile(BaseModel):
    """上传结果"""

    file_url: str = Field(..., alias="fileUrl")
    file_name: str = Field(..., alias="fileName")
    file_size: int = Field(..., alias="fileSize")
    file_type: str = Field(..., alias="fileType")
    oss_object_key: Optional[str] = Field(None, alias="ossObjectKey")

    model_config = {"populate_by_name": True}


class DictionaryItem(BaseModel):
    """字典项"""

    item_name: str = Field(..., alias="itemName")
    item_value: str = Field(..., alias="itemValue")

    model_config = {"populate_by_name": True}
