"""
API 请求模型

工单提交/修改的请求体按子类型在校验服务中解析，此处只定义审核与对账接口的请求体
"""

from typing import Any, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class ApproveRequest(BaseModel):
    """审批通过请求"""

    remarks: Optional[str] = Field(None, description="审批备注", max_length=500)


class RejectRequest(BaseModel):
    """审批拒绝请求"""

    reason: Optional[str] = Field(None, description="拒绝原因", max_length=500)

    model_config = ConfigDict(
        json_schema_extra={"example": {"reason": "推广链接无法访问"}}
    )


class ReturnRequest(BaseModel):
    """退回修改请求"""

    reason: Optional[str] = Field(None, description="退回原因", max_length=500)


class BindTaskIdRequest(BaseModel):
    """绑定第三方任务 ID 请求"""

    task_id: Optional[str] = Field(None, alias="taskId", description="第三方任务 ID")

    model_config = ConfigDict(populate_by_name=True)


class CallbackRequest(BaseModel):
    """第三方处理结果回调"""

    task_id: str = Field(..., alias="taskId", description="第三方任务 ID")
    status: Union[str, int] = Field(..., description="处理结果（SUCCESS / FAILED / 0 / 1）")
    message: Optional[str] = Field(None, description="结果说明")
    data: Any = Field(None, description="回调原文")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {"taskId": "EXT000001", "status": "SUCCESS", "message": "开户成功"}
        },
    )
