"""
API 响应模型
"""

from typing import Any, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class Envelope(BaseModel):
    """统一响应信封"""

    success: bool = Field(..., description="是否成功")
    code: str = Field(..., description="错误码（成功为 0）")
    message: Optional[str] = Field(None, description="提示信息")
    data: Any = Field(None, description="响应数据")


class ServiceStatus(BaseModel):
    """服务状态"""

    database: str = Field(..., description="数据库状态")
    gateway: str = Field(..., description="第三方网关模式")
    oss: str = Field(..., description="OSS 配置状态")


class HealthCheckResponse(BaseModel):
    """健康检查响应"""

    status: str = Field("healthy", description="健康状态")
    version: str = Field(..., description="版本号")
    timestamp: datetime = Field(..., description="时间戳")
    services: ServiceStatus = Field(..., description="各服务状态")
