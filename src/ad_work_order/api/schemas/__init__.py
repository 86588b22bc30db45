"""
API Schemas 模块
"""

from .request import ApproveRequest, RejectRequest, ReturnRequest, BindTaskIdRequest, CallbackRequest
from .response import Envelope, HealthCheckResponse, ServiceStatus

__all__ = [
    "ApproveRequest",
    "RejectRequest",
    "ReturnRequest",
    "BindTaskIdRequest",
    "CallbackRequest",
    "Envelope",
    "HealthCheckResponse",
    "ServiceStatus",
]
