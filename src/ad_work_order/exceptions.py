"""
业务异常定义

所有业务异常携带字符串错误码，由门面层统一转换为响应信封
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class ErrorCode:
    """错误码"""

    SYSTEM_ERROR = "SYS1000"
    DATABASE_ERROR = "SYS1002"
    VALIDATION_ERROR = "VAL2000"
    INVALID_PARAMETER = "VAL2001"
    RESOURCE_NOT_FOUND = "BIZ3001"
    STATUS_ERROR = "BIZ3003"
    THIRD_PARTY_ERROR = "TPE4000"
    API_CALL_FAILED = "TPE4001"
    INVALID_RESPONSE = "TPE4002"
    UNAUTHORIZED = "AUTH5001"
    PERMISSION_DENIED = "AUTH5004"


@dataclass
class FieldIssue:
    """单个字段的校验问题"""

    path: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}


class BusinessError(Exception):
    """业务异常基类"""

    code = ErrorCode.SYSTEM_ERROR
    http_status = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        data = {"success": False, "code": self.code, "message": self.message}
        if self.details is not None:
            data["data"] = self.details
        return data


class ValidationError(BusinessError):
    """字段级校验失败"""

    code = ErrorCode.VALIDATION_ERROR
    http_status = 400

    def __init__(
        self,
        message: str,
        issues: Optional[List[FieldIssue]] = None,
        code: Optional[str] = None,
    ):
        self.issues = issues or []
        details = {"errors": [issue.to_dict() for issue in self.issues]} if self.issues else None
        super().__init__(message, code=code, details=details)

    @classmethod
    def from_issues(cls, issues: List[FieldIssue], title: str = "数据验证失败") -> "ValidationError":
        """以全部字段问题构造异常，消息中列出每个字段"""
        summary = "; ".join(f"{issue.path}: {issue.message}" for issue in issues)
        return cls(f"{title}: {summary}" if summary else title, issues)


class AuthorizationError(BusinessError):
    """未登录或无权限"""

    code = ErrorCode.UNAUTHORIZED
    http_status = 401

    def __init__(self, message: str = "未授权，请先登录", code: Optional[str] = None):
        super().__init__(message, code=code)
        if self.code == ErrorCode.PERMISSION_DENIED:
            self.http_status = 403

    @classmethod
    def forbidden(cls, message: str = "无权执行此操作") -> "AuthorizationError":
        return cls(message, code=ErrorCode.PERMISSION_DENIED)


class ResourceNotFoundError(BusinessError):
    """资源不存在或已删除"""

    code = ErrorCode.RESOURCE_NOT_FOUND
    http_status = 404


class StatusTransitionError(BusinessError):
    """当前状态不允许该操作"""

    code = ErrorCode.STATUS_ERROR
    http_status = 409

    def __init__(self, message: str, current_status: Optional[str] = None, target: Optional[str] = None):
        details = {"currentStatus": current_status} if current_status else None
        if details is not None and target:
            details["target"] = target
        super().__init__(message, details=details)


class ThirdPartyError(BusinessError):
    """第三方接口调用失败"""

    code = ErrorCode.THIRD_PARTY_ERROR
    http_status = 502


class TransactionError(BusinessError):
    """持久化失败，整个操作已回滚"""

    code = ErrorCode.DATABASE_ERROR
    http_status = 500

    def __init__(self, message: str = "系统繁忙，请稍后重试"):
        super().__init__(message)


SUCCESS_CODE = "0"

HTTP_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_PARAMETER: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.STATUS_ERROR: 409,
    ErrorCode.THIRD_PARTY_ERROR: 502,
    ErrorCode.API_CALL_FAILED: 502,
    ErrorCode.INVALID_RESPONSE: 502,
}


def http_status_for(code: str) -> int:
    """响应信封错误码对应的 HTTP 状态码"""
    if code == SUCCESS_CODE:
        return 200
    return HTTP_STATUS_BY_CODE.get(code, 500)
