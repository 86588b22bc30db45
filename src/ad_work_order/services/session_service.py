"""
会话服务

认证由网关/上游完成，此处只从请求头读取当前用户
"""

import hmac
from typing import Optional

from fastapi import Request

from ..config import AppSettings
from ..exceptions import AuthorizationError
from ..models.operation import SessionUser
from ..utils.logger import get_logger

logger = get_logger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_NAME_HEADER = "X-User-Name"
USER_ROLE_HEADER = "X-User-Role"
API_KEY_HEADER = "X-API-Key"
CALLBACK_TOKEN_HEADER = "X-Callback-Token"


class HeaderSessionProvider:
    """从请求头解析会话"""

    def __init__(self, settings: AppSettings):
        self.settings = settings

    def get_current_session(self, request: Request) -> Optional[SessionUser]:
        """
        获取当前会话

        Args:
            request: FastAPI 请求

        Returns:
            SessionUser，未登录或 API Key 不匹配时返回 None
        """
        if self.settings.api_key and request.headers.get(API_KEY_HEADER) != self.settings.api_key:
            logger.warning(f"API Key 校验失败: path={request.url.path}")
            return None

        user_id = request.headers.get(USER_ID_HEADER)
        if not user_id:
            return None

        return SessionUser(
            user_id=user_id,
            display_name=request.headers.get(USER_NAME_HEADER) or user_id,
            role=(request.headers.get(USER_ROLE_HEADER) or "USER").upper(),
        )


def require_session(session: Optional[SessionUser]) -> SessionUser:
    """会话为空时抛出未授权"""
    if session is None:
        raise AuthorizationError()
    return session


class CallbackVerifier:
    """第三方回调鉴权：X-Callback-Token 必须与回调密钥一致，未配置密钥时一律拒绝"""

    def __init__(self, secret: Optional[str]):
        self.secret = secret or ""

    def is_authorized(self, request: Request) -> bool:
        if not self.secret:
            logger.warning(f"未配置回调密钥，拒绝回调: path={request.url.path}")
            return False
        token = request.headers.get(CALLBACK_TOKEN_HEADER) or ""
        if not hmac.compare_digest(token.encode("utf-8"), self.secret.encode("utf-8")):
            logger.warning(f"回调令牌校验失败: path={request.url.path}")
            return False
        return True


def require_callback(authorized: bool) -> None:
    """回调未通过令牌校验时抛出未授权"""
    if not authorized:
        raise AuthorizationError("回调令牌无效")
