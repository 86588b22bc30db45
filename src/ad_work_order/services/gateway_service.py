"""
第三方广告平台网关

负责出站调用和响应归一化，兼容多种响应格式
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..config import OpenAPISettings
from ..exceptions import ErrorCode, ThirdPartyError
from ..models.operation import GatewayOutcome, GatewayResult
from ..utils.logger import get_logger

logger = get_logger(__name__)

TIMEOUT_MESSAGE = "第三方接口请求超时"
DEFAULT_FAILURE_MESSAGE = "第三方接口调用失败"


class Endpoints:
    """第三方接口路径"""

    GOOGLE_CREATE = "/openApi/v1/mediaAccountApplication/google/create"
    GOOGLE_UPDATE = "/openApi/v1/mediaAccountApplication/google/update"
    FACEBOOK_CREATE = "/openApi/v1/mediaAccountApplication/facebook/create"
    FACEBOOK_UPDATE = "/openApi/v1/mediaAccountApplication/facebook/update"
    TIKTOK_CREATE = "/openApi/v1/mediaAccountApplication/tt/create"
    TIKTOK_UPDATE = "/openApi/v1/mediaAccountApplication/tt/update"
    DEPOSIT = "/openApi/v1/mediaAccount/rechargeApplication/create"
    WITHDRAWAL = "/openApi/v1/mediaAccount/deductApplication/create"
    TRANSFER = "/openApi/v1/mediaAccount/transferApplication/create"
    ZEROING = "/openApi/v1/mediaAccount/clearApplication/create"
    BIND_EMAIL_CREATE = "/openApi/v1/mediaAccount/bindEmailApplication/create"
    BIND_EMAIL_UPDATE = "/openApi/v1/mediaAccount/bindEmailApplication/update"
    BIND_PIXEL_CREATE = "/openApi/v1/bindPixelApplication/create"
    BIND_PIXEL_UPDATE = "/openApi/v1/bindPixelApplication/update"
    UNBIND_CREATE = "/openApi/v1/mediaAccount/unBindIdApplication/create"
    UNBIND_UPDATE = "/openApi/v1/mediaAccount/unBindIdApplication/update"


def format_sync_error(result: GatewayResult) -> str:
    """原始数据 sync_error 的存储格式：[调用结果] 错误信息"""
    return f"[{result.outcome.value}] {result.error_message or DEFAULT_FAILURE_MESSAGE}"


def third_party_error(sync_error: Optional[str]) -> ThirdPartyError:
    """
    由原始数据的 sync_error 还原第三方错误

    响应无法解析 → TPE4002，其余失败 → TPE4001
    """
    message = sync_error or DEFAULT_FAILURE_MESSAGE
    code = ErrorCode.API_CALL_FAILED
    for outcome in GatewayOutcome:
        tag = f"[{outcome.value}] "
        if message.startswith(tag):
            message = message[len(tag):]
            if outcome == GatewayOutcome.MALFORMED_RESPONSE:
                code = ErrorCode.INVALID_RESPONSE
            break
    return ThirdPartyError(message, code=code)


def _is_success(body: Dict[str, Any]) -> bool:
    """code == "0" 或 success 为 True 任一即视为成功"""
    code = body.get("code")
    if code is not None and str(code) == "0":
        return True
    return body.get("success") is True


def _extract_task_id(body: Dict[str, Any]) -> Optional[str]:
    data = body.get("data")
    if isinstance(data, dict):
        task_id = data.get("taskId")
        if isinstance(task_id, bool):
            return None
        if isinstance(task_id, (int, str)) and str(task_id).strip():
            return str(task_id).strip()
    return None


def normalize_gateway_response(status_code: Optional[int], text: str) -> GatewayResult:
    """
    将第三方响应归一化为统一结果

    规则:
    - 非 JSON 或非对象 → MALFORMED_RESPONSE，保留原始文本
    - code == "0" 或 success is True → SUCCESS，taskId 取自 data.taskId
    - 其他 → FAILED，错误信息取 message/msg

    Args:
        status_code: HTTP 状态码
        text: 响应原文

    Returns:
        GatewayResult
    """
    try:
        body = json.loads(text)
    except (TypeError, ValueError):
        return GatewayResult(
            outcome=GatewayOutcome.MALFORMED_RESPONSE,
            raw_response=text,
            error_message=f"第三方接口返回了无法解析的响应 (HTTP {status_code})",
            status_code=status_code,
        )

    if not isinstance(body, dict):
        return GatewayResult(
            outcome=GatewayOutcome.MALFORMED_RESPONSE,
            raw_response=text,
            error_message="第三方接口响应格式不正确",
            status_code=status_code,
        )

    message = body.get("message") or body.get("msg")
    if _is_success(body):
        return GatewayResult(
            outcome=GatewayOutcome.SUCCESS,
            external_task_id=_extract_task_id(body),
            raw_response=body,
            status_code=status_code,
        )

    if not message:
        message = f"第三方接口调用失败 (HTTP {status_code}, code={body.get('code')})"
    return GatewayResult(
        outcome=GatewayOutcome.FAILED,
        raw_response=body,
        error_message=str(message),
        status_code=status_code,
    )


class HttpGatewayAdapter:
    """基于 httpx 的第三方网关"""

    def __init__(
        self,
        settings: OpenAPISettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        初始化网关

        Args:
            settings: 第三方接口配置
            transport: 可注入的传输层（测试使用 httpx.MockTransport）
        """
        self.settings = settings
        self.transport = transport
        logger.info(f"第三方网关初始化: base_url={settings.open_api_url}")

    async def call(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        trace_id: str,
    ) -> GatewayResult:
        """
        调用第三方接口

        超时与网络错误不重试，直接返回 FAILED

        Args:
            endpoint: 接口路径
            payload: 请求体
            trace_id: 追踪 ID，同时写入请求头与请求体

        Returns:
            GatewayResult
        """
        url = f"{self.settings.open_api_url.rstrip('/')}{endpoint}"
        body = {**payload, "traceId": trace_id}
        headers = {
            "Content-Type": "application/json",
            "Access-Token": self.settings.access_token,
            "Trace-Id": trace_id,
        }

        logger.info(f"[{trace_id}] 调用第三方接口: {endpoint}")
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.open_api_timeout, transport=self.transport
            ) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"[{trace_id}] 第三方接口超时: {endpoint} ({e})")
            return GatewayResult(
                outcome=GatewayOutcome.FAILED,
                raw_response=None,
                error_message=TIMEOUT_MESSAGE,
            )
        except httpx.RequestError as e:
            logger.error(f"[{trace_id}] 第三方接口请求失败: {endpoint} ({e})")
            return GatewayResult(
                outcome=GatewayOutcome.FAILED,
                raw_response=None,
                error_message=f"第三方接口请求失败: {e}",
            )

        result = normalize_gateway_response(response.status_code, response.text)
        if result.succeeded:
            logger.info(f"[{trace_id}] 第三方接口成功: taskId={result.external_task_id}")
        else:
            logger.warning(
                f"[{trace_id}] 第三方接口失败: outcome={result.outcome.value}, "
                f"error={result.error_message}"
            )
        return result


class MockGatewayAdapter:
    """
    内存网关（测试/本地联调）

    按预设结果返回并记录每次调用
    """

    def __init__(
        self,
        outcome: GatewayOutcome = GatewayOutcome.SUCCESS,
        external_task_id: Optional[str] = None,
        error_message: Optional[str] = None,
        raw_response: Any = None,
    ):
        self.outcome = outcome
        self.external_task_id = external_task_id
        self.error_message = error_message
        self.raw_response = raw_response
        self.calls: List[Tuple[str, Dict[str, Any], str]] = []
        self._sequence = 0

    async def call(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        trace_id: str,
    ) -> GatewayResult:
        self.calls.append((endpoint, payload, trace_id))
        self._sequence += 1

        if self.outcome == GatewayOutcome.SUCCESS:
            task_id = self.external_task_id or f"EXT{self._sequence:06d}"
            return GatewayResult(
                outcome=GatewayOutcome.SUCCESS,
                external_task_id=task_id,
                raw_response=self.raw_response
                or {"code": "0", "message": "success", "data": {"taskId": task_id}},
            )
        if self.outcome == GatewayOutcome.MALFORMED_RESPONSE:
            return GatewayResult(
                outcome=GatewayOutcome.MALFORMED_RESPONSE,
                raw_response=self.raw_response or "<html>502 Bad Gateway</html>",
                error_message=self.error_message or "第三方接口返回了无法解析的响应",
            )
        return GatewayResult(
            outcome=GatewayOutcome.FAILED,
            raw_response=self.raw_response
            or {"code": "1", "message": self.error_message or "第三方处理失败"},
            error_message=self.error_message or "第三方处理失败",
        )


def build_gateway(settings: OpenAPISettings):
    """按配置创建网关"""
    if settings.gateway_mode == "mock":
        return MockGatewayAdapter()
    return HttpGatewayAdapter(settings)
