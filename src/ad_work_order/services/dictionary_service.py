"""
字典服务

通过 HTTP 查询字典项（产品类型、时区等），失败时回退到内置默认值
"""

from typing import Dict, List, Optional, Tuple

import httpx

from ..config import WorkflowSettings
from ..models.operation import DictionaryItem
from ..utils.logger import get_logger

logger = get_logger(__name__)

# 内置最小默认集合，key 为 (category, key)
DEFAULT_ITEMS: Dict[Tuple[str, str], List[DictionaryItem]] = {
    ("MEDIA_ACCOUNT", "PRODUCT_TYPE"): [
        DictionaryItem(item_name="未指定", item_value="0"),
        DictionaryItem(item_name="游戏", item_value="1"),
        DictionaryItem(item_name="应用", item_value="2"),
        DictionaryItem(item_name="电商", item_value="3"),
        DictionaryItem(item_name="品牌", item_value="4"),
        DictionaryItem(item_name="其他", item_value="5"),
    ],
    ("MEDIA_ACCOUNT", "TIMEZONE"): [
        DictionaryItem(item_name=tz, item_value=tz)
        for tz in (
            "UTC",
            "Etc/GMT",
            "Asia/Shanghai",
            "Asia/Hong_Kong",
            "Asia/Singapore",
            "Asia/Tokyo",
            "Asia/Seoul",
            "Asia/Kolkata",
            "Asia/Dubai",
            "Asia/Jakarta",
            "Asia/Bangkok",
            "Europe/London",
            "Europe/Paris",
            "Europe/Berlin",
            "Europe/Moscow",
            "America/New_York",
            "America/Chicago",
            "America/Denver",
            "America/Los_Angeles",
            "America/Sao_Paulo",
            "Australia/Sydney",
        )
    ],
}

PRODUCT_TYPE = ("MEDIA_ACCOUNT", "PRODUCT_TYPE")
TIMEZONE = ("MEDIA_ACCOUNT", "TIMEZONE")


class StaticDictionaryService:
    """内置字典（离线/测试使用）"""

    def __init__(self, items: Optional[Dict[Tuple[str, str], List[DictionaryItem]]] = None):
        self.items = items if items is not None else DEFAULT_ITEMS

    def get_items(self, category: str, key: str) -> List[DictionaryItem]:
        return list(self.items.get((category, key), []))


class HttpDictionaryService:
    """远程字典服务（同步客户端，编排器在工作线程中执行校验）"""

    def __init__(
        self,
        settings: WorkflowSettings,
        client: Optional[httpx.Client] = None,
    ):
        """
        初始化字典服务

        Args:
            settings: 流程配置（字典服务地址与超时）
            client: 可注入的 httpx 同步客户端
        """
        self.settings = settings
        self.client = client or httpx.Client(timeout=settings.dictionary_timeout)
        self.fallback = StaticDictionaryService()
        self._cache: Dict[Tuple[str, str], List[DictionaryItem]] = {}

    def get_items(self, category: str, key: str) -> List[DictionaryItem]:
        """
        查询字典项

        Args:
            category: 字典分类
            key: 字典键

        Returns:
            字典项列表，远程失败或为空时返回内置默认值
        """
        cache_key = (category, key)
        if cache_key in self._cache:
            return self._cache[cache_key]

        if not self.settings.dictionary_url:
            return self.fallback.get_items(category, key)

        try:
            response = self.client.get(
                self.settings.dictionary_url,
                params={"category": category, "key": key},
            )
            response.raise_for_status()
            body = response.json()
            raw_items = body.get("data") if isinstance(body, dict) else body
            items = [DictionaryItem.model_validate(item) for item in raw_items or []]
        except httpx.HTTPStatusError as e:
            logger.warning(f"字典服务返回错误 {category}/{key}: HTTP {e.response.status_code}，使用默认值")
            return self.fallback.get_items(category, key)
        except httpx.RequestError as e:
            logger.warning(f"字典服务请求失败 {category}/{key}: {e}，使用默认值")
            return self.fallback.get_items(category, key)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"字典服务响应无法解析 {category}/{key}: {e}，使用默认值")
            return self.fallback.get_items(category, key)

        if not items:
            return self.fallback.get_items(category, key)

        self._cache[cache_key] = items
        return items
