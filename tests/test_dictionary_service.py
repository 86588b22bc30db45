import httpx

from ad_work_order.config import WorkflowSettings
from ad_work_order.services.dictionary_service import (
    DEFAULT_ITEMS,
    PRODUCT_TYPE,
    TIMEZONE,
    HttpDictionaryService,
)


def _service(handler) -> HttpDictionaryService:
    settings = WorkflowSettings(DICTIONARY_URL="https://dict.test/items")
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpDictionaryService(settings, client=client)


def test_remote_items_are_used_and_cached():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(dict(request.url.params))
        return httpx.Response(
            200, json={"code": "0", "data": [{"itemName": "UTC", "itemValue": "UTC"}]}
        )

    service = _service(handler)

    first = service.get_items(*TIMEZONE)
    second = service.get_items(*TIMEZONE)

    assert [item.item_value for item in first] == ["UTC"]
    assert first == second
    assert calls == [{"category": "MEDIA_ACCOUNT", "key": "TIMEZONE"}]


def test_http_error_falls_back_to_defaults():
    service = _service(lambda request: httpx.Response(503, text="unavailable"))

    assert service.get_items(*PRODUCT_TYPE) == DEFAULT_ITEMS[PRODUCT_TYPE]


def test_network_error_falls_back_to_defaults():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    assert _service(handler).get_items(*TIMEZONE) == DEFAULT_ITEMS[TIMEZONE]


def test_unparseable_or_empty_response_falls_back_to_defaults():
    garbage = _service(lambda request: httpx.Response(200, text="<html/>"))
    empty = _service(lambda request: httpx.Response(200, json={"data": []}))

    assert garbage.get_items(*TIMEZONE) == DEFAULT_ITEMS[TIMEZONE]
    assert empty.get_items(*TIMEZONE) == DEFAULT_ITEMS[TIMEZONE]


def test_without_url_defaults_are_returned():
    service = HttpDictionaryService(WorkflowSettings())

    assert service.get_items(*PRODUCT_TYPE) == DEFAULT_ITEMS[PRODUCT_TYPE]
