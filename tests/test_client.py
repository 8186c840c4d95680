import asyncio

import httpx
import pytest

from conftest import build_short_term_body, slot_values, GRID_TEXT, MEDIUM_LAND_TEXT
from nalssi.domains.weather.client import (
    KmaClient, GRID_PATH, SHORT_TERM_PATH, MEDIUM_LAND_PATH, MEDIUM_TEMP_PATH,
)
from nalssi.domains.weather.exceptions import ProviderError, ParseError, WeatherErrorCode

BASE_URL = "https://kma.test/api"


def make_client(handler, max_retries=3):
    return KmaClient(
        base_url=BASE_URL,
        auth_key="test-key",
        max_retries=max_retries,
        retry_delay=0,
        transport=httpx.MockTransport(handler),
    )


class Recorder:
    """요청을 기록하고 준비된 응답을 순서대로 돌려줌"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


async def test_short_term_request_carries_auth_key_and_grid():
    body = build_short_term_body([("20250702", "1200", slot_values())])
    recorder = Recorder(httpx.Response(200, json=body))
    client = make_client(recorder)

    result = await client.get_short_term(60, 127, "20250702", "0500")

    assert result == body
    request = recorder.requests[0]
    assert request.url.path == "/api" + SHORT_TERM_PATH
    params = request.url.params
    assert params["authKey"] == "test-key"
    assert params["dataType"] == "JSON"
    assert params["numOfRows"] == "1000"
    assert params["base_date"] == "20250702"
    assert params["base_time"] == "0500"
    assert (params["nx"], params["ny"]) == ("60", "127")


async def test_medium_term_requests_use_reg_parameter():
    recorder = Recorder(httpx.Response(200, text=MEDIUM_LAND_TEXT))
    client = make_client(recorder)

    text = await client.get_medium_land("11B00000")
    await client.get_medium_temp("11B10101")

    assert text == MEDIUM_LAND_TEXT
    assert recorder.requests[0].url.path.endswith(MEDIUM_LAND_PATH)
    assert recorder.requests[0].url.params["reg"] == "11B00000"
    assert recorder.requests[1].url.path.endswith(MEDIUM_TEMP_PATH)
    assert recorder.requests[1].url.params["reg"] == "11B10101"


async def test_convert_grid_parses_text_response():
    recorder = Recorder(httpx.Response(200, text=GRID_TEXT))
    client = make_client(recorder)

    grid = await client.convert_grid(37.5665, 126.978)

    assert (grid.grid_x, grid.grid_y) == (60, 127)
    request = recorder.requests[0]
    assert request.url.path.endswith(GRID_PATH)
    assert request.url.params["lat"] == "37.5665"
    assert request.url.params["lon"] == "126.978"


async def test_server_error_is_retried_until_success():
    body = build_short_term_body([("20250702", "1200", slot_values())])
    recorder = Recorder(
        httpx.Response(503),
        httpx.Response(502),
        httpx.Response(200, json=body),
    )
    client = make_client(recorder)

    result = await client.get_short_term(60, 127, "20250702", "0500")

    assert result == body
    assert len(recorder.requests) == 3


async def test_client_error_is_not_retried():
    recorder = Recorder(httpx.Response(400))
    client = make_client(recorder)

    with pytest.raises(ProviderError) as exc_info:
        await client.get_medium_land("11B00000")

    assert len(recorder.requests) == 1
    error = exc_info.value
    assert error.kind == ProviderError.STATUS
    assert error.status_code == 400
    assert error.retryable is False
    assert error.error_code == WeatherErrorCode.MEDIUM_TERM_FORECAST_ERROR


async def test_transport_error_gives_up_after_retries():
    recorder = Recorder(httpx.ConnectError("connection reset"))
    client = make_client(recorder, max_retries=2)

    with pytest.raises(ProviderError) as exc_info:
        await client.get_short_term(60, 127, "20250702", "0500")

    # 최초 1회 + 재시도 2회
    assert len(recorder.requests) == 3
    assert exc_info.value.kind == ProviderError.TRANSPORT
    assert exc_info.value.error_code == WeatherErrorCode.SHORT_TERM_FORECAST_ERROR


async def test_timeout_maps_to_timeout_error_code():
    recorder = Recorder(httpx.ReadTimeout("timed out"))
    client = make_client(recorder, max_retries=0)

    with pytest.raises(ProviderError) as exc_info:
        await client.get_medium_temp("11B10101")

    assert len(recorder.requests) == 1
    assert exc_info.value.kind == ProviderError.TIMEOUT
    assert exc_info.value.error_code == WeatherErrorCode.API_TIMEOUT_ERROR
    assert exc_info.value.error_code.http_status == 504


async def test_slow_response_is_cut_off_at_call_timeout():
    requests = []

    async def stall(request: httpx.Request):
        requests.append(request)
        await asyncio.sleep(5)
        return httpx.Response(200, text=MEDIUM_LAND_TEXT)

    client = KmaClient(
        base_url=BASE_URL,
        auth_key="test-key",
        max_retries=1,
        retry_delay=0,
        transport=httpx.MockTransport(stall),
        call_timeout=0.05,
    )

    with pytest.raises(ProviderError) as exc_info:
        await asyncio.wait_for(client.get_medium_land("11B00000"), 2)

    # 시간 초과도 재시도 대상
    assert len(requests) == 2
    assert exc_info.value.kind == ProviderError.TIMEOUT
    assert exc_info.value.error_code == WeatherErrorCode.API_TIMEOUT_ERROR


async def test_invalid_json_raises_parse_error():
    recorder = Recorder(httpx.Response(200, text="<html>점검 중</html>"))
    client = make_client(recorder)

    with pytest.raises(ParseError):
        await client.get_short_term(60, 127, "20250702", "0500")


async def test_check_health_reports_failure_without_raising():
    healthy = make_client(Recorder(httpx.Response(200, text=GRID_TEXT)))
    broken = make_client(Recorder(httpx.Response(401)))

    assert await healthy.check_health() is True
    assert await broken.check_health() is False
