"""天気ツールのユニットテスト

httpx.MockTransportでOpen-Meteo APIの応答を再現します。
"""

import httpx
import pytest

from apex_ai.tools.weather import FORECAST_URL, GEOCODING_URL, WEATHER_TOOL_SPEC, WeatherTool

GEO_RESPONSE = {
    "results": [
        {"name": "Beijing", "country": "China", "latitude": 39.9, "longitude": 116.4}
    ]
}
FORECAST_RESPONSE = {
    "current_weather": {"temperature": 21.5, "weathercode": 1},
    "daily": {"temperature_2m_max": [25.0], "temperature_2m_min": [15.0]},
}


def _transport(geo=GEO_RESPONSE, forecast=FORECAST_RESPONSE, status=200, requests=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        if url == GEOCODING_URL:
            return httpx.Response(status, json=geo)
        if url == FORECAST_URL:
            return httpx.Response(status, json=forecast)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


class TestWeatherTool:
    """WeatherTool のテスト"""

    @pytest.mark.asyncio
    async def test_get_weather_success(self):
        """地点情報と天気データを返す"""
        requests = []
        tool = WeatherTool(transport=_transport(requests=requests))

        result = await tool.get_weather("Beijing", "tomorrow")

        assert result["location"] == {
            "name": "Beijing",
            "country": "China",
            "latitude": 39.9,
            "longitude": 116.4,
        }
        assert result["weather"]["current_weather"]["temperature"] == 21.5

        geo_request, forecast_request = requests
        assert geo_request.url.params["name"] == "Beijing"
        assert geo_request.url.params["count"] == "1"
        assert forecast_request.url.params["latitude"] == "39.9"
        assert forecast_request.url.params["daily"] == "temperature_2m_max,temperature_2m_min"
        # 日付はAPIに送信しない
        assert "date" not in forecast_request.url.params

    @pytest.mark.asyncio
    async def test_city_not_found(self):
        tool = WeatherTool(transport=_transport(geo={"results": []}))

        result = await tool.get_weather("Atlantis")

        assert result == {"error": "City 'Atlantis' not found."}

    @pytest.mark.asyncio
    async def test_missing_results_key(self):
        tool = WeatherTool(transport=_transport(geo={}))

        result = await tool.get_weather("Nowhere")

        assert result == {"error": "City 'Nowhere' not found."}

    @pytest.mark.asyncio
    async def test_http_error(self):
        """HTTPエラーはエラー辞書として返す"""
        tool = WeatherTool(transport=_transport(status=503))

        result = await tool.get_weather("Beijing")

        assert result == {"error": "Failed to fetch weather data."}

    @pytest.mark.asyncio
    async def test_call_with_arguments(self):
        """ツールレジストリ形式の呼び出し"""
        tool = WeatherTool(transport=_transport())

        result = await tool({"city": "Beijing"})

        assert result["location"]["name"] == "Beijing"

    def test_spec(self):
        assert WeatherTool.spec is WEATHER_TOOL_SPEC
        assert WEATHER_TOOL_SPEC.name == "get_weather"
        assert WEATHER_TOOL_SPEC.parameters["required"] == ["city"]
