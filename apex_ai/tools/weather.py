"""天気ツールモジュール

Open-Meteoのジオコーディング APIと予報 APIを使用して、
指定された都市の現在の天気と7日間の予報を取得します。
"""

import logging
from typing import Any, Optional

import httpx

from ..models.chat import ToolSpec

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

WEATHER_TOOL_SPEC = ToolSpec(
    name="get_weather",
    description=(
        "Get current weather and 7-day forecast for a specific city. "
        "Use this for any weather request including today, tomorrow, or future dates."
    ),
    parameters={
        "type": "object",
        "properties": {
            "city": {
                "type": "string",
                "description": "The name of the city, e.g. Beijing, New York",
            },
            "date": {
                "type": "string",
                "description": (
                    "The specific date to query weather for (optional), e.g. '2024-01-01' "
                    "or 'tomorrow'. The tool will return a 7-day forecast covering this date."
                ),
            },
        },
        "required": ["city"],
    },
)


class WeatherTool:
    """Open-Meteoを使用した天気取得ツール

    Attributes:
        timeout: HTTPリクエストのタイムアウト秒数
    """

    spec = WEATHER_TOOL_SPEC

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """初期化

        Args:
            timeout: HTTPリクエストのタイムアウト秒数
            transport: 注入するHTTPトランスポート（テスト用）
        """
        self.timeout = timeout
        self._transport = transport

    async def get_weather(self, city: str, date: Optional[str] = None) -> dict[str, Any]:
        """都市の現在の天気と7日間の予報を取得

        dateは予報範囲の選択にのみ使用されるため、APIには送信しません。
        予報データから該当日を選ぶのはモデル側の役割です。

        Args:
            city: 都市名
            date: 問い合わせ対象の日付（オプション）

        Returns:
            dict: 地点情報と天気データ、またはerrorキーを含む辞書
        """
        logger.info(f"天気を取得中: city={city}, date={date}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport
            ) as client:
                # 1. 座標を取得
                geo_response = await client.get(
                    GEOCODING_URL,
                    params={"name": city, "count": 1, "language": "en", "format": "json"},
                )
                geo_response.raise_for_status()
                geo_data = geo_response.json()

                results = geo_data.get("results") or []
                if not results:
                    return {"error": f"City '{city}' not found."}

                location = results[0]
                latitude = location["latitude"]
                longitude = location["longitude"]

                # 2. 天気を取得
                weather_response = await client.get(
                    FORECAST_URL,
                    params={
                        "latitude": latitude,
                        "longitude": longitude,
                        "current_weather": "true",
                        "daily": "temperature_2m_max,temperature_2m_min",
                        "timezone": "auto",
                    },
                )
                weather_response.raise_for_status()
                weather_data = weather_response.json()

            return {
                "location": {
                    "name": location.get("name"),
                    "country": location.get("country"),
                    "latitude": latitude,
                    "longitude": longitude,
                },
                "weather": weather_data,
            }

        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"天気APIエラー: {e}")
            return {"error": "Failed to fetch weather data."}

    async def __call__(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """ツールレジストリからの呼び出し"""
        return await self.get_weather(
            city=arguments["city"],
            date=arguments.get("date"),
        )
