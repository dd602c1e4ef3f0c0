"""ツールモジュール

チャットモデルから呼び出されるツールを提供します。
"""

from .registry import ToolError, ToolRegistry
from .weather import WEATHER_TOOL_SPEC, WeatherTool


def create_default_registry() -> ToolRegistry:
    """天気ツールを登録したツールレジストリを作成"""
    registry = ToolRegistry()
    weather = WeatherTool()
    registry.register(weather.spec, weather)
    return registry


__all__ = [
    'ToolRegistry',
    'ToolError',
    'WeatherTool',
    'WEATHER_TOOL_SPEC',
    'create_default_registry',
]
