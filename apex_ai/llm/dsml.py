"""DeepSeek DSML形式のツール呼び出し解析モジュール

DeepSeekのモデルは標準のtool_callsを返さず、本文中に
DSMLマークアップでツール呼び出しを埋め込むことがあります。
このモジュールはそのマークアップをToolCallに変換します。
"""

import json
import logging
import re
import secrets
import string

from ..models.chat import ToolCall

logger = logging.getLogger(__name__)

DSML_MARKER = "<｜DSML｜function_calls>"

_INVOKE_PATTERN = re.compile(
    r'<｜DSML｜invoke\s+name="([^"]+)"\s*>(.*?)(?:</｜DSML｜invoke>|(?=<｜DSML｜invoke\s)|$)',
    re.DOTALL,
)
_PARAMETER_PATTERN = re.compile(
    r'<｜DSML｜parameter\s+name="([^"]+)"(?:\s+string="(true|false)")?\s*>'
    r'(.*?)</｜DSML｜parameter>',
    re.DOTALL,
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _generate_call_id() -> str:
    """ツール呼び出しIDを生成する（call_ + ランダム英数字）"""
    return "call_" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))


def contains_dsml(content: str | None) -> bool:
    """本文にDSMLのツール呼び出しブロックが含まれているか判定する"""
    return bool(content) and DSML_MARKER in content


def _parse_value(raw: str, is_string: bool):
    """パラメータ値を変換する

    string="true"の場合は前後の空白を除去した文字列、
    それ以外はJSONとしてデコードを試み、失敗した場合は文字列のまま返す。
    """
    value = raw.strip()
    if is_string:
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def parse_dsml_tool_calls(content: str | None) -> list[ToolCall]:
    """DSMLマークアップからツール呼び出しを抽出する

    Args:
        content: モデルの応答本文

    Returns:
        ToolCallのリスト（DSMLが含まれない、または関数名が無い場合は空）
    """
    if not contains_dsml(content):
        return []

    tool_calls = []
    for match in _INVOKE_PATTERN.finditer(content):
        name, body = match.group(1).strip(), match.group(2)
        if not name:
            continue

        arguments = {}
        for param in _PARAMETER_PATTERN.finditer(body):
            param_name, string_flag, raw_value = param.groups()
            arguments[param_name] = _parse_value(raw_value, string_flag != "false")

        tool_calls.append(
            ToolCall(
                id=_generate_call_id(),
                name=name,
                arguments=json.dumps(arguments, ensure_ascii=False),
            )
        )

    if tool_calls:
        logger.info(f"DSML形式のツール呼び出しを検出しました: {[c.name for c in tool_calls]}")
    else:
        logger.warning("DSMLブロックを検出しましたが、ツール呼び出しを解析できませんでした")

    return tool_calls
