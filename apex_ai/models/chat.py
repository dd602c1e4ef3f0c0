"""チャット関連のデータモデル。

このモジュールはLLMエンドポイントとの間でやり取りされるデータ構造を定義します:
- ChatMessage: OpenAI互換のワイヤ形式に変換できるチャットメッセージ
- ToolCall: モデルが要求したツール呼び出し
- ToolSpec: モデルに公開するツール定義
- ChatHistory: 対話モード用の会話履歴
"""

import json
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    'ChatMessage',
    'ToolCall',
    'ToolSpec',
    'ChatHistory',
]

# UI側のロール名をAPIのロール名に変換するためのテーブル
_ROLE_ALIASES = {'ai': 'assistant'}


@dataclass
class ToolCall:
    """モデルが要求したツール呼び出しを表現する。

    Attributes:
        id: ツール呼び出しID（toolメッセージのtool_call_idに対応）
        name: 呼び出す関数名
        arguments: JSON文字列の引数
    """
    id: str
    name: str
    arguments: str = '{}'

    def parsed_arguments(self) -> dict[str, Any]:
        """引数をJSONとしてデコードする。

        Returns:
            引数の辞書（引数が空の場合は空の辞書）

        Raises:
            ValueError: 引数が不正なJSONまたはオブジェクトでない場合
        """
        if not self.arguments or not self.arguments.strip():
            return {}
        try:
            value = json.loads(self.arguments)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid tool arguments for '{self.name}': {e}") from e
        if not isinstance(value, dict):
            raise ValueError(
                f"Tool arguments for '{self.name}' must be a JSON object, got: {type(value).__name__}"
            )
        return value

    def to_dict(self) -> dict[str, Any]:
        """OpenAI API形式の辞書に変換する。"""
        return {
            'id': self.id,
            'type': 'function',
            'function': {
                'name': self.name,
                'arguments': self.arguments,
            },
        }


@dataclass
class ToolSpec:
    """モデルに公開するツール定義を表現する。

    Attributes:
        name: ツール名
        description: ツールの説明
        parameters: JSON Schema形式の引数定義
    """
    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {'type': 'object', 'properties': {}}
    )

    def to_openai_tool(self) -> dict[str, Any]:
        """OpenAI API の tools 形式に変換する。"""
        return {
            'type': 'function',
            'function': {
                'name': self.name,
                'description': self.description,
                'parameters': self.parameters,
            },
        }


@dataclass
class ChatMessage:
    """チャットメッセージを表現する。

    Attributes:
        role: メッセージの役割（'system', 'user', 'assistant', 'tool'）
        content: メッセージコンテンツのテキスト
        tool_call_id: toolメッセージの場合の対応するツール呼び出しID
        tool_calls: assistantメッセージが要求したツール呼び出し
        name: 送信者名（オプション）
    """
    role: str
    content: str | None = ''
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] | None = None
    name: str | None = None

    VALID_ROLES = ('system', 'user', 'assistant', 'tool')

    def __post_init__(self):
        """役割を正規化して検証する。"""
        self.role = _ROLE_ALIASES.get(self.role, self.role)
        if self.role not in self.VALID_ROLES:
            raise ValueError(
                f"Role must be one of {self.VALID_ROLES}, got '{self.role}'"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'ChatMessage':
        """リクエストの辞書からメッセージを作成する。"""
        tool_calls = None
        if data.get('tool_calls'):
            tool_calls = [
                ToolCall(
                    id=call['id'],
                    name=call['function']['name'],
                    arguments=call['function'].get('arguments') or '{}',
                )
                for call in data['tool_calls']
            ]
        return cls(
            role=data.get('role', 'user'),
            content=data.get('content', ''),
            tool_call_id=data.get('tool_call_id'),
            tool_calls=tool_calls,
            name=data.get('name'),
        )

    def to_dict(self) -> dict[str, Any]:
        """OpenAI API用の辞書形式に変換する（Noneのフィールドは省略）。"""
        result: dict[str, Any] = {'role': self.role, 'content': self.content}
        if self.tool_calls:
            result['tool_calls'] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            result['tool_call_id'] = self.tool_call_id
        if self.name is not None:
            result['name'] = self.name
        return result


@dataclass
class ChatHistory:
    """対話モード用の会話履歴を管理する。

    Attributes:
        messages: チャットメッセージのリスト
    """
    messages: list[ChatMessage] = field(default_factory=list)

    def add_message(self, role: str, content: str) -> None:
        """履歴に新しいメッセージを追加する。"""
        self.messages.append(ChatMessage(role=role, content=content))

    def to_dicts(self) -> list[dict[str, Any]]:
        """すべてのメッセージをAPI用の辞書形式に変換する。"""
        return [msg.to_dict() for msg in self.messages]

    def clear(self) -> None:
        """履歴からすべてのメッセージをクリアする。"""
        self.messages.clear()

    def __len__(self) -> int:
        return len(self.messages)
