"""LLMモジュール

ホスト型LLMエンドポイントへのアクセスを提供します。
"""

from .client import CompletionMessage, LLMClient, LLMClientError
from .dsml import contains_dsml, parse_dsml_tool_calls
from .reasoner import ReasonerClient, to_langchain_messages

__all__ = [
    'LLMClient',
    'LLMClientError',
    'CompletionMessage',
    'ReasonerClient',
    'to_langchain_messages',
    'contains_dsml',
    'parse_dsml_tool_calls',
]
