"""APIリクエストのスキーマ定義"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class MessageIn(BaseModel):
    """リクエストに含まれる1件のメッセージ

    画面側の役割名 "ai" は "assistant" として扱われます。
    """
    role: Literal["system", "user", "assistant", "ai", "tool"]
    content: Optional[str] = ""
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


class ChatRequest(BaseModel):
    """チャット系ルートのリクエストボディ"""
    messages: list[MessageIn] = Field(default_factory=list)

    def payload(self) -> list[dict[str, Any]]:
        """サービス層に渡す辞書のリスト（Noneのフィールドは除外）"""
        return [m.model_dump(exclude_none=True) for m in self.messages]


class CollectionPageRequest(BaseModel):
    """コレクションのページング取得リクエスト"""
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=10, ge=1, le=1000)
