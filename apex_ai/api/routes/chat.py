"""チャット系ルート

/api/chat（ツール呼び出し）、/api/langchain（推論モデル）、/api/recipe（レシピRAG）を提供します。
応答は text/plain のチャンク転送でストリーミングされます。
"""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ...services.chat_service import ChatService
from ..schemas import ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


async def _guard(stream: AsyncIterator[str]) -> AsyncIterator[str]:
    """ストリーム中のエラーをログに記録してストリームを終了する"""
    try:
        async for piece in stream:
            yield piece
    except Exception as e:
        logger.error(f"Stream error: {e}", exc_info=True)


def _text_stream(stream: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(_guard(stream), media_type=TEXT_MEDIA_TYPE)


@router.post("/chat")
async def chat(body: ChatRequest, service: ChatService = Depends(get_chat_service)):
    """天気ツールとMCPツールを使用するチャット"""
    try:
        stream = await service.respond(body.payload())
    except Exception as e:
        logger.error(f"Error calling DeepSeek API: {e}")
        return JSONResponse(
            {"error": "Failed to fetch response from DeepSeek API"},
            status_code=500
        )
    return _text_stream(stream)


@router.post("/langchain")
async def langchain_chat(body: ChatRequest, service: ChatService = Depends(get_chat_service)):
    """推論過程を<think>タグで囲んで返すチャット"""
    try:
        stream = await service.stream_reasoning(body.payload())
    except Exception as e:
        logger.error(f"Error in POST /api/langchain: {e}")
        return JSONResponse({"error": "Internal server error"}, status_code=500)
    return _text_stream(stream)


@router.post("/recipe")
async def recipe_chat(body: ChatRequest, service: ChatService = Depends(get_chat_service)):
    """レシピ検索の結果をコンテキストとして回答するチャット"""
    try:
        stream = await service.respond_recipe(body.payload())
    except Exception as e:
        logger.error(f"Error in POST /api/recipe: {e}")
        return JSONResponse({"error": "Internal server error"}, status_code=500)
    return _text_stream(stream)
