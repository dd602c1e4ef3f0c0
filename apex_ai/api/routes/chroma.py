"""ChromaDB閲覧ルート"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...rag.vector_store import ChromaVectorStore
from ..schemas import CollectionPageRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chroma", tags=["chroma"])


def get_vector_store(request: Request) -> ChromaVectorStore:
    return request.app.state.vector_store


def _error(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=500)


@router.get("/collections")
async def list_collections(store: ChromaVectorStore = Depends(get_vector_store)):
    """コレクション一覧"""
    try:
        return await asyncio.to_thread(store.list_collections)
    except Exception as e:
        logger.error(f"Error fetching collections: {e}")
        return _error("Failed to fetch collections")


@router.get("/collection/{name}")
async def get_collection(name: str, store: ChromaVectorStore = Depends(get_vector_store)):
    """コレクションの詳細と先頭10件"""
    try:
        return await asyncio.to_thread(store.get_collection_details, name)
    except Exception as e:
        logger.error(f"Error fetching collection details: {e}")
        return _error("Failed to fetch collection details")


@router.post("/collection/{name}")
async def query_collection(
    name: str,
    body: Optional[CollectionPageRequest] = None,
    store: ChromaVectorStore = Depends(get_vector_store)
):
    """コレクションのレコードをページング取得"""
    page = body or CollectionPageRequest()
    try:
        return await asyncio.to_thread(store.get_records, name, page.offset, page.limit)
    except Exception as e:
        logger.error(f"Error querying collection: {e}")
        return _error("Failed to query collection")


@router.get("/debug")
async def debug(query: Optional[str] = None, store: ChromaVectorStore = Depends(get_vector_store)):
    """レシピコレクションのデバッグ検索（エラーも200で返す）"""
    try:
        return await asyncio.to_thread(store.debug_lookup, query)
    except Exception as e:
        return {"error": str(e)}


@router.post("/seed")
async def seed(store: ChromaVectorStore = Depends(get_vector_store)):
    """サンプルレシピの投入"""
    try:
        return await asyncio.to_thread(store.seed_recipes)
    except Exception as e:
        logger.error(f"Error seeding recipes: {e}")
        return _error("Failed to seed recipes")
