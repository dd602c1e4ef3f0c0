"""チャットWebサービス

チャット（ツール呼び出し・推論・レシピRAG）、ChromaDB閲覧、コーパス取り込みの
HTTPルートをまとめたFastAPIアプリケーションを提供します。
"""

import contextlib
import logging
from typing import Optional

from fastapi import FastAPI

from .. import __version__
from ..mcp.client import MCPToolClient
from ..rag.embeddings import ZhipuEmbeddings
from ..rag.vector_store import ChromaVectorStore
from ..services.chat_service import ChatService
from ..services.ingest_service import IngestService
from ..services.recipe_service import RecipeService
from ..utils.config import Config, get_config
from .routes import chat, chroma, ingest

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Config] = None,
    chat_service: Optional[ChatService] = None,
    vector_store: Optional[ChromaVectorStore] = None,
    ingest_service: Optional[IngestService] = None,
    mcp_client: Optional[MCPToolClient] = None
) -> FastAPI:
    """FastAPIアプリケーションを作成

    省略したサービスは設定から作成します。
    MCPツールサーバーが設定されている場合は、起動時にそのツールをチャットに登録します。

    Args:
        config: アプリケーション設定（省略時はデフォルト設定を使用）
        chat_service: チャットサービス
        vector_store: ChromaDBベクトルストア
        ingest_service: 取り込みサービス
        mcp_client: MCPツールクライアント（省略時は設定から作成）

    Returns:
        FastAPI: アプリケーション
    """
    config = config or get_config()
    embeddings = ZhipuEmbeddings(config)
    vector_store = vector_store or ChromaVectorStore(config, embeddings=embeddings)
    if chat_service is None:
        chat_service = ChatService(config)
        chat_service.recipe_service = RecipeService(
            config,
            reasoner=chat_service.reasoner,
            embeddings=embeddings,
            vector_store=vector_store,
        )
    ingest_service = ingest_service or IngestService(
        config, embeddings=embeddings, vector_store=vector_store
    )
    if mcp_client is None:
        mcp_client = MCPToolClient.from_config(config)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        if mcp_client is not None:
            try:
                await chat_service.registry.register_mcp_tools(mcp_client)
            except Exception as e:
                logger.warning(f"MCPツールの登録に失敗しました（{mcp_client}）: {e}")
        logger.info(f"利用可能なツール: {chat_service.registry.names()}")
        yield

    app = FastAPI(title="Apex AI", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.chat_service = chat_service
    app.state.vector_store = vector_store
    app.state.ingest_service = ingest_service

    app.include_router(chat.router)
    app.include_router(chroma.router)
    app.include_router(ingest.router)

    @app.get("/")
    async def root():
        """サービス情報"""
        return {
            "name": "apex-ai",
            "version": __version__,
            "routes": [
                "/api/chat",
                "/api/langchain",
                "/api/recipe",
                "/api/chroma/collections",
                "/api/ingest/how-to-cook",
            ],
        }

    @app.get("/health")
    async def health_check():
        """ヘルスチェックエンドポイント"""
        return {"status": "ok"}

    return app


def run(config: Optional[Config] = None):
    """チャットWebサービスを起動します（apex-server エントリーポイント）。"""
    import uvicorn

    config = config or get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger.info(f"Apex AI running on http://{config.app_host}:{config.app_port}")
    try:
        uvicorn.run(create_app(config), host=config.app_host, port=config.app_port)
    except KeyboardInterrupt:
        logger.info("サーバーを停止しました")


if __name__ == "__main__":
    run()
