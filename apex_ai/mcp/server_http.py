"""Streamable HTTPトランスポートを使用した業務ツールMCPサーバー。

このモジュールは、HTTP経由でMCPクライアントと通信するサーバーを提供します。
顧客情報の照会、在庫確認、注文作成をツールとして公開します。
MCPエンドポイントは /mcp です。
"""

import contextlib
import logging
from typing import Optional

from fastapi import FastAPI
from mcp.server import Server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.routing import Route

from ..utils.config import Config, get_config
from .handlers import BusinessToolHandler
from .tools import register_tools

logger = logging.getLogger("mcp_http_server")

SERVER_NAME = "apex-ai-business-server"
SERVER_VERSION = "1.0.0"
MCP_PATH = "/mcp"


def create_business_server(handler: Optional[BusinessToolHandler] = None) -> Server:
    """業務ツールを登録したMCPサーバーを作成します。

    Args:
        handler: ツールハンドラー（省略時はモックデータで新規作成）

    Returns:
        Server: 初期化されたMCPサーバー
    """
    server = Server(SERVER_NAME, version=SERVER_VERSION)
    register_tools(server, handler or BusinessToolHandler())
    logger.info("業務ツールを登録しました")
    return server


class _StreamableHTTPEndpoint:
    """セッションマネージャーにリクエストを渡すASGIアプリ"""

    def __init__(self, session_manager: StreamableHTTPSessionManager):
        self.session_manager = session_manager

    async def __call__(self, scope, receive, send):
        await self.session_manager.handle_request(scope, receive, send)


def create_app(handler: Optional[BusinessToolHandler] = None) -> FastAPI:
    """FastAPIアプリケーションを作成します。

    セッションマネージャーは一度しか起動できないため、
    アプリケーションごとに新しく作成します。

    Args:
        handler: ツールハンドラー（省略時はモックデータで新規作成）

    Returns:
        FastAPI: MCPエンドポイントをマウントしたアプリケーション
    """
    mcp_server = create_business_server(handler)
    session_manager = StreamableHTTPSessionManager(
        app=mcp_server,
        json_response=False,
        stateless=True,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("業務ツールMCPサーバーを起動中...")
        async with session_manager.run():
            logger.info(f"MCP Endpoint: {MCP_PATH}")
            yield
        logger.info("業務ツールMCPサーバーを停止しました")

    app = FastAPI(title="Apex AI Business MCP Server", lifespan=lifespan)
    app.router.routes.append(Route(MCP_PATH, endpoint=_StreamableHTTPEndpoint(session_manager)))

    @app.get("/")
    async def root():
        """サーバー情報"""
        return {
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
            "transport": "streamable-http",
            "endpoints": {"mcp": MCP_PATH},
        }

    @app.get("/health")
    async def health_check():
        """ヘルスチェックエンドポイント"""
        return {"status": "ok", "server": SERVER_NAME}

    return app


def run(config: Optional[Config] = None):
    """業務ツールMCPサーバーを起動します（CLIエントリーポイント用）。

    環境変数 MCP_HTTP_HOST / MCP_HTTP_PORT で待ち受けアドレスを設定できます。
    """
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = config or get_config()
    host, port = config.mcp_http_host, config.mcp_http_port

    logger.info(f"MCP Server running on http://{host}:{port}")
    logger.info(f"MCP Endpoint: http://{host}:{port}{MCP_PATH}")

    try:
        uvicorn.run(create_app(), host=host, port=port, log_level="info")
    except KeyboardInterrupt:
        logger.info("MCPサーバーを停止しました")
    except Exception as e:
        logger.error(f"エラー: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    run()
