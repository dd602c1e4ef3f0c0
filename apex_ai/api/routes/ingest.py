"""レシピコーパス取り込みルート"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...services.ingest_service import IngestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ingest", tags=["ingest"])


def get_ingest_service(request: Request) -> IngestService:
    return request.app.state.ingest_service


@router.get("/how-to-cook")
async def ingest_how_to_cook(service: IngestService = Depends(get_ingest_service)):
    """how-to-cookコーパスを取り込み、結果を返す"""
    try:
        result = await asyncio.to_thread(service.ingest_how_to_cook)
    except Exception as e:
        logger.error(f"Ingestion failed: {e}", exc_info=True)
        return JSONResponse(
            {"error": "Ingestion failed", "details": str(e)},
            status_code=500
        )
    return result.to_dict()
