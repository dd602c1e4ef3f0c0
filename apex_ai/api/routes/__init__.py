"""APIルート"""

from . import chat, chroma, ingest

__all__ = [
    'chat',
    'chroma',
    'ingest',
]
