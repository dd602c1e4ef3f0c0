"""Data models package for Apex AI.

This package provides core data structures used throughout the application.
"""

from apex_ai.models.chat import (
    ChatHistory,
    ChatMessage,
    ToolCall,
    ToolSpec,
)
from apex_ai.models.document import (
    Chunk,
    IngestResult,
    IngestStats,
    SourceFile,
)

__all__ = [
    'ChatMessage',
    'ChatHistory',
    'ToolCall',
    'ToolSpec',
    'SourceFile',
    'Chunk',
    'IngestStats',
    'IngestResult',
]
