from __future__ import annotations

from .handle import FileHandle
from .lines import EOL, make_line, split_lines
from .options import WriteOptions
from .registry import (
    ChainPolicy,
    OperationChain,
    PathQueueRegistry,
    PredecessorFailedError,
    shared_registry,
)
from .settings import Settings, get_settings

__all__ = [
    "FileHandle",
    "EOL",
    "make_line",
    "split_lines",
    "WriteOptions",
    "ChainPolicy",
    "OperationChain",
    "PathQueueRegistry",
    "PredecessorFailedError",
    "shared_registry",
    "Settings",
    "get_settings",
]
