__version__ = "0.1.0.dev0"

from .config import BenchtrackConfig
from .engine import BenchmarkEngine
from .repository import HttpResultRepository, InMemoryResultRepository, RepositoryPool
from .server import build_server, main

__all__ = [
    "__version__",
    "BenchtrackConfig",
    "BenchmarkEngine",
    "HttpResultRepository",
    "InMemoryResultRepository",
    "RepositoryPool",
    "build_server",
    "main",
]
