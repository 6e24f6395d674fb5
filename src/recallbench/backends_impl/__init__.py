from .base import BackendClient, CommandBackend
from .faiss_hnsw import FaissHNSWBackend
from .hnswlib import HnswlibBackend
from .memory import MemoryBackend
from .registry import BACKENDS, available_backends, resolve_backend

__all__ = [
    "BACKENDS",
    "BackendClient",
    "CommandBackend",
    "FaissHNSWBackend",
    "HnswlibBackend",
    "MemoryBackend",
    "available_backends",
    "resolve_backend",
]
