from __future__ import annotations

from typing import Any

from .base import BackendClient
from .faiss_hnsw import FaissHNSWBackend
from .hnswlib import HnswlibBackend
from .memory import MemoryBackend


BACKENDS: dict[str, type[BackendClient]] = {
    MemoryBackend.name: MemoryBackend,
    HnswlibBackend.name: HnswlibBackend,
    FaissHNSWBackend.name: FaissHNSWBackend,
}


def resolve_backend(name: str, options: dict[str, Any] | None = None) -> BackendClient:
    backend_cls = BACKENDS.get(name)
    if backend_cls is None:
        raise ValueError(f"unknown backend name: {name} (choose from {', '.join(sorted(BACKENDS))})")
    ok, reason = backend_cls.availability()
    if not ok:
        raise RuntimeError(f"backend '{name}' is not available: {reason or 'not available'}")
    return backend_cls(options=options or {})


def available_backends() -> dict[str, str | None]:
    status: dict[str, str | None] = {}
    for name, backend_cls in BACKENDS.items():
        ok, reason = backend_cls.availability()
        status[name] = None if ok else reason
    return status


__all__ = ["BACKENDS", "available_backends", "resolve_backend"]
