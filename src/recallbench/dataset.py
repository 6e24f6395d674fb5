from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any, BinaryIO

import numpy as np
from numpy.typing import NDArray

from .errors import FormatError
from .types import GroundTruth, VectorSet


MAX_DIMENSION = 1_000_000
_HEADER = np.dtype("<i4")
_PAYLOAD = {
    "float32": np.dtype("<f4"),
    "int32": np.dtype("<i4"),
}


def _payload_dtype(kind: str) -> np.dtype:
    try:
        return _PAYLOAD[kind]
    except KeyError:
        raise ValueError(f"Unsupported payload kind: {kind}") from None


def _record_dtype(dimension: int, payload: np.dtype) -> np.dtype:
    return np.dtype([("dim", _HEADER), ("vec", payload, (dimension,))])


def _open(path: str | Path) -> BinaryIO:
    try:
        return open(path, "rb")
    except OSError as exc:
        raise FormatError(f"could not open {path}: {exc}") from exc


def _read_layout(f: BinaryIO, path: str | Path) -> tuple[int, int]:
    size = os.fstat(f.fileno()).st_size
    head = f.read(_HEADER.itemsize)
    if len(head) < _HEADER.itemsize:
        raise FormatError(f"{path}: file too short for a record header ({size} bytes)")
    dimension = int(np.frombuffer(head, dtype=_HEADER)[0])
    if not (0 < dimension < MAX_DIMENSION):
        raise FormatError(f"{path}: unreasonable dimension {dimension}")
    stride = (dimension + 1) * 4
    if size % stride != 0:
        raise FormatError(f"{path}: file size {size} is not a multiple of record size {stride}")
    f.seek(0)
    return size // stride, dimension


def _check_headers(records: NDArray[Any], dimension: int, path: str | Path, first_row: int = 0) -> None:
    bad = np.flatnonzero(records["dim"] != dimension)
    if bad.size:
        row = first_row + int(bad[0])
        raise FormatError(
            f"{path}: record {row} declares dimension {int(records['dim'][bad[0]])}, expected {dimension}"
        )


def peek_vecs_shape(path: str | Path) -> tuple[int, int]:
    with _open(path) as f:
        return _read_layout(f, path)


def read_vecs(path: str | Path, kind: str = "float32") -> VectorSet:
    payload = _payload_dtype(kind)
    with _open(path) as f:
        count, dimension = _read_layout(f, path)
        records = np.fromfile(f, dtype=_record_dtype(dimension, payload), count=count)
    if records.shape[0] != count:
        raise FormatError(f"{path}: could not read whole file ({records.shape[0]} of {count} records)")
    _check_headers(records, dimension, path)

    data = np.ascontiguousarray(records["vec"], dtype=payload.newbyteorder("="))
    data.flags.writeable = False
    return VectorSet(data=data)


def read_fvecs(path: str | Path) -> VectorSet:
    return read_vecs(path, kind="float32")


def read_ivecs(path: str | Path) -> VectorSet:
    return read_vecs(path, kind="int32")


def read_ground_truth(path: str | Path) -> GroundTruth:
    return GroundTruth(neighbors=read_ivecs(path).data)


def iter_fvecs_chunks(path: str | Path, chunk_rows: int) -> Iterator[tuple[int, NDArray[np.float32]]]:
    """Yield ``(start_row, block)`` pairs of at most ``chunk_rows`` vectors.

    The whole file is validated up front; per-record headers are checked as
    each block is read.
    """
    if chunk_rows <= 0:
        raise ValueError("chunk_rows must be positive")
    payload = _payload_dtype("float32")
    with _open(path) as f:
        count, dimension = _read_layout(f, path)
        record = _record_dtype(dimension, payload)
        for start in range(0, count, chunk_rows):
            rows = min(chunk_rows, count - start)
            block = np.fromfile(f, dtype=record, count=rows)
            if block.shape[0] != rows:
                raise FormatError(f"{path}: truncated read at record {start + block.shape[0]}")
            _check_headers(block, dimension, path, first_row=start)
            yield start, np.ascontiguousarray(block["vec"], dtype=np.float32)


def encode_vecs(vectors: VectorSet | NDArray[Any], kind: str = "float32") -> bytes:
    payload = _payload_dtype(kind)
    array = vectors.data if isinstance(vectors, VectorSet) else np.asarray(vectors)
    if array.ndim != 2 or array.shape[1] <= 0:
        raise ValueError(f"expected a 2-D array with positive dimension, got shape={array.shape}")
    count, dimension = array.shape
    records = np.empty(count, dtype=_record_dtype(dimension, payload))
    records["dim"] = dimension
    records["vec"] = array
    return records.tobytes()


def write_vecs(path: str | Path, vectors: VectorSet | NDArray[Any], kind: str = "float32") -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(encode_vecs(vectors, kind=kind))
    return target


def write_fvecs(path: str | Path, vectors: VectorSet | NDArray[Any]) -> Path:
    return write_vecs(path, vectors, kind="float32")


def write_ivecs(path: str | Path, vectors: VectorSet | NDArray[Any]) -> Path:
    return write_vecs(path, vectors, kind="int32")


__all__ = [
    "MAX_DIMENSION",
    "encode_vecs",
    "iter_fvecs_chunks",
    "peek_vecs_shape",
    "read_fvecs",
    "read_ground_truth",
    "read_ivecs",
    "read_vecs",
    "write_fvecs",
    "write_ivecs",
    "write_vecs",
]
