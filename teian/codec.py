"""
Entity codec.

Records are stored as zlib-compressed pickles of plain dicts, so the bytes on
disk do not depend on the model classes' import paths. Decoding validates every
dict against the model and raises CorruptRecordError on any mismatch.

An empty or absent value decodes to "no records": a bucket key that was never
written is not an error.
"""

from __future__ import annotations

import pickle
import zlib
from enum import Enum
from typing import Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import CorruptRecordError

M = TypeVar("M", bound=BaseModel)

_DECODE_ERRORS = (
    zlib.error,
    pickle.UnpicklingError,
    EOFError,
    ValueError,
    TypeError,
    AttributeError,
    ImportError,
    IndexError,
    KeyError,
    OverflowError,
)


def _plain(record: BaseModel) -> dict:
    data = record.model_dump(mode="python")
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


def _dumps(obj) -> bytes:
    return zlib.compress(pickle.dumps(obj, pickle.HIGHEST_PROTOCOL))


def _loads(data: bytes):
    try:
        return pickle.loads(zlib.decompress(bytes(data)))
    except _DECODE_ERRORS as exc:
        raise CorruptRecordError(f"could not decode stored value: {exc}") from exc


def _validate(model: Type[M], item) -> M:
    if not isinstance(item, dict):
        raise CorruptRecordError(f"expected a {model.__name__} mapping, got {type(item).__name__}")
    try:
        return model.model_validate(item)
    except ValidationError as exc:
        raise CorruptRecordError(f"invalid {model.__name__} record: {exc.error_count()} error(s)") from exc


def encode(records: Iterable[BaseModel]) -> bytes:
    """Encode a list of records into one value."""
    return _dumps([_plain(r) for r in records])


def decode(data: Optional[bytes], model: Type[M]) -> List[M]:
    """Decode a value written by encode(). Empty or absent data yields []."""
    if not data:
        return []
    items = _loads(data)
    if not isinstance(items, list):
        raise CorruptRecordError(f"expected a list of {model.__name__}, got {type(items).__name__}")
    return [_validate(model, item) for item in items]


def encode_one(record: BaseModel) -> bytes:
    return _dumps(_plain(record))


def decode_one(data: Optional[bytes], model: Type[M]) -> Optional[M]:
    """Decode a single record. Empty or absent data yields None."""
    if not data:
        return None
    return _validate(model, _loads(data))


def encode_int(n: int) -> bytes:
    return _dumps(int(n))


def decode_int(data: Optional[bytes]) -> int:
    """Decode a counter. Empty or absent data yields 0."""
    if not data:
        return 0
    value = _loads(data)
    # bool is an int subclass but never a valid counter
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise CorruptRecordError(f"expected a non-negative integer, got {value!r}")
    return value
