"""
Data Contract Serialization
===========================

JSON conversion of the analysis dataclasses through pydantic type
adapters. Used by the summary cache, the alert file store and the CLI.

Usage:
    payload = to_json(summary)
    summary = from_json(AnalysisSummaryData, payload)
"""

from functools import lru_cache
from typing import Any, Optional, Type, TypeVar, Union

from pydantic import TypeAdapter

T = TypeVar("T")


@lru_cache(maxsize=None)
def adapter_for(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def to_jsonable(obj: Any, tp: Any = None) -> Any:
    """Dataclass (or list/dict of them) to plain JSON-compatible Python data."""
    return adapter_for(tp or type(obj)).dump_python(obj, mode="json")


def to_json(obj: Any, tp: Any = None, indent: Optional[int] = None) -> str:
    return adapter_for(tp or type(obj)).dump_json(obj, indent=indent).decode("utf-8")


def from_jsonable(tp: Type[T], data: Any) -> T:
    """Validate plain Python data into ``tp``. Raises pydantic.ValidationError."""
    return adapter_for(tp).validate_python(data)


def from_json(tp: Type[T], payload: Union[str, bytes]) -> T:
    return adapter_for(tp).validate_json(payload)
