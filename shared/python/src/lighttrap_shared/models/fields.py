"""
models/fields.py — Annotated field types for source-file coercion.

Source files are read as strings, so each field type strips whitespace,
maps blanks to None and coerces to the target type with a clear message.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Annotated

from pydantic import AfterValidator, BeforeValidator, ValidationError

from lighttrap_shared.time_utils import parse_sample_date


def _blank_to_none(v: object) -> object:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def _number(v: object) -> float | None:
    v = _blank_to_none(v)
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError(f"not a number: {v!r}")
    try:
        f = float(v)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"not a number: {v!r}") from None
    if f != f:
        return None
    if f < 0:
        raise ValueError(f"must not be negative, got {v!r}")
    return f


def _whole_number(v: object) -> int | None:
    """Accept "12", "12.0", 12.0 as 12; reject 12.5 and negatives."""
    f = _number(v)
    if f is None:
        return None
    if not f.is_integer():
        raise ValueError(f"expected a whole number, got {v!r}")
    return int(f)


def _code(v: object) -> object:
    v = _blank_to_none(v)
    return v.upper() if isinstance(v, str) else v


def _site_name(v: object) -> object:
    v = _blank_to_none(v)
    return " ".join(v.split()) if isinstance(v, str) else v


def _site_code_token(v: str) -> str:
    if not re.fullmatch(r"[A-Z0-9_]+", v):
        raise ValueError(f"site code must be alphanumeric, got {v!r}")
    return v


Text = Annotated[str | None, BeforeValidator(_blank_to_none)]
WholeNumber = Annotated[int | None, BeforeValidator(_whole_number)]
Measure = Annotated[float | None, BeforeValidator(_number)]
Coordinate = Annotated[float, BeforeValidator(_blank_to_none)]
Code = Annotated[str | None, BeforeValidator(_code)]
SiteCode = Annotated[str, BeforeValidator(_code), AfterValidator(_site_code_token)]
SiteName = Annotated[str, BeforeValidator(_site_name)]
SampleDate = Annotated[dt.date, BeforeValidator(parse_sample_date)]


def describe_validation_error(exc: ValidationError) -> str:
    """One-line summary of a pydantic ValidationError: 'field: msg; ...'."""
    parts = []
    for err in exc.errors():
        if not err["loc"]:
            parts.append(err["msg"])
            continue
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']} (got {err.get('input')!r})")
    return "; ".join(parts)
