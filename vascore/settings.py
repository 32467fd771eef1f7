"""Typed custom setting values.

A setting's kind comes from the type name it declares, never from its text.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Dict, Union
import re

from .errors import SettingTypeError


class SettingKind(Enum):
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    DURATION = "duration"


_DECLARED: Dict[str, SettingKind] = {
    "bool": SettingKind.BOOL,
    "float": SettingKind.FLOAT,
    "double": SettingKind.FLOAT,
    "char": SettingKind.STRING,
    "string": SettingKind.STRING,
    "timespan": SettingKind.DURATION,
}
for _t in ("byte", "sbyte", "short", "ushort", "int", "uint", "long", "ulong"):
    _DECLARED[_t] = SettingKind.INT

SettingPayload = Union[bool, int, float, str, timedelta]


@dataclass(frozen=True)
class SettingValue:
    kind: SettingKind
    value: SettingPayload


_DURATION_RE = re.compile(
    r"^(?P<sign>-)?"
    r"(?:(?P<days>\d+)(?:\.|$))?"
    r"(?:(?P<h>\d{1,2}):(?P<m>\d{1,2})(?::(?P<s>\d{1,2})(?:\.(?P<frac>\d{1,7}))?)?)?$"
)


def kind_of(type_name: str) -> SettingKind:
    try:
        return _DECLARED[type_name.strip().lower()]
    except KeyError:
        raise SettingTypeError(f"Data type is either incorrect or unsupported: {type_name!r}") from None


def parse_bool(text: str) -> bool:
    t = text.strip().lower()
    if t == "true":
        return True
    if t == "false":
        return False
    raise ValueError(f"Not a boolean: {text!r}")


def parse_duration(text: str) -> timedelta:
    """Parse ``[-][d.]hh:mm[:ss[.fffffff]]`` or a bare day count."""
    t = text.strip()
    m = _DURATION_RE.match(t)
    if not t or m is None or (m.group("days") is None and m.group("h") is None):
        raise ValueError(f"Not a duration: {text!r}")
    hours = int(m.group("h") or 0)
    minutes = int(m.group("m") or 0)
    seconds = int(m.group("s") or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError(f"Duration component out of range: {text!r}")
    frac = m.group("frac")
    micros = int(frac.ljust(7, "0")) // 10 if frac else 0
    td = timedelta(days=int(m.group("days") or 0), hours=hours, minutes=minutes,
                   seconds=seconds, microseconds=micros)
    return -td if m.group("sign") else td


def parse_setting(type_name: str, text: str) -> SettingValue:
    kind = kind_of(type_name)
    if kind is SettingKind.BOOL:
        return SettingValue(kind, parse_bool(text))
    if kind is SettingKind.INT:
        return SettingValue(kind, int(text.strip()))
    if kind is SettingKind.FLOAT:
        return SettingValue(kind, float(text.strip()))
    if kind is SettingKind.DURATION:
        return SettingValue(kind, parse_duration(text))
    return SettingValue(kind, text)
