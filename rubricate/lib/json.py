"""JSON codec used for database JSON columns, template ``tojson`` and log extras."""

from __future__ import annotations

import datetime
import enum
import json as pyjson
import pathlib
import typing as t

import pydantic as p

JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]


def encode_datetime(obj: datetime.date) -> str:
    return obj.isoformat()


def encode_enum(obj: enum.Enum) -> JSONValue:
    return obj.value


def encode_pydantic(obj: p.BaseModel) -> JSONValue:
    return obj.model_dump(mode="json")


def encode_secret(_: p.Secret[t.Any]) -> str:
    return "**********"


# subclasses before their bases; the first matching entry wins
_Encoders: dict[type, t.Callable[[t.Any], JSONValue]] = {
    datetime.date: encode_datetime,
    datetime.timedelta: lambda obj: obj.total_seconds(),
    enum.Enum: encode_enum,
    pathlib.PurePath: str,
    p.BaseModel: encode_pydantic,
    p.Secret: encode_secret,
    frozenset: list,
    set: list,
    tuple: list,
}


class JSONEncoder(pyjson.JSONEncoder):
    def get_encoders(self) -> dict[type, t.Callable[[t.Any], JSONValue]]:
        return _Encoders

    def default(self, o: t.Any) -> JSONValue:
        for tp, encoder in self.get_encoders().items():
            if isinstance(o, tp):
                return encoder(o)
        return super().default(o)


def dumps(obj: t.Any, *, cls: type[pyjson.JSONEncoder] = JSONEncoder, **kwargs: t.Any) -> str:
    return pyjson.dumps(obj, cls=cls, **kwargs)


def loads(s: str | bytes | bytearray, **kwargs: t.Any) -> t.Any:
    return pyjson.loads(s, **kwargs)
