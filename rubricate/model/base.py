import datetime
import typing as t

import pydantic as p


class BaseModel(p.BaseModel):
    """Domain model base; dumps use field aliases unless told otherwise."""

    def model_dump(self, **kwargs: t.Any) -> dict[str, t.Any]:  # pyright: ignore [reportIncompatibleMethodOverride]
        kwargs.setdefault("by_alias", True)
        return super().model_dump(**kwargs)

    def model_dump_json(self, **kwargs: t.Any) -> str:  # pyright: ignore [reportIncompatibleMethodOverride]
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)


class WithCtime(BaseModel):
    # set by the database on insert
    create_time: datetime.datetime
