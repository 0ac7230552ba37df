import inspect
import json
import logging
import string
import textwrap
import typing as t

import pygments
from pygments.formatters import Terminal256Formatter
from pygments.lexers.data import JsonLexer  # pyright: ignore [reportMissingTypeStubs]
from pygments.style import Style

from .json import JSONEncoder
from .style import LogStyle

# attributes every LogRecord carries, plus those set by formatters and colorlog
ReservedKeys = set(logging.makeLogRecord({}).__dict__) | {"asctime", "exception", "id", "log_color", "message"}


def trim_value(value: t.Any, limit: int | None) -> t.Any:
    """Shorten strings over ``limit`` characters, e.g. provider error bodies or document text."""
    if limit is None or not isinstance(value, str) or len(value) <= limit:
        return value
    return f"{value[:limit]}... ({len(value) - limit} more characters)"


class ExtraFormatter(logging.Formatter):
    """
    Wraps a base formatter and appends the record's `extra={...}` fields as
    JSON, highlighted when the handler writes to a terminal
    """

    def __init__(
        self,
        base: type[logging.Formatter],
        format: str | None,
        datefmt: str | None = None,
        indent: bool = True,
        max_value_length: int | None = 500,
        pyg_style: t.Type[Style] = LogStyle,
        style: t.Literal["%", "{", "$"] = "%",
        validate: bool = True,
        *,
        defaults: t.Any = None,
        **kwargs: t.Any,
    ):
        self.base = base(format, datefmt=datefmt, style=style, validate=validate, defaults=defaults, **kwargs)
        self.pyg_style = pyg_style
        self.handler: logging.Handler | None = None
        self.indent = indent
        self.max_value_length = max_value_length

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if "\n" in msg:
            formatted = self.base.format(record)
            idx = formatted.find(msg)
            indent = " " * len([c for c in formatted[:idx] if c in string.printable])
            line, *lines = msg.splitlines()
            body = textwrap.indent("\n".join(lines), prefix=indent)
            record.msg = record.message = f"{line}\n{body}"
            record.args = None
        message = self.base.format(record)

        d = record.__dict__
        extra = {k: trim_value(d[k], self.max_value_length) for k in set(d.keys()) - ReservedKeys}

        if not extra:
            return message

        if self.handler is None:
            # the handler is not known at construction time, so pick it up from the calling frame
            frame = inspect.currentframe()
            caller = frame.f_back.f_locals.get("self") if frame is not None and frame.f_back is not None else None
            if isinstance(caller, logging.Handler):
                self.handler = caller

        js = json.dumps(extra, sort_keys=True, indent=(4 if self.indent else None), cls=JSONEncoder)
        stream = getattr(self.handler, "stream", None)
        do_color = not getattr(self.base, "no_color", False)
        if stream is not None and stream.isatty() and do_color:
            hl = pygments.highlight  # pyright: ignore [reportUnknownMemberType, reportUnknownVariableType]
            ps = hl(js, JsonLexer(), Terminal256Formatter(style=self.pyg_style), None)
        else:
            ps = js
        return message + " " + ps.strip()

    def __getattr__(self, name: str) -> t.Any:
        return getattr(self.base, name)
