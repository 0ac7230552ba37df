import logging
import typing as t


class TraceLogLevelLogger(logging.Logger):
    """Logger with a `trace()` method for the TRACE (5) level registered by LoggingProvider"""

    def trace(self, message: str, *args: t.Any, **kwargs: t.Any):
        loglevel = getattr(logging, "TRACE", 5)
        if self.isEnabledFor(loglevel):
            self._log(loglevel, message, args, **kwargs)
