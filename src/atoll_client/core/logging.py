"""
logfmt output for the Atoll client.

Every attribute a caller attached through ``extra=`` is rendered, sorted by
key, after the fixed ``level``/``logger``/``event`` prefix. Credential keys
are masked so a stray ``extra={"password": ...}`` never reaches a handler.
"""

import logging
from typing import Any, Dict, Iterator, Tuple

from .observability import RESERVED_LOG_KEYS, SECRET_LOG_KEYS

REDACTED = "***"

# LogRecord attributes that are not in RESERVED_LOG_KEYS but are still not extras
_RECORD_ONLY_KEYS = frozenset(
    {"message", "asctime", "taskName", "event"}
) | frozenset(RESERVED_LOG_KEYS)


def record_extras(record: logging.LogRecord) -> Iterator[Tuple[str, Any]]:
    """Yield (key, value) for caller-supplied extras, secrets masked."""
    fields: Dict[str, Any] = {
        key: val
        for key, val in vars(record).items()
        if key not in _RECORD_ONLY_KEYS and val is not None
    }
    for key in sorted(fields):
        if key.lower() in SECRET_LOG_KEYS:
            yield key, REDACTED
        else:
            yield key, fields[key]


class LogfmtFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        kv = [f"level={record.levelname.lower()}", f"logger={record.name}"]

        msg = record.getMessage()
        if msg:
            kv.append(f"event={self._fmt_val(msg)}")

        kv.extend(f"{key}={self._fmt_val(val)}" for key, val in record_extras(record))

        if record.exc_info and record.exc_info[0] is not None:
            kv.append(f"exc_type={record.exc_info[0].__name__}")

        return " ".join(kv)

    @staticmethod
    def _fmt_val(val: Any) -> str:
        if isinstance(val, (int, float, bool)):
            return str(val)
        s = str(val)
        if not s or " " in s or "=" in s or '"' in s:
            s = '"' + s.replace('"', '\\"') + '"'
        return s


def setup_logging(level: str = "INFO") -> None:
    """Route the root logger to stderr in logfmt; safe to call more than once."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(LogfmtFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


__all__ = ["setup_logging", "LogfmtFormatter", "record_extras", "REDACTED"]
