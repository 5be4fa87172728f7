"""Call-scoped logging helpers and in-memory diagnostic log store."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping


class CallLogStore:
    """Lightweight in-memory sink so operators can inspect what a call did."""

    def __init__(self) -> None:
        self._records: Dict[str, List[Mapping[str, Any]]] = {}

    def append(self, call_id: str, entry: Mapping[str, Any]) -> None:
        self._records.setdefault(call_id, []).append(entry)

    def get(self, call_id: str) -> List[Mapping[str, Any]]:
        return list(self._records.get(call_id, []))

    def clear(self) -> None:
        self._records.clear()


call_log_store = CallLogStore()


@dataclass
class CallContext:
    """State bag that injects the call ID and caller into every log line."""

    call_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    caller: str | None = None
    operation: str | None = None
    _store: CallLogStore = field(default=call_log_store, repr=False)

    def with_caller(self, caller: str | None) -> "CallContext":
        if caller:
            self.caller = caller
        return self

    def with_operation(self, operation: str | None) -> "CallContext":
        if operation:
            self.operation = operation
        return self

    def extra(self, **fields: Any) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"call_id": self.call_id}
        if self.caller:
            payload["caller"] = self.caller
        if self.operation:
            payload["operation"] = self.operation
        for key, value in fields.items():
            if value is not None:
                payload[key] = value
        return payload

    def log(
        self,
        logger: logging.Logger,
        level: int,
        message: str,
        *,
        exc_info: bool | BaseException | None = None,
        **fields: Any,
    ) -> None:
        extra_payload = self.extra(**fields)
        logger.log(level, message, extra=extra_payload, exc_info=exc_info)
        self._store.append(
            self.call_id,
            {
                "timestamp": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
                "level": logging.getLevelName(level),
                "message": message,
                "extra": extra_payload,
            },
        )

    def info(self, logger: logging.Logger, message: str, **fields: Any) -> None:
        self.log(logger, logging.INFO, message, **fields)

    def warning(self, logger: logging.Logger, message: str, *, exc_info: bool | BaseException | None = None, **fields: Any) -> None:
        self.log(logger, logging.WARNING, message, exc_info=exc_info, **fields)

    def error(self, logger: logging.Logger, message: str, *, exc_info: bool | BaseException | None = None, **fields: Any) -> None:
        self.log(logger, logging.ERROR, message, exc_info=exc_info, **fields)

    def exception(self, logger: logging.Logger, message: str, **fields: Any) -> None:
        self.log(logger, logging.ERROR, message, exc_info=True, **fields)


__all__ = ["CallContext", "call_log_store", "CallLogStore"]
