"""Write-only audit sink for execution inputs, outputs and errors."""

from __future__ import annotations

import json
import logging
import time
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuditLogPaths:
    """File layout of one audit log directory."""

    base: Path
    input: Path
    output: Path
    error: Path

    @classmethod
    def under(cls, base: Path) -> AuditLogPaths:
        return cls(
            base=base,
            input=base / "input.json",
            output=base / "output.json",
            error=base / "error.json",
        )


def session_message_log_path(session_log_path: Path, message_number: int) -> Path:
    """Per-message log directory inside a session log directory."""

    return session_log_path / f"message-{message_number}"


def write_execution_log(
    log_path: Path,
    *,
    input_payload: dict[str, Any],
    output_payload: dict[str, Any] | None = None,
    error: BaseException | None = None,
) -> bool:
    """Persist one execution record. Never raises; returns ``False`` on failure."""

    paths = AuditLogPaths.under(log_path)
    try:
        paths.base.mkdir(parents=True, exist_ok=True)
        _write_json(paths.input, input_payload)
        if output_payload is not None:
            _write_json(paths.output, output_payload)
        if error is not None:
            _write_json(paths.error, _error_payload(error))
    except (OSError, TypeError, ValueError) as log_error:
        logger.warning("Failed to write execution log to %s: %s", log_path, log_error)
        return False
    return True


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True, default=str),
        "utf-8",
    )


def _error_payload(error: BaseException) -> dict[str, Any]:
    return {
        "timestamp": time.time(),
        "type": type(error).__name__,
        "message": str(error),
        "code": getattr(error, "code", None),
        "stack": "".join(traceback.format_exception(error)),
    }
