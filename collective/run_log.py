"""
Per-run JSON trace files.

Each orchestration writes one file under the log directory describing the
role selection, every model step (role, prompt and response sizes) and the
outcome, including the error when a run fails.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union
from uuid import uuid4

logger = logging.getLogger(__name__)


class RunLog:
    """Collects the steps of one run and writes them as a JSON document."""

    def __init__(self, log_dir: Union[str, Path], query: str) -> None:
        self._log_dir = Path(log_dir)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        self.path = self._log_dir / f"collective_run_{timestamp}_{uuid4().hex[:8]}.json"
        self._record: Dict[str, Any] = {
            "timestamp": timestamp,
            "query": query,
            "steps": [],
        }

    def log_step(self, phase: str, context: Dict[str, Any]) -> None:
        entry = {
            "phase": phase,
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "context": make_serializable(context),
        }
        self._record["steps"].append(entry)

    def finalize(self, *, result: Optional[Dict[str, Any]] = None, error: Optional[BaseException] = None) -> Optional[Path]:
        if result is not None:
            self._record["result"] = make_serializable(result)
        if error is not None:
            self._record["error"] = {
                "type": type(error).__name__,
                "message": str(error),
                "phase": getattr(error, "phase", None),
            }
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            serialized = json.dumps(self._record, indent=2, ensure_ascii=False)
            self.path.write_text(serialized, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem issues
            logger.warning("Failed to write run log %s: %s", self.path, exc)
            return None
        logger.info("Wrote run log to %s", self.path)
        return self.path


def make_serializable(data: Any) -> Any:
    if is_dataclass(data) and not isinstance(data, type):
        return make_serializable(asdict(data))
    if isinstance(data, datetime):
        return data.isoformat()
    try:
        json.dumps(data)
        return data
    except TypeError:
        if isinstance(data, dict):
            return {str(key): make_serializable(value) for key, value in data.items()}
        if isinstance(data, (list, set, tuple)):
            return [make_serializable(item) for item in data]
        return repr(data)
