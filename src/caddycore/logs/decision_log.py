from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class DecisionLog:
    """Append-only JSONL audit trail, one line per routed utterance.

    Writing is best-effort: I/O failures are logged and swallowed so the
    pipeline never fails because of its audit log.
    """

    path: str

    def log(self, request: str, verdict: dict[str, Any], result: dict[str, Any], **fields: Any) -> None:
        record: dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "request": request,
            "verdict": verdict,
            "result": result,
        }
        if fields:
            record.update(fields)

        p = Path(self.path)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            with p.open("a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False, sort_keys=True) + "\n")
        except OSError as e:
            logger.warning("[decision_log] cannot write %s: %s", p, e)

    def tail(self, n: int = 20) -> list[dict[str, Any]]:
        p = Path(self.path)
        if not p.exists():
            return []
        lines = p.read_text(encoding="utf-8").splitlines()
        out: list[dict[str, Any]] = []
        for line in lines[-max(1, n):]:
            try:
                out.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return out
