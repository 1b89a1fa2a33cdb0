"""JSON-lines sweep event log."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, List, Optional, Set

from bandsweep import config
from bandsweep.util.time import utc_now_str


class SweepLogger:
    def __init__(self, log_path: Path, mirror_paths: Optional[List[Path]] = None):
        self.log_path = log_path
        self.mirror_paths: List[Path] = []
        self._ensure_parent(self.log_path)
        seen: Set[str] = {str(self.log_path)}
        for mirror in mirror_paths or []:
            resolved = mirror if mirror.is_absolute() else (Path.cwd() / mirror).absolute()
            if str(resolved) in seen:
                continue
            self._ensure_parent(resolved)
            self.mirror_paths.append(resolved)
            seen.add(str(resolved))
        self.run_id = f"run-{int(time.time() * 1000)}-pid{os.getpid()}"
        self.current_sweep: Optional[int] = None
        self._sweep_seq = 0

    @staticmethod
    def _ensure_parent(path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass

    @classmethod
    def from_source_path(cls, src: Optional[str], extra_targets: Optional[List[str]] = None) -> "SweepLogger":
        """Place the log beside the audio file (cwd for in-memory sources)."""
        if not src:
            base_dir = Path.cwd()
        else:
            expanded = Path(src).expanduser()
            if not expanded.is_absolute():
                expanded = (Path.cwd() / expanded).absolute()
            base_dir = expanded.parent
        extra_paths = [Path(target).expanduser() for target in extra_targets or [] if target]
        return cls(base_dir / config.SWEEP_LOG_NAME, extra_paths)

    def start_sweep(self, **metadata: Any) -> int:
        """Open a new sweep id and log ``sweep_start``."""
        self._sweep_seq += 1
        self.current_sweep = self._sweep_seq
        self.log("sweep_start", **metadata)
        return self._sweep_seq

    def log(self, event: str, **fields: Any) -> None:
        record = {
            "ts": utc_now_str(),
            "run_id": self.run_id,
            "sweep_id": self.current_sweep,
            "event": event,
            **fields,
        }
        line = json.dumps(record, default=str) + "\n"
        for target in [self.log_path] + self.mirror_paths:
            try:
                with target.open("a", encoding="utf-8") as fh:
                    fh.write(line)
            except OSError:
                continue
