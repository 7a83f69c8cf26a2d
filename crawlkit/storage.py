import json
import threading
from pathlib import Path
from typing import Dict


class JsonlWriter:
    """Appends one JSON object per line; safe to share between fetch workers."""

    def __init__(self, output_path: str, append: bool = False) -> None:
        self.output_path = output_path
        self.records_written = 0
        self._lock = threading.Lock()
        out_path = Path(self.output_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = out_path.open("a" if append else "w", encoding="utf-8")

    def write(self, record: Dict) -> None:
        line = json.dumps(record, ensure_ascii=False)
        with self._lock:
            self._fh.write(line + "\n")
            self._fh.flush()
            self.records_written += 1

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.close()

    def __enter__(self) -> "JsonlWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
