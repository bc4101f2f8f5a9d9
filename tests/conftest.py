from __future__ import annotations

import stat
import sys
import threading
import time
from pathlib import Path
from typing import Callable

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def waitFor(pred: Callable[[], bool], timeoutSec: float = 5.0) -> bool:
    deadline = time.time() + timeoutSec
    while time.time() < deadline:
        if pred():
            return True
        time.sleep(0.01)
    return bool(pred())


class LogSink:
    def __init__(self) -> None:
        self.lines: list[str] = []
        self.lock = threading.Lock()

    def __call__(self, text: str) -> None:
        with self.lock:
            self.lines.append(text)

    def joined(self) -> str:
        with self.lock:
            return "\n".join(self.lines)


@pytest.fixture
def logSink() -> LogSink:
    return LogSink()


@pytest.fixture
def makeScript(tmp_path: Path) -> Callable[..., Path]:
    def _make(name: str, body: str, *, executable: bool = True) -> Path:
        pathObj = tmp_path / name
        pathObj.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        mode = pathObj.stat().st_mode
        if executable:
            pathObj.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        else:
            pathObj.chmod(mode & ~(stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
        return pathObj

    return _make
