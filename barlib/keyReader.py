from __future__ import annotations

import queue
import threading

from readchar import key, readkey

CTRL_C = "\x03"
ENTER = "\n"
BACKSPACE = "\x08"
ESC = "\x1b"

# sequences readchar hands back for the keys the dashboard binds
NAMED_KEYS: dict[str, str] = {
    key.UP: "KEY_UP",
    key.DOWN: "KEY_DOWN",
    key.LEFT: "KEY_LEFT",
    key.RIGHT: "KEY_RIGHT",
    key.F1: "KEY_F1",
    "\x1bOP": "KEY_F1",
    "\x1b[11~": "KEY_F1",
    # windows console
    "\x00H": "KEY_UP",
    "\xe0H": "KEY_UP",
    "\x00P": "KEY_DOWN",
    "\xe0P": "KEY_DOWN",
    "\x00K": "KEY_LEFT",
    "\xe0K": "KEY_LEFT",
    "\x00M": "KEY_RIGHT",
    "\xe0M": "KEY_RIGHT",
    "\x00;": "KEY_F1",
}


def normalizeKey(raw: str, typing: bool = False) -> str:
    if raw in (key.ENTER, "\r", "\n"):
        return ENTER
    if raw in (key.BACKSPACE, "\x7f", "\x08"):
        return BACKSPACE
    if raw == key.ESC:
        return ESC
    if typing:
        return raw
    return NAMED_KEYS.get(raw, raw)


class KeyReader:
    """Blocking readkey() on a daemon thread; the UI loop polls the queue."""

    def __init__(self) -> None:
        self.enableTyping = False
        self.keyQueue: queue.Queue[str] = queue.Queue()
        self.stopEvent = threading.Event()
        self.threadObj = threading.Thread(target=self.loopSafe, daemon=True, name="KeyReader")
        self.threadObj.start()

    def stop(self) -> None:
        self.stopEvent.set()

    def loopSafe(self) -> None:
        while not self.stopEvent.is_set():
            try:
                raw = readkey()
            except KeyboardInterrupt:
                raw = CTRL_C
            except Exception:
                # stdin gone (closed pipe, no tty): nothing left to read
                return
            self.keyQueue.put_nowait(raw)

    def readCharNonBlocking(self) -> str | None:
        try:
            raw = self.keyQueue.get_nowait()
        except queue.Empty:
            return None

        if raw == CTRL_C:
            raise KeyboardInterrupt
        return normalizeKey(raw, self.enableTyping)
