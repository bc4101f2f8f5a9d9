"""
Refresh scheduler.

Each registered plugin gets a PluginSchedule: a timer thread when the plugin
declares an interval, and an in-flight/pending pair guarded by a lock. Runs
go to a shared ThreadPoolExecutor. Requests that arrive while a run is in
flight collapse into a single trailing run, so a plugin never executes twice
at the same time.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from .compiler import compileResult
from .pluginApi import MODE_SYNC, ExecutionResult, MenuNode, PluginSource

LogFn = Callable[[str], None]
Subscriber = Callable[[str, MenuNode], None]


class PluginSchedule:
    def __init__(self, source: PluginSource) -> None:
        self.source = source
        self.lock = threading.Lock()
        self.inFlight = False
        self.pending = False
        self.pendingReason = ""
        self.cancelled = False
        self.generation = 0
        self.runCount = 0

        self.tree: MenuNode | None = None
        self.lastResult: ExecutionResult | None = None
        self.subscribers: list[Subscriber] = []

        self.stopEvent = threading.Event()
        self.threadObj: threading.Thread | None = None


class RefreshScheduler:
    def __init__(
        self,
        runner,
        *,
        maxWorkers: int = 4,
        logFn: LogFn | None = None,
        compileFn: Callable[..., MenuNode] = compileResult,
    ) -> None:
        self.runner = runner
        self.logFn = logFn
        self.compileFn = compileFn
        self.maxWorkers = max(1, int(maxWorkers))
        self.pool = ThreadPoolExecutor(max_workers=self.maxWorkers, thread_name_prefix="scriptbar")
        self.schedules: dict[str, PluginSchedule] = {}
        # unregistered schedules whose run has not finished yet
        self.retired: dict[str, PluginSchedule] = {}
        self.schedulesLock = threading.Lock()

    def writeLog(self, text: str) -> None:
        if self.logFn is not None:
            self.logFn(text)

    def get(self, name: str) -> PluginSchedule | None:
        with self.schedulesLock:
            return self.schedules.get(name)

    def names(self) -> list[str]:
        with self.schedulesLock:
            return list(self.schedules.keys())

    def register(self, source: PluginSource) -> PluginSchedule | None:
        """
        (Re)register a plugin. An existing schedule, or one that was
        unregistered while its run is still going, is reused so that run
        keeps blocking new ones; its result is dropped and a refresh
        requested now becomes the trailing run.
        """
        if not source.enabled:
            self.unregister(source.name)
            return None

        with self.schedulesLock:
            sched = self.schedules.get(source.name) or self.retired.pop(source.name, None)
            if sched is None:
                sched = PluginSchedule(source)
            self.schedules[source.name] = sched

            sched.stopEvent.set()
            with sched.lock:
                sched.source = source
                sched.generation += 1
                sched.cancelled = False
                sched.subscribers.clear()
                sched.stopEvent = threading.Event()
                sched.threadObj = None

        if source.isScheduled:
            sched.threadObj = threading.Thread(
                target=self.timerLoopSafe,
                args=(sched, sched.stopEvent),
                daemon=True,
                name=f"timer:{source.name}",
            )
            sched.threadObj.start()
        return sched

    def unregister(self, name: str) -> bool:
        with self.schedulesLock:
            sched = self.schedules.pop(name, None)
            if sched is None:
                return False

            sched.stopEvent.set()
            with sched.lock:
                sched.cancelled = True
                sched.pending = False
                sched.subscribers.clear()
                if sched.inFlight:
                    self.retired[name] = sched
        return True

    def subscribe(self, name: str, fn: Subscriber) -> Callable[[], None]:
        sched = self.get(name)
        if sched is None:
            return lambda: None

        with sched.lock:
            sched.subscribers.append(fn)

        def unsubscribe() -> None:
            with sched.lock:
                if fn in sched.subscribers:
                    sched.subscribers.remove(fn)

        return unsubscribe

    def latest(self, name: str) -> MenuNode | None:
        sched = self.get(name)
        return sched.tree if sched is not None else None

    def lastResult(self, name: str) -> ExecutionResult | None:
        sched = self.get(name)
        return sched.lastResult if sched is not None else None

    def requestRefresh(self, name: str, reason: str = "manual") -> bool:
        """True if a new run started, False if coalesced or unknown."""
        sched = self.get(name)
        if sched is None:
            return False

        with sched.lock:
            if sched.cancelled:
                return False
            if sched.inFlight:
                sched.pending = True
                sched.pendingReason = sched.pendingReason or reason
                return False
            sched.inFlight = True

        self.submit(sched, reason)
        return True

    def refreshAll(self, reason: str = "manual") -> int:
        started = 0
        for name in self.names():
            if self.requestRefresh(name, reason):
                started += 1
        return started

    def submit(self, sched: PluginSchedule, reason: str) -> None:
        try:
            self.pool.submit(self.runSafe, sched, reason)
        except RuntimeError as exc:
            # pool already shut down
            with sched.lock:
                sched.inFlight = False
                sched.pending = False
            self.writeLog(f"{sched.source.name}: not scheduled ({exc})")

    def runSafe(self, sched: PluginSchedule, reason: str) -> None:
        while True:
            try:
                self.runOnce(sched, reason)
            except Exception as exc:
                self.writeLog(f"{sched.source.name}: RUN EXC {type(exc).__name__}: {exc}")

            with sched.lock:
                if sched.pending and not sched.cancelled:
                    reason = sched.pendingReason or "coalesced"
                    sched.pending = False
                    sched.pendingReason = ""
                    continue
                sched.inFlight = False
                sched.pending = False
                sched.pendingReason = ""
                wasCancelled = sched.cancelled
            break

        if wasCancelled:
            with self.schedulesLock:
                if self.retired.get(sched.source.name) is sched:
                    del self.retired[sched.source.name]

    def runOnce(self, sched: PluginSchedule, reason: str) -> None:
        with sched.lock:
            sched.runCount += 1
            generation = sched.generation
            source = sched.source

        resObj = self.runner.execute(source, MODE_SYNC, reason=reason)
        if not resObj.ok:
            self.writeLog(f"{source.name}: {resObj.describe()}")

        treeObj = self.compileFn(resObj, logFn=self.logFn)

        with sched.lock:
            # unregistered, or re-registered with a new source meanwhile
            if sched.cancelled or sched.generation != generation:
                return
            sched.lastResult = resObj
            sched.tree = treeObj
            subscribers = list(sched.subscribers)

        for fn in subscribers:
            try:
                fn(source.name, treeObj)
            except Exception as exc:
                self.writeLog(f"{source.name}: SUBSCRIBER EXC {type(exc).__name__}: {exc}")

    def timerLoopSafe(self, sched: PluginSchedule, stopEvent: threading.Event) -> None:
        try:
            self.timerLoop(sched, stopEvent)
        except Exception as exc:
            self.writeLog(f"{sched.source.name}: TIMER EXC {type(exc).__name__}: {exc}")

    def timerLoop(self, sched: PluginSchedule, stopEvent: threading.Event) -> None:
        # each registration gets its own stopEvent, an old timer never outlives it
        everySec = max(0.05, float(sched.source.everySec or 0.0))
        nextTs = time.time() + everySec
        while not stopEvent.is_set():
            waitSec = nextTs - time.time()
            if waitSec > 0 and stopEvent.wait(waitSec):
                return
            nextTs = time.time() + everySec
            self.requestRefresh(sched.source.name, "schedule")

    def shutdown(self, wait: bool = False) -> None:
        for name in self.names():
            self.unregister(name)
        self.pool.shutdown(wait=wait)
