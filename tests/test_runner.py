from __future__ import annotations

import threading
from pathlib import Path

from barlib.pluginApi import (
    FAIL_EXIT_STATUS,
    FAIL_NOT_FOUND,
    FAIL_SIGNAL,
    FAIL_SPAWN,
    FAIL_TIMEOUT,
    MODE_BACKGROUND,
    MODE_TERMINAL,
    PluginSource,
)
from barlib.runner import ScriptRunner, buildCommandLine, classifyExit
from conftest import waitFor


class FakeLauncher:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail = fail

    def launch(self, commandLine: str, terminalId: str) -> None:
        if self.fail:
            raise RuntimeError("no display")
        self.calls.append((commandLine, terminalId))


def sourceFor(pathObj: Path, **kw) -> PluginSource:
    return PluginSource(name=pathObj.name, path=pathObj, **kw)


def test_sync_run_captures_stdout_and_stderr(makeScript) -> None:
    script = makeScript("hello.sh", "echo 'Hi|color=red'\necho oops >&2")
    res = ScriptRunner().execute(sourceFor(script))

    assert res.ok
    assert res.exitCode == 0
    assert res.text == "Hi|color=red\n"
    assert res.stderr.strip() == "oops"
    assert res.plugin == "hello.sh"


def test_plugin_env_is_provided(makeScript, tmp_path) -> None:
    script = makeScript(
        "env.sh",
        'echo "$SCRIPTBAR|$SCRIPTBAR_PLUGIN_PATH|$SCRIPTBAR_PLUGINS_PATH|$SCRIPTBAR_PLUGIN_REFRESH_REASON|$EXTRA|$OWN"',
    )
    runner = ScriptRunner(pluginDirectory=tmp_path)
    res = runner.execute(sourceFor(script, env={"OWN": "mine"}), env={"EXTRA": "x"}, reason="schedule")

    parts = res.text.strip().split("|")
    assert parts == ["1", str(script), str(tmp_path), "schedule", "x", "mine"]


def test_nonzero_exit_keeps_output(makeScript) -> None:
    script = makeScript("fail.sh", "echo partial\nexit 3")
    res = ScriptRunner().execute(sourceFor(script))

    assert not res.ok
    assert res.failure == FAIL_EXIT_STATUS
    assert res.exitCode == 3
    assert res.text == "partial\n"
    assert "rc=3" in res.describe()


def test_missing_script_is_not_found(tmp_path) -> None:
    res = ScriptRunner().execute(sourceFor(tmp_path / "ghost.sh"))
    assert res.failure == FAIL_NOT_FOUND


def test_non_executable_is_spawn_error(makeScript) -> None:
    script = makeScript("plain.sh", "echo hi", executable=False)
    res = ScriptRunner().execute(sourceFor(script))
    assert res.failure == FAIL_SPAWN
    assert "PermissionError" in res.detail


def test_timeout_kills_and_keeps_partial_output(makeScript) -> None:
    script = makeScript("slow.sh", "echo early\nsleep 10\necho late")
    res = ScriptRunner(timeoutSec=0.5).execute(sourceFor(script))

    assert res.failure == FAIL_TIMEOUT
    assert res.text == "early\n"


def test_signal_is_reported(makeScript) -> None:
    script = makeScript("sig.sh", "kill -TERM $$")
    res = ScriptRunner().execute(sourceFor(script))
    assert res.failure == FAIL_SIGNAL
    assert res.detail == "SIGTERM"


def test_classify_exit() -> None:
    assert classifyExit(0) == (None, "")
    assert classifyExit(2) == (FAIL_EXIT_STATUS, "rc=2")
    assert classifyExit(-9) == (FAIL_SIGNAL, "SIGKILL")


def test_background_run_reports_when_done(makeScript, logSink) -> None:
    script = makeScript("bg.sh", "echo done-bg")
    results = []
    doneEvent = threading.Event()

    def onDone(res) -> None:
        results.append(res)
        doneEvent.set()

    runner = ScriptRunner(logFn=logSink)
    immediate = runner.runCommand([str(script)], MODE_BACKGROUND, label="bg", doneFn=onDone)

    assert immediate.ok
    assert doneEvent.wait(5.0)
    assert results[0].text == "done-bg\n"
    assert waitFor(lambda: "bg OK" in logSink.joined())
    assert "done-bg" in logSink.joined()


def test_background_failure_is_logged(makeScript, logSink) -> None:
    script = makeScript("bgfail.sh", "exit 4")
    runner = ScriptRunner(logFn=logSink)
    runner.runCommand([str(script)], MODE_BACKGROUND, label="bgfail")
    assert waitFor(lambda: "bgfail FAIL exitStatus (rc=4)" in logSink.joined())


def test_build_command_line_quotes() -> None:
    assert buildCommandLine(["/bin/echo", "hi there"], {"A": "x y"}) == "export A='x y'; /bin/echo 'hi there'"
    assert buildCommandLine(["/bin/true"]) == "/bin/true"


def test_terminal_mode_hands_off(makeScript) -> None:
    launcher = FakeLauncher()
    runner = ScriptRunner(terminalLauncher=launcher, terminalId="tmux")
    doneList = []

    res = runner.runCommand(["/bin/echo", "hi"], MODE_TERMINAL, {"K": "v"}, doneFn=doneList.append)

    assert res.ok
    assert launcher.calls == [("export K=v; /bin/echo hi", "tmux")]
    assert len(doneList) == 1


def test_terminal_mode_without_launcher(logSink) -> None:
    runner = ScriptRunner(logFn=logSink)
    res = runner.runCommand(["/bin/echo", "hi"], MODE_TERMINAL)
    assert res.failure == FAIL_SPAWN
    assert "no terminal launcher" in logSink.joined()


def test_terminal_launch_error(logSink) -> None:
    runner = ScriptRunner(terminalLauncher=FakeLauncher(fail=True), logFn=logSink)
    doneList = []
    res = runner.runCommand(["/bin/true"], MODE_TERMINAL, doneFn=doneList.append)
    assert res.failure == FAIL_SPAWN
    assert "no display" in res.detail
    assert doneList == []
