"""Tests for the console loop and the command-line entry point."""

import asyncio
import threading
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import (
    Any,
    Iterable,
    List,
    Tuple,
)

import pytest

from mcpchat import main as main_module
from mcpchat.agent import tool_executor
from mcpchat.agent.planner_interface import UpstreamError
from mcpchat.agent.tool_executor import ToolServer
from mcpchat.client.cli import (
    read_in_background,
    run_cli,
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------
def _lines(*lines: str):  # type: ignore[no-untyped-def]
    """Feed *lines* to the loop, then report end of input."""
    queue = list(lines)

    def read_message() -> Tuple[str, bool]:
        if not queue:
            return "", False
        return queue.pop(0), True

    return read_message


class FakeOrchestrator:
    """Answers from a script; exceptions in the script are raised."""

    def __init__(self, answers: Iterable[Any] = ()) -> None:
        self.answers = list(answers)
        self.queries: List[str] = []

    async def process_query(self, query: str) -> str:
        self.queries.append(query)
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


class CountingExitStack:
    def __init__(self) -> None:
        self.closed = 0

    async def aclose(self) -> None:
        self.closed += 1


def _run_cli(orchestrator: FakeOrchestrator, *lines: str) -> None:
    asyncio.run(run_cli(orchestrator, _lines(*lines), quit_command="quit"))  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Console loop
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("sentinel", ["quit", "QUIT", "Quit"])
def test_quit_in_any_case(sentinel: str) -> None:
    """The quit command ends the loop before anything is sent."""

    orchestrator = FakeOrchestrator()
    _run_cli(orchestrator, sentinel, "never asked")

    assert orchestrator.queries == []


def test_quit_must_match_exactly() -> None:
    """Only the bare sentinel quits; longer lines are queries."""

    orchestrator = FakeOrchestrator(["ok"])
    _run_cli(orchestrator, "quit now", "quit")

    assert orchestrator.queries == ["quit now"]


def test_answers_are_printed(capsys: pytest.CaptureFixture[str]) -> None:
    orchestrator = FakeOrchestrator(["It is sunny."])
    _run_cli(orchestrator, "weather?", "quit")

    out = capsys.readouterr().out
    assert "Type your queries or 'quit' to exit." in out
    assert "It is sunny." in out


def test_failed_query_does_not_end_session(capsys: pytest.CaptureFixture[str]) -> None:
    """Errors are reported on stderr and the next query is still answered."""

    orchestrator = FakeOrchestrator([UpstreamError("endpoint down"), "second answer"])
    _run_cli(orchestrator, "first", "second", "quit")

    captured = capsys.readouterr()
    assert orchestrator.queries == ["first", "second"]
    assert "Error processing query: endpoint down" in captured.err
    assert "second answer" in captured.out


def test_end_of_input_and_blank_lines() -> None:
    """Blank lines are skipped and EOF ends the loop."""

    orchestrator = FakeOrchestrator(["answer"])
    _run_cli(orchestrator, "", "   ", "question")

    assert orchestrator.queries == ["question"]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
@pytest.fixture
def no_side_effects(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fail loudly if the entry point spawns a server or builds a planner."""

    def forbidden(*args: Any, **kwargs: Any) -> None:
        raise AssertionError("should not be reached")

    monkeypatch.setattr(tool_executor, "stdio_client", forbidden)
    monkeypatch.setattr(main_module, "load_planner", forbidden)


@pytest.mark.usefixtures("no_side_effects")
def test_main_requires_script(capsys: pytest.CaptureFixture[str]) -> None:
    """A missing argument prints usage and exits non-zero."""

    with pytest.raises(SystemExit) as exc_info:
        main_module.main([])

    assert exc_info.value.code != 0
    assert "usage" in capsys.readouterr().err.lower()


@pytest.mark.usefixtures("no_side_effects")
def test_main_rejects_unsupported_script(capsys: pytest.CaptureFixture[str]) -> None:
    """An unsupported extension exits with status 1 before spawning anything."""

    with pytest.raises(SystemExit) as exc_info:
        main_module.main(["server.rb"])

    assert exc_info.value.code == 1
    assert "Server script must be a .py or .js file" in capsys.readouterr().err


@pytest.fixture
def fake_session(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    """Run ``main()`` against an in-memory server; records releases and planner arguments."""

    exit_stack = CountingExitStack()
    server = ToolServer(None, exit_stack, [], "weather.py")  # type: ignore[arg-type]
    planners: List[Any] = []

    @asynccontextmanager
    async def fake_connect(script_path: str, timeout: float | None = None):  # type: ignore[no-untyped-def]
        try:
            yield server
        finally:
            await server.close()
            await server.close()

    def fake_load_planner(**kwargs: Any) -> Any:
        planners.append(kwargs)
        return object()

    monkeypatch.setattr(main_module, "connect_to_server", fake_connect)
    monkeypatch.setattr(main_module, "load_planner", fake_load_planner)
    return SimpleNamespace(exit_stack=exit_stack, planners=planners)


def test_main_quit_closes_server_once(
    fake_session: SimpleNamespace, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Quitting releases the tool server exactly once, even if close is requested again."""

    monkeypatch.setattr("builtins.input", lambda prompt="": "QUIT")

    main_module.main(["weather.py", "--model", "local-model"])

    assert fake_session.exit_stack.closed == 1
    assert fake_session.planners == [{"model": "local-model"}]


def test_main_ctrl_c_ends_session_cleanly(
    fake_session: SimpleNamespace, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Ctrl+C at the prompt returns from ``main()`` normally and closes the server once."""

    def interrupted(prompt: str = "") -> str:
        raise KeyboardInterrupt

    monkeypatch.setattr("builtins.input", interrupted)

    main_module.main(["weather.py"])  # no exception, no SystemExit

    assert fake_session.exit_stack.closed == 1


def test_cancelled_read_does_not_wait_for_input() -> None:
    """Cancelling the session while input is pending returns at once."""

    release = threading.Event()

    def blocked() -> Tuple[str, bool]:
        release.wait(5)
        return "too late", True

    async def scenario() -> None:
        task = asyncio.create_task(read_in_background(blocked))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    try:
        asyncio.run(scenario())
    finally:
        release.set()


def test_read_in_background_returns_line() -> None:
    assert asyncio.run(read_in_background(lambda: ("hello", True))) == ("hello", True)
