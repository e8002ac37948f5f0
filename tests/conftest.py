from __future__ import annotations

import asyncio
import inspect
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, AsyncIterator, Iterable, Optional

import pytest


def _get_event_loop(request: pytest.FixtureRequest) -> asyncio.AbstractEventLoop:
    loop = request.getfixturevalue("event_loop")
    if not isinstance(loop, asyncio.AbstractEventLoop):  # pragma: no cover - defensive
        raise TypeError("event_loop fixture must provide an asyncio event loop")
    return loop


def _resolve_kwargs(request: pytest.FixtureRequest, argnames: tuple[str, ...]) -> dict[str, Any]:
    return {name: request.getfixturevalue(name) for name in argnames}


@pytest.fixture(scope="session")
def event_loop() -> asyncio.AbstractEventLoop:
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.hookimpl(tryfirst=True)
def pytest_fixture_setup(fixturedef: pytest.FixtureDef[Any], request: pytest.FixtureRequest) -> Any:
    if inspect.iscoroutinefunction(fixturedef.func):
        loop = _get_event_loop(request)
        kwargs = _resolve_kwargs(request, fixturedef.argnames)
        result = loop.run_until_complete(fixturedef.func(**kwargs))
        fixturedef.cached_result = (result, 0, None)
        return result

    if inspect.isasyncgenfunction(fixturedef.func):
        loop = _get_event_loop(request)
        kwargs = _resolve_kwargs(request, fixturedef.argnames)
        async_gen = fixturedef.func(**kwargs)

        async def get_value() -> Any:
            try:
                value = await async_gen.__anext__()
            except StopAsyncIteration as exc:  # pragma: no cover - defensive
                raise RuntimeError("Async generator fixture didn't yield") from exc

            async def finalizer() -> None:
                try:
                    await async_gen.__anext__()
                except StopAsyncIteration:
                    return
                else:  # pragma: no cover - defensive
                    raise RuntimeError("Async generator fixture yielded more than once")

            request.addfinalizer(lambda: loop.run_until_complete(finalizer()))
            return value

        result = loop.run_until_complete(get_value())
        fixturedef.cached_result = (result, 0, None)
        return result

    return None


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = pyfuncitem._request.getfixturevalue("event_loop")  # type: ignore[attr-defined]
        kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
        }
        loop.run_until_complete(test_function(**kwargs))
        return True
    return None


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring asyncio support")
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


class RecordingSleep:
    """Drop-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeCompletions:
    """Mimics ``AsyncOpenAI().chat.completions`` for streamed and plain calls."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.chunks: list[Optional[str]] = ["A vivid, ", "detailed scene"]
        self.content: Optional[str] = '[{"description": "A quiet harbour at dawn. Soft pastel light"}]'
        self.error: Optional[Exception] = None

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return self._stream(self.chunks)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])

    @staticmethod
    async def _stream(chunks: Iterable[Optional[str]]) -> AsyncIterator[Any]:
        for chunk in chunks:
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=chunk))])


class FakeCompletionClient:
    def __init__(self) -> None:
        self.completions = FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def completion_client() -> FakeCompletionClient:
    return FakeCompletionClient()
