import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("CANDIDATE_STORE_PATH", "")

    from screener.ai import llm
    from screener.system_metrics import reset_metrics

    # AI unavailable unless a test installs a fake client
    monkeypatch.setattr(llm, "client", None)
    reset_metrics()


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_chat_client(create_fn):
    """Builds an object shaped like AsyncOpenAI exposing chat.completions.create."""

    class _Completions:
        create = staticmethod(create_fn)

    class _Chat:
        completions = _Completions()

    class _Client:
        chat = _Chat()

    return _Client()


def make_response(content):
    class _Msg:
        pass

    class _Choice:
        pass

    class _Response:
        pass

    msg = _Msg()
    msg.content = content
    choice = _Choice()
    choice.message = msg
    response = _Response()
    response.choices = [choice]
    return response


@pytest.fixture
def scripted_llm(monkeypatch: pytest.MonkeyPatch):
    """
    Installs a fake provider replying with the given items in order (the last
    one repeats). Exceptions in the script are raised instead of returned.
    Returns the list of recorded create() kwargs.
    """
    from screener.ai import llm

    def _install(*replies):
        calls = []
        queue = list(replies)

        async def _create(*args, **kwargs):
            calls.append(kwargs)
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, Exception):
                raise item
            return make_response(item)

        monkeypatch.setattr(llm, "client", make_chat_client(_create))
        return calls

    return _install


@pytest.fixture
def install_llm(monkeypatch: pytest.MonkeyPatch):
    """Installs a fake provider around an arbitrary async create() function."""
    from screener.ai import llm

    def _install(create_fn):
        monkeypatch.setattr(llm, "client", make_chat_client(create_fn))

    return _install
