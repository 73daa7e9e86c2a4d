from __future__ import annotations

import pytest

from lw_core.listeners import ListenerRegistry, ListenerToken


class _Recorder:
    def __init__(self) -> None:
        self.calls = []

    def __call__(self, value) -> None:
        self.calls.append(value)

    def __eq__(self, other) -> bool:
        # Deliberately equal to every other recorder.
        return isinstance(other, _Recorder)

    __hash__ = object.__hash__


def test_tokens_are_unique():
    reg = ListenerRegistry()
    cb = _Recorder()

    t1 = reg.add(cb)
    t2 = reg.add(cb)

    assert isinstance(t1, ListenerToken)
    assert t1 != t2
    assert len(reg) == 2


def test_remove_by_token_removes_one_registration():
    reg = ListenerRegistry()
    cb = _Recorder()
    t1 = reg.add(cb)
    reg.add(cb)

    assert reg.remove(t1) == 1
    assert reg.remove(t1) == 0

    reg.notify("x")
    assert cb.calls == ["x"]


def test_remove_by_callback_uses_identity():
    reg = ListenerRegistry()
    a = _Recorder()
    b = _Recorder()
    assert a == b
    reg.add(a)
    reg.add(b)
    reg.add(a)

    assert reg.remove(a) == 2

    reg.notify(1)
    assert a.calls == []
    assert b.calls == [1]


def test_listener_may_unsubscribe_during_notify():
    reg = ListenerRegistry()
    seen = []
    token_box = {}

    def once(value):
        seen.append(value)
        reg.remove(token_box["t"])

    token_box["t"] = reg.add(once)
    other = _Recorder()
    reg.add(other)

    reg.notify("a")
    reg.notify("b")

    assert seen == ["a"]
    assert other.calls == ["a", "b"]


def test_failing_listener_does_not_stop_others():
    reg = ListenerRegistry()

    def boom(_value):
        raise RuntimeError("nope")

    ok = _Recorder()
    reg.add(boom)
    reg.add(ok)

    reg.notify(42)

    assert ok.calls == [42]


def test_add_rejects_non_callable():
    reg = ListenerRegistry()
    with pytest.raises(TypeError):
        reg.add("not callable")
