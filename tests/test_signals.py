from __future__ import annotations

import logging

import pytest

from cellstyle.signals import Signals


class _Owner:
    pass


def test_callbacks_run_in_subscription_order() -> None:
    signals = Signals(["changed"])
    calls: list[str] = []
    first, second = _Owner(), _Owner()
    signals.connect("changed", first, lambda value: calls.append(f"first:{value}"))
    signals.connect("changed", second, lambda value: calls.append(f"second:{value}"))
    assert signals.emit("changed", 1) == 2
    assert calls == ["first:1", "second:1"]


def test_owner_holds_one_callback_per_signal() -> None:
    signals = Signals(["changed"])
    owner = _Owner()
    calls: list[str] = []
    signals.connect("changed", owner, lambda: calls.append("old"))
    signals.connect("changed", owner, lambda: calls.append("new"))
    signals.emit("changed")
    assert calls == ["new"]
    signals.disconnect("changed", owner)
    assert not signals.is_connected("changed", owner)
    assert signals.emit("changed") == 0


def test_unknown_signal_names_raise() -> None:
    signals = Signals(["changed"])
    assert signals.names == ("changed",)
    with pytest.raises(KeyError):
        signals.emit("deleted")
    with pytest.raises(KeyError):
        signals.connect("deleted", _Owner(), print)


def test_failing_callback_is_logged_and_does_not_stop_delivery(
    caplog: pytest.LogCaptureFixture,
) -> None:
    signals = Signals(["changed"])
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("boom")

    signals.connect("changed", _Owner(), broken)
    signals.connect("changed", _Owner(), lambda: calls.append("ok"))
    with caplog.at_level(logging.ERROR, logger="cellstyle.signals"):
        delivered = signals.emit("changed")
    assert delivered == 1
    assert calls == ["ok"]
    assert caplog.records[0].event == "signals.callback_failed"
    assert caplog.records[0].signal == "changed"


def test_clear_drops_every_subscriber() -> None:
    signals = Signals(["a", "b"])
    owner = _Owner()
    signals.connect("a", owner, print)
    signals.connect("b", owner, print)
    signals.clear()
    assert not signals.is_connected("a", owner)
    assert not signals.is_connected("b", owner)
