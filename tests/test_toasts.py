from __future__ import annotations

from fluxpanel.panel.toasts import ToastQueue


class Clock:
    def __init__(self):
        self.t = 100.0

    def __call__(self) -> float:
        return self.t


def test_toasts_expire_after_ttl():
    clock = Clock()
    q = ToastQueue(ttl=4, clock=clock)
    q.add("saved")
    clock.t += 2
    q.add("oops", "error")
    assert [t.message for t in q.active()] == ["saved", "oops"]

    clock.t += 2.5
    assert [t.message for t in q.active()] == ["oops"]
    assert q.last().kind == "error"

    clock.t += 10
    assert q.last() is None
    assert q.to_json() == []


def test_dismiss():
    q = ToastQueue(clock=lambda: 0.0)
    a = q.add("a")
    q.add("b", "info")
    q.dismiss(a.id)
    assert [t["message"] for t in q.to_json()] == ["b"]
    assert q.to_json()[0]["kind"] == "info"
