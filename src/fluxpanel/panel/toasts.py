from __future__ import annotations

import itertools
import time
from dataclasses import asdict, dataclass
from typing import Callable, Literal

ToastKind = Literal["success", "error", "info"]


@dataclass(frozen=True)
class Toast:
    id: int
    message: str
    kind: ToastKind
    expires_at: float


class ToastQueue:
    def __init__(self, ttl: float = 4.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = float(ttl)
        self._clock = clock
        self._ids = itertools.count(1)
        self._items: list[Toast] = []

    def add(self, message: str, kind: ToastKind = "success") -> Toast:
        t = Toast(id=next(self._ids), message=str(message), kind=kind, expires_at=self._clock() + self.ttl)
        self._items.append(t)
        return t

    def dismiss(self, toast_id: int) -> None:
        self._items = [t for t in self._items if t.id != toast_id]

    def active(self) -> list[Toast]:
        now = self._clock()
        self._items = [t for t in self._items if t.expires_at > now]
        return list(self._items)

    def last(self) -> Toast | None:
        items = self.active()
        return items[-1] if items else None

    def to_json(self) -> list[dict]:
        return [asdict(t) for t in self.active()]
