"""Reception source interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from bledissect.core.model import Reception


class ReceptionSource(Protocol):
    def scan(
        self,
        duration_s: float,
        on_reception: Callable[[Reception], None],
    ) -> None:
        """Deliver receptions to ``on_reception`` for ``duration_s`` seconds."""
