"""Record-type to decoder dispatch."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

from bledissect.core.decoders import HomeKitDecoder, LayoutDecoder, RecordDecoder
from bledissect.core.errors import DecoderNotAvailable
from bledissect.core.layout_loader import load_layouts

LOGGER = logging.getLogger(__name__)


class DecoderRegistry:
    """Explicit mapping from a one-byte record type to its decoder."""

    def __init__(self, decoders: Iterable[RecordDecoder] = ()) -> None:
        self._decoders: dict[int, RecordDecoder] = {}
        for decoder in decoders:
            self.register(decoder)

    def register(self, decoder: RecordDecoder, record_type: int | None = None) -> RecordDecoder | None:
        """Register ``decoder`` for ``record_type`` (default: its own type).

        Returns any decoder it replaced.
        """
        key = decoder.record_type if record_type is None else record_type
        previous = self._decoders.get(key)
        self._decoders[key] = decoder
        return previous

    def lookup(self, record_type: int) -> RecordDecoder:
        decoder = self._decoders.get(record_type)
        if decoder is None:
            raise DecoderNotAvailable(f"No decoder registered for record type 0x{record_type:02x}")
        return decoder

    def types(self) -> list[int]:
        return sorted(self._decoders)

    def __contains__(self, record_type: object) -> bool:
        return record_type in self._decoders

    def __len__(self) -> int:
        return len(self._decoders)


@dataclass(frozen=True)
class LoadedRegistry:
    registry: DecoderRegistry
    warnings: tuple[str, ...]


def build_registry(*, include_user: bool = True) -> LoadedRegistry:
    loaded = load_layouts(include_user=include_user)
    warnings = list(loaded.warnings)

    registry = DecoderRegistry([HomeKitDecoder()])
    for record_type, layout in sorted(loaded.layouts.items()):
        replaced = registry.register(LayoutDecoder(layout))
        if replaced is not None:
            warning = f"Layout {layout.source} replaces built-in decoder for record type 0x{record_type:02x}"
            LOGGER.warning(warning)
            warnings.append(warning)

    return LoadedRegistry(registry=registry, warnings=tuple(warnings))


@lru_cache(maxsize=1)
def default_registry() -> DecoderRegistry:
    """Built-in and packaged decoders only; user layouts need build_registry()."""
    return build_registry(include_user=False).registry
