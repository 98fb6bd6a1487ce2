"""Replay files of captured receptions."""

from __future__ import annotations

from pathlib import Path

from jsonschema import ValidationError

from bledissect.core.errors import ReplayError
from bledissect.core.layout_loader import load_schema_validator, normalize_hex, read_yaml
from bledissect.core.model import Reception


def load_replay(path: Path) -> tuple[Reception, ...]:
    doc = read_yaml(path, load_error=ReplayError, validation_error=ReplayError)

    validator = load_schema_validator("replay.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        where = ".".join(str(p) for p in exc.path)
        where = f" ({where})" if where else ""
        raise ReplayError(f"Schema validation failed for {path}{where}: {exc.message}") from exc

    receptions: list[Reception] = []
    for index, item in enumerate(doc["receptions"]):
        receptions.append(
            Reception(
                identity=item["device"],
                data=normalize_hex(
                    item["data"],
                    context=f"receptions.{index}.data",
                    error=ReplayError,
                    allow_empty=True,
                ),
                rssi=item["rssi"],
                timestamp=float(item.get("timestamp", index)),
                name=item.get("name"),
            )
        )
    return tuple(receptions)
