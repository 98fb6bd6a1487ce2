"""Loading and validation of YAML record layouts for bledissect decoders."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from bledissect.core.decoders import FIXED_FORMAT_SIZES
from bledissect.core.errors import BledissectError, LayoutLoadError, LayoutValidationError
from bledissect.core.model import LayoutField, RecordLayout
from bledissect.core.record_types import AppleRecordType

_HEX_RE = re.compile(r"^[0-9a-f]*$")
_MAX_PAYLOAD_BYTES = 255
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


class DuplicateKeyError(yaml.YAMLError):
    """Raised by the YAML loader on a repeated mapping key."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise DuplicateKeyError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedLayouts:
    layouts: dict[int, RecordLayout]
    warnings: tuple[str, ...]


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("bledissect.schemas").joinpath(name).read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _layout_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "bledissect/layouts", xdg_data / "bledissect/layouts"


def read_yaml(
    path: Path | Traversable,
    *,
    load_error: type[BledissectError] = LayoutLoadError,
    validation_error: type[BledissectError] = LayoutValidationError,
) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise load_error(f"Could not read {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise validation_error(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise validation_error(f"File {path} must contain a mapping at root")
    return loaded


def normalize_hex(
    value: str,
    *,
    context: str,
    error: type[BledissectError] = LayoutValidationError,
    allow_empty: bool = False,
) -> bytes:
    normalized = value.strip().lower().replace(" ", "").replace(":", "")
    if normalized.startswith("0x"):
        normalized = normalized[2:]
    if len(normalized) == 0 and not allow_empty:
        raise error(f"{context} must not be empty")
    if len(normalized) % 2 != 0:
        raise error(f"{context} must have even-length hex")
    if not _HEX_RE.match(normalized):
        raise error(f"{context} must contain only [0-9a-f]")
    payload = bytes.fromhex(normalized)
    if len(payload) > _MAX_PAYLOAD_BYTES:
        raise error(f"{context} exceeds max payload size {_MAX_PAYLOAD_BYTES} bytes")
    return payload


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise LayoutValidationError(f"{context} must be boolean true/false")


def _build_field(doc: dict[str, Any], *, context: str) -> LayoutField:
    fmt = doc["format"]
    size = doc.get("size")
    if size == "rest":
        if fmt != "bytes":
            raise LayoutValidationError(f"{context}: only 'bytes' fields may use size 'rest'")
        size = None
    elif fmt in FIXED_FORMAT_SIZES:
        if size is not None and size != FIXED_FORMAT_SIZES[fmt]:
            raise LayoutValidationError(
                f"{context}: format '{fmt}' is {FIXED_FORMAT_SIZES[fmt]} bytes, not {size}"
            )
        size = FIXED_FORMAT_SIZES[fmt]
    elif size is None:
        raise LayoutValidationError(f"{context}: 'bytes' fields need a size")

    expect = doc.get("expect")
    if expect is not None and fmt == "bytes":
        raise LayoutValidationError(f"{context}: 'expect' only applies to integer formats")

    return LayoutField(
        name=doc["name"],
        offset=int(doc["offset"]),
        format=fmt,
        size=size,
        optional=_normalize_bool(doc.get("optional", False), context=f"{context}.optional"),
        expect=expect,
    )


def _build_layout(doc: dict[str, Any], source: Path | Traversable) -> RecordLayout:
    validator = load_schema_validator("layout.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise LayoutValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    record_type = doc["type"]
    if record_type == AppleRecordType.OFFLINE_FINDING:
        raise LayoutValidationError(
            f"Record type 0x{record_type:02x} in {source} is reserved for offline finding"
        )

    min_length = doc["min_length"]
    fields: list[LayoutField] = []
    seen: set[str] = set()
    for field_doc in doc["fields"]:
        context = f"{doc['name']}.{field_doc['name']}"
        if field_doc["name"] in seen:
            raise LayoutValidationError(f"Duplicate field '{field_doc['name']}' in {source}")
        seen.add(field_doc["name"])

        spec = _build_field(field_doc, context=context)
        if not spec.optional:
            end = spec.offset + (spec.size if spec.size is not None else 1)
            if end > min_length:
                raise LayoutValidationError(
                    f"{context}: required field ends at byte {end} beyond min_length {min_length}"
                )
        fields.append(spec)

    return RecordLayout(
        type=record_type,
        name=doc["name"],
        min_length=min_length,
        fields=tuple(fields),
        source=str(source),
    )


def _iter_packaged_layout_paths() -> list[Traversable]:
    layout_root = resources.files("bledissect.layouts")
    return [item for item in layout_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_layout_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _layout_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_layouts(*, include_user: bool = True) -> LoadedLayouts:
    layouts: dict[int, RecordLayout] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_layout_paths(), key=lambda p: p.name):
        layout = _build_layout(read_yaml(path), path)
        layouts[layout.type] = layout

    if include_user:
        for path in _iter_user_layout_paths():
            layout = _build_layout(read_yaml(path), path)
            if layout.type in layouts:
                warning = f"User layout '{path.name}' overrides record type 0x{layout.type:02x}"
                LOGGER.warning(warning)
                warnings.append(warning)
            layouts[layout.type] = layout

    return LoadedLayouts(layouts=layouts, warnings=tuple(warnings))
