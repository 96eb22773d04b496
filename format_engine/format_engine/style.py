"""Style configuration.

:class:`StyleConfig` is the immutable, validated bundle of every formatting
option.  Attribute names are snake_case; the camelCase names used by style
files and the original formatter settings (``caseMode``,
``breakBeforeComma`` ...) are accepted as aliases.  Invalid values raise
:class:`~format_engine._types.ConfigValidationError` at construction.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from format_engine._types import ConfigValidationError
from format_engine.dialects import Dialect, is_registered

logger = logging.getLogger(__name__)


class CaseMode(str, enum.Enum):
    """Casing applied to keywords or identifiers."""

    UNCHANGED = "unchanged"
    UPPER = "upper"
    LOWER = "lower"
    CAPITALIZE = "capitalize"

    def apply(self, text: str) -> str:
        if self is CaseMode.UPPER:
            return text.upper()
        if self is CaseMode.LOWER:
            return text.lower()
        if self is CaseMode.CAPITALIZE:
            return text[:1].upper() + text[1:].lower()
        return text


class Spacing(str, enum.Enum):
    """Tri-state spacing policy for commas, operators and brackets."""

    NONE = "none"
    ONE_SPACE = "one-space"
    SYMMETRIC = "symmetric"


def _lower_enum_value(v: object) -> object:
    if isinstance(v, str):
        return v.strip().lower().replace("_", "-")
    return v


class AlignPosition(BaseModel):
    """Column alignment of clause bodies."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=False, description="Pad clause bodies to the column.")
    column: int = Field(default=60, gt=0, description="0-based target column.")

    @model_validator(mode="before")
    @classmethod
    def from_pair(cls, data: Any) -> Any:
        if isinstance(data, (tuple, list)) and len(data) == 2:
            return {"enabled": data[0], "column": data[1]}
        return data


class StyleConfig(BaseModel):
    """Every formatting option, validated and frozen.

    The defaults reproduce the settings hard-coded by the original
    formatter wrapper.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    source_dialect: str = Field(default=Dialect.ORACLE.value, description="Registered dialect name.")
    case_mode: CaseMode = Field(default=CaseMode.UPPER, description="Keyword casing.")
    identifier_case: CaseMode = Field(default=CaseMode.UNCHANGED, description="Unquoted identifier casing.")

    # Line breaks
    break_before_keyword: bool = Field(default=False, description="Newline before each clause keyword.")
    break_before_case: bool = Field(default=True, description="Newline before WHEN, ELSE and END.")
    break_before_comma: bool = Field(default=True, description="Comma-first clause lists.")
    break_before_concat: bool = Field(default=False, description="Newline before '||'.")
    break_before_block_comment: bool = Field(default=False, description="Newline before '/* */' comments.")
    break_before_select_bracket: bool = Field(default=False, description="Newline before a subquery '('.")
    break_before_condition_bracket: bool = Field(default=False, description="Newline before a condition '('.")
    break_before_close_condition_bracket: bool = Field(
        default=False, description="Newline before a condition ')'."
    )
    break_after_comma: bool = Field(default=False, description="Comma-last clause lists.")
    break_after_condition_bracket: bool = Field(default=False, description="Newline after a condition '('.")
    double_break_before_union: bool = Field(default=False, description="Blank lines around set operators.")
    break_before_case_and_or: bool = Field(default=False, description="Newline before AND/OR inside WHEN.")
    break_before_and_or: bool = Field(default=False, description="Newline before AND/OR in conditions.")

    # Spacing
    equal_spacing: Spacing = Field(default=Spacing.ONE_SPACE, description="Spacing around operators.")
    bracket_spacing: Spacing = Field(default=Spacing.NONE, description="Spacing inside brackets.")
    comma_spacing: Spacing = Field(default=Spacing.ONE_SPACE, description="Spacing around commas.")

    # Indentation and alignment
    case_then_indent: bool = Field(default=True, description="Indent WHEN/ELSE past CASE.")
    align_comma: bool = Field(default=False, description="Commas at the clause keyword column.")
    align_position: AlignPosition = Field(default_factory=AlignPosition, description="Clause body column.")
    indent_width: int = Field(default=4, ge=0, description="Spaces per indentation level.")

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigValidationError(_summarize(exc), exc.errors(include_url=False)) from exc

    @field_validator("source_dialect", mode="before")
    @classmethod
    def known_dialect(cls, v: object) -> object:
        if isinstance(v, Dialect):
            return v.value
        if isinstance(v, str):
            name = v.strip().lower()
            if not is_registered(name):
                raise ValueError(f"unknown dialect {v!r}")
            return name
        return v

    @field_validator(
        "case_mode",
        "identifier_case",
        "equal_spacing",
        "bracket_spacing",
        "comma_spacing",
        mode="before",
    )
    @classmethod
    def normalise_enum(cls, v: object) -> object:
        return _lower_enum_value(v)

    def with_options(self, **changes: Any) -> StyleConfig:
        """Return a validated copy with *changes* applied (either naming)."""
        data = self.model_dump()
        data.update({field_name(k): v for k, v in changes.items()})
        return StyleConfig(**data)

    def to_file_dict(self) -> dict[str, Any]:
        """Options under their camelCase names, as written in style files."""
        return self.model_dump(mode="json", by_alias=True)


def field_name(key: str) -> str:
    """Map a camelCase alias or snake_case name to the attribute name."""
    if key in StyleConfig.model_fields:
        return key
    for name, info in StyleConfig.model_fields.items():
        if info.alias == key:
            return name
    raise ConfigValidationError(f"Unknown style option: {key!r}")


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors(include_url=False):
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<config>"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "Invalid style configuration: " + "; ".join(parts)


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

PRESETS: dict[str, StyleConfig] = {
    "default": StyleConfig(),
    "compact": StyleConfig(
        break_before_case=False,
        break_before_comma=False,
    ),
    "expanded": StyleConfig(
        break_before_keyword=True,
        break_before_comma=True,
        break_before_and_or=True,
        break_before_case_and_or=True,
        double_break_before_union=True,
    ),
}

PRESET_DESCRIPTIONS: dict[str, str] = {
    "default": "Settings of the original formatter wrapper",
    "compact": "Everything on as few lines as possible",
    "expanded": "One clause per line, comma-first lists, AND/OR breaks",
}


def get_preset(name: str) -> StyleConfig:
    """Return the preset called *name*."""
    preset = PRESETS.get(name.strip().lower())
    if preset is None:
        raise ConfigValidationError(f"Unknown preset {name!r}; choose from {', '.join(sorted(PRESETS))}")
    return preset


# ---------------------------------------------------------------------------
# Style files
# ---------------------------------------------------------------------------


def style_from_mapping(data: dict[str, Any], base: StyleConfig | None = None) -> StyleConfig:
    """Build a StyleConfig from a mapping of option names to values.

    A ``preset`` key selects the base configuration; the remaining keys
    override it.
    """
    options = dict(data)
    preset = options.pop("preset", None)
    if preset is not None:
        base = get_preset(str(preset))
    return (base or StyleConfig()).with_options(**options)


def load_style_file(path: str | Path, base: StyleConfig | None = None) -> StyleConfig:
    """Load a YAML style file.

    Raises
    ------
    ConfigValidationError
        If the file cannot be read, is not a YAML mapping, or holds invalid
        option values.
    """
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigValidationError(f"Cannot read style file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Malformed style file {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"Style file {path} must contain a mapping of options")

    logger.debug("Loaded style file %s with %d options", path, len(raw))
    return style_from_mapping(raw, base=base)
