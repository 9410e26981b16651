"""
settings.py
───────────
Immutable configuration values describing how an NER pipeline is built.

A NerSettings value is what the PipelineCache compares to decide whether a
cached pipeline is still valid for a slot, so it has to be hashable and
compared structurally.  Lists coming from config files are normalized to
tuples here; unordered fields (disabled components) are sorted so that two
configs listing the same components in a different order are equal.
"""

import json
from collections import abc
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from .errors import InvalidInput


@dataclass(frozen=True)
class EntityPattern:
    """A phrase pattern added to the pipeline's entity ruler."""
    label: str
    pattern: str

    def __post_init__(self):
        if not isinstance(self.label, str) or not self.label:
            raise InvalidInput(f"Pattern label must be a non-empty string, got {self.label!r}")
        if not isinstance(self.pattern, str) or not self.pattern.strip():
            raise InvalidInput(f"Pattern text must be a non-empty string, got {self.pattern!r}")

    def to_dict(self) -> dict:
        """Return the pattern in spaCy's entity ruler format."""
        return {"label": self.label, "pattern": self.pattern}


@dataclass(frozen=True)
class NerSettings:
    """How a pipeline for one slot must be configured.

    Attributes:
        lang: Language code, used for blank pipelines.
        model: Installed spaCy model package (e.g. "en_core_web_sm").
            None builds a blank pipeline that only finds pattern entities.
        disable: Pipeline components to disable when loading the model.
        patterns: Extra phrase patterns, typically the known names of a
            tenant (correspondents, places, ...).
        overwrite_ents: Let patterns overwrite entities found by the model.
    """
    lang: str = "en"
    model: Optional[str] = None
    disable: Tuple[str, ...] = ()
    patterns: Tuple[EntityPattern, ...] = field(default=())
    overwrite_ents: bool = False

    def __post_init__(self):
        if not isinstance(self.lang, str) or not self.lang.strip():
            raise InvalidInput(f"lang must be a non-empty string, got {self.lang!r}")
        if self.model is not None and (not isinstance(self.model, str) or not self.model.strip()):
            raise InvalidInput(f"model must be a non-empty string or None, got {self.model!r}")
        if not isinstance(self.overwrite_ents, bool):
            raise InvalidInput("overwrite_ents must be a bool")

        if not _is_sequence(self.disable):
            raise InvalidInput(f"disable must be a sequence of component names, got {self.disable!r}")
        names = list(self.disable)
        if not all(isinstance(name, str) and name for name in names):
            raise InvalidInput(f"disable must contain component names, got {self.disable!r}")
        disable = tuple(sorted(set(names)))

        if not _is_sequence(self.patterns):
            raise InvalidInput(f"patterns must be a sequence of patterns, got {self.patterns!r}")
        patterns = tuple(_coerce_pattern(p) for p in self.patterns)

        # Frozen dataclass: normalized values are written via object.__setattr__
        object.__setattr__(self, "disable", disable)
        object.__setattr__(self, "patterns", patterns)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NerSettings":
        """Build settings from plain config data.

        Args:
            data: Mapping with any of the field names as keys.  Patterns may
                be given as EntityPattern objects or {"label", "pattern"}
                dicts.

        Returns:
            A NerSettings instance.

        Raises:
            InvalidInput: If data contains unknown keys or invalid values.
        """
        if not isinstance(data, Mapping):
            raise InvalidInput(f"Settings must be a mapping, got {type(data).__name__}")

        known = {"lang", "model", "disable", "patterns", "overwrite_ents"}
        unknown = set(data) - known
        if unknown:
            raise InvalidInput(
                f"Unknown settings keys: {sorted(unknown)}. Available: {sorted(known)}"
            )
        kwargs = dict(data)
        if "disable" in kwargs:
            kwargs["disable"] = tuple(kwargs["disable"] or ())
        if "patterns" in kwargs:
            kwargs["patterns"] = tuple(kwargs["patterns"] or ())
        return cls(**kwargs)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, abc.Iterable) and not isinstance(value, (str, bytes, abc.Mapping))


def _coerce_pattern(value: Union[EntityPattern, Mapping[str, Any]]) -> EntityPattern:
    if isinstance(value, EntityPattern):
        return value
    if isinstance(value, Mapping):
        try:
            return EntityPattern(label=value["label"], pattern=value["pattern"])
        except KeyError as exc:
            raise InvalidInput(f"Pattern is missing key {exc}: {dict(value)!r}") from exc
    raise InvalidInput(f"Cannot use {value!r} as an entity pattern")


def load_patterns(path: Union[str, Path]) -> Tuple[EntityPattern, ...]:
    """Load phrase patterns from a spaCy-style JSONL file.

    Each non-blank line is a JSON object with "label" and "pattern" keys.
    Token-based patterns (lists of dicts) are not supported.

    Args:
        path: Path to the JSONL file.

    Returns:
        Tuple of EntityPattern objects in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidInput: If a line is not valid JSON or not a phrase pattern.
    """
    patterns = []
    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise InvalidInput(f"{path}:{line_no}: invalid JSON ({exc.msg})") from exc
            patterns.append(_coerce_pattern(record))
    return tuple(patterns)


def merge_patterns(*groups: Iterable[EntityPattern]) -> Tuple[EntityPattern, ...]:
    """Concatenate pattern groups, dropping exact duplicates but keeping order."""
    seen = set()
    merged = []
    for group in groups:
        for pattern in group:
            pattern = _coerce_pattern(pattern)
            if pattern not in seen:
                seen.add(pattern)
                merged.append(pattern)
    return tuple(merged)
