"""Analysis options."""

import json
import warnings
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

DEFAULT_SECTION = ".text"


@dataclass(frozen=True)
class AnalysisConfig:
    """Options for one analysis pass.

    Attributes:
        symbols_section: Section whose symbols are analyzed (machine code
            by default; Mach-O maps ``.text`` to ``__TEXT,__text``)
        split_std: Report standard-library crates (core, alloc, ...)
            individually instead of grouping them as ``std``
    """

    symbols_section: str = DEFAULT_SECTION
    split_std: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        """Build a config from a mapping, rejecting unknown keys.

        Raises:
            ValueError: If a key is unknown or a value has the wrong type
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(
                f"Unknown analysis option(s): {', '.join(unknown)}. "
                f"Supported: {', '.join(sorted(known))}"
            )
        section = data.get("symbols_section", DEFAULT_SECTION)
        if not isinstance(section, str) or not section:
            raise ValueError(f"'symbols_section' must be a non-empty string, got {section!r}")
        split_std = data.get("split_std", False)
        if not isinstance(split_std, bool):
            raise ValueError(f"'split_std' must be true or false, got {split_std!r}")
        return cls(symbols_section=section, split_std=split_std)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "AnalysisConfig":
        """Load options from a YAML or JSON file.

        Note:
            A missing file yields the default config with a warning, so a
            project can ship without one.
        """
        path = Path(path)
        if not path.exists():
            warnings.warn(
                f"Analysis config not found: {path}. Using defaults.",
                UserWarning,
                stacklevel=2
            )
            return cls()

        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
        if not isinstance(data, Mapping):
            raise ValueError(f"Analysis config in '{path}' must be a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return {"symbols_section": self.symbols_section, "split_std": self.split_std}
