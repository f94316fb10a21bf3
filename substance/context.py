"""Build context: the build metadata symbols are attributed against.

A :class:`BuildContext` is assembled by whatever drives the build (it is
never produced here) and consumed read-only. Snapshots can be loaded from
JSON or YAML:

    target_triple: x86_64-unknown-linux-gnu
    std_crates: [std, core, alloc]
    dep_crates: [serde, regex]
    deps_symbols:
      serde: [_ZN5serde2de5Error6custom17h0123456789abcdefE]
    artifacts:
      - {name: app, kind: bin, path: target/release/app}
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Tuple, Union

import yaml

from .errors import BuildContextError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    """One build output (binary, library, ...)."""
    name: str
    kind: str
    path: Path

    def to_dict(self) -> dict:
        return {"name": self.name, "kind": self.kind, "path": str(self.path)}


@dataclass(frozen=True)
class BuildContext:
    """Build metadata used to attribute symbols to crates.

    Attributes:
        target_triple: Compilation target, e.g. ``x86_64-unknown-linux-gnu``
        std_crates: Crates that make up the standard library
        dep_crates: Crates the project declares as dependencies
        deps_symbols: Crate name -> mangled symbol names it contributes
        artifacts: Build outputs

    Standard-library crate names that are also declared dependencies are
    removed from ``std_crates`` on construction, so the two sets are
    disjoint by the time symbols are resolved.
    """

    target_triple: str
    std_crates: FrozenSet[str] = frozenset()
    dep_crates: Tuple[str, ...] = ()
    deps_symbols: Mapping[str, FrozenSet[str]] = field(default_factory=dict, hash=False)
    artifacts: Tuple[Artifact, ...] = ()

    def __post_init__(self):
        dep_crates = tuple(self.dep_crates)
        shadowed = set(self.std_crates) & set(dep_crates)
        if shadowed:
            logger.debug("Treating %s as project dependencies, not std",
                         ", ".join(sorted(shadowed)))
        object.__setattr__(self, "dep_crates", dep_crates)
        object.__setattr__(self, "std_crates", frozenset(self.std_crates) - shadowed)
        object.__setattr__(self, "artifacts", tuple(self.artifacts))
        object.__setattr__(self, "deps_symbols", MappingProxyType({
            crate: frozenset(names) for crate, names in self.deps_symbols.items()
        }))

        # Intern crate names once; symbols map to small index tuples.
        crates = sorted(self.deps_symbols)
        owners: Dict[str, List[int]] = {}
        for index, crate in enumerate(crates):
            for symbol in self.deps_symbols[crate]:
                owners.setdefault(symbol, []).append(index)
        object.__setattr__(self, "_crate_table", tuple(crates))
        object.__setattr__(self, "_symbol_owners",
                           {symbol: tuple(idx) for symbol, idx in owners.items()})

    def owners(self, symbol: str) -> Tuple[str, ...]:
        """Crates the build records as contributing ``symbol``, sorted by name."""
        return tuple(self._crate_table[i] for i in self._symbol_owners.get(symbol, ()))

    def is_std(self, crate: str) -> bool:
        return crate in self.std_crates

    @property
    def symbol_count(self) -> int:
        return len(self._symbol_owners)

    def validate(self) -> None:
        """Check the context is usable for attribution.

        Raises:
            BuildContextError: If required fields are missing or the
                symbol map refers to crates the build does not declare
        """
        if not self.target_triple or not isinstance(self.target_triple, str):
            raise BuildContextError("Build context is missing 'target_triple'")
        for crate, names in self.deps_symbols.items():
            if not crate:
                raise BuildContextError("Build context has symbols for an unnamed crate")
            if any(not isinstance(n, str) or not n for n in names):
                raise BuildContextError(f"Build context lists an empty symbol name for '{crate}'")
        if self.dep_crates:
            declared = set(self.dep_crates) | self.std_crates
            undeclared = sorted(set(self.deps_symbols) - declared)
            if undeclared:
                raise BuildContextError(
                    f"Symbols attributed to undeclared crates: {', '.join(undeclared)}"
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BuildContext":
        """Build a context from a snapshot dict.

        Raises:
            BuildContextError: If required keys are missing or malformed
        """
        if not isinstance(data, Mapping):
            raise BuildContextError("Build context snapshot must be a mapping")
        if "target_triple" not in data:
            raise BuildContextError("Build context snapshot is missing 'target_triple'")

        deps_symbols = data.get("deps_symbols") or {}
        if not isinstance(deps_symbols, Mapping):
            raise BuildContextError("'deps_symbols' must map crate names to symbol lists")

        artifacts = []
        for entry in data.get("artifacts") or []:
            try:
                artifacts.append(Artifact(
                    name=entry["name"],
                    kind=entry.get("kind", "bin"),
                    path=Path(entry["path"]),
                ))
            except (KeyError, TypeError, AttributeError) as exc:
                raise BuildContextError(f"Malformed artifact entry {entry!r}") from exc

        context = cls(
            target_triple=data["target_triple"],
            std_crates=frozenset(data.get("std_crates") or ()),
            dep_crates=tuple(data.get("dep_crates") or ()),
            deps_symbols={crate: list(names or ()) for crate, names in deps_symbols.items()},
            artifacts=tuple(artifacts),
        )
        context.validate()
        return context

    @classmethod
    def load(cls, path: Union[str, Path]) -> "BuildContext":
        """Load a snapshot from a ``.json``, ``.yaml`` or ``.yml`` file."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BuildContextError(f"Unable to read build context '{path}': {exc}") from exc
        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise BuildContextError(f"Invalid build context in '{path}': {exc}") from exc
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        """Export as a JSON-serializable snapshot."""
        return {
            "target_triple": self.target_triple,
            "std_crates": sorted(self.std_crates),
            "dep_crates": list(self.dep_crates),
            "deps_symbols": {
                crate: sorted(names) for crate, names in sorted(self.deps_symbols.items())
            },
            "artifacts": [a.to_dict() for a in self.artifacts],
        }

