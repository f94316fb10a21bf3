"""Attribution of symbols to the crate that produced them."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Tuple

from .config import AnalysisConfig
from .context import BuildContext
from .demangle import decode_name

logger = logging.getLogger(__name__)

UNKNOWN_CRATE = "[Unknown]"
STD_GROUP = "std"


class CrateResolver:
    """Resolve symbol names to ``(crate, is_exact)``.

    The build's own symbol records win; the crate encoded in the mangled
    name is the fallback; anything else is ``[Unknown]``. Resolution is
    a pure function of the name, the context and the config.
    """

    def __init__(self, context: BuildContext, config: Optional[AnalysisConfig] = None):
        self.context = context
        self.config = config or AnalysisConfig()

    def resolve(self, name: str) -> Tuple[str, bool]:
        if not name:
            return UNKNOWN_CRATE, False

        owners = self.context.owners(name)
        if owners:
            if len(owners) == 1:
                crate = owners[0]
            else:
                # Several crates claim the name (generic code instantiated in
                # each); take the one the name itself points at, if any.
                encoded = decode_name(name).crate
                crate = encoded if encoded in owners else owners[0]
            return self._label(crate), True

        crate = decode_name(name).crate
        if crate:
            return self._label(crate), False
        return UNKNOWN_CRATE, False

    def _label(self, crate: str) -> str:
        if not self.config.split_std and self.context.is_std(crate):
            return STD_GROUP
        return crate

    def resolve_all(self, names: Iterable[str], jobs: Optional[int] = None) -> List[Tuple[str, bool]]:
        """Resolve many names, in order; ``jobs > 1`` spreads work over threads."""
        names = list(names)
        if not jobs or jobs <= 1 or len(names) < 2:
            return [self.resolve(n) for n in names]
        logger.debug("Resolving %d symbols on %d threads", len(names), jobs)
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            return list(pool.map(self.resolve, names))


def resolve_crate(name: str, context: BuildContext,
                  config: Optional[AnalysisConfig] = None) -> Tuple[str, bool]:
    """Convenience wrapper around :meth:`CrateResolver.resolve`."""
    return CrateResolver(context, config).resolve(name)


def resolve_symbols(names: Iterable[str], context: BuildContext,
                    config: Optional[AnalysisConfig] = None,
                    jobs: Optional[int] = None) -> List[Tuple[str, bool]]:
    """Resolve ``names`` in order, on ``jobs`` threads when ``jobs > 1``."""
    return CrateResolver(context, config).resolve_all(names, jobs=jobs)
