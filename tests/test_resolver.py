"""Tests for crate attribution."""

from substance.config import AnalysisConfig
from substance.context import BuildContext
from substance.resolver import STD_GROUP, UNKNOWN_CRATE, CrateResolver, resolve_crate, resolve_symbols

from binaries import legacy


def test_build_records_win_over_name(build_context):
    # Name encodes 'foo' but the build records it under 'bar'.
    assert resolve_crate(legacy("foo", "inlined"), build_context) == ("bar", True)


def test_build_records_single_owner(build_context):
    assert resolve_crate(legacy("foo", "parse"), build_context) == ("foo", True)


def test_name_fallback_is_not_exact(build_context):
    assert resolve_crate(legacy("regex", "compile"), build_context) == ("regex", False)


def test_v0_name_fallback(empty_context):
    assert resolve_crate("_RNvCs1234_7mycrate4main", empty_context) == ("mycrate", False)


def test_opaque_name_is_unknown(empty_context):
    assert resolve_crate("memcpy", empty_context) == (UNKNOWN_CRATE, False)
    assert resolve_crate("", empty_context) == (UNKNOWN_CRATE, False)


def test_std_crates_grouped_by_default(empty_context):
    assert resolve_crate(legacy("core", "fmt", "write"), empty_context) == (STD_GROUP, False)
    assert resolve_crate(legacy("alloc", "raw_vec", "grow"), empty_context) == (STD_GROUP, False)


def test_std_crates_split_on_request(empty_context):
    config = AnalysisConfig(split_std=True)
    assert resolve_crate(legacy("core", "fmt", "write"), empty_context, config) == ("core", False)
    assert resolve_crate(legacy("alloc", "raw_vec", "grow"), empty_context, config) == ("alloc", False)


def test_exact_std_attribution_is_grouped():
    context = BuildContext(
        target_triple="x86_64-unknown-linux-gnu",
        std_crates=frozenset({"std", "core"}),
        deps_symbols={"core": [legacy("core", "panicking", "panic")]},
    )
    assert resolve_crate(legacy("core", "panicking", "panic"), context) == (STD_GROUP, True)


def test_dependency_named_like_std_crate_is_not_grouped():
    context = BuildContext(
        target_triple="x86_64-unknown-linux-gnu",
        std_crates=frozenset({"std", "core", "libc"}),
        dep_crates=("libc",),
    )
    assert resolve_crate(legacy("libc", "unix", "write"), context) == ("libc", False)


def test_multiple_owners_prefer_encoded_crate():
    name = legacy("serde", "de", "visit")
    context = BuildContext(
        target_triple="x86_64-unknown-linux-gnu",
        deps_symbols={"app": [name], "serde": [name], "toml": [name]},
    )
    assert resolve_crate(name, context) == ("serde", True)


def test_multiple_owners_without_encoded_match_take_first_by_name():
    name = legacy("serde", "de", "visit")
    context = BuildContext(
        target_triple="x86_64-unknown-linux-gnu",
        deps_symbols={"toml": [name], "app": [name]},
    )
    assert resolve_crate(name, context) == ("app", True)


class TestResolveAll:
    """Bulk resolution."""

    names = [
        legacy("foo", "inlined"),
        legacy("core", "fmt", "write"),
        "memcpy",
        "_RNvCs1234_7mycrate4main",
        legacy("regex", "compile"),
    ] * 20

    def test_preserves_order(self, build_context):
        resolver = CrateResolver(build_context)
        results = resolver.resolve_all(self.names)
        assert results[:5] == [
            ("bar", True),
            (STD_GROUP, False),
            (UNKNOWN_CRATE, False),
            ("mycrate", False),
            ("regex", False),
        ]

    def test_threaded_matches_sequential(self, build_context):
        resolver = CrateResolver(build_context)
        assert resolver.resolve_all(self.names, jobs=4) == resolver.resolve_all(self.names)

    def test_repeated_runs_are_identical(self, build_context):
        first = CrateResolver(build_context).resolve_all(self.names, jobs=3)
        second = CrateResolver(build_context).resolve_all(self.names, jobs=3)
        assert first == second

    def test_empty_input(self, build_context):
        assert CrateResolver(build_context).resolve_all([], jobs=8) == []


def test_resolve_symbols(build_context, empty_context):
    names = [legacy("foo", "inlined"), "memcpy"]
    assert resolve_symbols(names, build_context, jobs=2) == [("bar", True), (UNKNOWN_CRATE, False)]
    assert resolve_symbols(names, empty_context) == [("foo", False), (UNKNOWN_CRATE, False)]
