"""Shared fixtures for substance tests."""

import pytest

from substance.context import BuildContext

from binaries import legacy

STD_CRATES = ("std", "core", "alloc", "panic_unwind")


@pytest.fixture
def empty_context():
    """Context with no symbol records: attribution falls back to names."""
    return BuildContext(target_triple="x86_64-unknown-linux-gnu", std_crates=frozenset(STD_CRATES))


@pytest.fixture
def build_context():
    """Context where crate 'bar' records one symbol whose name encodes 'foo'."""
    return BuildContext(
        target_triple="x86_64-unknown-linux-gnu",
        std_crates=frozenset(STD_CRATES),
        dep_crates=("foo", "bar"),
        deps_symbols={
            "bar": [legacy("foo", "inlined")],
            "foo": [legacy("foo", "parse")],
        },
    )
