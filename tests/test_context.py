"""Unit tests for the build context."""

import json
import unittest
from pathlib import Path
import tempfile

from substance.context import Artifact, BuildContext
from substance.errors import BuildContextError


SNAPSHOT = {
    "target_triple": "x86_64-unknown-linux-gnu",
    "std_crates": ["std", "core", "alloc"],
    "dep_crates": ["serde", "regex"],
    "deps_symbols": {
        "serde": ["_ZN5serde2de5Error6custom17h0123456789abcdefE"],
        "regex": ["_ZN5regex5Regex3new17h0123456789abcdefE"],
    },
    "artifacts": [
        {"name": "app", "kind": "bin", "path": "target/release/app"},
    ],
}


class TestBuildContext(unittest.TestCase):
    """Test BuildContext construction and lookup."""

    def test_from_dict(self):
        context = BuildContext.from_dict(SNAPSHOT)
        self.assertEqual(context.target_triple, "x86_64-unknown-linux-gnu")
        self.assertEqual(context.std_crates, frozenset({"std", "core", "alloc"}))
        self.assertEqual(context.dep_crates, ("serde", "regex"))
        self.assertEqual(context.symbol_count, 2)
        self.assertEqual(context.artifacts,
                         (Artifact(name="app", kind="bin", path=Path("target/release/app")),))

    def test_owners(self):
        context = BuildContext.from_dict(SNAPSHOT)
        self.assertEqual(context.owners("_ZN5serde2de5Error6custom17h0123456789abcdefE"),
                         ("serde",))
        self.assertEqual(context.owners("missing"), ())

    def test_owners_sorted_by_crate(self):
        context = BuildContext(
            target_triple="x86_64-unknown-linux-gnu",
            deps_symbols={"zeta": ["sym"], "alpha": ["sym"]},
        )
        self.assertEqual(context.owners("sym"), ("alpha", "zeta"))

    def test_dependency_removed_from_std(self):
        context = BuildContext(
            target_triple="x86_64-unknown-linux-gnu",
            std_crates=frozenset({"std", "core", "libc"}),
            dep_crates=("libc",),
        )
        self.assertFalse(context.is_std("libc"))
        self.assertTrue(context.is_std("core"))

    def test_round_trip(self):
        context = BuildContext.from_dict(SNAPSHOT)
        self.assertEqual(BuildContext.from_dict(context.to_dict()), context)

    def test_hashable(self):
        first = BuildContext.from_dict(SNAPSHOT)
        second = BuildContext.from_dict(SNAPSHOT)
        self.assertEqual(hash(first), hash(second))
        self.assertEqual(len({first, second}), 1)

    def test_deps_symbols_read_only(self):
        context = BuildContext.from_dict(SNAPSHOT)
        with self.assertRaises(TypeError):
            context.deps_symbols["other"] = frozenset({"sym"})

    def test_missing_target_triple(self):
        with self.assertRaises(BuildContextError) as cm:
            BuildContext.from_dict({"std_crates": ["std"]})
        self.assertIn("target_triple", str(cm.exception))

    def test_not_a_mapping(self):
        with self.assertRaises(BuildContextError):
            BuildContext.from_dict(["target_triple"])

    def test_empty_target_triple_fails_validation(self):
        with self.assertRaises(BuildContextError):
            BuildContext(target_triple="").validate()

    def test_undeclared_crate_in_symbol_map(self):
        data = dict(SNAPSHOT, deps_symbols={"mystery": ["sym"]})
        with self.assertRaises(BuildContextError) as cm:
            BuildContext.from_dict(data)
        self.assertIn("mystery", str(cm.exception))

    def test_empty_symbol_name(self):
        data = dict(SNAPSHOT, deps_symbols={"serde": [""]})
        with self.assertRaises(BuildContextError):
            BuildContext.from_dict(data)

    def test_malformed_artifact(self):
        data = dict(SNAPSHOT, artifacts=[{"kind": "bin"}])
        with self.assertRaises(BuildContextError):
            BuildContext.from_dict(data)

    def test_build_context_error_is_value_error(self):
        with self.assertRaises(ValueError):
            BuildContext.from_dict({})


class TestBuildContextLoad(unittest.TestCase):
    """Test loading snapshots from disk."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_load_json(self):
        path = self.root / "context.json"
        path.write_text(json.dumps(SNAPSHOT))
        context = BuildContext.load(path)
        self.assertEqual(context.dep_crates, ("serde", "regex"))

    def test_load_yaml(self):
        path = self.root / "context.yaml"
        path.write_text(
            "target_triple: aarch64-apple-darwin\n"
            "std_crates: [std, core]\n"
            "deps_symbols:\n"
            "  core: [_ZN4core3fmt5write17h0123456789abcdefE]\n"
        )
        context = BuildContext.load(path)
        self.assertEqual(context.target_triple, "aarch64-apple-darwin")
        self.assertEqual(context.owners("_ZN4core3fmt5write17h0123456789abcdefE"), ("core",))

    def test_load_missing_file(self):
        with self.assertRaises(BuildContextError):
            BuildContext.load(self.root / "missing.json")

    def test_load_invalid_json(self):
        path = self.root / "context.json"
        path.write_text("{not json")
        with self.assertRaises(BuildContextError):
            BuildContext.load(path)


if __name__ == "__main__":
    unittest.main()
