"""Tests for graph module."""

import unittest

from buildtree.graph import (
    CycleError,
    TargetNotFoundError,
    build_dependency_tree,
    resolve_execution_order,
    validate_targets,
)
from buildtree.targets import BuildApp
from helpers.logging import logger_stub


def make_targets(**deps):
    """Build a target map from name=[dependencies] keyword arguments."""
    build = BuildApp(logger_stub)
    for name, names in deps.items():
        build.target(name).depends_on(*names)
    return build.targets


class TestResolveExecutionOrder(unittest.TestCase):
    def test_single_target(self):
        """Test execution order for a single target."""
        targets = make_targets(build=[])
        self.assertEqual(resolve_execution_order(targets, ["build"]), ["build"])

    def test_linear_dependencies(self):
        """Test execution order for a linear dependency chain."""
        targets = make_targets(restore=[], build=["restore"], test=["build"])
        self.assertEqual(resolve_execution_order(targets, ["test"]), ["restore", "build", "test"])

    def test_diamond_runs_shared_dependency_once(self):
        """Test a diamond pattern runs the shared dependency once."""
        targets = make_targets(a=[], b=["a"], c=["a"], d=["b", "c"])
        self.assertEqual(resolve_execution_order(targets, ["d"]), ["a", "b", "c", "d"])

    def test_declared_order_breaks_ties(self):
        """Test declared dependency order breaks ties."""
        targets = make_targets(x=[], y=[], z=["y", "x"])
        self.assertEqual(resolve_execution_order(targets, ["z"]), ["y", "x", "z"])

    def test_multiple_requested_targets(self):
        """Test several requested targets share one closure."""
        targets = make_targets(clean=[], restore=[], build=["restore"])
        self.assertEqual(
            resolve_execution_order(targets, ["clean", "build"]),
            ["clean", "restore", "build"],
        )

    def test_repeated_request_runs_once(self):
        """Test a target requested twice appears once."""
        targets = make_targets(restore=[], build=["restore"])
        self.assertEqual(
            resolve_execution_order(targets, ["build", "restore", "build"]),
            ["restore", "build"],
        )

    def test_skip_dependencies(self):
        """Test skip_dependencies keeps only the requested targets."""
        targets = make_targets(restore=[], build=["restore"], test=["build"])
        self.assertEqual(
            resolve_execution_order(targets, ["test", "build", "test"], skip_dependencies=True),
            ["test", "build"],
        )

    def test_skip_removes_target_and_its_exclusive_dependencies(self):
        """Test skip removes a target and what only it depends on."""
        targets = make_targets(restore=[], build=["restore"], test=["build"], package=["test"])
        self.assertEqual(resolve_execution_order(targets, ["package"], skip=["test"]), ["package"])

    def test_skip_keeps_dependencies_reachable_another_way(self):
        """Test skip keeps dependencies reachable through another target."""
        targets = make_targets(restore=[], build=["restore"], test=["build"], publish=["test", "restore"])
        self.assertEqual(
            resolve_execution_order(targets, ["publish"], skip=["test"]),
            ["restore", "publish"],
        )

    def test_target_not_found(self):
        """Test an unknown target raises TargetNotFoundError."""
        targets = make_targets(build=[])
        with self.assertRaises(TargetNotFoundError) as cm:
            resolve_execution_order(targets, ["nonexistent"])
        self.assertIn("nonexistent", str(cm.exception))

    def test_missing_dependency_anywhere_is_reported(self):
        """An undeclared dependency fails validation even if it is not requested."""
        targets = make_targets(build=[], docs=["generate"])
        with self.assertRaises(TargetNotFoundError) as cm:
            resolve_execution_order(targets, ["build"])
        self.assertIn("generate (required by docs)", str(cm.exception))

    def test_cycle(self):
        """Test a dependency cycle raises CycleError."""
        targets = make_targets(a=["b"], b=["c"], c=["a"])
        with self.assertRaises(CycleError) as cm:
            resolve_execution_order(targets, ["a"])
        self.assertIn("a -> b -> c -> a", str(cm.exception))

    def test_self_cycle(self):
        """Test a target depending on itself is a cycle."""
        targets = make_targets(a=["a"])
        with self.assertRaises(CycleError):
            resolve_execution_order(targets, ["a"])

    def test_cycle_not_reachable_is_ignored(self):
        """Test a cycle outside the requested closure is ignored."""
        targets = make_targets(build=[], a=["b"], b=["a"])
        self.assertEqual(resolve_execution_order(targets, ["build"]), ["build"])


class TestValidateTargets(unittest.TestCase):
    def test_valid(self):
        """Test validation passes when every target exists."""
        validate_targets(make_targets(restore=[], build=["restore"]), ["build"])

    def test_several_missing_targets(self):
        """Test every missing target is named in the error."""
        with self.assertRaises(TargetNotFoundError) as cm:
            validate_targets(make_targets(build=[]), ["x", "y"])
        self.assertEqual(str(cm.exception), "Targets not found: x, y")


class TestBuildDependencyTree(unittest.TestCase):
    def test_nested_tree(self):
        """Test the tree nests dependencies."""
        build = BuildApp(logger_stub)
        build.target("restore").describe("Restores packages")
        build.target("build").depends_on("restore")

        tree = build_dependency_tree(build.targets, "build")

        self.assertEqual(tree["name"], "build")
        self.assertEqual(len(tree["deps"]), 1)
        self.assertEqual(tree["deps"][0]["name"], "restore")
        self.assertEqual(tree["deps"][0]["description"], "Restores packages")

    def test_marks_cycles_and_missing(self):
        """Test the tree marks cycles and missing targets."""
        targets = make_targets(a=["b", "gone"], b=["a"])
        tree = build_dependency_tree(targets, "a")
        self.assertTrue(tree["deps"][0]["deps"][0]["cycle"])
        self.assertTrue(tree["deps"][1]["missing"])

    def test_unknown_root(self):
        """Test an unknown root target raises."""
        with self.assertRaises(TargetNotFoundError):
            build_dependency_tree(make_targets(a=[]), "b")


if __name__ == "__main__":
    unittest.main()
