"""
Smoke Tests for packaging metadata.

Reads setup.py without executing it and checks that what it declares
exists in the tree.

Usage:
    pytest tests/smoke/test_packaging.py -v -m smoke
"""

import ast
import importlib

import pytest

pytestmark = pytest.mark.smoke


@pytest.fixture(scope="module")
def setup_kwargs(project_root):
    tree = ast.parse((project_root / "setup.py").read_text(encoding="utf-8"))
    call = next(
        node
        for node in ast.walk(tree)
        if isinstance(node, ast.Call) and getattr(node.func, "id", None) == "setup"
    )
    return {kw.arg: kw.value for kw in call.keywords}


def test_metadata_does_not_read_missing_files(setup_kwargs, project_root):
    if not (project_root / "README.md").exists():
        assert "long_description" not in setup_kwargs


def test_setup_is_static(project_root):
    tree = ast.parse((project_root / "setup.py").read_text(encoding="utf-8"))
    called = {node.func.id for node in ast.walk(tree) if isinstance(node, ast.Call) and isinstance(node.func, ast.Name)}
    assert "__import__" not in called
    assert "open" not in called


def test_console_script_target_exists(setup_kwargs):
    scripts = ast.literal_eval(setup_kwargs["entry_points"])["console_scripts"]
    name, target = scripts[0].split("=")
    module_name, func_name = target.split(":")

    assert name == "exam-engine"
    assert callable(getattr(importlib.import_module(module_name), func_name))
