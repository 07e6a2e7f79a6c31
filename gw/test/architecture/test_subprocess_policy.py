from __future__ import annotations

import ast

from ._gate import require_arch_checks_enabled
from ._utils import parse_imports, production_files, read_tree


def _direct_subprocess_calls(tree: ast.AST) -> list[int]:
    lines: list[int] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        func = node.func
        if not isinstance(func, ast.Attribute):
            continue
        if func.attr not in {"run", "check_output", "Popen"}:
            continue
        if isinstance(func.value, ast.Name) and func.value.id == "subprocess":
            lines.append(node.lineno)
    return lines


def test_subprocess_is_only_used_by_the_process_module() -> None:
    require_arch_checks_enabled()

    offenders: list[str] = []
    for rel, file_path in production_files():
        if rel == "platform/process.py":
            continue
        for line in _direct_subprocess_calls(read_tree(file_path)):
            offenders.append(f"{rel}:{line}: direct subprocess call")
        for item in parse_imports(file_path):
            if item.module == "subprocess":
                offenders.append(f"{rel}:{item.line}: subprocess import")

    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)
