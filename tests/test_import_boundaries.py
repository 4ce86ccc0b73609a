"""
Import Boundary Tests.

Validates that architectural import rules are followed:
- utils/* may NOT import from core/ or main (adapters stay reusable)
- core/* may NOT import from main (no CLI dependencies)
- utils/image_meta.py and utils/dir_scanner.py may NOT touch the database
"""

import ast
from pathlib import Path


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def get_imports_from_file(filepath: Path) -> list[tuple[str, int]]:
    """
    Extract all import statements from a Python file.

    Returns:
        List of (module_name, line_number) tuples
    """
    imports = []
    try:
        with open(filepath, encoding="utf-8") as f:
            tree = ast.parse(f.read(), filename=str(filepath))
    except SyntaxError:
        return imports

    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imports.append((alias.name, node.lineno))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                imports.append((node.module, node.lineno))

    return imports


def check_forbidden_imports(
    imports: list[tuple[str, int]], forbidden_prefixes: list[str]
) -> list[tuple[str, int]]:
    """
    Check for forbidden imports.

    Returns:
        List of (module_name, line_number) for violations
    """
    violations = []
    for module, line in imports:
        for prefix in forbidden_prefixes:
            if module == prefix.rstrip(".") or module.startswith(prefix):
                violations.append((module, line))
                break
    return violations


def _violations_in(files, forbidden: list[str]) -> list[str]:
    found = []
    for py_file in files:
        for module, line in check_forbidden_imports(get_imports_from_file(py_file), forbidden):
            found.append(f"{py_file.name}:{line} imports {module}")
    return found


class TestLayerBoundaries:
    def test_utils_do_not_import_core_or_cli(self):
        utils_dir = get_project_root() / "utils"
        violations = _violations_in(utils_dir.rglob("*.py"), ["core.", "main."])

        assert len(violations) == 0, (
            "utils/ must stay independent of core/ and main. Violations:\n"
            + "\n".join(violations)
        )

    def test_core_does_not_import_cli(self):
        core_dir = get_project_root() / "core"
        violations = _violations_in(core_dir.glob("*.py"), ["main.", "argparse"])

        assert len(violations) == 0, (
            "core/ must not depend on the command line layer. Violations:\n"
            + "\n".join(violations)
        )

    def test_resolver_and_scanner_are_storage_free(self):
        utils_dir = get_project_root() / "utils"
        files = [utils_dir / "image_meta.py", utils_dir / "dir_scanner.py"]
        violations = _violations_in(files, ["utils.db.", "sqlite3"])

        assert len(violations) == 0, (
            "Resolver and scanner must not touch the database. Violations:\n"
            + "\n".join(violations)
        )


class TestModuleStructure:
    def test_core_modules_exist(self):
        core_dir = get_project_root() / "core"
        required_modules = [
            "ingest_actor.py",
            "ingest_core.py",
            "store_core.py",
            "ticker.py",
        ]

        missing = [m for m in required_modules if not (core_dir / m).exists()]

        assert len(missing) == 0, f"Missing core modules: {missing}"
