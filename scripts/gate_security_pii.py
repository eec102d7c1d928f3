#!/usr/bin/env python3
"""Gate G2: no notification text or payer data in logs.

Fails if, anywhere under src/:
- print( is called in runtime code
- a logger call passes extra= that is not {"extra_fields": safe_log_context(...)}
- a logger message is an f-string / %-format / .format() interpolating one of
  the free-text fields (title, body, text, payer_name, raw_json, payload)

Usage:
    python scripts/gate_security_pii.py [SRC_DIR]
"""

import ast
import sys
from pathlib import Path

LOG_METHODS = frozenset({"debug", "info", "warning", "error", "critical", "exception"})

# Names that hold bank / payer free text
SENSITIVE_NAMES = frozenset({"title", "body", "text", "payer_name", "raw_json", "payload"})

SAFE_CONTEXT_FUNC = "safe_log_context"


def _is_logger_call(node: ast.Call) -> bool:
    func = node.func
    return (
        isinstance(func, ast.Attribute)
        and func.attr in LOG_METHODS
        and isinstance(func.value, ast.Name)
        and func.value.id == "logger"
    )


def _is_safe_context_call(node: ast.AST) -> bool:
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id == SAFE_CONTEXT_FUNC
    )


def _referenced_names(node: ast.AST) -> set[str]:
    names = set()
    for child in ast.walk(node):
        if isinstance(child, ast.Name):
            names.add(child.id)
        elif isinstance(child, ast.Attribute):
            names.add(child.attr)
    return names


def _safe_context_names(tree: ast.AST) -> set[str]:
    """Variables assigned straight from safe_log_context(...)."""
    names = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Assign) and _is_safe_context_call(node.value):
            for target in node.targets:
                if isinstance(target, ast.Name):
                    names.add(target.id)
    return names


def _check_extra(value: ast.AST, safe_names: set[str]) -> bool:
    if not isinstance(value, ast.Dict) or len(value.keys) != 1:
        return False
    key = value.keys[0]
    if not (isinstance(key, ast.Constant) and key.value == "extra_fields"):
        return False
    fields = value.values[0]
    if _is_safe_context_call(fields):
        return True
    return isinstance(fields, ast.Name) and fields.id in safe_names


def _interpolated_message(call: ast.Call) -> ast.AST | None:
    if not call.args:
        return None
    message = call.args[0]
    if isinstance(message, ast.JoinedStr):
        return message
    if isinstance(message, ast.BinOp) and isinstance(message.op, ast.Mod):
        return message.right
    if (
        isinstance(message, ast.Call)
        and isinstance(message.func, ast.Attribute)
        and message.func.attr == "format"
    ):
        return message
    if len(call.args) > 1:
        # logger.info("... %s", value) style
        return ast.Tuple(elts=list(call.args[1:]), ctx=ast.Load())
    return None


def check_source(source: str, filename: str = "<src>") -> list[str]:
    """Check one module's source. Returns error messages."""
    tree = ast.parse(source, filename=filename)
    safe_names = _safe_context_names(tree)
    errors = []

    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue

        if isinstance(node.func, ast.Name) and node.func.id == "print":
            errors.append(f"{filename}:{node.lineno}: print() not allowed in runtime code")
            continue

        if not _is_logger_call(node):
            continue

        for keyword in node.keywords:
            if keyword.arg == "extra" and not _check_extra(keyword.value, safe_names):
                errors.append(
                    f"{filename}:{node.lineno}: logger extra must be "
                    '{"extra_fields": safe_log_context(...)}'
                )

        interpolated = _interpolated_message(node)
        if interpolated is not None:
            leaked = _referenced_names(interpolated) & SENSITIVE_NAMES
            if leaked:
                errors.append(
                    f"{filename}:{node.lineno}: logger message interpolates "
                    f"{', '.join(sorted(leaked))}"
                )

    return errors


def check_file(filepath: Path) -> list[str]:
    return check_source(filepath.read_text(encoding="utf-8"), str(filepath))


def main(argv: list[str]) -> int:
    """Run gate check on the src directory."""
    src_dir = Path(argv[1]) if len(argv) > 1 else Path(__file__).parent.parent / "src"

    if not src_dir.exists():
        sys.stderr.write(f"Error: {src_dir} not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("Gate G2 FAILED - PII logging violations found:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("Gate G2 PASSED - No PII logging violations found\n")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
