"""Callstack error codes and exception types.

CLI failures are reported as a coded error line, optional details and a
suggested next step:

    CS-E005: Call tree file not found: trees/missing.yaml
      Next step: Check the --tree path

The exception classes at the bottom are raised by the conversion core.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import sys


class ErrorCode(Enum):
    """Callstack error codes."""

    # Configuration and input (E001-E099)
    E002 = "E002"  # Invalid configuration value
    E005 = "E005"  # Call tree file not found
    E010 = "E010"  # Registry file invalid

    # Conversion (E200-E299)
    E200 = "E200"  # Call tree structure violated
    E201 = "E201"  # Call tree document invalid

    # Output (E300-E399)
    E300 = "E300"  # Output path not writable


# code -> (message template, next step)
ERROR_TEMPLATES: dict[ErrorCode, tuple[str, str]] = {
    ErrorCode.E002: (
        "Invalid configuration value: {details}",
        "Run 'callstack show-config' to inspect the resolved settings",
    ),
    ErrorCode.E005: (
        "Call tree file not found: {details}",
        "Check the --tree path",
    ),
    ErrorCode.E010: (
        "Registry file is invalid: {details}",
        "Check CALLSTACK_REGISTRY_FILE or the --registry path",
    ),
    ErrorCode.E200: (
        "Call tree structure violated: {details}",
        "Check parent links and the root span of the call tree",
    ),
    ErrorCode.E201: (
        "Call tree document is invalid: {details}",
        "Run 'callstack validate <file>' to see schema errors",
    ),
    ErrorCode.E300: (
        "Output path not writable: {details}",
        "Check permissions or use a different --out path",
    ),
}


@dataclass
class CallStackError:
    """A coded error ready to show to the user."""

    code: ErrorCode
    message: str
    next_step: str

    def __str__(self) -> str:
        return f"CS-{self.code.value}: {self.message}\n  Next step: {self.next_step}"

    def print(self, file=None) -> None:
        print(str(self), file=file or sys.stderr)


def make_error(code: ErrorCode, details: Optional[str] = None) -> CallStackError:
    """Fill the template for `code`.

    Args:
        code: The error code
        details: Text substituted for ``{details}``; dropped from the message when empty

    Returns:
        CallStackError instance ready to print
    """
    message_template, next_step = ERROR_TEMPLATES[code]
    if details:
        message = message_template.format(details=details)
    else:
        message = message_template.replace(": {details}", "")
    return CallStackError(code=code, message=message, next_step=next_step)


_verbose = False


def set_verbose(verbose: bool) -> None:
    global _verbose
    _verbose = verbose


def is_verbose() -> bool:
    return _verbose


def handle_exception(exc: BaseException, code: ErrorCode, details: Optional[str] = None) -> None:
    """Report `exc` under `code`; the traceback follows in verbose mode."""
    import traceback

    make_error(code, details or str(exc)).print()
    if _verbose:
        print("\n--- Full Traceback ---", file=sys.stderr)
        traceback.print_exception(type(exc), exc, exc.__traceback__)


class CallTreeStateError(RuntimeError):
    """The call tree handed to the record builder is structurally broken.

    Raised when a node without a parent is not a span root, when a parent
    has not been visited before its child, or when a node is visited twice.
    Conversion cannot continue past this error.
    """


class ApiDescriptionParseError(ValueError):
    """An API descriptor string does not match `pkg.Class.method(args)`."""
