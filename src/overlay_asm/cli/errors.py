"""
CLI Exit Codes and Error Reporting
==================================

Maps whatever escapes an overlay-asm run to a message on stderr and an
exit code. Module failures never reach here: the pipeline collects them
and the command exits with BUILD_ERROR after writing the document.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Exit codes of the overlay-asm command."""
    SUCCESS = 0
    BUILD_ERROR = 1      # One or more modules failed to assemble
    INVALID_ARGS = 2     # Bad option, unreadable path or missing encoder backend
    INTERNAL_ERROR = 3   # Bug


# Errors the user can fix without touching the sources
USAGE_ERRORS = (click.BadParameter, KeyError, ValueError, OSError, ImportError)


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report an error from the command body and exit.

    Args:
        error: Exception caught around the run
        verbose: Print the traceback of internal errors
        error_type: Stage named in assembler error messages, e.g. "Assembly"
    """
    from overlay_asm.errors import OverlayAssemblerError

    if isinstance(error, OverlayAssemblerError):
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    if isinstance(error, USAGE_ERRORS):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    click.echo(f"Internal error: {error}", err=True)
    if verbose:
        traceback.print_exc()
    sys.exit(ExitCode.INTERNAL_ERROR)
