"""
overlay-asm - Overlay Patch Assembler Command-Line Interface
============================================================

This module implements the command-line interface for the overlay patch
assembler. It assembles every module in a source directory against the
matching unpatched overlays and writes the XML patch document.

Usage Examples
--------------
Basic run:
    $ overlay-asm -s src/overlays -l unpatched/overlays -o overlay.xml

Fail repl routines that are not exactly one instruction:
    $ overlay-asm -s src -l overlays -o overlay.xml --strict

Assemble four modules at a time, with debug logging:
    $ overlay-asm -s src -l overlays -o overlay.xml -j 4 -v
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from overlay_asm import __version__, pipeline
from overlay_asm.cli.errors import ExitCode, handle_cli_exception
from overlay_asm.config import AssemblerConfig
from overlay_asm.serializer import write_document

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def parse_address(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[int]:
    """Click callback accepting 0x-prefixed hex, $-prefixed hex or decimal."""
    if value is None:
        return None
    text = value.strip()
    try:
        if text.startswith("$"):
            return int(text[1:], 16)
        return int(text, 0)
    except ValueError:
        raise click.BadParameter(f"invalid address '{value}'") from None


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.option(
    "-s", "--source",
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory containing the module sources (searched recursively)",
)
@click.option(
    "-l", "--overlays",
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory containing the unpatched overlay binaries",
)
@click.option(
    "-o", "--output",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Patch document to write (XML)",
)
@click.option(
    "--strict/--no-strict",
    default=None,
    help="Fail repl routines that do not encode to exactly one instruction. "
         "Default: warn only.",
)
@click.option(
    "-j", "--jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Number of modules to assemble concurrently. Default: 1.",
)
@click.option(
    "--base-address",
    callback=parse_address,
    default=None,
    help="Overlay load address. Default: 0x020C7660.",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="overlay-asm")
def main(
    source: Path,
    overlays: Path,
    output: Path,
    strict: Optional[bool],
    jobs: Optional[int],
    base_address: Optional[int],
    verbose: bool,
) -> None:
    """
    Assemble overlay code into the overlay patch document.

    Every *.s file under SOURCE is a module patching the overlay of the same
    name in OVERLAYS (e.g. main_0a.s patches main_0a.bin).

    \b
    Directives:
        arepl_XXXXXXXX:    replace the instruction at an address
        ahook_XXXXXXXX:    branch to a routine appended to the overlay
        aappend_XXXXXXXX:  variables appended to the overlay
    """
    setup_logging(verbose)

    try:
        config = AssemblerConfig.from_env().with_overrides(
            strict_replacements=strict,
            jobs=jobs,
            base_address=base_address,
        )
        if verbose:
            click.echo(f"Base address: 0x{config.base_address:08X}")
            click.echo(f"Strict replacements: {'enabled' if config.strict_replacements else 'disabled'}")

        result = pipeline.assemble_directory(
            source,
            overlays,
            config,
            encoder_factory=pipeline.default_encoder_factory(config),
        )
        write_document(result.document, output)

        if verbose:
            click.echo(f"Wrote {len(result.document.overlays)} overlay patch(es) to {output}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")

    if result.report.has_failures():
        click.echo(result.report.report(), err=True)
        sys.exit(ExitCode.BUILD_ERROR)


if __name__ == "__main__":
    main()
