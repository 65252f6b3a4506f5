"""
Overlay Asm Command-Line Interface
==================================

This package provides the command-line tool for the overlay assembler:

- **overlay-asm**: assemble a directory of overlay modules into a patch document

The tool is a Click-based CLI application with help and error reporting.
"""

__all__ = ["ovasm"]
