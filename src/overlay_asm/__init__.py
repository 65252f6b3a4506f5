"""
Overlay Asm - Overlay Patch Assembler
=====================================

This package turns hand-written, annotated ARM assembly modules into a
patch document: the in-place writes and the appended code/data that a
separate patch-application tool applies to a game's compiled overlays.

Each module (one ``.s`` file per overlay) is made of directives:

- **arepl_XXXXXXXX:** replace the instruction at an address in place
- **ahook_XXXXXXXX:** branch from an address to a routine placed after
  the overlay's existing code
- **aappend_XXXXXXXX:** variables and data appended after the overlay

Main Components
---------------
- **parser**: splits modules into directives
- **allocator**: places appended variables, resolving ``[name]`` aliases
- **rewriter**: rewrites ``=name`` variable loads per injection mode
- **linker**: assembles routines and places hook bodies
- **document**: builds the per-overlay patches
- **serializer**: reads and writes the XML patch document

Quick Start
-----------
    >>> from overlay_asm import assemble_directory, write_document
    >>> result = assemble_directory("src/overlays", "unpatched/overlays")
    >>> write_document(result.document, "overlay.xml")

Or from the command line:
    $ overlay-asm -s src/overlays -l unpatched/overlays -o overlay.xml

Copyright (c) 2026 Overlay Asm Contributors
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from overlay_asm.allocator import Allocation, AppendedVariable, allocate_variables
from overlay_asm.arch import ARM, Architecture, get_architecture
from overlay_asm.config import DEFAULT_BASE_ADDRESS, AssemblerConfig
from overlay_asm.document import (
    HEADER_SIZE,
    Patch,
    PatchDocument,
    PatchWrite,
    build_document,
    build_patch,
)
from overlay_asm.encoder import InstructionEncoder, KeystoneEncoder
from overlay_asm.errors import (
    AddressRangeError,
    DuplicateSymbolError,
    EncodingError,
    FailureReport,
    ModuleError,
    ModuleFailure,
    OverlayAssemblerError,
    OverlayBinaryError,
    ParseError,
    SizeMismatchError,
    UnresolvedSymbolError,
)
from overlay_asm.linker import Routine, assemble_routines, link_routines
from overlay_asm.parser import (
    AppendLine,
    Directive,
    DirectiveMode,
    collect_append_lines,
    parse_append_lines,
    parse_directives,
)
from overlay_asm.pipeline import (
    BatchResult,
    OverlayModule,
    assemble_directory,
    assemble_module,
    assemble_source,
    load_module,
)
from overlay_asm.rewriter import rewrite_routine
from overlay_asm.serializer import (
    document_from_xml,
    document_to_xml,
    read_document,
    write_document,
)

__all__ = [
    "__version__",
    # Pipeline
    "assemble_directory",
    "assemble_module",
    "assemble_source",
    "load_module",
    "BatchResult",
    "OverlayModule",
    "AssemblerConfig",
    "DEFAULT_BASE_ADDRESS",
    # Stages
    "parse_directives",
    "parse_append_lines",
    "collect_append_lines",
    "Directive",
    "DirectiveMode",
    "AppendLine",
    "allocate_variables",
    "Allocation",
    "AppendedVariable",
    "rewrite_routine",
    "assemble_routines",
    "link_routines",
    "Routine",
    # Architecture and encoding
    "Architecture",
    "ARM",
    "get_architecture",
    "InstructionEncoder",
    "KeystoneEncoder",
    # Document
    "HEADER_SIZE",
    "Patch",
    "PatchDocument",
    "PatchWrite",
    "build_patch",
    "build_document",
    "document_to_xml",
    "document_from_xml",
    "write_document",
    "read_document",
    # Exception hierarchy
    "OverlayAssemblerError",
    "ModuleError",
    "ParseError",
    "UnresolvedSymbolError",
    "DuplicateSymbolError",
    "EncodingError",
    "SizeMismatchError",
    "AddressRangeError",
    "OverlayBinaryError",
    "FailureReport",
    "ModuleFailure",
]
