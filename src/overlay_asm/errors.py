"""
Overlay Assembler Error Hierarchy
=================================

This module defines the exception hierarchy for the overlay patch assembler.
All exceptions inherit from OverlayAssemblerError, allowing callers to catch
every assembler-related error with a single except clause if desired.

Exception Hierarchy
-------------------
OverlayAssemblerError (base)
└── ModuleError (carries module / directive context)
    ├── ParseError - malformed or missing directive header
    ├── UnresolvedSymbolError - bracket reference to an unknown variable
    ├── DuplicateSymbolError - variable declared twice in one module
    ├── EncodingError - instruction encoder rejected generated text
    ├── SizeMismatchError - replacement is not one instruction wide
    ├── AddressRangeError - append cursor left the 32-bit address space
    └── OverlayBinaryError - pre-existing overlay binary is unreadable

Errors are module-scoped: the pipeline catches ModuleError per module and
keeps going, so every error needs enough context to be diagnosed on its own.

Error messages follow this format:
    file: mode @ 0xADDRESS: error: description
    hint: suggestion for fixing (when available)

Copyright (c) 2026 Overlay Asm Contributors
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union


# =============================================================================
# Base Exception Class
# =============================================================================

class OverlayAssemblerError(Exception):
    """
    Base exception for all overlay assembler errors.

        try:
            patch = assemble_module(source, overlay, encoder)
        except OverlayAssemblerError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Module-Scoped Exceptions
# =============================================================================

class ModuleError(OverlayAssemblerError):
    """
    Base exception for errors raised while assembling one module.

    Attributes:
        message: The error description
        module: Module file name or name (optional)
        mode: Directive mode being processed, e.g. "hook" (optional)
        address: Insertion point of the directive (optional)
        hint: A suggestion for fixing the error (optional)
    """

    def __init__(
        self,
        message: str,
        module: Optional[str] = None,
        mode: Optional[str] = None,
        address: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.module = module
        self.mode = mode
        self.address = address
        self.hint = hint
        super().__init__(self._format_message())

    def with_context(
        self,
        module: Optional[str] = None,
        mode: Optional[str] = None,
        address: Optional[int] = None,
    ) -> "ModuleError":
        """
        Fill in any missing context and re-render the message.

        Lower layers (the allocator, the rewriter) do not know which file
        they are working on; the pipeline attaches it on the way out.
        Existing context is never overwritten.
        """
        if self.module is None:
            self.module = module
        if self.mode is None:
            self.mode = mode
        if self.address is None:
            self.address = address
        self.args = (self._format_message(),)
        return self

    def _format_message(self) -> str:
        """
        Format the error message with module context and hint.

        Example output:
            main_0a.s: hook @ 0x020D1234: error: cannot encode routine
            hint: check the mnemonic spelling
        """
        prefix = []
        if self.module:
            prefix.append(self.module)
        if self.mode:
            where = self.mode
            if self.address is not None:
                where += f" @ 0x{self.address:08X}"
            prefix.append(where)

        parts = []
        if prefix:
            parts.append(f"{': '.join(prefix)}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class ParseError(ModuleError):
    """
    Malformed source module.

    Raised when:
    - A directive header is malformed (wrong digit count, non-hex address)
    - A module contains no directives at all
    - An append line has no "name:" label
    """
    pass


class UnresolvedSymbolError(ModuleError):
    """
    Bracket reference to a variable that is not allocated yet.

    Alias variables are allocated after every direct variable, and in
    source order among themselves, so a reference can only point backwards.
    """

    def __init__(
        self,
        symbol: str,
        module: Optional[str] = None,
        hint: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"unresolved variable reference '[{symbol}]'",
            module=module,
            mode="append",
            hint=hint,
        )


class DuplicateSymbolError(ModuleError):
    """Variable name declared more than once in the same module."""

    def __init__(self, symbol: str, module: Optional[str] = None):
        self.symbol = symbol
        super().__init__(
            f"duplicate variable '{symbol}'",
            module=module,
            mode="append",
            hint=f"'{symbol}' is already declared in an append block",
        )


class EncodingError(ModuleError):
    """
    The instruction encoder rejected generated assembly text.

    The pipeline fills in the module, mode and insertion address so the
    failing routine can be found without re-running anything.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        module: Optional[str] = None,
        mode: Optional[str] = None,
        address: Optional[int] = None,
    ):
        self.source = source
        hint = None
        if source:
            first = source.strip().splitlines()[0] if source.strip() else ""
            if first:
                hint = f"while encoding: {first}"
        super().__init__(
            message, module=module, mode=mode, address=address, hint=hint
        )


class SizeMismatchError(ModuleError):
    """
    An in-place replacement does not encode to exactly one instruction.

    Only raised in strict mode; the permissive default logs a warning.
    """

    def __init__(
        self,
        expected: int,
        actual: int,
        module: Optional[str] = None,
        address: Optional[int] = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"replacement encodes to {actual} bytes, expected {expected}",
            module=module,
            mode="repl",
            address=address,
            hint="a repl routine must be exactly one instruction; use hook for longer code",
        )


class AddressRangeError(ModuleError):
    """The append cursor moved past the end of the 32-bit address space."""
    pass


class OverlayBinaryError(ModuleError):
    """The pre-existing overlay binary for a module cannot be read."""
    pass


# =============================================================================
# Failure Collection for Multiple Module Reporting
# =============================================================================

@dataclass(frozen=True)
class ModuleFailure:
    """
    A module that could not be assembled.

    Attributes:
        path: Source file of the module
        error: The error that aborted it
    """
    path: Path
    error: OverlayAssemblerError

    @property
    def mode(self) -> Optional[str]:
        return getattr(self.error, "mode", None)

    @property
    def address(self) -> Optional[int]:
        return getattr(self.error, "address", None)


class FailureReport:
    """
    Collects module failures for batch reporting.

    The pipeline keeps assembling after a module fails, recording the
    failure here, so a single run reports every broken module.

    Example:
        report = FailureReport()
        for path in sources:
            try:
                patches.append(assemble_module(path, ...))
            except ModuleError as e:
                report.add(path, e)

        if report.has_failures():
            print(report.report())
            sys.exit(1)
    """

    def __init__(self) -> None:
        self.failures: list[ModuleFailure] = []

    def add(self, path: Union[str, Path], error: OverlayAssemblerError) -> None:
        """Record a failed module."""
        self.failures.append(ModuleFailure(Path(path), error))

    def has_failures(self) -> bool:
        """Return True if any module failed."""
        return len(self.failures) > 0

    def report(self) -> str:
        """
        Format all failures for display.

        Each entry names the file, the directive mode and the insertion
        address (when known), followed by the error itself.
        """
        lines = []

        for failure in self.failures:
            where = str(failure.path)
            if failure.mode:
                where += f" [{failure.mode}"
                if failure.address is not None:
                    where += f" 0x{failure.address:08X}"
                where += "]"
            lines.append(where)
            for line in str(failure.error).splitlines():
                lines.append(f"  {line}")
            lines.append("")

        module_word = "module" if len(self.failures) == 1 else "modules"
        lines.append(f"{len(self.failures)} {module_word} failed")

        return "\n".join(lines)
