"""
Variable Allocator
==================

Assigns append-region addresses to the variables declared in a module's
append directives.

Allocation runs in two ordered passes over the declarations:

1. Direct variables (no ``[name]`` reference) are placed at the cursor in
   source order and assembled as written.
2. Location-aliases are placed after every direct variable, again in source
   order. Each ``[name]`` is replaced by the referenced variable's absolute
   address before assembly, so every reference must already be placed: any
   direct variable, or an alias declared earlier. A line may hold several
   references, e.g. a pointer table ``tbl: .word [a], [b]``.

Placing aliases last means every address they need is fixed by the time
they are assembled, which avoids a general fixup table.

Example:
    >>> lines = collect_append_lines(parse_directives(source))
    >>> allocation = allocate_variables(lines, 0x020D0004, encoder)
    >>> [hex(v.location) for v in allocation.variables]
    ['0x20d0004', '0x20d0008']

Copyright (c) 2026 Overlay Asm Contributors
"""

import difflib
import logging
from dataclasses import dataclass, field
from typing import Optional

from overlay_asm.arch import ADDRESS_MASK
from overlay_asm.encoder import InstructionEncoder
from overlay_asm.errors import (
    AddressRangeError,
    DuplicateSymbolError,
    EncodingError,
    UnresolvedSymbolError,
)
from overlay_asm.parser import REFERENCE_PATTERN, AppendLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppendedVariable:
    """
    A variable placed in the append region.

    Attributes:
        name: Variable name
        location: Absolute address (unsigned 32-bit)
        value: Assembled bytes
        references: Names of the aliased variables, for location-aliases
    """
    name: str
    location: int
    value: bytes
    references: tuple[str, ...] = ()

    @property
    def end(self) -> int:
        return self.location + len(self.value)


@dataclass
class Allocation:
    """
    Result of allocating one module's variables.

    Attributes:
        variables: Variables in allocation order (direct, then aliases)
        cursor: First free address after the last variable
    """
    variables: list[AppendedVariable] = field(default_factory=list)
    cursor: int = 0

    def find(self, name: str) -> Optional[AppendedVariable]:
        for variable in self.variables:
            if variable.name == name:
                return variable
        return None

    def names(self) -> list[str]:
        return [variable.name for variable in self.variables]


def substitute_references(text: str, locations: dict[str, int]) -> str:
    """Replace every ``[name]`` in an alias line with ``0x%08X`` of its location."""
    return REFERENCE_PATTERN.sub(lambda m: f"0x{locations[m.group('name')]:08X}", text)


def _check_duplicates(lines: list[AppendLine], module: Optional[str]) -> None:
    seen = set()
    for line in lines:
        if line.name in seen:
            raise DuplicateSymbolError(line.name, module=module)
        seen.add(line.name)


def _place(
    allocation: Allocation,
    line: AppendLine,
    text: str,
    encoder: InstructionEncoder,
    module: Optional[str],
) -> AppendedVariable:
    try:
        value = encoder.encode(text)
    except EncodingError as e:
        e.hint = e.hint or f"while encoding variable '{line.name}'"
        raise e.with_context(module=module, mode="append")

    variable = AppendedVariable(line.name, allocation.cursor, value, line.references)
    if variable.end > ADDRESS_MASK + 1:
        raise AddressRangeError(
            f"variable '{line.name}' ends past 0xFFFFFFFF",
            module=module,
            mode="append",
        )

    allocation.variables.append(variable)
    allocation.cursor = variable.end
    logger.debug(
        "Allocated %s at 0x%08X (%d bytes)", variable.name, variable.location, len(value)
    )
    return variable


def allocate_variables(
    lines: list[AppendLine],
    start: int,
    encoder: InstructionEncoder,
    module: Optional[str] = None,
) -> Allocation:
    """
    Place every declared variable of a module.

    Args:
        lines: Append declarations in source order
        start: Module's starting append cursor
        encoder: Instruction encoder
        module: Module name for error messages

    Returns:
        The allocation, with the cursor left after the last variable

    Raises:
        UnresolvedSymbolError: If an alias references an unplaced variable
        DuplicateSymbolError: If a name is declared twice
        EncodingError: If a declaration cannot be assembled
    """
    _check_duplicates(lines, module)
    allocation = Allocation(cursor=start)

    # Pass 1: direct variables
    for line in lines:
        if not line.is_alias:
            _place(allocation, line, line.text, encoder, module)

    # Pass 2: location-aliases, resolved against everything placed so far
    for line in lines:
        if not line.is_alias:
            continue

        locations = {}
        for reference in line.references:
            target = allocation.find(reference)
            if target is None:
                hint = None
                if any(other.name == reference for other in lines):
                    hint = f"'{reference}' is an alias declared after '{line.name}'"
                raise UnresolvedSymbolError(
                    reference,
                    module=module,
                    hint=hint,
                    similar_symbols=difflib.get_close_matches(reference, allocation.names()),
                )
            locations[reference] = target.location
            logger.debug("Resolved [%s] in %s to 0x%08X", reference, line.name, target.location)

        text = substitute_references(line.text, locations)
        _place(allocation, line, text, encoder, module)

    return allocation
