"""
Routine Linker
==============

Turns a module's repl/hook directives into assembled routines and places
the hooks in the append region.

Routines are built only after variable allocation, so their markers can be
rewritten against final variable addresses. Hook bodies are then placed
one after another, in source order, starting at the first free address
after the variables; the instruction written at each hook's insertion
point is a branch-with-link to that placement.

Replacement routines stay where they are. Their width is compared with one
instruction: a mismatch is an error in strict mode and a warning otherwise.

Copyright (c) 2026 Overlay Asm Contributors
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from overlay_asm.allocator import AppendedVariable
from overlay_asm.arch import ADDRESS_MASK, ARM, Architecture
from overlay_asm.encoder import InstructionEncoder
from overlay_asm.errors import AddressRangeError, EncodingError, SizeMismatchError
from overlay_asm.parser import Directive, DirectiveMode
from overlay_asm.rewriter import rewrite_routine

logger = logging.getLogger(__name__)


@dataclass
class Routine:
    """
    A repl or hook routine.

    Attributes:
        mode: REPL or HOOK
        insertion_point: Address in the overlay that gets written
        source: Body after marker rewriting
        data: Assembled body
        placement: Address of the body in the append region (HOOK only)
        branch_instruction: Branch written at insertion_point (HOOK only)
    """
    mode: DirectiveMode
    insertion_point: int
    source: str
    data: bytes
    placement: Optional[int] = None
    branch_instruction: Optional[bytes] = None

    @property
    def is_hook(self) -> bool:
        return self.mode is DirectiveMode.HOOK

    @property
    def written_value(self) -> bytes:
        """Bytes written at the insertion point."""
        if self.is_hook:
            if self.branch_instruction is None:
                raise ValueError(
                    f"hook at 0x{self.insertion_point:08X} has not been linked"
                )
            return self.branch_instruction
        return self.data


def assemble_routine(
    directive: Directive,
    variables: Iterable[AppendedVariable],
    encoder: InstructionEncoder,
    arch: Architecture = ARM,
    module: Optional[str] = None,
    strict: bool = False,
) -> Routine:
    """
    Rewrite and encode one repl/hook directive.

    Raises:
        EncodingError: If the rewritten body cannot be assembled
        SizeMismatchError: In strict mode, for a replacement that is not
            exactly one instruction wide
    """
    mode_name = directive.mode.value
    source = rewrite_routine(
        directive.mode, directive.body, directive.address, variables, arch, module
    )

    try:
        data = encoder.encode(source)
    except EncodingError as e:
        raise e.with_context(module=module, mode=mode_name, address=directive.address)

    if directive.mode is DirectiveMode.REPL and len(data) != arch.instruction_size:
        if strict:
            raise SizeMismatchError(
                arch.instruction_size, len(data), module=module, address=directive.address
            )
        logger.warning(
            "%s: repl at 0x%08X encodes to %d bytes (one instruction is %d)",
            module or "<input>", directive.address, len(data), arch.instruction_size,
        )

    return Routine(directive.mode, directive.address, source, data)


def assemble_routines(
    directives: Iterable[Directive],
    variables: Iterable[AppendedVariable],
    encoder: InstructionEncoder,
    arch: Architecture = ARM,
    module: Optional[str] = None,
    strict: bool = False,
) -> list[Routine]:
    """Assemble every repl/hook directive of a module, in source order."""
    variables = list(variables)
    return [
        assemble_routine(directive, variables, encoder, arch, module, strict)
        for directive in directives
        if directive.mode is not DirectiveMode.APPEND
    ]


def link_routines(
    routines: Iterable[Routine],
    cursor: int,
    encoder: InstructionEncoder,
    arch: Architecture = ARM,
    module: Optional[str] = None,
) -> int:
    """
    Place hook bodies at the cursor and compute their branches.

    Args:
        routines: Module routines in source order
        cursor: First free append-region address after the variables
        encoder: Instruction encoder
        arch: Target architecture

    Returns:
        The cursor after the last placed hook
    """
    for routine in routines:
        if not routine.is_hook:
            continue

        displacement = cursor - routine.insertion_point
        try:
            routine.branch_instruction = arch.encode_branch(displacement, encoder)
        except EncodingError as e:
            raise e.with_context(
                module=module, mode=routine.mode.value, address=routine.insertion_point
            )
        routine.placement = cursor
        logger.debug(
            "Hook 0x%08X -> 0x%08X (displacement 0x%08X, %d bytes)",
            routine.insertion_point, cursor, displacement & ADDRESS_MASK, len(routine.data),
        )

        cursor += len(routine.data)
        if cursor > ADDRESS_MASK + 1:
            raise AddressRangeError(
                "hook routines extend past 0xFFFFFFFF",
                module=module,
                mode=routine.mode.value,
                address=routine.insertion_point,
            )

    return cursor
