"""
Symbol-Aware Code Rewriter
==========================

Routine bodies refer to appended variables with an immediate-load marker,
``=name`` followed by whitespace:

    ldr r0, =counter

How the marker is rewritten depends on where the routine will run.

Replacements (``arepl_``) run in place, at a known address, so the marker
becomes a single PC-relative operand:

    ldr r0, [pc, #0x1F4]

Hooks (``ahook_``) run from the append region after a branch, where the
marker's distance from the code is fixed but its single-instruction reach
is not guaranteed. Each marker line is wrapped to go through the link
register instead:

    push {lr}
    ldr lr, =0x020D0004
    ldr r0, [lr]
    pop {lr}

The wrapping assumes the link register is not otherwise used on that line.
Markers naming something that is not an appended variable (for example
``=0x1234`` literal pool loads) are left alone.
"""

import re
from typing import Iterable, Optional

from overlay_asm.allocator import AppendedVariable
from overlay_asm.arch import ARM, Architecture
from overlay_asm.errors import ParseError
from overlay_asm.parser import DirectiveMode


def marker_pattern(name: str) -> re.Pattern:
    """Pattern for ``=name`` followed by whitespace."""
    return re.compile(rf"={re.escape(name)}(?=\s)")


def format_pc_offset(displacement: int) -> str:
    """Render a PC-relative operand, e.g. ``[pc, #0x008]`` or ``[pc, #-0x010]``."""
    if displacement < 0:
        return f"[pc, #-0x{-displacement:03X}]"
    return f"[pc, #0x{displacement:03X}]"


def rewrite_replacement(
    body: str,
    insertion_point: int,
    variables: Iterable[AppendedVariable],
    arch: Architecture = ARM,
) -> str:
    """
    Rewrite markers for a routine assembled in place at insertion_point.

    The body is assumed to be a single instruction, so every marker is
    relative to insertion_point itself.
    """
    for variable in variables:
        operand = format_pc_offset(arch.pc_relative(variable.location, insertion_point))
        body = marker_pattern(variable.name).sub(operand, body)
    return body


def rewrite_hook(
    body: str,
    variables: Iterable[AppendedVariable],
    arch: Architecture = ARM,
    module: Optional[str] = None,
    insertion_point: Optional[int] = None,
) -> str:
    """
    Rewrite markers for a routine relocated into the append region.

    Every marker line becomes a save/load/dereference/restore sequence;
    all other lines keep their position.

    Raises:
        ParseError: If one line holds more than one marker
    """
    patterns = [(variable, marker_pattern(variable.name)) for variable in variables]

    lines = body.replace("\r\n", "\n").split("\n")
    out = []
    for index, line in enumerate(lines):
        # the newline ending a line counts as the whitespace after a marker
        scanned = line + "\n" if index < len(lines) - 1 else line
        hits = [
            (variable, pattern)
            for variable, pattern in patterns
            for _ in pattern.finditer(scanned)
        ]
        if not hits:
            out.append(line)
            continue

        if len(hits) > 1:
            names = ", ".join(variable.name for variable, _ in hits)
            raise ParseError(
                f"line uses more than one variable marker ({names}): '{line.strip()}'",
                module=module,
                mode=DirectiveMode.HOOK.value,
                address=insertion_point,
                hint="split the line so each instruction loads one variable",
            )

        variable, pattern = hits[0]
        deref = pattern.sub(arch.deref_operand, scanned).rstrip("\n")
        out.extend(arch.hook_sequence(deref, variable.location))

    return "\n".join(out)


def rewrite_routine(
    mode: DirectiveMode,
    body: str,
    insertion_point: int,
    variables: Iterable[AppendedVariable],
    arch: Architecture = ARM,
    module: Optional[str] = None,
) -> str:
    """Rewrite a routine body according to its injection mode."""
    if mode is DirectiveMode.REPL:
        return rewrite_replacement(body, insertion_point, variables, arch)
    if mode is DirectiveMode.HOOK:
        return rewrite_hook(body, variables, arch, module, insertion_point)
    raise ValueError(f"append directives are not routines: {mode}")
