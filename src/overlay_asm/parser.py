"""
Source Directive Parser
=======================

Splits an annotated assembly module into its directives.

Module Syntax
-------------
A module is a sequence of directives, each introduced by a header:

    arepl_020D1234:         ; replace the instruction at 0x020D1234
        ldr r0, =counter

    ahook_020D2000:         ; branch from 0x020D2000 to the body below
        add r1, r1, #1
        bx lr

    aappend_00000000:       ; variables appended after the overlay
        counter: .word 0
        table: .skip 16
        table_ptr: .word [table]

The address of an append header is ignored. Anything before the first
header is ignored too, so a module may start with a comment block.

Inside an append directive every line is ``name: <asm>``; a line holding
``[othername]`` is a location-alias whose value is another variable's
address (see overlay_asm.allocator).

Copyright (c) 2026 Overlay Asm Contributors
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from overlay_asm.errors import ParseError


class DirectiveMode(Enum):
    """How a directive's body is injected into the overlay."""
    APPEND = "append"
    HOOK = "hook"
    REPL = "repl"


@dataclass(frozen=True)
class Directive:
    """
    One directive of a module, in source order.

    Attributes:
        mode: Injection mode
        address: Insertion point (None for APPEND)
        body: Raw text up to the next header
    """
    mode: DirectiveMode
    address: Optional[int]
    body: str


@dataclass(frozen=True)
class AppendLine:
    """
    One declaration from an append directive.

    Attributes:
        name: Declared variable name
        text: Full assembly line, label included
        references: Names inside ``[...]``, in order, for location-aliases
    """
    name: str
    text: str
    references: tuple[str, ...] = ()

    @property
    def is_alias(self) -> bool:
        return bool(self.references)


# Valid directive header: a<mode>_<8 hex digits>:
HEADER_PATTERN = re.compile(r"a(?P<mode>repl|hook|append)_(?P<address>[0-9A-Fa-f]{8}):")

# Anything shaped like a header, used to report malformed ones
HEADER_CANDIDATE_PATTERN = re.compile(r"\ba(?P<mode>repl|hook|append)_(?P<address>\w*):")

# "name:" label at the start of an append line
NAME_PATTERN = re.compile(r"^\s*(?P<name>\w+):")

# [othername] inside an append line
REFERENCE_PATTERN = re.compile(r"\[(?P<name>\w+)\]")

COMMENT_PREFIXES = ("@", ";", "//")


def parse_directives(text: str, filename: str = "<input>") -> list[Directive]:
    """
    Split module text into directives, preserving source order.

    Args:
        text: Module source
        filename: Name used in error messages

    Returns:
        Directives in the order they appear

    Raises:
        ParseError: On a malformed header or when there are no directives
    """
    text = text.replace("\r\n", "\n")

    for candidate in HEADER_CANDIDATE_PATTERN.finditer(text):
        if not HEADER_PATTERN.fullmatch(candidate.group(0)):
            line_no = text.count("\n", 0, candidate.start()) + 1
            raise ParseError(
                f"malformed directive header '{candidate.group(0)}' on line {line_no}",
                module=filename,
                mode=candidate.group("mode"),
                hint="headers are a<mode>_<8 hex digits>:, e.g. ahook_020D1234:",
            )

    matches = list(HEADER_PATTERN.finditer(text))
    if not matches:
        raise ParseError(
            "no directives found",
            module=filename,
            hint="expected at least one arepl_, ahook_ or aappend_ header",
        )

    directives = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        mode = DirectiveMode(match.group("mode"))
        address = None
        if mode is not DirectiveMode.APPEND:
            address = int(match.group("address"), 16)
        directives.append(Directive(mode, address, text[match.end():end]))

    return directives


def _is_comment(line: str) -> bool:
    return line.startswith(COMMENT_PREFIXES)


def parse_append_lines(directive: Directive, filename: str = "<input>") -> list[AppendLine]:
    """
    Split an append directive's body into variable declarations.

    Blank lines and comment-only lines are skipped.

    Raises:
        ParseError: If a declaration has no ``name:`` label
    """
    lines = []
    for raw in directive.body.split("\n"):
        stripped = raw.strip()
        if not stripped or _is_comment(stripped):
            continue

        name_match = NAME_PATTERN.match(stripped)
        if name_match is None:
            raise ParseError(
                f"append line without a variable name: '{stripped}'",
                module=filename,
                mode=DirectiveMode.APPEND.value,
                hint="declare variables as 'name: <asm>'",
            )

        references = tuple(m.group("name") for m in REFERENCE_PATTERN.finditer(stripped))
        lines.append(AppendLine(name_match.group("name"), stripped, references))

    return lines


def collect_append_lines(directives: list[Directive], filename: str = "<input>") -> list[AppendLine]:
    """All append declarations of a module, in source order."""
    lines = []
    for directive in directives:
        if directive.mode is DirectiveMode.APPEND:
            lines.extend(parse_append_lines(directive, filename))
    return lines
