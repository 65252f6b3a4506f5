"""
Variable Allocator Tests
========================

Tests for the two-pass placement of appended variables.
"""

import pytest

from conftest import RecordingEncoder

from overlay_asm.allocator import allocate_variables, substitute_references
from overlay_asm.errors import (
    AddressRangeError,
    DuplicateSymbolError,
    EncodingError,
    UnresolvedSymbolError,
)
from overlay_asm.parser import AppendLine, Directive, DirectiveMode, parse_append_lines


START = 0x02100000


def lines_of(body: str) -> list[AppendLine]:
    return parse_append_lines(Directive(DirectiveMode.APPEND, None, body))


# =============================================================================
# Direct Variables
# =============================================================================

class TestDirectVariables:
    """Pass 1: variables assembled as written."""

    def test_each_address_is_cursor_before_it(self, encoder):
        """Every variable starts where the previous one ended."""
        allocation = allocate_variables(
            lines_of("a: .word 1\nb: .skip 6\nc: .word 3\n"), START, encoder
        )
        assert [(v.name, v.location) for v in allocation.variables] == [
            ("a", START),
            ("b", START + 4),
            ("c", START + 10),
        ]

    def test_final_cursor(self, encoder):
        """The cursor ends at start + sum of all lengths."""
        allocation = allocate_variables(
            lines_of("a: .word 1\nb: .skip 6\nc: .word 3\n"), START, encoder
        )
        total = sum(len(v.value) for v in allocation.variables)
        assert total == 14
        assert allocation.cursor == START + total

    def test_values_are_encoded_text(self, encoder):
        """Values come from the encoder, label and all."""
        allocation = allocate_variables(lines_of("answer: .word 42\n"), START, encoder)
        assert allocation.variables[0].value == (42).to_bytes(4, "little")
        assert encoder.calls == ["answer: .word 42"]

    def test_no_lines(self, encoder):
        """Nothing to allocate leaves the cursor alone."""
        allocation = allocate_variables([], START, encoder)
        assert allocation.variables == []
        assert allocation.cursor == START


# =============================================================================
# Location Aliases
# =============================================================================

class TestAliasVariables:
    """Pass 2: variables holding another variable's address."""

    def test_aliases_placed_after_direct(self, encoder):
        """An alias declared first still lands after every direct variable."""
        allocation = allocate_variables(
            lines_of("ptr: .word [buf]\nbuf: .skip 8\nflag: .word 0\n"), START, encoder
        )
        assert allocation.names() == ["buf", "flag", "ptr"]
        assert allocation.find("ptr").location == START + 12
        assert allocation.find("ptr").references == ("buf",)

    def test_substituted_immediate(self, encoder):
        """The bracket becomes the exact location as an 8-digit hex literal."""
        allocation = allocate_variables(
            lines_of("pad: .skip 0x1C\nbuf: .word 0\nptr: .word [buf]\n"), START, encoder
        )
        assert allocation.find("buf").location == 0x0210001C
        assert encoder.calls[-1] == "ptr: .word 0x0210001C"
        assert allocation.find("ptr").value == (0x0210001C).to_bytes(4, "little")

    def test_alias_of_earlier_alias(self, encoder):
        """An alias may reference an alias declared before it."""
        allocation = allocate_variables(
            lines_of("buf: .word 0\np1: .word [buf]\np2: .word [p1]\n"), START, encoder
        )
        assert encoder.calls[-1] == f"p2: .word 0x{START + 4:08X}"

    def test_alias_of_later_alias(self, encoder):
        """Referencing an alias declared later is unresolved."""
        with pytest.raises(UnresolvedSymbolError) as exc_info:
            allocate_variables(
                lines_of("buf: .word 0\np2: .word [p1]\np1: .word [buf]\n"),
                START,
                encoder,
                module="mod",
            )
        error = exc_info.value
        assert error.symbol == "p1"
        assert "declared after 'p2'" in str(error)

    def test_unknown_reference(self, encoder):
        """Unknown names fail with close-match suggestions."""
        with pytest.raises(UnresolvedSymbolError, match=r"\[bufer\]") as exc_info:
            allocate_variables(lines_of("buffer: .word 0\nptr: .word [bufer]\n"), START, encoder)
        assert exc_info.value.similar_symbols == ["buffer"]
        assert "did you mean 'buffer'" in str(exc_info.value)

    def test_substitute_references(self):
        """Only the brackets are replaced."""
        text = substitute_references("p: .word [x], [y] @ note", {"x": 0xAB, "y": 0x10})
        assert text == "p: .word 0x000000AB, 0x00000010 @ note"

    def test_pointer_table(self, encoder):
        """Every bracket on a line is resolved, not just the first."""
        allocation = allocate_variables(
            lines_of("a: .word 1\nb: .word 2\ntbl: .word [a], [b], [a]\n"), START, encoder
        )
        assert encoder.calls[-1] == (
            f"tbl: .word 0x{START:08X}, 0x{START + 4:08X}, 0x{START:08X}"
        )
        table = allocation.find("tbl")
        assert table.references == ("a", "b", "a")
        assert table.location == START + 8
        assert len(table.value) == 12
        assert allocation.cursor == START + 20

    def test_pointer_table_unresolved_entry(self, encoder):
        """An unknown name anywhere on the line is unresolved."""
        with pytest.raises(UnresolvedSymbolError) as exc_info:
            allocate_variables(
                lines_of("a: .word 1\ntbl: .word [a], [missing]\n"), START, encoder, module="mod"
            )
        assert exc_info.value.symbol == "missing"
        assert not any("tbl" in call for call in encoder.calls)


# =============================================================================
# Failures
# =============================================================================

class TestAllocatorErrors:
    """Error reporting during allocation."""

    def test_duplicate_name(self, encoder):
        """The same name twice is rejected before anything is encoded."""
        with pytest.raises(DuplicateSymbolError, match="duplicate variable 'x'"):
            allocate_variables(lines_of("x: .word 1\nx: .word 2\n"), START, encoder)
        assert encoder.calls == []

    def test_encoding_error_has_context(self):
        """Encoder failures name the module and the append mode."""
        encoder = RecordingEncoder(reject="bogus")
        with pytest.raises(EncodingError) as exc_info:
            allocate_variables(lines_of("x: bogus 1\n"), START, encoder, module="main_0a")
        error = exc_info.value
        assert error.module == "main_0a"
        assert error.mode == "append"
        assert str(error).startswith("main_0a: append: error:")

    def test_address_space_overflow(self, encoder):
        """Variables may not run past 0xFFFFFFFF."""
        with pytest.raises(AddressRangeError):
            allocate_variables(lines_of("x: .skip 8\n"), 0xFFFFFFFC, encoder)
