"""
Patch Document Builder
======================

Collects one module's results into a Patch and the patches of a run into a
PatchDocument.

A Patch holds:
- one write per repl routine (its assembled bytes) and per hook routine
  (its branch instruction), in source order
- the append blob: a zero-filled header, then every variable in
  allocation order, then every hook body in linking order

The header is left for the runtime loader to fill in; the assembler only
reserves it. Patches are immutable once built.
"""

from dataclasses import dataclass, field
from typing import Iterable

from overlay_asm.allocator import AppendedVariable
from overlay_asm.linker import Routine

# Bytes reserved at the start of every append blob
HEADER_SIZE = 4


@dataclass(frozen=True)
class PatchWrite:
    """Bytes written at one overlay address."""
    location: int
    value: bytes


@dataclass(frozen=True)
class Patch:
    """
    Everything the patch-application tool needs for one overlay.

    Attributes:
        name: Overlay name (module file stem)
        base_address: Address the overlay is loaded at
        writes: In-place writes, in source order
        append_blob: Bytes appended after the overlay
    """
    name: str
    base_address: int
    writes: tuple[PatchWrite, ...] = ()
    append_blob: bytes = bytes(HEADER_SIZE)


@dataclass(frozen=True)
class PatchDocument:
    """All patches of one assembler run."""
    overlays: tuple[Patch, ...] = field(default_factory=tuple)

    def names(self) -> list[str]:
        return [patch.name for patch in self.overlays]

    def get(self, name: str) -> Patch:
        for patch in self.overlays:
            if patch.name == name:
                return patch
        raise KeyError(name)


def build_append_blob(
    variables: Iterable[AppendedVariable],
    routines: Iterable[Routine],
) -> bytes:
    """Header placeholder, then variables, then hook bodies."""
    blob = bytearray(HEADER_SIZE)
    for variable in variables:
        blob.extend(variable.value)
    for routine in routines:
        if routine.is_hook:
            blob.extend(routine.data)
    return bytes(blob)


def build_patch(
    name: str,
    base_address: int,
    variables: Iterable[AppendedVariable],
    routines: Iterable[Routine],
) -> Patch:
    """
    Build the Patch for one module.

    Routines must already be linked; an unlinked hook raises ValueError.
    """
    routines = list(routines)
    writes = tuple(
        PatchWrite(routine.insertion_point, routine.written_value) for routine in routines
    )
    return Patch(
        name=name,
        base_address=base_address,
        writes=writes,
        append_blob=build_append_blob(variables, routines),
    )


def build_document(patches: Iterable[Patch]) -> PatchDocument:
    """Gather patches into a document, keeping their order."""
    return PatchDocument(tuple(patches))
