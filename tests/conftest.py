"""
Shared Test Fixtures
====================

The real encoder (Keystone) is an optional dependency, so most tests use
RecordingEncoder: a deterministic stand-in that records every snippet it
is asked to assemble and produces predictable bytes:

- ``.word N, ...``  -> each N as 4 little-endian bytes
- ``.skip N``       -> N zero bytes
- any other line    -> 4 bytes (CRC-32 of the line text)

Labels (``name:``), comments (``@ ...``) and blank lines produce nothing.
"""

import re
import struct
import zlib
from pathlib import Path

import pytest

from overlay_asm.errors import EncodingError


LABEL = re.compile(r"^\w+:\s*")
WORD = re.compile(r"^\.word\s+(\S+(?:\s*,\s*\S+)*)$")
SKIP = re.compile(r"^\.(?:skip|space)\s+(\S+)$")


def crc_word(line: str) -> bytes:
    """Bytes RecordingEncoder produces for one plain instruction line."""
    return struct.pack("<I", zlib.crc32(line.strip().encode("utf-8")))


class RecordingEncoder:
    """Deterministic InstructionEncoder that records its input."""

    def __init__(self, reject: str | None = None):
        self.reject = reject
        self.calls: list[str] = []

    def encode(self, text: str) -> bytes:
        self.calls.append(text)
        if self.reject and self.reject in text:
            raise EncodingError("invalid instruction", source=text)

        out = bytearray()
        for raw in text.split("\n"):
            line = LABEL.sub("", raw.split("@")[0].strip())
            if not line:
                continue
            if match := WORD.match(line):
                for value in match.group(1).split(","):
                    out += struct.pack("<I", int(value.strip(), 0) & 0xFFFFFFFF)
            elif match := SKIP.match(line):
                out += bytes(int(match.group(1), 0))
            else:
                out += crc_word(line)
        return bytes(out)


@pytest.fixture
def encoder() -> RecordingEncoder:
    """A fresh recording encoder."""
    return RecordingEncoder()


@pytest.fixture
def sample_module() -> str:
    """
    A module using every directive kind.

    With the append cursor starting at 0x02100000:
        counter  0x02100000  4 bytes  (direct)
        buffer   0x02100004  8 bytes  (direct)
        ptr      0x0210000C  4 bytes  (alias of buffer, declared first)
        hook     0x02100010  20 bytes (5 instructions after rewriting)
    """
    return (
        "@ sample overlay module\n"
        "aappend_00000000:\n"
        "    ptr: .word [buffer]\n"
        "    counter: .word 7\n"
        "    buffer: .skip 8\n"
        "\n"
        "arepl_020FFF00:\n"
        "    ldr r0, =counter\n"
        "ahook_020C9000:\n"
        "    ldr r1, =buffer\n"
        "    bx lr\n"
    )


@pytest.fixture
def module_tree(tmp_path: Path):
    """
    Create a source directory and an overlay directory.

    Returns a function ``make(name, source, overlay_size=None)`` that writes
    ``<name>.s`` and, when overlay_size is given, ``<name>.bin``.
    """
    source_dir = tmp_path / "src"
    overlay_dir = tmp_path / "overlays"
    source_dir.mkdir()
    overlay_dir.mkdir()

    def make(name: str, source: str, overlay_size: int | None = None) -> Path:
        path = source_dir / f"{name}.s"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        if overlay_size is not None:
            (overlay_dir / f"{Path(name).name}.bin").write_bytes(bytes(overlay_size))
        return path

    make.source_dir = source_dir
    make.overlay_dir = overlay_dir
    return make
