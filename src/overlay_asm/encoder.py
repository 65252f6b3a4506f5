"""
Instruction Encoder Interface
=============================

The assembler does not translate instruction text to machine code itself.
It hands complete snippets of assembly text to an InstructionEncoder and
only cares about the bytes that come back:

    >>> encoder = KeystoneEncoder()
    >>> encoder.encode("mov r0, #1")
    b'\\x01\\x00\\xa0\\xe3'

Every snippet is assembled at address 0. Branches are rendered with their
displacement as the target, so the encoder's own PC-relative math produces
the right offset (see ``Architecture.branch_text``).

KeystoneEncoder wraps the keystone-engine package, which is only needed
when actually encoding; tests and other callers can supply any object with
an ``encode(text) -> bytes`` method.
"""

import logging
from typing import Protocol

from overlay_asm.errors import EncodingError

logger = logging.getLogger(__name__)


class InstructionEncoder(Protocol):
    """Translates assembly text to machine code for one architecture."""

    def encode(self, text: str) -> bytes:
        """
        Assemble ``text`` at address 0.

        Raises:
            EncodingError: If the text cannot be assembled
        """
        ...


class KeystoneEncoder:
    """
    InstructionEncoder backed by the Keystone assembler engine.

    Code is always assembled little-endian, the byte order of the overlays.

    Attributes:
        arch: Architecture name; only "arm" is supported
    """

    def __init__(self, arch: str = "arm"):
        try:
            import keystone
        except ImportError:
            raise ImportError(
                "keystone-engine required for encoding: pip install -e '.[keystone]'"
            ) from None

        if arch.lower() != "arm":
            raise ValueError(f"unsupported Keystone architecture '{arch}'")

        self.arch = arch.lower()
        self._error_type = keystone.KsError
        self._engine = keystone.Ks(
            keystone.KS_ARCH_ARM, keystone.KS_MODE_ARM | keystone.KS_MODE_LITTLE_ENDIAN
        )

    def encode(self, text: str) -> bytes:
        try:
            encoding, count = self._engine.asm(text, 0)
        except self._error_type as e:
            raise EncodingError(f"assembler rejected input: {e}", source=text) from e

        data = bytes(encoding or [])
        logger.debug("Encoded %d statement(s) into %d bytes", count or 0, len(data))
        return data
