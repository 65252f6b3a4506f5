"""
Assembler Configuration
=======================

Settings shared by the pipeline and the command-line tool. Configuration
can come from:
- Default values (defined here)
- Environment variables (``AssemblerConfig.from_env``)
- Command-line options, which override both

The defaults match the overlays this tool was written for: overlays load
at 0x020C7660. Every append blob starts with a fixed 4-byte placeholder
(document.HEADER_SIZE), which is not configurable.
"""

from dataclasses import dataclass, replace
import os

from overlay_asm.document import HEADER_SIZE

# Load address of every overlay
DEFAULT_BASE_ADDRESS = 0x020C7660


@dataclass(frozen=True)
class AssemblerConfig:
    """
    Configuration for an assembler run.

    Attributes:
        base_address: Address overlays are loaded at
        source_pattern: Glob for module sources, searched recursively
        overlay_suffix: Suffix of the pre-existing overlay binaries
        strict_replacements: Fail repl routines that are not one instruction
        jobs: Modules assembled concurrently (1 = sequential)
        arch: Target architecture name
    """
    base_address: int = DEFAULT_BASE_ADDRESS
    source_pattern: str = "*.s"
    overlay_suffix: str = ".bin"
    strict_replacements: bool = False
    jobs: int = 1
    arch: str = "arm"

    def start_cursor(self, overlay_length: int) -> int:
        """First append-region address for an overlay of overlay_length bytes."""
        return overlay_length + self.base_address + HEADER_SIZE

    def with_overrides(self, **overrides) -> "AssemblerConfig":
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls) -> "AssemblerConfig":
        """
        Create AssemblerConfig from environment variables.

        Environment variables (all optional):
            OVERLAY_ASM_BASE_ADDRESS: Overlay load address (hex or decimal)
            OVERLAY_ASM_STRICT: "1"/"true" to enable strict replacements
            OVERLAY_ASM_JOBS: Concurrent modules

        Raises:
            ValueError: If a numeric variable does not parse
        """
        overrides = {}

        if base := os.environ.get("OVERLAY_ASM_BASE_ADDRESS"):
            overrides["base_address"] = int(base, 0)

        if strict := os.environ.get("OVERLAY_ASM_STRICT"):
            overrides["strict_replacements"] = strict.lower() in ("1", "true", "yes", "on")

        if jobs := os.environ.get("OVERLAY_ASM_JOBS"):
            overrides["jobs"] = max(1, int(jobs))

        return cls(**overrides)
