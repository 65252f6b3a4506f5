"""
Module Pipeline
===============

Drives modules through every stage:

    parse -> allocate variables -> rewrite + encode routines
          -> link hooks -> build patch

Each module is independent: it gets its own append cursor, seeded from the
length of its pre-existing overlay binary, and its own variable namespace.
A module that fails is recorded in a FailureReport and the run carries on
with the others, so one broken file never hides the rest.

Example:
    >>> result = assemble_directory("src/overlays", "build/overlays")
    >>> write_document(result.document, "overlay.xml")
    >>> if result.report.has_failures():
    ...     print(result.report.report())

Copyright (c) 2026 Overlay Asm Contributors
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from overlay_asm.allocator import allocate_variables
from overlay_asm.arch import Architecture, get_architecture
from overlay_asm.config import AssemblerConfig
from overlay_asm.document import Patch, PatchDocument, build_document, build_patch
from overlay_asm.encoder import InstructionEncoder, KeystoneEncoder
from overlay_asm.errors import FailureReport, ModuleError, OverlayBinaryError, ParseError
from overlay_asm.linker import assemble_routines, link_routines
from overlay_asm.parser import collect_append_lines, parse_directives

logger = logging.getLogger(__name__)

EncoderFactory = Callable[[], InstructionEncoder]


@dataclass(frozen=True)
class OverlayModule:
    """
    One source module, ready to assemble.

    Attributes:
        name: Module name (source file stem), also the overlay name
        path: Source file
        text: Source text
        start: First append-region address
    """
    name: str
    path: Path
    text: str
    start: int


@dataclass
class BatchResult:
    """Patches for the modules that assembled, plus the failures of the rest."""
    document: PatchDocument = field(default_factory=PatchDocument)
    report: FailureReport = field(default_factory=FailureReport)

    @property
    def ok(self) -> bool:
        return not self.report.has_failures()


def overlay_path_for(source: Path, overlay_dir: Union[str, Path], config: AssemblerConfig) -> Path:
    """Path of the pre-existing overlay binary matching a module."""
    return Path(overlay_dir) / f"{source.stem}{config.overlay_suffix}"


def load_module(
    source: Union[str, Path],
    overlay_dir: Union[str, Path],
    config: Optional[AssemblerConfig] = None,
) -> OverlayModule:
    """
    Read a module and seed its append cursor from its overlay binary.

    Raises:
        OverlayBinaryError: If the overlay binary cannot be read
        ParseError: If the source cannot be read or is not UTF-8
    """
    config = config or AssemblerConfig()
    source = Path(source)
    overlay = overlay_path_for(source, overlay_dir, config)

    try:
        overlay_length = overlay.stat().st_size
    except OSError as e:
        raise OverlayBinaryError(
            f"cannot read overlay binary {overlay}: {e.strerror or e}",
            module=source.name,
            hint=f"expected {overlay.name} in {overlay.parent}",
        ) from e

    try:
        text = source.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"source is not valid UTF-8: {e.reason}", module=source.name) from e
    except OSError as e:
        raise ParseError(
            f"cannot read source {source}: {e.strerror or e}", module=source.name
        ) from e

    return OverlayModule(source.stem, source, text, config.start_cursor(overlay_length))


def assemble_source(
    name: str,
    text: str,
    start: int,
    encoder: InstructionEncoder,
    config: Optional[AssemblerConfig] = None,
    arch: Optional[Architecture] = None,
) -> Patch:
    """
    Assemble one module's text into a Patch.

    Args:
        name: Module name, used for the patch and in error messages
        text: Module source
        start: First append-region address
        encoder: Instruction encoder
        config: Run configuration (defaults if omitted)
        arch: Architecture (looked up from config.arch if omitted)

    Raises:
        ModuleError: On any parse, resolution or encoding failure
    """
    config = config or AssemblerConfig()
    arch = arch or get_architecture(config.arch)

    directives = parse_directives(text, name)
    allocation = allocate_variables(collect_append_lines(directives, name), start, encoder, name)

    routines = assemble_routines(
        directives, allocation.variables, encoder, arch, name, config.strict_replacements
    )
    end = link_routines(routines, allocation.cursor, encoder, arch, name)

    patch = build_patch(name, config.base_address, allocation.variables, routines)
    logger.debug(
        "%s: %d variable(s), %d routine(s), append region 0x%08X-0x%08X",
        name, len(allocation.variables), len(routines), start, end,
    )
    return patch


def assemble_module(
    module: OverlayModule,
    encoder: InstructionEncoder,
    config: Optional[AssemblerConfig] = None,
    arch: Optional[Architecture] = None,
) -> Patch:
    """Assemble a loaded module, attaching its file name to any error."""
    try:
        return assemble_source(module.name, module.text, module.start, encoder, config, arch)
    except ModuleError as e:
        raise e.with_context(module=module.path.name)


def find_sources(source_dir: Union[str, Path], pattern: str = "*.s") -> list[Path]:
    """Module sources under source_dir, recursively, in a stable order."""
    return sorted(path for path in Path(source_dir).rglob(pattern) if path.is_file())


def default_encoder_factory(config: AssemblerConfig) -> EncoderFactory:
    return lambda: KeystoneEncoder(config.arch)


def assemble_directory(
    source_dir: Union[str, Path],
    overlay_dir: Union[str, Path],
    config: Optional[AssemblerConfig] = None,
    encoder_factory: Optional[EncoderFactory] = None,
) -> BatchResult:
    """
    Assemble every module under source_dir.

    Modules are assembled independently, concurrently when config.jobs > 1;
    patches are always returned in source path order.

    Args:
        source_dir: Directory searched recursively for modules
        overlay_dir: Directory holding the pre-existing overlay binaries
        config: Run configuration
        encoder_factory: Creates an encoder per module (Keystone by default)

    Returns:
        The document for successful modules and a report of failed ones
    """
    config = config or AssemblerConfig()
    encoder_factory = encoder_factory or default_encoder_factory(config)
    arch = get_architecture(config.arch)
    sources = find_sources(source_dir, config.source_pattern)

    def run(source: Path) -> Patch:
        logger.info("Generating overlay patch for %s...", source)
        module = load_module(source, overlay_dir, config)
        return assemble_module(module, encoder_factory(), config, arch)

    def attempt(source: Path) -> Union[Patch, ModuleError]:
        try:
            return run(source)
        except ModuleError as e:
            return e

    if config.jobs > 1 and len(sources) > 1:
        with ThreadPoolExecutor(max_workers=config.jobs) as pool:
            outcomes = list(pool.map(attempt, sources))
    else:
        outcomes = [attempt(source) for source in sources]

    result = BatchResult()
    patches = []
    for source, outcome in zip(sources, outcomes):
        if isinstance(outcome, ModuleError):
            logger.error("%s", outcome)
            result.report.add(source, outcome)
        else:
            patches.append(outcome)

    result.document = build_document(patches)
    logger.info(
        "Assembled %d of %d module(s)", len(patches), len(sources)
    )
    return result
