"""
Target Architecture Parameters
==============================

Everything the assembler needs to know about the target CPU that is not
handled by the instruction encoder itself:

- the pipeline offset between the program counter and the executing
  instruction (PC-relative loads are computed against it)
- the width of one instruction (used by the strict replacement check)
- the branch-with-link form written at hook insertion points
- the register save/load/restore templates used to reach a variable from
  a relocated hook routine

ARM (as run by the overlays this tool was written for) is the only
definition shipped. Another CPU family needs another Architecture value,
not changes to the core.
"""

from dataclasses import dataclass

from overlay_asm.encoder import InstructionEncoder


# Largest address representable in the target's 32-bit address space
ADDRESS_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class Architecture:
    """
    Injectable architecture capability.

    Attributes:
        name: Short architecture name, also used to pick an encoder
        pipeline_offset: PC value minus address of the executing instruction
        instruction_size: Width of one instruction in bytes
        branch_template: Text of the branch-with-link written at a hook site;
            formatted with ``displacement`` as an unsigned 32-bit integer
        scratch_register: Register borrowed by hook routines to reach variables
        save_template: Saves the scratch register
        load_template: Loads ``address`` into the scratch register
        deref_template: Operand replacing a marker, dereferencing the register
        restore_template: Restores the scratch register
    """
    name: str
    pipeline_offset: int
    instruction_size: int
    branch_template: str
    scratch_register: str
    save_template: str
    load_template: str
    deref_template: str
    restore_template: str

    def pc_relative(self, target: int, insertion_point: int) -> int:
        """Displacement of a PC-relative operand at insertion_point reaching target."""
        return target - insertion_point - self.pipeline_offset

    def branch_text(self, displacement: int) -> str:
        """
        Render the branch-with-link instruction for a displacement.

        The branch is assembled at address 0, so passing the displacement
        as the absolute target lets the encoder apply its own PC math.
        """
        return self.branch_template.format(displacement=displacement & ADDRESS_MASK)

    def encode_branch(self, displacement: int, encoder: InstructionEncoder) -> bytes:
        """Encode the branch-with-link for a displacement."""
        return encoder.encode(self.branch_text(displacement))

    def hook_sequence(self, line: str, address: int) -> list[str]:
        """
        Wrap one marker line so it reaches ``address`` through the scratch register.

        ``line`` must already have its marker replaced by ``deref_template``.
        """
        return [
            self.save_template.format(reg=self.scratch_register),
            self.load_template.format(reg=self.scratch_register, address=address),
            line,
            self.restore_template.format(reg=self.scratch_register),
        ]

    @property
    def deref_operand(self) -> str:
        return self.deref_template.format(reg=self.scratch_register)


ARM = Architecture(
    name="arm",
    pipeline_offset=8,
    instruction_size=4,
    branch_template="bl 0x{displacement:08X}",
    scratch_register="lr",
    save_template="push {{{reg}}}",
    load_template="ldr {reg}, =0x{address:08X}",
    deref_template="[{reg}]",
    restore_template="pop {{{reg}}}",
)

ARCHITECTURES = {
    ARM.name: ARM,
}


def get_architecture(name: str) -> Architecture:
    """
    Look up a shipped architecture by name.

    Raises:
        KeyError: If the architecture is unknown
    """
    try:
        return ARCHITECTURES[name.lower()]
    except KeyError:
        known = ", ".join(sorted(ARCHITECTURES))
        raise KeyError(f"unknown architecture '{name}' (known: {known})") from None
