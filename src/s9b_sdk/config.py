"""
S9B Machine Configuration
=========================

Word width, memory size and pipeline limits shared by the assembler, the
interpreter and the command-line tools. Configuration can come from:
- Default values (defined here, matching the reference 9-bit machine)
- Explicit constructor arguments
- Environment variables (see MachineConfig.from_env)

The reference machine uses 9-bit words (word size 512) and a 256-word
memory. Instruction encoding needs all nine bits, so narrower words are
rejected; wider words only widen the data path.
"""

from dataclasses import dataclass
import os

from s9b_sdk.errors import ConfigError


@dataclass
class MachineConfig:
    """
    Configuration for assembling and running S9B programs.

    Attributes:
        word_bits: Width of a machine word in bits (default: 9)
        memory_size: Number of words of interpreter memory (default: 256)
        max_errors: Diagnostics collected before a compile gives up (default: 100)
        max_literal_depth: Deepest allowed nesting of array literals (default: 32)
        max_ticks: Tick budget for batch runs (default: 100,000)
        trace_limit: Trace lines kept by the batch driver (default: 1,000)
    """

    # ═══════════════════════════════════════════════════════════════════════════
    # MACHINE
    # ═══════════════════════════════════════════════════════════════════════════

    word_bits: int = 9
    memory_size: int = 256

    # ═══════════════════════════════════════════════════════════════════════════
    # PIPELINE LIMITS
    # ═══════════════════════════════════════════════════════════════════════════

    max_errors: int = 100
    max_literal_depth: int = 32

    # ═══════════════════════════════════════════════════════════════════════════
    # EXECUTION
    # ═══════════════════════════════════════════════════════════════════════════

    max_ticks: int = 100_000
    trace_limit: int = 1_000

    @property
    def word_size(self) -> int:
        """Number of distinct word values (2 ** word_bits)."""
        return 1 << self.word_bits

    @property
    def mask(self) -> int:
        """Bit mask selecting one word."""
        return self.word_size - 1

    def validate(self) -> "MachineConfig":
        """
        Check the configuration for consistency.

        Returns:
            self, for chaining

        Raises:
            ConfigError: If any value is out of range
        """
        if self.word_bits < 9:
            raise ConfigError(
                f"word_bits must be at least 9 to hold an instruction, got {self.word_bits}"
            )
        if self.memory_size <= 0:
            raise ConfigError(f"memory_size must be positive, got {self.memory_size}")
        if self.memory_size > self.word_size:
            raise ConfigError(
                f"memory_size {self.memory_size} exceeds the {self.word_bits}-bit "
                f"address space ({self.word_size} words)"
            )
        for name in ("max_errors", "max_literal_depth", "max_ticks", "trace_limit"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        return self

    # ═══════════════════════════════════════════════════════════════════════════
    # FACTORY METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    @classmethod
    def from_env(cls) -> "MachineConfig":
        """
        Create MachineConfig from environment variables.

        Environment variables (all optional, invalid values are ignored):
            S9B_WORD_BITS: Word width in bits
            S9B_MEMORY_SIZE: Memory size in words
            S9B_MAX_TICKS: Tick budget for batch runs
            S9B_MAX_ERRORS: Diagnostic limit

        Returns:
            MachineConfig with values from environment variables
        """
        config = cls()

        for env_name, attr in (
            ("S9B_WORD_BITS", "word_bits"),
            ("S9B_MEMORY_SIZE", "memory_size"),
            ("S9B_MAX_TICKS", "max_ticks"),
            ("S9B_MAX_ERRORS", "max_errors"),
        ):
            if raw := os.environ.get(env_name):
                try:
                    setattr(config, attr, int(raw, 0))
                except ValueError:
                    pass  # Ignore invalid values

        return config
