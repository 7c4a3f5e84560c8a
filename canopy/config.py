"""
Configuration for structural operations on the model tree.

The defaults reproduce the behaviour expected in an interactive editor:
link failures during a live add are fatal. Batch runs usually prefer the
softer preset, where unresolved required links are logged and left unset.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class StructureConfig:
    """Settings consumed by StructureEngine and the name resolver."""

    # Naming
    max_name_attempts: int = 10000  # Suffixes tried before giving up

    # Live add
    strict_links: bool = True  # Raise on unresolved required links

    # Import
    unwrap_single_child: bool = True  # Drop a Simulations wrapper with one child

    def __post_init__(self) -> None:
        if self.max_name_attempts < 1:
            raise ValueError("max_name_attempts must be at least 1")

    @classmethod
    def interactive(cls) -> "StructureConfig":
        """Hard failures, for edits made from a user interface."""
        return cls(strict_links=True)

    @classmethod
    def batch(cls) -> "StructureConfig":
        """Soft link failures, for non-interactive runs."""
        return cls(strict_links=False)
