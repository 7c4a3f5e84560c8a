"""
Sibling name uniqueness.

Colliding names are never rejected; they are repaired by appending an
integer suffix to the name the node arrived with.
"""

import logging

from canopy.errors import NameExhaustionError
from canopy.node import ModelNode, find_sibling

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10000


def ensure_unique(node: ModelNode, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> str:
    """
    Give node a name no sibling already uses.

    Tries base, base1, base2, ... where base is the node's current name.
    Suffixes are always applied to the starting base (never compounded)
    and siblings are re-checked for every candidate.

    Args:
        node: Node to check; renamed in place if needed
        max_attempts: Suffixes to try before giving up

    Returns:
        The final name

    Raises:
        NameExhaustionError: If every candidate up to max_attempts collides
    """
    base = node.name
    candidate = base
    counter = 0
    while find_sibling(node, candidate) is not None:
        counter += 1
        if counter > max_attempts:
            raise NameExhaustionError(base, max_attempts)
        candidate = f"{base}{counter}"

    if candidate != base:
        logger.debug("Renamed '%s' to '%s' to avoid a sibling collision", base, candidate)
        node.name = candidate
    return candidate
