"""Write-time conflict resolution."""

import logging
from enum import Enum
from typing import Callable, Optional

from assetstore.assets.naming import NameGeneratorFactory
from assetstore.common.metrics import record_conflict
from assetstore.exceptions import ConflictError

logger = logging.getLogger(__name__)


class ConflictPolicy(str, Enum):
    """What a write does when its target key already exists."""
    OVERWRITE = "overwrite"
    THROW_ON_CONFLICT = "exception"
    RENAME = "rename"
    USE_EXISTING = "use_existing"


def resolve_conflict(
    key: str,
    policy: ConflictPolicy,
    exists: Callable[[str], bool],
    name_generator: NameGeneratorFactory,
) -> Optional[str]:
    """
    Decide which key a write should go to.

    Args:
        key: Key the write targets
        policy: Conflict policy of the write
        exists: Backend existence check
        name_generator: Builds rename candidates for a taken key

    Returns:
        The key to write to, or None to skip the write and keep the
        existing file.

    Raises:
        ConflictError: If the key is taken under THROW_ON_CONFLICT, or no
            rename candidate is free
    """
    if policy is ConflictPolicy.OVERWRITE:
        return key

    if not exists(key):
        return key

    if policy is ConflictPolicy.THROW_ON_CONFLICT:
        record_conflict(policy.value, "rejected")
        logger.warning(f"Refusing to overwrite existing file at {key}")
        raise ConflictError(f"File already exists at path {key}", key)

    if policy is ConflictPolicy.RENAME:
        for candidate in name_generator(key):
            if not exists(candidate):
                record_conflict(policy.value, "renamed")
                logger.info(f"Renamed {key} to {candidate}")
                return candidate

        record_conflict(policy.value, "exhausted")
        logger.warning(f"No free rename candidate for {key}")
        raise ConflictError(f"File could not be renamed with path {key}", key)

    record_conflict(ConflictPolicy.USE_EXISTING.value, "kept")
    logger.debug(f"Keeping existing file at {key}")
    return None
