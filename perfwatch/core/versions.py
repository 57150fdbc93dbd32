"""
Version resolution.

Reports are assumed to arrive in chronological order per branch: a report
for an older commit submitted after a newer one gets a higher version number.
Supporting out-of-order submission (e.g. for bisecting) would need the
commit graph and is not attempted here.
"""

from __future__ import annotations

import logging
from typing import Optional

from perfwatch.models import Version
from perfwatch.storage.base import StoreTransaction

logger = logging.getLogger(__name__)


async def resolve_version(
    tx: StoreTransaction, branch_id: int, hash: Optional[str] = None
) -> Version:
    """
    Return the version a report on `branch_id` attaches to.

    A hash already seen on the branch reuses its version. Otherwise a new
    version numbered one past the branch's current maximum is created.
    """
    if hash:
        existing = await tx.get_version_by_hash(branch_id, hash)
        if existing is not None:
            return existing

    number = await tx.max_version_number(branch_id) + 1
    version = await tx.insert_version(branch_id, number, hash or None)
    logger.debug(f"Branch {branch_id}: new version {number} (hash={hash})")
    return version
