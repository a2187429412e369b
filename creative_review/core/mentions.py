"""Mention parsing for comment bodies.

Mentions are written as ``@user:<uuid>`` by the client's mention picker.
"""

import re
from uuid import UUID

MENTION_PATTERN = re.compile(r"@user:([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})")


def extract_mentioned_user_ids(content: str) -> list[UUID]:
    """Return the unique user ids mentioned in ``content``, in order of first appearance."""
    seen: dict[UUID, None] = {}
    for match in MENTION_PATTERN.finditer(content or ""):
        seen.setdefault(UUID(match.group(1)), None)
    return list(seen)
