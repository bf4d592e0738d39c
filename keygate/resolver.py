"""
Access resolution: script -> key binding -> tier -> blacklist -> whitelist.

Pure function, no I/O and no mutation. The order of checks encodes
precedence and must not change:

1. Unknown script                                   -> NOT_FOUND
2. Missing key, key not the script's creating key,
   key bound to another user, or key expired        -> FORBIDDEN
3. Free script                                      -> ALLOW (lists ignored)
4. Paid script, requester blacklisted               -> KICK("blacklisted")
5. Paid script, non-empty whitelist without requester -> KICK("not whitelisted")
6. Otherwise                                        -> ALLOW

The caller counts the execution on ALLOW.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .models import AccessDecision, Key, Script


def resolve_access(
    script: Optional[Script],
    key: Optional[Key],
    requester_user_id: Optional[str],
    now: datetime,
) -> AccessDecision:
    if script is None:
        return AccessDecision.not_found()

    if (
        key is None
        or key.id != script.owner_key_id
        or not requester_user_id
        or key.user_id != requester_user_id
        or key.is_expired(now)
    ):
        return AccessDecision.forbidden()

    if not script.is_paid:
        return AccessDecision.allow()

    if requester_user_id in script.blacklist:
        return AccessDecision.kick("blacklisted")
    if script.whitelist and requester_user_id not in script.whitelist:
        return AccessDecision.kick("not whitelisted")
    return AccessDecision.allow()
