"""Staff exemption policy for the trap channel."""

from typing import Any

# Holding any of these keeps a member from being banned by the trap
EXEMPT_PERMISSIONS: tuple[str, ...] = ("administrator", "ban_members")


def is_exempt(permissions: Any) -> bool:
    """
    Decide whether a member's capability set exempts them from trap bans.

    Works with ``discord.Permissions`` or anything exposing the same boolean
    attributes. A missing capability set is never exempt.

    Args:
        permissions: The member's guild permissions.

    Returns:
        bool: True if the member holds administrator or ban-members rights.
    """
    if permissions is None:
        return False
    return any(bool(getattr(permissions, name, False)) for name in EXEMPT_PERMISSIONS)
