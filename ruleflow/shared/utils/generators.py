"""Primary keys for rules, executions, firing state and scheduled actions (CUID2)."""

from cuid2 import cuid_wrapper

_next_cuid = cuid_wrapper()


def generate_cuid() -> str:
    """Return a new collision-resistant identifier."""
    return str(_next_cuid())
