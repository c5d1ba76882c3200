from __future__ import annotations

from .bills import Chamber

PREFIX = "congressrp"
ACTIONS = ("yea", "nay", "abs", "info", "end", "open")

# discord rejects longer custom_ids
MAX_CUSTOM_ID = 100


def make_control_id(action: str, ref: str, chamber: Chamber) -> str:
    """
    The bill reference and the chamber of the round ride inside the button
    id, so a click always finds its own bill and a button left over from
    the other chamber's vote can be told apart.
    """
    if action not in ACTIONS:
        raise ValueError(f"unknown control action {action!r}")
    custom_id = f"{PREFIX}:{action}:{chamber.value}:{ref}"
    if len(custom_id) > MAX_CUSTOM_ID:
        raise ValueError(f"control id for {ref!r} is too long")
    return custom_id


def parse_control_id(custom_id: str | None) -> tuple[str, Chamber, str] | None:
    if not custom_id or len(custom_id) > MAX_CUSTOM_ID:
        return None
    parts = custom_id.split(":", 3)
    if len(parts) != 4 or parts[0] != PREFIX:
        return None
    _, action, chamber, ref = parts
    if action not in ACTIONS or not ref.strip():
        return None
    try:
        return action, Chamber(chamber), ref
    except ValueError:
        return None
