"""
Parsing of tracked Bilibili account lists.

Accounts are configured as comma-separated numeric uids, e.g.
``LIVE_UIDS=672328094,703007996``. Order is preserved because sources poll
accounts in the configured order within each tick.
"""


def parse_uids(uids_str: str | None) -> list[int]:
    """
    Parse a comma-separated uid string into an ordered list of ints.

    Whitespace and empty segments are ignored, duplicates are dropped
    (first occurrence wins).

    Args:
        uids_str: Comma-separated uids (e.g., "123, 456,789")

    Returns:
        List of uids, empty if input is None/empty

    Raises:
        ValueError: If a segment is not a positive integer
    """
    if not uids_str:
        return []

    uids: list[int] = []
    for part in uids_str.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or int(part) <= 0:
            raise ValueError(f"Invalid Bilibili uid: {part!r}")
        uid = int(part)
        if uid not in uids:
            uids.append(uid)
    return uids
