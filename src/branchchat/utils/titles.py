"""Display title derivation for conversations and branches."""

ELLIPSIS = "..."


def derive_title(content: str, max_length: int) -> str:
    """
    Derive a short display title from message content.

    Content longer than max_length is cut to max_length - 3 characters and
    suffixed with "..."; shorter content is returned unchanged. Pure and
    deterministic.

    Args:
        content: Message text
        max_length: Longest title allowed, ellipsis included

    Returns:
        Title of at most max_length characters

    Example:
        >>> derive_title("Hello", 40)
        'Hello'
        >>> derive_title("x" * 50, 40)
        'xxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx...'
    """
    if max_length <= len(ELLIPSIS):
        raise ValueError(f"max_length must exceed {len(ELLIPSIS)}")
    if len(content) > max_length:
        return f"{content[: max_length - len(ELLIPSIS)]}{ELLIPSIS}"
    return content
