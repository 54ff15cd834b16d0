"""Small formatting helpers."""


def format_duration(seconds: float) -> str:
    """Format a duration as e.g. ``"1 hour 2 minutes 3 seconds"``."""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    if hours:
        parts.append(f"{hours} hour{'' if hours == 1 else 's'}")
    if hours or minutes:
        parts.append(f"{minutes} minute{'' if minutes == 1 else 's'}")
    parts.append(f"{secs} second{'' if secs == 1 else 's'}")
    return " ".join(parts)
