"""
Display formatting helpers shared by the collectors
"""


def format_bytes(bytes_val) -> str:
    """
    Format byte count to human-readable string.

    Args:
        bytes_val: Number of bytes

    Returns:
        Formatted string (e.g., "1 MiB")
    """
    try:
        value = float(bytes_val)
    except (TypeError, ValueError):
        value = 0.0

    for unit in ['B', 'KiB', 'MiB', 'GiB', 'TiB']:
        if value < 1024:
            return f"{int(value)} {unit}"
        value /= 1024
    return f"{int(value)} PiB"


def format_time(seconds) -> str:
    """Format a number of seconds as HH:MM:SS (hours may exceed 24)"""
    try:
        seconds = max(int(seconds), 0)
    except (TypeError, ValueError):
        seconds = 0

    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_uptime(seconds: float) -> str:
    """
    Format seconds to human-readable uptime string.

    Returns:
        Formatted string (e.g., "3d 12h 45m")
    """
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{days}d {hours:02d}h {minutes:02d}m"
