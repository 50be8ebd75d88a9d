def format_hhmmss(seconds) -> str:
    """Format a duration as zero-padded HH:MM:SS; hours keep counting past 24."""
    total = max(0, int(seconds))
    hours = total // 3600
    mins = (total % 3600) // 60
    secs = total % 60
    return f"{hours:02d}:{mins:02d}:{secs:02d}"
