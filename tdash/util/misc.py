# Formats a signed second count for display. Zero reads as EXPIRED, negative values are overtime shown as hours and
# minutes only, positive values are H:MM:SS with unpadded hours.
def format_time(seconds):
    seconds = int(seconds)
    if seconds == 0:
        return "EXPIRED"
    if seconds < 0:
        hours, rem = divmod(abs(seconds), 3600)
        return f"-{hours}:{rem // 60:02d} OVER"

    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


# Daily limit label, e.g. 5400 -> "90 minutes"
def format_limit(limit_seconds):
    return f"{int(limit_seconds) // 60} minutes"


# Usage colour buckets: at or past the limit is red, 80% or more is yellow, anything else green. A zero limit has no
# meaningful usage, so it reads gray.
def status_color(elapsed, limit):
    if not limit:
        return "gray"
    percentage = (elapsed / limit) * 100
    if percentage >= 100:
        return "red"
    if percentage >= 80:
        return "yellow"
    return "green"


# Fill percentage for a progress bar, clamped to 100.
def progress_percent(elapsed, limit):
    if limit <= 0:
        return 0.0
    return min((elapsed / limit) * 100, 100.0)
