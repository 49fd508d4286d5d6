"""Small shared helpers: time formatting and usage colours."""
from .misc import format_time, format_limit, status_color, progress_percent

__all__ = ["format_time", "format_limit", "status_color", "progress_percent"]
