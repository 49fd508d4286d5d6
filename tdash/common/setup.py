import os
import sys
from pathlib import Path
from dataclasses import dataclass

# Name of the per-user folder that holds settings and logs.
APP_DIR_NAME = "TimerDashboard"

# Lil helper function to create missing directories if missing, and optionally error out when a path
# doesn't exist.
def ensure_directory(path: Path,must_exist=False):
    if must_exist:
        if not path.exists():
            raise FileNotFoundError(f"Required directory is missing: {path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Expected a directory, got a file: {path}")
    else:
        path.mkdir(parents=True,exist_ok=True)
    return path

# Picks the base folder for user data. TDASH_DATA_DIR always wins (tests and portable installs), then the platform's
# usual location.
def _user_data_base() -> Path:
    override = os.getenv("TDASH_DATA_DIR")
    if override:
        return Path(override)
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        if not appdata:
            raise RuntimeError("Missing APPDATA environment variable, cannot determine data directories.")
        return Path(appdata) / APP_DIR_NAME
    xdg = os.getenv("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / APP_DIR_NAME

# Dataclass for accessing paths across program.
@dataclass(frozen=False)
class ProjectPaths:

    root: Path
    data: Path

    logs: Path
    current: Path

    @staticmethod
    def build():
        # Folder for the install itself, no user-specific files
        if getattr(sys, "frozen", False):
            root = Path(sys.executable).resolve().parent
        else:
            root = Path(__file__).resolve().parents[2]

        # Folder for all dashboard user-specific stuff
        data = ensure_directory(_user_data_base())

        # Folders within the data folder
        logs = ensure_directory(data / "logs")
        current = ensure_directory(data / "current")

        return ProjectPaths(
            root = root,
            data = data,
            logs = logs,
            current = current,
        )
PATHS = ProjectPaths.build()
