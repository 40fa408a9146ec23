"""Data directory resolution with layered fallbacks."""

import os
import sys
import uuid
from pathlib import Path
from typing import Callable, List, Mapping, Optional


def probe_writable(path: Path) -> bool:
    """
    Check that a directory can be created and written to.

    Creates the directory if needed, then writes and removes a probe file.

    Args:
        path: Directory to test

    Returns:
        bool: True if a file could be written inside the directory
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        probe_file = path / f".write_test_{uuid.uuid4().hex}"
        probe_file.write_text("test")
        probe_file.unlink()
        return True
    except OSError:
        return False


def user_data_directory(
    application_name: str,
    env: Mapping[str, str],
    platform_name: str,
    home: Path,
) -> Path:
    """
    Platform-appropriate per-user data directory for the application.

    XDG_DATA_HOME wins on every platform when set; otherwise LOCALAPPDATA on
    Windows, ~/Library/Application Support on macOS and ~/.local/share elsewhere.
    """
    xdg_data_home = env.get("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home) / application_name

    if platform_name.startswith("win"):
        local_app_data = env.get("LOCALAPPDATA")
        if local_app_data:
            return Path(local_app_data) / application_name
        return home / "AppData" / "Local" / application_name

    if platform_name == "darwin":
        return home / "Library" / "Application Support" / application_name

    return home / ".local" / "share" / application_name


def candidate_directories(
    application_name: str,
    subdirectory: Optional[str],
    env: Mapping[str, str],
    platform_name: str,
    home: Path,
    process_dir: Path,
) -> List[Path]:
    """Ordered directories to try: user data directory, then beside the process."""
    candidates = [
        user_data_directory(application_name, env, platform_name, home),
        process_dir / f"{application_name}-data",
    ]
    if subdirectory:
        candidates = [path / subdirectory for path in candidates]
    return candidates


def resolve_data_directory(
    application_name: str,
    subdirectory: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    platform_name: Optional[str] = None,
    home: Optional[Path] = None,
    process_dir: Optional[Path] = None,
    is_writable: Optional[Callable[[Path], bool]] = None,
) -> Optional[Path]:
    """
    Resolve the first writable data directory.

    Every lookup is injectable so the fallback order can be tested without
    touching the filesystem.

    Args:
        application_name: Directory name used under the base locations
        subdirectory: Optional child directory (e.g. "telemetry")
        env: Environment mapping (default: os.environ)
        platform_name: Platform identifier (default: sys.platform)
        home: Home directory (default: Path.home())
        process_dir: Directory of the running process (default: Path.cwd())
        is_writable: Writability check (default: probe_writable)

    Returns:
        Optional[Path]: First writable candidate, or None when nothing is writable
    """
    env = os.environ if env is None else env
    platform_name = sys.platform if platform_name is None else platform_name
    home = Path.home() if home is None else home
    process_dir = Path.cwd() if process_dir is None else process_dir
    is_writable = probe_writable if is_writable is None else is_writable

    for candidate in candidate_directories(
        application_name, subdirectory, env, platform_name, home, process_dir
    ):
        if is_writable(candidate):
            return candidate

    return None
