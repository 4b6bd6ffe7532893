from pathlib import Path

import structlog

log = structlog.get_logger(__name__)

PROJECT_MARKERS = ("pyproject.toml",)
UNSUPPORTED_IMPORT = 'import "google/api/annotations.proto";'


def find_project_root(start: str | Path) -> Path:
    """Return the closest ancestor of ``start`` holding a project marker file.

    Args:
        start (str | Path): File or directory to search upwards from

    Returns:
        Path: The project root, or the directory of ``start`` when no marker is found
    """
    start = Path(start).resolve()
    directory = start if start.is_dir() else start.parent
    for candidate in (directory, *directory.parents):
        if any((candidate / marker).is_file() for marker in PROJECT_MARKERS):
            return candidate
    return directory


def write_patched_proto(src: str | Path, dest: str | Path) -> bool:
    """Copy a protocol definition without the google api annotations import.

    Nothing is written when ``dest`` already exists.

    Args:
        src (str | Path): Vendored protocol definition
        dest (str | Path): Location of the patched copy

    Returns:
        bool: Whether the patched copy was written
    """
    dest = Path(dest)
    if dest.exists():
        log.debug("Patched protocol definition already present", path=str(dest))
        return False
    source = Path(src).read_text(encoding="utf-8")
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(source.replace(UNSUPPORTED_IMPORT, ""), encoding="utf-8")
    log.debug("Wrote patched protocol definition", src=str(src), path=str(dest))
    return True
