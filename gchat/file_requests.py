# gchat/file_requests.py

import logging
import os
import re
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import List, Optional

from gchat.errors import FileRequestRejected


logger = logging.getLogger("gchat")

FILE_REQUEST_MARKER = "GROK REQUEST FILES"

# requested paths are plain relative paths, never patterns
PATTERN_CHARS = ("*", "?", "[")

# The whole reply must be this one line, nothing before or after it.
FILE_REQUEST_RE = re.compile(rf"{re.escape(FILE_REQUEST_MARKER)}: ([^\r\n]+)")


def parse_file_request(reply: str) -> Optional[List[str]]:
    """
    Return the requested paths when the entire trimmed reply is a file request,
    otherwise None.
    """
    m = FILE_REQUEST_RE.fullmatch((reply or "").strip())
    if m is None:
        return None
    return [p.strip() for p in m.group(1).split(",")]


def validate_requested_path(path: str, cwd: Path) -> str:
    """
    Accept a relative path that stays inside cwd once canonicalized.
    Raises FileRequestRejected otherwise.
    """
    if not path:
        raise FileRequestRejected("Empty path in file request")
    if any(c.isspace() for c in path):
        raise FileRequestRejected(f"Path contains whitespace: {path!r}")
    if any(c in path for c in PATTERN_CHARS):
        raise FileRequestRejected(f"Glob patterns not allowed: {path!r}")
    if PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute() or PureWindowsPath(path).drive:
        raise FileRequestRejected(f"Absolute path not allowed: {path!r}")
    if ".." in re.split(r"[\\/]", path):
        raise FileRequestRejected(f"Parent-directory segment not allowed: {path!r}")

    root = cwd.resolve()
    resolved = (root / path).resolve()
    if not resolved.is_relative_to(root):
        raise FileRequestRejected(f"Path escapes the working directory: {path!r}")
    if resolved.is_dir():
        _check_directory_contents(path, resolved, root)
    return path


def _check_directory_contents(path: str, directory: Path, root: Path) -> None:
    # a requested directory is expanded file by file, so every file it holds
    # (symlinks included) must resolve inside root as well
    for dirpath, _dirnames, filenames in os.walk(directory):
        for name in filenames:
            if not (Path(dirpath) / name).resolve().is_relative_to(root):
                raise FileRequestRejected(f"Directory {path!r} links to {name!r} outside the working directory")


def validate_file_request(paths: List[str], cwd: Path) -> List[str]:
    """All-or-nothing: one bad path rejects the whole request."""
    if not paths:
        raise FileRequestRejected("File request names no paths")
    return [validate_requested_path(p, cwd) for p in paths]


def requested_files(reply: str, cwd: Path) -> Optional[List[str]]:
    """
    Validated paths for a file-request reply, or None when the reply must be
    handled as an ordinary answer.
    """
    paths = parse_file_request(reply)
    if paths is None:
        return None
    try:
        return validate_file_request(paths, cwd)
    except FileRequestRejected as e:
        logger.warning(f"Ignoring file request, treating reply as a normal answer: {e}")
        return None
