# gchat/directives.py

import glob
import logging
import os
import re
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from gchat.errors import DirectiveError


logger = logging.getLogger("gchat")

FILE_INCLUDE_TAG = "@f"

PLACEHOLDER_RE = re.compile(r"@f\s*:(\S+)|@d\s*:(\S+)")
GLOB_CHARS = ("*", "?")
EMPTY_DIRECTORY_LINE = "(empty directory)"


def _read_file(path: Path) -> str:
    with path.open("r", encoding="utf-8") as f:
        return f.read()


def _sort_key(path: Path) -> Tuple[str, ...]:
    # component-wise, so "a/b" sorts before "a-c"
    return path.parts


def render_file_block(display_path, content: str) -> str:
    return f"Contents of {display_path}:\n```\n{content}\n```\n\n"


class DirectiveExpander:
    """
    Resolves @f: (file / glob / directory include) and @d: (directory tree)
    placeholders inside user-authored text.

    Relative paths resolve against base_dir (the current working directory when
    not given). File contents come through read_text so tests can swap it out.
    A placeholder that fails to expand stays in the output verbatim and a
    warning is logged; the remaining placeholders are still expanded.
    """

    def __init__(
        self,
        base_dir: Optional[os.PathLike] = None,
        read_text: Optional[Callable[[Path], str]] = None,
    ):
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._read_text = read_text or _read_file

    @property
    def base_dir(self) -> Path:
        return self._base_dir if self._base_dir is not None else Path.cwd()

    def expand(self, text: str) -> str:
        out: List[str] = []
        last_end = 0
        for m in PLACEHOLDER_RE.finditer(text):
            out.append(text[last_end:m.start()])
            placeholder = m.group(0)
            try:
                if m.group(1) is not None:
                    out.append(self.expand_file_path(m.group(1)))
                else:
                    out.append(self.expand_dir_tree(m.group(2)))
            except DirectiveError as e:
                logger.warning(f"Failed to expand placeholder '{placeholder}': {e}")
                out.append(placeholder)
            last_end = m.end()
        out.append(text[last_end:])
        return "".join(out)

    # -----------------------
    # @f:
    # -----------------------

    def expand_file_path(self, path_str: str) -> str:
        if any(c in path_str for c in GLOB_CHARS):
            return self._expand_glob(path_str)

        path = self._resolve(path_str)
        if path.is_dir():
            return self._expand_directory(path_str, path)
        if not path.exists():
            raise DirectiveError(f"File not found (path: {path_str})")
        if not path.is_file():
            raise DirectiveError(f"Path is not a file (path: {path_str})")
        return render_file_block(path_str, self._read(path))

    def _expand_glob(self, pattern: str) -> str:
        matches = glob.glob(pattern, root_dir=str(self.base_dir), recursive=True)
        if not matches:
            raise DirectiveError(f"No files matched the glob pattern (pattern: {pattern})")

        files = sorted(
            (Path(m) for m in matches if self._resolve(m).is_file()),
            key=_sort_key,
        )
        if not files:
            raise DirectiveError(f"Glob matched no regular files (pattern: {pattern})")
        return "".join(render_file_block(f, self._read(self._resolve(str(f)))) for f in files)

    def _expand_directory(self, path_str: str, root: Path) -> str:
        rel_files: List[Path] = []
        for dirpath, _dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root)
            for name in filenames:
                if (Path(dirpath) / name).is_file():
                    rel_files.append(rel_dir / name)
        if not rel_files:
            raise DirectiveError(f"No files found in directory (path: {path_str})")

        rel_files.sort(key=_sort_key)
        display_root = Path(path_str)
        return "".join(
            render_file_block(display_root / rel, self._read(root / rel)) for rel in rel_files
        )

    # -----------------------
    # @d:
    # -----------------------

    def expand_dir_tree(self, path_str: str) -> str:
        root = self._resolve(path_str)
        if not root.exists():
            raise DirectiveError(f"Directory not found (path: {path_str})")
        if not root.is_dir():
            raise DirectiveError(f"Path is not a directory (path: {path_str})")

        entries: List[Tuple[Path, bool]] = []
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root)
            entries.extend((rel_dir / name, True) for name in dirnames)
            entries.extend((rel_dir / name, False) for name in filenames)
        entries.sort(key=lambda e: _sort_key(e[0]))

        lines = [f"Contents of directory {path_str}:", "```"]
        if not entries:
            lines.append(EMPTY_DIRECTORY_LINE)
        for rel, is_dir in entries:
            indent = "  " * (len(rel.parts) - 1)
            suffix = "/" if is_dir else ""
            lines.append(f"{indent}{rel.as_posix()}{suffix}")
        lines.append("```")
        return "\n".join(lines) + "\n"

    # -----------------------
    # Helpers
    # -----------------------

    def _resolve(self, path_str: str) -> Path:
        path = Path(path_str)
        return path if path.is_absolute() else self.base_dir / path

    def _read(self, path: Path) -> str:
        try:
            return self._read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            raise DirectiveError(f"Could not read {path}: {e}") from e
