# gchat/transcript.py

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from gchat.directives import FILE_INCLUDE_TAG
from gchat.watcher import FileVersion, current_version


logger = logging.getLogger("gchat")

USER_PROMPT_MARKER = "USER PROMPT"
GROK_RESPONSE_MARKER = "GROK RESPONSE"
FILE_REQUEST_HEADER = "GROK REQUESTED FILES"

# A marker line must match exactly, colon included.
_MARKER_ROLES = {
    f"{USER_PROMPT_MARKER}:": "user",
    f"{GROK_RESPONSE_MARKER}:": "assistant",
}


# -----------------------
# Messages
# -----------------------

def make_message(role: str, content: str) -> BaseMessage:
    if role == "assistant":
        return AIMessage(content=content)
    if role == "system":
        return SystemMessage(content=content)
    return HumanMessage(content=content)


def message_role(message: BaseMessage) -> str:
    if isinstance(message, AIMessage):
        return "assistant"
    if isinstance(message, SystemMessage):
        return "system"
    return "user"


def message_text(message: BaseMessage) -> str:
    return str(message.content or "")


# -----------------------
# Parser
# -----------------------

def parse_transcript(text: str) -> List[BaseMessage]:
    """
    Split raw transcript text into role-tagged messages.

    Text before the first marker belongs to an implicit user section, so a file
    without markers is a single user message. Sections whose trimmed body is
    empty are dropped.
    """
    messages: List[BaseMessage] = []
    role = "user"
    buffer: List[str] = []

    for line in text.splitlines(keepends=True):
        marker_role = _MARKER_ROLES.get(line.rstrip("\r\n"))
        if marker_role is None:
            buffer.append(line)
            continue
        body = "".join(buffer).strip()
        if body:
            messages.append(make_message(role, body))
        role = marker_role
        buffer = []

    body = "".join(buffer).strip()
    if body:
        messages.append(make_message(role, body))
    return messages


def is_turn_pending(messages: List[BaseMessage]) -> bool:
    """True when the last message is a non-empty user prompt."""
    if not messages:
        return False
    last = messages[-1]
    return message_role(last) == "user" and bool(message_text(last).strip())


# -----------------------
# Mutator
# -----------------------

def format_reply_block(content: str) -> str:
    return f"{GROK_RESPONSE_MARKER}:\n{content}\n\n{USER_PROMPT_MARKER}:\n"


def format_file_request_block(paths: Iterable[str]) -> str:
    lines = [f"{FILE_REQUEST_HEADER}:"]
    lines.extend(f"{FILE_INCLUDE_TAG}:{p}" for p in paths)
    return "\n".join(lines) + "\n"


class TranscriptFile:
    """
    The transcript on disk. Every operation opens, reads or appends, and closes
    the file in one step; prior content is never rewritten.
    """

    def __init__(self, path):
        self.path = Path(path)

    def ensure_exists(self) -> bool:
        """Create the file with an empty user marker. Returns True if it was created."""
        if self.path.exists():
            return False
        with self.path.open("w", encoding="utf-8") as f:
            f.write(f"{USER_PROMPT_MARKER}:\n\n")
        logger.info(f"Created chat file at {self.path}")
        return True

    def read(self) -> str:
        with self.path.open("r", encoding="utf-8") as f:
            return f.read()

    def append_reply(self, content: str) -> Optional[FileVersion]:
        return self._append(format_reply_block(content))

    def append_file_request(self, paths: Iterable[str]) -> Optional[FileVersion]:
        return self._append(format_file_request_block(paths))

    def _ends_with_newline(self) -> bool:
        with self.path.open("rb") as f:
            f.seek(0, os.SEEK_END)
            if f.tell() == 0:
                return True
            f.seek(-1, os.SEEK_END)
            return f.read(1) == b"\n"

    def _append(self, block: str) -> Optional[FileVersion]:
        """Append block and return the file version our write produced."""
        # keep the next marker on a line of its own
        separator = "" if self._ends_with_newline() else "\n"
        with self.path.open("a", encoding="utf-8") as f:
            f.write(separator + block)
        return current_version(self.path)
