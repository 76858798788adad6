# gchat/turn_params.py

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from langchain_core.messages import BaseMessage, HumanMessage

from gchat.transcript import message_role, message_text


logger = logging.getLogger("gchat")

BASE_TOKEN_BUDGET = 1024
DEFAULT_LEVEL = 2
MAX_LEVEL = 6
DEFAULT_TEMPERATURE = 1.0
TYPICAL_TEMPERATURE_RANGE = (0.0, 2.0)

# @temp must be tried before @t
OVERRIDE_RE = re.compile(r"@temp\s*:([-+]?(?:\d+(?:\.\d*)?|\.\d+))|@t\s*:(\d+)")


def tokens_for_level(level: int) -> int:
    """Each level doubles the output budget: level 0 is 1024 tokens."""
    return BASE_TOKEN_BUDGET << level


def clamp_level(level: int, max_level: int = MAX_LEVEL) -> int:
    if level > max_level:
        logger.warning(f"Token level {level} exceeds the maximum; clamping to {max_level} ({tokens_for_level(max_level)} tokens)")
        return max_level
    return level


def check_temperature(temperature: float) -> float:
    low, high = TYPICAL_TEMPERATURE_RANGE
    if not low <= temperature <= high:
        logger.warning(f"Temperature {temperature} is outside the typical range {low}-{high}; using it as-is")
    return temperature


@dataclass(frozen=True)
class TurnParams:
    level: int
    temperature: float

    @property
    def max_tokens(self) -> int:
        return tokens_for_level(self.level)


def strip_overrides(text: str) -> Tuple[str, Optional[int], Optional[float]]:
    """
    Remove every override directive from text in a single forward pass.

    Returns the stripped text plus the last level and last temperature seen
    (None when the kind does not occur).
    """
    out: List[str] = []
    last_end = 0
    level: Optional[int] = None
    temperature: Optional[float] = None
    for m in OVERRIDE_RE.finditer(text):
        out.append(text[last_end:m.start()])
        if m.group(1) is not None:
            temperature = float(m.group(1))
        else:
            level = int(m.group(2))
        last_end = m.end()
    out.append(text[last_end:])
    return "".join(out), level, temperature


def resolve_turn_parameters(
    messages: List[BaseMessage],
    default_level: int = DEFAULT_LEVEL,
    default_temperature: float = DEFAULT_TEMPERATURE,
    max_level: int = MAX_LEVEL,
) -> Tuple[List[BaseMessage], TurnParams]:
    """
    Extract @t: / @temp: overrides from every user message.

    The last occurrence of each kind across the whole transcript wins. All
    occurrences are stripped; user messages left empty by the stripping are
    dropped. Non-user messages pass through untouched.
    """
    level = default_level
    temperature = default_temperature
    saw_temperature = False
    resolved: List[BaseMessage] = []

    for message in messages:
        if message_role(message) != "user":
            resolved.append(message)
            continue
        stripped, msg_level, msg_temperature = strip_overrides(message_text(message))
        if msg_level is not None:
            level = msg_level
        if msg_temperature is not None:
            temperature = msg_temperature
            saw_temperature = True
        stripped = stripped.strip()
        if stripped:
            resolved.append(HumanMessage(content=stripped))

    if saw_temperature:
        check_temperature(temperature)
    params = TurnParams(level=clamp_level(level, max_level), temperature=temperature)
    logger.debug(f"Turn parameters: level={params.level} max_tokens={params.max_tokens} temperature={params.temperature}")
    return resolved, params
