# gchat/orchestrator.py

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from gchat.directives import DirectiveExpander
from gchat.errors import ConfigError, ResponseDecodeError, TransportError
from gchat.feedback import SoundFeedback
from gchat.file_requests import requested_files
from gchat.llm_client import ChatTransport, build_chat_request
from gchat.prompts import FILE_REQUEST_PROMPT
from gchat.transcript import TranscriptFile, is_turn_pending, message_role, message_text, parse_transcript
from gchat.turn_params import resolve_turn_parameters, tokens_for_level
from gchat.utils import Utils
from gchat.watcher import FileVersion


logger = logging.getLogger("gchat")

THINKING_MESSAGE = "Grok is thinking..."
THOUGHT_MESSAGE = "Grok has thought."
FAILED_MESSAGE = "Grok failed to respond."


class TurnState(Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    ESCALATING = "escalating"
    NEGOTIATING_FILES = "negotiating_files"
    DONE = "done"
    FAILED = "failed"


class Action(Enum):
    REQUEST_FILES = "request_files"
    ESCALATE = "escalate"
    FINISH = "finish"


@dataclass(frozen=True)
class Decision:
    action: Action
    next_state: TurnState
    level: int
    paths: Tuple[str, ...] = ()
    truncated: bool = False


def decide(
    *,
    level: int,
    truncated: bool,
    requested_paths: Optional[List[str]],
    escalation_enabled: bool,
    max_level: int,
) -> Decision:
    """
    Transition taken on a fresh reply.

    requested_paths are the already validated paths of a file-request reply
    (None or empty when the reply is not an acceptable file request). A file
    request wins over truncation; truncation escalates while the level is below
    max_level; anything else finishes the turn.
    """
    if requested_paths:
        return Decision(Action.REQUEST_FILES, TurnState.NEGOTIATING_FILES, level, paths=tuple(requested_paths))
    if truncated and escalation_enabled and level < max_level:
        return Decision(Action.ESCALATE, TurnState.ESCALATING, level + 1)
    return Decision(Action.FINISH, TurnState.DONE, level, truncated=truncated)


@dataclass
class TurnOutcome:
    state: TurnState = TurnState.IDLE
    requests_sent: int = 0
    escalations: int = 0
    file_rounds: int = 0
    reply: Optional[str] = None
    error: Optional[str] = None
    # file version right after our last append, None if nothing was written
    written_version: Optional[FileVersion] = None
    history: List[TurnState] = field(default_factory=list)

    def enter(self, state: TurnState) -> None:
        self.state = state
        self.history.append(state)


class RequestOrchestrator(Utils):
    """
    Drives one user turn to completion.

    Outer loop: read and parse the transcript, resolve @t:/@temp:, expand @f:/@d:
    in user messages, then run the inner loop. It repeats only after a file
    request was written to the transcript.

    Inner loop: send the fixed message list, escalating the token level on
    truncated replies, until the reply is a file request or final.
    """

    def __init__(
        self,
        settings,
        transcript: TranscriptFile,
        *,
        transport: Optional[ChatTransport] = None,
        feedback: Optional[SoundFeedback] = None,
        expander: Optional[DirectiveExpander] = None,
        cwd: Optional[Path] = None,
    ):
        self.settings = settings
        self.transcript = transcript
        self.feedback = feedback or SoundFeedback(enabled=False)
        self.expander = expander or DirectiveExpander(base_dir=cwd)
        self._transport = transport
        self._cwd = cwd

    @property
    def cwd(self) -> Path:
        return self._cwd if self._cwd is not None else Path.cwd()

    # -----------------------
    # Turn
    # -----------------------

    def process_turn(self) -> TurnOutcome:
        outcome = TurnOutcome()
        try:
            return self._run(outcome)
        except OSError as e:
            return self._fail(outcome, f"Transcript I/O error: {e}")
        except UnicodeDecodeError as e:
            return self._fail(outcome, f"Transcript is not valid UTF-8: {e}")

    def _run(self, outcome: TurnOutcome) -> TurnOutcome:
        transport = None
        while True:
            prepared = self._prepare_messages()
            if prepared is None:
                if outcome.file_rounds == 0:
                    self.color_print("No user prompt to process in chat file.")
                outcome.enter(TurnState.IDLE)
                return outcome
            messages, params = prepared

            if transport is None:
                try:
                    transport = self._get_transport()
                except ConfigError as e:
                    return self._fail(outcome, str(e))

            level = params.level
            while True:
                outcome.enter(TurnState.AWAITING_RESPONSE)
                request = build_chat_request(
                    self.settings.model,
                    messages,
                    params.temperature,
                    tokens_for_level(level),
                )
                self.color_print(THINKING_MESSAGE, color="cyan")
                logger.debug(f"Sending to API: level={level} max_tokens={request.max_tokens} messages={len(request.messages)}")
                outcome.requests_sent += 1
                try:
                    resp = transport.complete(request)
                    choice = resp.first_choice()
                except (TransportError, ResponseDecodeError) as e:
                    return self._fail(outcome, str(e))

                reply = choice.message.content
                logger.debug(f"Received from API: {self.preview(reply)}")

                decision = decide(
                    level=level,
                    truncated=choice.truncated,
                    requested_paths=self._requested_paths(reply, outcome.file_rounds),
                    escalation_enabled=self.settings.escalation,
                    max_level=self.settings.max_level,
                )
                outcome.enter(decision.next_state)

                if decision.action is Action.ESCALATE:
                    logger.warning(
                        f"Response truncated at level {level} ({tokens_for_level(level)} tokens); "
                        f"retrying at level {decision.level} ({tokens_for_level(decision.level)} tokens)"
                    )
                    outcome.escalations += 1
                    level = decision.level
                    continue

                if decision.action is Action.REQUEST_FILES:
                    self.color_print(f"Grok requested files: {', '.join(decision.paths)}", color="yellow")
                    outcome.written_version = self.transcript.append_file_request(decision.paths)
                    outcome.file_rounds += 1
                    break

                self.color_print(THOUGHT_MESSAGE, color="green")
                if decision.truncated:
                    logger.warning("Response truncated due to max_tokens limit!")
                outcome.written_version = self.transcript.append_reply(reply)
                outcome.reply = reply
                self.feedback.success()
                return outcome

    # -----------------------
    # Helpers
    # -----------------------

    def _prepare_messages(self):
        """
        Parsed, resolved and expanded messages plus turn parameters, or None
        when the transcript has nothing to answer.
        """
        messages = parse_transcript(self.transcript.read())
        logger.debug(f"Parsed {len(messages)} message(s)")
        if not is_turn_pending(messages):
            return None

        messages, params = resolve_turn_parameters(
            messages,
            default_level=self.settings.level,
            default_temperature=self.settings.temperature,
            max_level=self.settings.max_level,
        )
        if not is_turn_pending(messages):
            return None

        expanded: List[BaseMessage] = []
        for m in messages:
            if message_role(m) == "user":
                expanded.append(HumanMessage(content=self.expander.expand(message_text(m))))
            else:
                expanded.append(m)

        if self.settings.file_requests:
            expanded.insert(0, SystemMessage(content=FILE_REQUEST_PROMPT))
        return expanded, params

    def _requested_paths(self, reply: str, file_rounds: int) -> Optional[List[str]]:
        if not self.settings.file_requests:
            return None
        paths = requested_files(reply, self.cwd)
        if paths and file_rounds >= self.settings.max_file_rounds:
            logger.warning(f"File request limit ({self.settings.max_file_rounds}) reached; treating reply as a normal answer")
            return None
        return paths

    def _get_transport(self) -> ChatTransport:
        if self._transport is None:
            self._transport = ChatTransport.from_settings(self.settings)
        return self._transport

    def _fail(self, outcome: TurnOutcome, message: str) -> TurnOutcome:
        self.color_print(FAILED_MESSAGE, color="red")
        logger.error(f"Processing error: {message}")
        outcome.error = message
        outcome.enter(TurnState.FAILED)
        self.feedback.failure()
        return outcome
