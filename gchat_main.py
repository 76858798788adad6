# gchat_main.py
"""
Transcript-file chat loop.

The user appends a prompt under a `USER PROMPT:` line in the chat file and
saves. The app notices the change, sends the conversation to the completion
API and appends the answer under `GROK RESPONSE:`, followed by a fresh
`USER PROMPT:` line for the next turn.

Turns run one at a time. A failed turn is logged and leaves the file as the
user left it; the app keeps watching.
"""

import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from gchat.feedback import SoundFeedback
from gchat.orchestrator import RequestOrchestrator
from gchat.settings import Settings, resolve_settings
from gchat.transcript import USER_PROMPT_MARKER, TranscriptFile
from gchat.turn_params import tokens_for_level
from gchat.utils import Utils, configure_logging
from gchat.watcher import ChangeWatcher


logger = logging.getLogger("gchat")


class ChatApp(Utils):
    def __init__(self, settings: Settings, orchestrator: Optional[RequestOrchestrator] = None, watcher: Optional[ChangeWatcher] = None):
        self.settings = settings
        self.transcript = TranscriptFile(settings.chat_file)
        self.orchestrator = orchestrator or RequestOrchestrator(
            settings,
            self.transcript,
            feedback=SoundFeedback(enabled=settings.sound),
        )
        self.watcher = watcher or ChangeWatcher(
            self.transcript.path,
            poll_interval=settings.poll_interval,
            debounce_seconds=settings.debounce_seconds,
        )

    def bootstrap(self) -> None:
        if self.transcript.ensure_exists():
            self.color_print(
                f"Created chat file at {self.transcript.path}. Start your conversation by adding:\n"
                f"{USER_PROMPT_MARKER}:\nYour prompt here\n",
                color="green",
            )

        self.color_print("Running with settings:")
        self.color_print(f"  Chat file: {self.settings.chat_file}")
        self.color_print(f"  Model: {self.settings.model}")
        self.color_print(f"  Token level: {self.settings.level} ({tokens_for_level(min(self.settings.level, self.settings.max_level))} tokens)")
        self.color_print(f"  Temperature: {self.settings.temperature}")
        self.color_print(f"  API timeout: {self.settings.api_timeout} seconds")
        self.color_print(f"  File requests: {'on' if self.settings.file_requests else 'off'}")
        self.color_print(f"  Escalation: {'on' if self.settings.escalation else 'off'}")

    def run_turn(self) -> None:
        outcome = self.orchestrator.process_turn()
        logger.debug(
            f"Turn finished: state={outcome.state.value} requests={outcome.requests_sent} "
            f"escalations={outcome.escalations} file_rounds={outcome.file_rounds}"
        )
        # our own append must not look like a new edit, a later user save still does
        if outcome.written_version is not None:
            self.watcher.mark_seen(outcome.written_version)

    def run(self) -> int:
        self.bootstrap()
        self.watcher.mark_seen()
        self.run_turn()
        if self.settings.once:
            return 0

        self.color_print(f"App started. Watching {self.settings.chat_file} for changes.")
        try:
            self.watcher.watch(self.run_turn)
        except KeyboardInterrupt:
            self.color_print("Stopped.")
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    settings = resolve_settings(argv)
    configure_logging(settings.verbose)
    return ChatApp(settings).run()


if __name__ == "__main__":
    sys.exit(main())
