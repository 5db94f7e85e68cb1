"""
Application root for Kannada Buddy.

TutorApp owns the whole session state (level, progress ledger, word bank,
current mode) and wires the voice, playback and session components
together. A host (see main.py) only forwards user actions and renders
`TutorApp.state`.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Union

from .audio import AudioPlaybackController
from .logger import logger
from .models import AppMode, UserLevel, Word
from .navigation import ModeController, SESSION_MODES
from .progress import ProgressLedger, newly_unlocked
from .session import ConversationSession, LessonSession
from .speech import SpeechRecognizer, create_recognizer
from .tasks import InlineRunner, TaskRunner
from .voice import VoiceCaptureController
from .word_bank import WordBank

Session = Union[ConversationSession, LessonSession]


@dataclass
class AppState:
    level: UserLevel = UserLevel.BEGINNER
    ledger: ProgressLedger = field(default_factory=ProgressLedger)
    word_bank: WordBank = field(default_factory=WordBank)


class TutorApp:
    def __init__(
        self,
        runner: Optional[TaskRunner] = None,
        playback: Optional[AudioPlaybackController] = None,
        recognizer: Optional[SpeechRecognizer] = None,
        chat=None,
        generate_lesson=None,
        validate_answer=None,
        on_notice: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.runner = runner or InlineRunner()
        self.state = AppState()
        self.navigation = ModeController()
        self.playback = playback or AudioPlaybackController(runner=self.runner)
        self.session: Optional[Session] = None
        self.notices: List[str] = []

        self._chat = chat
        self._generate_lesson = generate_lesson
        self._validate_answer = validate_answer
        self._on_notice = on_notice

        self.voice = VoiceCaptureController(
            recognizer or create_recognizer(post=self.runner.post),
            on_transcript=self.handle_transcript,
            on_notice=self._notice,
            stop_playback=self.playback.stop,
            is_busy=self._session_busy,
        )
        self.navigation.add_listener(self._on_mode_change)
        logger.ui("Tutor app initialized")

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def mode(self) -> AppMode:
        return self.navigation.mode

    def select_level(self, level: UserLevel) -> None:
        logger.ui(f"Learner level: {level.value}")
        self.state.level = level
        self.navigation.go(AppMode.DASHBOARD)

    def change_level(self) -> None:
        self.navigation.go(AppMode.ONBOARDING)

    def open_conversation(self) -> None:
        self.navigation.go(AppMode.CONVERSATION)

    def open_lesson(self) -> None:
        self.navigation.go(AppMode.LESSON)

    def go_to_dashboard(self) -> None:
        self.navigation.go(AppMode.DASHBOARD)

    def toggle_word_bank(self) -> bool:
        return self.navigation.toggle_word_bank()

    def _on_mode_change(self, previous: AppMode, current: AppMode) -> None:
        if previous in SESSION_MODES:
            self.voice.close()
            if self.session is not None:
                self.session.close()
                self.session = None

        if current is AppMode.CONVERSATION:
            self.session = ConversationSession(
                self.state.level,
                playback=self.playback,
                learn_words=self.learn_words,
                on_message_sent=self.record_message_sent,
                chat=self._chat,
                runner=self.runner,
            )
        elif current is AppMode.LESSON:
            self.session = LessonSession(
                self.state.level,
                playback=self.playback,
                learn_words=self.learn_words,
                on_complete=self.complete_lesson,
                generate=self._generate_lesson,
                validate=self._validate_answer,
                runner=self.runner,
            )
        else:
            return

        self.voice.locale = self.session.locale
        self.session.start()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def learn_words(self, words: Sequence[Word]) -> List[Word]:
        """Add words to the bank and count the ones that were new."""
        accepted = self.state.word_bank.add(words)
        if accepted:
            logger.ui(f"Word bank +{len(accepted)} ({len(self.state.word_bank)} total)")
            self._set_ledger(self.state.ledger.apply_words_learned(accepted))
        return accepted

    def record_message_sent(self) -> None:
        self._set_ledger(self.state.ledger.apply_message_sent())

    def complete_lesson(self) -> None:
        self._set_ledger(self.state.ledger.apply_lesson_complete())
        self.go_to_dashboard()

    def _set_ledger(self, ledger: ProgressLedger) -> None:
        for badge in newly_unlocked(self.state.ledger, ledger):
            logger.success(f"Badge unlocked: {badge.icon} {badge.name}")
        self.state.ledger = ledger

    # ------------------------------------------------------------------
    # Voice
    # ------------------------------------------------------------------

    def press_to_talk(self) -> bool:
        if self.session is None:
            return False
        return self.voice.press()

    def release_to_talk(self) -> None:
        self.voice.release()

    def handle_transcript(self, transcript: str) -> bool:
        """Route a finalized transcript to the active session."""
        if isinstance(self.session, ConversationSession):
            return self.session.handle_transcript(transcript)
        if isinstance(self.session, LessonSession):
            return self.session.submit_answer(transcript)
        logger.debug("Transcript arrived with no active session")
        return False

    def speak_word(self, word: Word) -> None:
        self.playback.play(word.kannada)

    def _session_busy(self) -> bool:
        return self.session is not None and self.session.processing

    def _notice(self, message: str) -> None:
        self.notices.append(message)
        if self._on_notice is not None:
            self._on_notice(message)

    def shutdown(self) -> None:
        self.voice.close()
        if self.session is not None:
            self.session.close()
            self.session = None
        self.playback.stop()
