"""
Tutor session flows.

ConversationSession: transcript → tutor chat → word bank/ledger → speech.
LessonSession: lesson generation → examples into the word bank → spoken quiz.

Both sessions hold a liveness flag. Results that arrive after close() are
dropped, since in-flight API calls cannot be cancelled.
"""

import uuid
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from . import api
from .logger import logger
from .models import ChatReply, LessonContent, Message, Role, UserLevel, Word
from .tasks import InlineRunner, TaskRunner

GREETING_TEXT = f"Namaskara! I am {api.TUTOR_NAME}. Press the mic to talk."
GREETING_AUDIO = "Namaskara! Heggiddira?"
SUCCESS_AUDIO = "Sari! That is correct. Very good!"
LESSON_INTRO_DELAY_S = 1.0

ChatFn = Callable[[str, Sequence[Tuple[Role, str]], UserLevel], ChatReply]
LearnWordsFn = Callable[[Sequence[Word]], List[Word]]


def _new_message_id() -> str:
    return uuid.uuid4().hex[:12]


class ConversationSession:
    """Free conversation with the tutor."""

    def __init__(
        self,
        level: UserLevel,
        playback,
        learn_words: LearnWordsFn,
        on_message_sent: Optional[Callable[[], None]] = None,
        chat: Optional[ChatFn] = None,
        runner: Optional[TaskRunner] = None,
    ) -> None:
        self.level = level
        self._playback = playback
        self._learn_words = learn_words
        self._on_message_sent = on_message_sent or (lambda: None)
        self._chat = chat or api.chat_with_tutor
        self._runner = runner or InlineRunner()

        self.messages: List[Message] = [
            Message(id="init", role=Role.MODEL, text=GREETING_TEXT),
        ]
        self.processing = False
        self._alive = True

    @property
    def locale(self) -> str:
        # Beginners mix English in, so recognize English
        return "en-US" if self.level is UserLevel.BEGINNER else "kn-IN"

    def start(self) -> None:
        self._playback.play(GREETING_AUDIO)

    def close(self) -> None:
        self._alive = False

    def handle_transcript(self, transcript: str) -> bool:
        """
        Send what the learner said to the tutor.

        Returns False when the transcript is blank, a reply is still
        pending, or the session is closed.
        """
        text = (transcript or "").strip()
        if not text:
            return False
        if not self._alive:
            return False
        if self.processing:
            logger.warning("Tutor is still replying; ignoring new input")
            return False

        history = [(m.role, m.text) for m in self.messages]
        self.messages.append(Message(id=_new_message_id(), role=Role.USER, text=text))
        self.processing = True

        self._runner.submit(
            "tutor_chat",
            lambda: self._chat(text, history, self.level),
            on_success=self._on_reply,
            on_error=self._on_chat_failed,
        )
        return True

    def _on_reply(self, reply: ChatReply) -> None:
        if not self._alive:
            logger.debug("Conversation closed; dropping tutor reply")
            return
        self.processing = False

        self.messages.append(Message(
            id=_new_message_id(),
            role=Role.MODEL,
            text=reply.reply,
            vocabulary=tuple(reply.vocabulary),
            translation=reply.translation or None,
        ))
        if not reply.fallback:
            self._on_message_sent()
        if reply.vocabulary:
            self._learn_words(list(reply.vocabulary))

        self._playback.play(reply.spoken_text)

    def _on_chat_failed(self, error: Exception) -> None:
        logger.error(f"Tutor chat failed: {error}")
        if self._alive:
            self.processing = False


class LessonStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class QuizState(str, Enum):
    IDLE = "idle"
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAILURE = "failure"


class LessonSession:
    """A generated lesson ending in a spoken quiz question."""

    locale = "kn-IN"

    def __init__(
        self,
        level: UserLevel,
        playback,
        learn_words: LearnWordsFn,
        on_complete: Callable[[], None],
        generate: Optional[Callable[[UserLevel], LessonContent]] = None,
        validate: Optional[Callable[[str, str], bool]] = None,
        runner: Optional[TaskRunner] = None,
        intro_delay_s: float = LESSON_INTRO_DELAY_S,
    ) -> None:
        self.level = level
        self._playback = playback
        self._learn_words = learn_words
        self._on_complete = on_complete
        self._generate = generate or api.generate_lesson
        self._validate = validate or api.validate_answer
        self._runner = runner or InlineRunner()
        self._intro_delay_s = intro_delay_s

        self.status = LessonStatus.LOADING
        self.lesson: Optional[LessonContent] = None
        self.error: Optional[str] = None
        self.quiz_state = QuizState.IDLE
        self.user_answer = ""
        self._alive = True

    @property
    def processing(self) -> bool:
        return self.status is LessonStatus.LOADING or self.quiz_state is QuizState.VERIFYING

    def start(self) -> None:
        self.status = LessonStatus.LOADING
        self.error = None
        self._runner.submit(
            "lesson_generation",
            lambda: self._generate(self.level),
            on_success=self._on_lesson,
            on_error=self._on_lesson_failed,
        )

    def reload(self) -> bool:
        """Retry after a failed lesson fetch."""
        if self.status is not LessonStatus.ERROR or not self._alive:
            return False
        self.start()
        return True

    def close(self) -> None:
        self._alive = False

    def _on_lesson(self, lesson: LessonContent) -> None:
        if not self._alive:
            logger.debug("Lesson closed; dropping generated lesson")
            return
        self.lesson = lesson
        self.status = LessonStatus.READY

        if lesson.examples:
            self._learn_words(list(lesson.examples))

        self._runner.schedule(self._intro_delay_s, lambda: self._speak(lesson.intro_text))

    def _on_lesson_failed(self, error: Exception) -> None:
        logger.error(f"Lesson unavailable: {error}")
        if not self._alive:
            return
        self.status = LessonStatus.ERROR
        self.error = str(error) or "Error loading lesson."

    def _speak(self, text: str) -> None:
        if self._alive:
            self._playback.play(text)

    def play_example(self, word: Word) -> None:
        self._playback.play(word.kannada)

    def submit_answer(self, transcript: str) -> bool:
        """Check a spoken quiz answer. Only accepted while the quiz is idle."""
        answer = (transcript or "").strip()
        if not answer or self.lesson is None or not self._alive:
            return False
        if self.quiz_state is not QuizState.IDLE:
            return False

        self.user_answer = answer
        self.quiz_state = QuizState.VERIFYING
        expected = self.lesson.quiz_question.correct_answer

        self._runner.submit(
            "answer_validation",
            lambda: self._validate(answer, expected),
            on_success=self._on_verdict,
            on_error=lambda e: self._on_verdict(False),
        )
        return True

    def _on_verdict(self, is_correct: bool) -> None:
        if not self._alive or self.lesson is None:
            return

        if is_correct:
            self.quiz_state = QuizState.SUCCESS
            logger.success(f"Quiz answered correctly: \"{self.user_answer}\"")
            self._on_complete()
            self._playback.play(SUCCESS_AUDIO)
        else:
            self.quiz_state = QuizState.FAILURE
            expected = self.lesson.quiz_question.correct_answer
            self._playback.play(f"Not quite. The answer is {expected}. Try saying it.")

    def retry(self) -> bool:
        if self.quiz_state is not QuizState.FAILURE:
            return False
        self.quiz_state = QuizState.IDLE
        self.user_answer = ""
        return True
