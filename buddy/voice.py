from enum import Enum
from typing import Callable, Optional

from .logger import logger
from .speech import RecognitionError, SpeechRecognizer

PERMISSION_NOTICE = "Microphone permission denied. Please enable it in your system settings."


class VoiceState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"


class VoiceCaptureController:
    """
    Press-and-hold wrapper around a speech recognizer.

    Only one listening session runs at a time and each session delivers at
    most one transcript. Starting a session interrupts any tutor speech.
    """

    def __init__(
        self,
        recognizer: SpeechRecognizer,
        on_transcript: Callable[[str], None],
        on_notice: Optional[Callable[[str], None]] = None,
        stop_playback: Optional[Callable[[], None]] = None,
        is_busy: Optional[Callable[[], bool]] = None,
        locale: str = "kn-IN",
    ) -> None:
        self._recognizer = recognizer
        self._on_transcript = on_transcript
        self._on_notice = on_notice or (lambda message: None)
        self._stop_playback = stop_playback or (lambda: None)
        self._is_busy = is_busy or (lambda: False)
        self.locale = locale
        self.state = VoiceState.IDLE

        recognizer.bind(on_result=self._handle_result, on_error=self._handle_error)

        if not recognizer.available:
            reason = recognizer.unavailable_reason or "Speech recognition not supported on this system."
            logger.error(f"Speech recognition unavailable: {reason}")
            self._on_notice(reason)

    @property
    def is_listening(self) -> bool:
        return self.state is VoiceState.LISTENING

    @property
    def available(self) -> bool:
        return self._recognizer.available

    def press(self) -> bool:
        """Start listening. Returns False when the press was ignored."""
        if self.is_listening:
            return False
        if not self._recognizer.available:
            return False
        if self._is_busy():
            logger.mic("Ignoring press while the tutor is thinking")
            return False

        # Barge-in
        self._stop_playback()

        self.state = VoiceState.LISTENING
        logger.ui_transition(VoiceState.IDLE.value, VoiceState.LISTENING.value)
        self._recognizer.start(self.locale)
        return True

    def release(self) -> None:
        """Stop listening and let the recognizer finalize."""
        if not self.is_listening:
            return
        self._recognizer.stop()

    def close(self) -> None:
        if self.is_listening:
            self._recognizer.abort()
            self._end_session()

    def _end_session(self) -> bool:
        """Return False if the session had already ended."""
        if not self.is_listening:
            return False
        self.state = VoiceState.IDLE
        logger.ui_transition(VoiceState.LISTENING.value, VoiceState.IDLE.value)
        return True

    def _handle_result(self, text: str) -> None:
        if not self._end_session():
            logger.debug("Dropping transcript from a finished session")
            return
        transcript = (text or "").strip()
        if not transcript:
            return
        logger.mic(f"Heard: \"{transcript}\"")
        self._on_transcript(transcript)

    def _handle_error(self, error: RecognitionError, detail: str = "") -> None:
        if not self._end_session():
            return
        if error in (RecognitionError.NO_SPEECH, RecognitionError.ABORTED):
            return
        if error is RecognitionError.NOT_ALLOWED:
            logger.error(f"Speech recognition error: {error.value} {detail}".rstrip())
            self._on_notice(PERMISSION_NOTICE)
            return
        logger.error(f"Speech recognition error: {error.value} {detail}".rstrip())
