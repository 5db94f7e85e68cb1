"""
Speech-to-text capability behind a small start/stop/result/error interface.

WhisperRecognizer records the microphone with sounddevice, saves a WAV with
soundfile and transcribes it through OpenAI Whisper. Platforms without a
usable microphone get UnsupportedRecognizer, which reports why at startup.
"""

import os
import tempfile
import threading
from enum import Enum
from typing import Callable, List, Optional

from . import api
from .logger import logger

# Audio recording support
RECORDING_AVAILABLE = False
RECORDING_ERROR: Optional[str] = None
try:
    import numpy as np
    import sounddevice as sd
    import soundfile as sf
    RECORDING_AVAILABLE = True
except ImportError as e:
    RECORDING_ERROR = f"Missing packages: {e}. Install with: pip install sounddevice soundfile"
except OSError as e:
    # sounddevice raises OSError when the PortAudio library is missing
    RECORDING_ERROR = f"Audio device error: {e}. On macOS, try: brew install portaudio"


class RecognitionError(str, Enum):
    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    NOT_ALLOWED = "not-allowed"
    OTHER = "other"


ResultCallback = Callable[[str], None]
ErrorCallback = Callable[[RecognitionError, str], None]


class SpeechRecognizer:
    """
    Base recognizer. Subclasses call `_emit_result` or `_emit_error` once per
    listening session.
    """

    available = True
    unavailable_reason: Optional[str] = None

    def __init__(self) -> None:
        self._on_result: Optional[ResultCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    def bind(self, on_result: ResultCallback, on_error: ErrorCallback) -> None:
        self._on_result = on_result
        self._on_error = on_error

    def start(self, locale: str) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        """Finish listening and finalize a transcript."""
        raise NotImplementedError

    def abort(self) -> None:
        """Stop listening and discard whatever was heard."""
        raise NotImplementedError

    def _emit_result(self, text: str) -> None:
        if self._on_result is not None:
            self._on_result(text)

    def _emit_error(self, error: RecognitionError, detail: str = "") -> None:
        if self._on_error is not None:
            self._on_error(error, detail)


class UnsupportedRecognizer(SpeechRecognizer):
    """Stand-in for platforms without audio input."""

    available = False

    def __init__(self, reason: str) -> None:
        super().__init__()
        self.unavailable_reason = reason

    def start(self, locale: str) -> None:
        self._emit_error(RecognitionError.NOT_ALLOWED, self.unavailable_reason or "")

    def stop(self) -> None:
        pass

    def abort(self) -> None:
        pass


class WhisperRecognizer(SpeechRecognizer):
    """
    Press-and-hold recorder with Whisper transcription.

    Recording runs on a background thread; transcription runs on another
    once the stream closes. Results are delivered through `post` so they
    land on the host thread.
    """

    SAMPLE_RATE = 16000  # Whisper prefers 16kHz
    CHANNELS = 1  # Mono
    MIN_SECONDS = 0.5

    def __init__(
        self,
        transcribe: Optional[Callable[[str, Optional[str]], Optional[str]]] = None,
        post: Optional[Callable[[Callable[[], None]], None]] = None,
    ) -> None:
        super().__init__()
        self._transcribe = transcribe or api.transcribe_audio
        self._post = post or (lambda fn: fn())
        self._is_recording = False
        self._aborted = False
        self._chunks: List = []
        self._locale: Optional[str] = None
        self._record_thread: Optional[threading.Thread] = None

    def start(self, locale: str) -> None:
        if self._is_recording:
            return

        logger.mic(f"Starting speech recording ({locale})...")
        self._is_recording = True
        self._aborted = False
        self._chunks = []
        self._locale = locale

        def record_audio():
            try:
                with sd.InputStream(samplerate=self.SAMPLE_RATE, channels=self.CHANNELS,
                                    dtype="int16", callback=self._audio_callback):
                    while self._is_recording:
                        sd.sleep(100)
            except sd.PortAudioError as e:
                self._is_recording = False
                detail = str(e)
                logger.error(f"Microphone unavailable: {detail}")
                self._post(lambda: self._emit_error(RecognitionError.NOT_ALLOWED, detail))
                return
            except Exception as e:
                self._is_recording = False
                detail = str(e)
                logger.error(f"Recording error: {detail}")
                self._post(lambda: self._emit_error(RecognitionError.OTHER, detail))
                return
            self._finish()

        self._record_thread = threading.Thread(target=record_audio, name="speech_recording", daemon=True)
        self._record_thread.start()

    def _audio_callback(self, indata, frames, time, status):
        if status:
            logger.warning(f"Audio status: {status}")
        self._chunks.append(indata.copy())

    def stop(self) -> None:
        if self._is_recording:
            logger.mic("Stopping speech recording...")
        self._is_recording = False

    def abort(self) -> None:
        if not self._is_recording:
            return
        logger.mic("Aborting speech recording")
        self._aborted = True
        self._is_recording = False

    def _finish(self) -> None:
        """Runs on the recording thread once the input stream has closed."""
        if self._aborted:
            self._post(lambda: self._emit_error(RecognitionError.ABORTED))
            return

        if not self._chunks:
            self._post(lambda: self._emit_error(RecognitionError.NO_SPEECH))
            return

        audio_data = np.concatenate(self._chunks, axis=0)
        duration = len(audio_data) / self.SAMPLE_RATE
        if duration < self.MIN_SECONDS:
            self._post(lambda: self._emit_error(RecognitionError.NO_SPEECH))
            return

        fd, path = tempfile.mkstemp(suffix=".wav", prefix="buddy_recording_")
        os.close(fd)
        try:
            sf.write(path, audio_data, self.SAMPLE_RATE)
            logger.mic(f"Recording saved: {path} ({duration:.1f}s)")
            text = self._transcribe(path, self._locale)
        finally:
            try:
                os.remove(path)
            except OSError:
                logger.debug(f"Could not remove recording {path}")

        if text is None:
            self._post(lambda: self._emit_error(RecognitionError.OTHER, "transcription failed"))
        elif not text.strip():
            self._post(lambda: self._emit_error(RecognitionError.NO_SPEECH))
        else:
            self._post(lambda: self._emit_result(text.strip()))


def create_recognizer(post: Optional[Callable[[Callable[[], None]], None]] = None) -> SpeechRecognizer:
    """Probe the platform's audio input and return the matching recognizer."""
    if not RECORDING_AVAILABLE:
        return UnsupportedRecognizer(RECORDING_ERROR or "Recording not available")

    try:
        devices = sd.query_devices()
    except Exception as e:
        return UnsupportedRecognizer(f"Audio device error: {e}")

    input_devices = [d for d in devices if d['max_input_channels'] > 0]
    if not input_devices:
        return UnsupportedRecognizer("No microphone found. Check your system's microphone privacy settings")

    logger.mic(f"✓ Recording available: {len(input_devices)} microphone(s) found")
    return WhisperRecognizer(post=post)
