"""
Spoken output for the tutor.

AudioPlaybackController owns the single audio output slot: a new request
always releases the previous handle before acquiring its own. Remote speech
comes from OpenAI TTS as raw PCM played through pygame; when that fails the
text is spoken on-device with pyttsx3.
"""

import re
import threading
from typing import Any, Callable, List, Optional, Protocol

import pyttsx3

from . import api
from .logger import logger
from .tasks import InlineRunner, TaskRunner

# Audio playback support
try:
    import pygame
    AUDIO_AVAILABLE = True
except ImportError:
    AUDIO_AVAILABLE = False
    logger.warning("pygame not installed. Remote speech playback disabled.")
    logger.warning("Install with: pip install pygame")


_MARKUP_RE = re.compile(r"[*_`~{}\[\]()]")
_EMOJI_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F680-\U0001F6FF"  # transport & map
    "\U0001F1E0-\U0001F1FF"  # flags
    "]"
)
_KANNADA_RE = re.compile(r"[\u0C80-\u0CFF]")

MIN_REMOTE_CHARS = 3


def clean_text_for_speech(text: Optional[str]) -> str:
    """Remove markdown, brackets and emoji that confuse speech engines."""
    if not text:
        return ""
    cleaned = _MARKUP_RE.sub("", text)
    cleaned = _EMOJI_RE.sub("", cleaned)
    return cleaned.strip()


def has_kannada(text: str) -> bool:
    return bool(_KANNADA_RE.search(text or ""))


def should_use_remote_synthesis(text: str) -> bool:
    """Very short non-Kannada fragments are not worth a TTS round trip."""
    return len(text) >= MIN_REMOTE_CHARS or has_kannada(text)


# ---------------------------------------------------------------------------
# Output capabilities
# ---------------------------------------------------------------------------

class PlaybackHandle(Protocol):
    def stop(self) -> None: ...

    def is_active(self) -> bool: ...


class AudioOutput(Protocol):
    def play_pcm(self, pcm: bytes, sample_rate: int, channels: int) -> PlaybackHandle: ...


class LocalSpeech(Protocol):
    def speak(self, text: str) -> None: ...

    def cancel(self) -> None: ...


class PygameHandle:
    """One playing pygame Sound. Stopping it frees the mixer channel."""

    def __init__(self, sound, channel) -> None:
        self._sound = sound
        self._channel = channel
        self._stopped = False

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        try:
            self._sound.stop()
        except pygame.error as e:
            logger.debug(f"pygame stop ignored: {e}")

    def is_active(self) -> bool:
        if self._stopped or self._channel is None:
            return False
        return bool(self._channel.get_busy())


class PygameOutput:
    """Plays raw 16-bit PCM through pygame.mixer."""

    def _ensure_mixer(self, sample_rate: int, channels: int) -> None:
        current = pygame.mixer.get_init()
        if current and current[0] == sample_rate and current[2] == channels:
            return
        if current:
            pygame.mixer.quit()
        pygame.mixer.init(frequency=sample_rate, size=-16, channels=channels)
        logger.audio(f"Mixer initialized at {sample_rate}Hz, {channels} channel(s)")

    def play_pcm(self, pcm: bytes, sample_rate: int, channels: int) -> PygameHandle:
        if not AUDIO_AVAILABLE:
            raise RuntimeError("pygame is not installed")
        self._ensure_mixer(sample_rate, channels)

        frame_bytes = 2 * channels
        usable = len(pcm) - (len(pcm) % frame_bytes)
        sound = pygame.mixer.Sound(buffer=pcm[:usable])
        channel = sound.play()
        logger.audio(f"Playing {usable / frame_bytes / sample_rate:.1f}s of synthesized speech")
        return PygameHandle(sound, channel)


def _voice_tags(voice: Any) -> List[str]:
    tags = []
    for lang in getattr(voice, "languages", None) or []:
        if isinstance(lang, bytes):
            lang = lang.decode("utf-8", errors="ignore")
        tags.append(re.sub(r"[^a-z_\-]", "", str(lang).lower()).replace("_", "-"))
    tags.append(str(getattr(voice, "id", "")).lower())
    tags.append(str(getattr(voice, "name", "")).lower())
    return tags


def select_voice(voices: List[Any], kannada: bool) -> Optional[Any]:
    """
    Pick the closest installed voice: Kannada, then Hindi, then Indian
    English. Non-Kannada text only looks for Indian English.
    """
    preferences = ["kn-in", "kn", "hi-in", "en-in"] if kannada else ["en-in"]
    for wanted in preferences:
        for voice in voices:
            tags = _voice_tags(voice)
            if wanted in tags or (len(wanted) == 2 and any(t.startswith(wanted + "-") for t in tags)):
                return voice
    return None


class Pyttsx3Speech:
    """On-device speech with pyttsx3, run on a daemon thread."""

    def __init__(self, rate_factor: float = 0.9) -> None:
        self._rate_factor = rate_factor
        self._engine = None
        self._base_rate: Optional[int] = None
        self._lock = threading.Lock()
        self._generation = 0
        self._thread: Optional[threading.Thread] = None

    def _get_engine(self):
        if self._engine is None:
            self._engine = pyttsx3.init()
            self._base_rate = self._engine.getProperty("rate")
        return self._engine

    def speak(self, text: str) -> None:
        generation = self._generation

        def _speak():
            with self._lock:
                if generation != self._generation:
                    logger.debug("On-device speech cancelled before it started")
                    return
                try:
                    engine = self._get_engine()
                    voice = select_voice(engine.getProperty("voices") or [], has_kannada(text))
                    if voice is not None:
                        engine.setProperty("voice", voice.id)
                    if self._base_rate:
                        # Slightly slower is usually clearer
                        engine.setProperty("rate", int(self._base_rate * self._rate_factor))
                    engine.say(text)
                    engine.runAndWait()
                except Exception as e:
                    logger.error(f"On-device speech failed: {e}")

        self._thread = threading.Thread(target=_speak, name="local_speech", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Stop current speech and drop any request still waiting to start."""
        self._generation += 1
        engine = self._engine
        if engine is None:
            return
        try:
            engine.stop()
        except Exception as e:
            logger.debug(f"On-device speech cancel ignored: {e}")


# ---------------------------------------------------------------------------
# Playback controller
# ---------------------------------------------------------------------------

class AudioPlaybackController:
    """
    Single-slot speech playback with preemption.

    Every play() or stop() bumps a generation counter; a synthesis result
    that comes back for an older generation is dropped instead of played.
    """

    def __init__(
        self,
        synthesize: Optional[Callable[[str], Optional[bytes]]] = None,
        output: Optional[AudioOutput] = None,
        fallback: Optional[LocalSpeech] = None,
        runner: Optional[TaskRunner] = None,
        sample_rate: int = api.TTS_SAMPLE_RATE,
        channels: int = api.TTS_CHANNELS,
    ) -> None:
        self._synthesize = synthesize or api.synthesize_speech
        self._output = output or PygameOutput()
        self._fallback = fallback or Pyttsx3Speech()
        self._runner = runner or InlineRunner()
        self._sample_rate = sample_rate
        self._channels = channels

        self._generation = 0
        self._handle: Optional[PlaybackHandle] = None

    @property
    def active_handle(self) -> Optional[PlaybackHandle]:
        return self._handle

    @property
    def is_playing(self) -> bool:
        return self._handle is not None and self._handle.is_active()

    def play(self, text: str) -> None:
        """Speak `text`, interrupting whatever was playing."""
        self.stop()

        clean = clean_text_for_speech(text)
        if not clean:
            return

        generation = self._generation
        logger.audio_start(clean)

        if not should_use_remote_synthesis(clean):
            self._speak_locally(clean, "text too short for remote synthesis")
            return

        self._runner.submit(
            "speech_synthesis",
            lambda: self._synthesize(clean),
            on_success=lambda pcm: self._on_synthesized(generation, clean, pcm),
            on_error=lambda e: self._on_synthesis_failed(generation, clean, e),
        )

    def stop(self) -> None:
        """Release the current audio handle and cancel on-device speech."""
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.stop()
        self._fallback.cancel()

    def _on_synthesized(self, generation: int, text: str, pcm: Optional[bytes]) -> None:
        if generation != self._generation:
            logger.debug("Discarding superseded speech")
            return
        if not pcm:
            self._speak_locally(text, "no audio returned")
            return

        # Release first, then acquire
        if self._handle is not None:
            self._handle.stop()
            self._handle = None
        try:
            self._handle = self._output.play_pcm(pcm, self._sample_rate, self._channels)
        except Exception as e:
            self._speak_locally(text, f"playback failed ({e})")

    def _on_synthesis_failed(self, generation: int, text: str, error: Exception) -> None:
        if generation != self._generation:
            return
        self._speak_locally(text, f"synthesis failed ({error})")

    def _speak_locally(self, text: str, reason: str) -> None:
        logger.audio_fallback(reason)
        self._fallback.speak(text)
