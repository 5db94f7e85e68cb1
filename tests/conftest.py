from types import SimpleNamespace
from typing import Callable, List, Optional

import pytest

from buddy.models import ChatReply, LessonContent, QuizQuestion, Word
from buddy.speech import RecognitionError, SpeechRecognizer
from buddy.tasks import InlineRunner, TaskRunner


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------

class DeferredRunner(TaskRunner):
    """Holds submitted work until the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.pending: List[tuple] = []
        self.scheduled: List[Callable[[], None]] = []

    def submit(self, name, work, on_success, on_error=None) -> None:
        self.pending.append((name, work, on_success, on_error))

    def schedule(self, delay_s, fn) -> None:
        self.scheduled.append(fn)

    def names(self) -> List[str]:
        return [p[0] for p in self.pending]

    def run_next(self) -> None:
        name, work, on_success, on_error = self.pending.pop(0)
        try:
            result = work()
        except Exception as e:
            if on_error is not None:
                on_error(e)
            return
        on_success(result)

    def run_all(self) -> None:
        while self.pending:
            self.run_next()

    def fire_scheduled(self) -> None:
        while self.scheduled:
            self.scheduled.pop(0)()


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------

class FakeHandle:
    def __init__(self, pcm: bytes) -> None:
        self.pcm = pcm
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True

    def is_active(self) -> bool:
        return not self.stopped


class FakeOutput:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.handles: List[FakeHandle] = []

    def play_pcm(self, pcm, sample_rate, channels) -> FakeHandle:
        if self.fail:
            raise RuntimeError("device busy")
        handle = FakeHandle(pcm)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> List[FakeHandle]:
        return [h for h in self.handles if h.is_active()]


class FakeLocalSpeech:
    def __init__(self) -> None:
        self.spoken: List[str] = []
        self.cancels = 0

    def speak(self, text: str) -> None:
        self.spoken.append(text)

    def cancel(self) -> None:
        self.cancels += 1


class RecordingPlayback:
    """Stands in for AudioPlaybackController in session tests."""

    def __init__(self) -> None:
        self.played: List[str] = []
        self.stops = 0

    def play(self, text: str) -> None:
        self.played.append(text)

    def stop(self) -> None:
        self.stops += 1


# ---------------------------------------------------------------------------
# Speech recognition
# ---------------------------------------------------------------------------

class ScriptedRecognizer(SpeechRecognizer):
    """Recognizer whose results are emitted by the test."""

    def __init__(self, available: bool = True, reason: Optional[str] = None) -> None:
        super().__init__()
        self.available = available
        self.unavailable_reason = reason
        self.started: List[str] = []
        self.stops = 0
        self.aborts = 0

    def start(self, locale: str) -> None:
        self.started.append(locale)

    def stop(self) -> None:
        self.stops += 1

    def abort(self) -> None:
        self.aborts += 1

    def say(self, text: str) -> None:
        self._emit_result(text)

    def fail(self, error: RecognitionError, detail: str = "") -> None:
        self._emit_error(error, detail)


# ---------------------------------------------------------------------------
# OpenAI client
# ---------------------------------------------------------------------------

class FakeOpenAI:
    """Just enough of the OpenAI client surface used by buddy.api."""

    def __init__(self, chat_content: Optional[str] = None, pcm: bytes = b"",
                 transcript: str = "", error: Optional[Exception] = None) -> None:
        self.chat_content = chat_content
        self.pcm = pcm
        self.transcript = transcript
        self.error = error
        self.chat_calls: List[dict] = []
        self.speech_calls: List[dict] = []
        self.transcription_calls: List[dict] = []

        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create_completion))
        self.audio = SimpleNamespace(
            speech=SimpleNamespace(create=self._create_speech),
            transcriptions=SimpleNamespace(create=self._create_transcription),
        )

    def _create_completion(self, **kwargs):
        self.chat_calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.chat_content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    def _create_speech(self, **kwargs):
        self.speech_calls.append(kwargs)
        if self.error is not None:
            raise self.error
        pcm = self.pcm
        return SimpleNamespace(iter_bytes=lambda: iter([pcm[:4], pcm[4:]]))

    def _create_transcription(self, **kwargs):
        self.transcription_calls.append({k: v for k, v in kwargs.items() if k != "file"})
        if self.error is not None:
            raise self.error
        return self.transcript


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def inline_runner():
    return InlineRunner()


@pytest.fixture
def deferred_runner():
    return DeferredRunner()


@pytest.fixture
def playback():
    return RecordingPlayback()


@pytest.fixture
def recognizer():
    return ScriptedRecognizer()


@pytest.fixture
def fake_client(monkeypatch):
    from buddy import api
    client = FakeOpenAI()
    monkeypatch.setattr(api, "client", client)
    return client


@pytest.fixture
def no_client(monkeypatch):
    from buddy import api
    monkeypatch.setattr(api, "client", None)


def make_words(*kannada: str, category: Optional[str] = None) -> List[Word]:
    return [Word(k, f"translit-{i}", f"meaning-{i}", category) for i, k in enumerate(kannada)]


def make_lesson(examples=None, correct_answer: str = "Namaskara") -> LessonContent:
    return LessonContent(
        title="Greetings",
        concept="Saying hello",
        explanation="Namaskara is a respectful hello.",
        examples=tuple(examples if examples is not None else make_words("ನಮಸ್ಕಾರ", "ಹೋಗಿ ಬನ್ನಿ")),
        quiz_question=QuizQuestion(
            question="How do you say hello?",
            correct_answer=correct_answer,
        ),
    )


def make_reply(vocabulary=(), reply: str = "ಚೆನ್ನಾಗಿದ್ದೀನಿ", next_question: str = "Neevu?") -> ChatReply:
    return ChatReply(
        reply=reply,
        translation="I am fine",
        next_question=next_question,
        vocabulary=tuple(vocabulary),
    )
