from types import SimpleNamespace

import pytest

from buddy import audio
from buddy.audio import (
    AudioPlaybackController,
    Pyttsx3Speech,
    clean_text_for_speech,
    has_kannada,
    select_voice,
    should_use_remote_synthesis,
)

from conftest import FakeLocalSpeech, FakeOutput


def _controller(runner, synthesize=None, output=None):
    output = output or FakeOutput()
    fallback = FakeLocalSpeech()
    controller = AudioPlaybackController(
        synthesize=synthesize or (lambda text: f"pcm:{text}".encode()),
        output=output,
        fallback=fallback,
        runner=runner,
    )
    return controller, output, fallback


def test_clean_text_strips_markup_and_emoji():
    assert clean_text_for_speech("**Sari!** (correct) 🎉") == "Sari! correct"
    assert clean_text_for_speech(None) == ""


def test_kannada_detection():
    assert has_kannada("ನಮಸ್ಕಾರ")
    assert not has_kannada("Namaskara")


def test_short_english_stays_local():
    assert not should_use_remote_synthesis("Hi")
    assert should_use_remote_synthesis("ಹೌ")
    assert should_use_remote_synthesis("Hello")


def test_play_uses_remote_synthesis(inline_runner):
    controller, output, fallback = _controller(inline_runner)
    controller.play("Namaskara! Heggiddira?")

    assert output.handles[0].pcm == b"pcm:Namaskara! Heggiddira?"
    assert controller.active_handle is output.handles[0]
    assert controller.is_playing
    assert fallback.spoken == []


def test_short_text_plays_locally_without_synthesis(inline_runner):
    calls = []
    controller, output, fallback = _controller(inline_runner, synthesize=lambda t: calls.append(t))
    controller.play("Ok")

    assert calls == []
    assert fallback.spoken == ["Ok"]
    assert output.handles == []


def test_blank_text_plays_nothing(inline_runner):
    controller, output, fallback = _controller(inline_runner)
    controller.play("**  **")
    assert output.handles == []
    assert fallback.spoken == []


def test_new_play_releases_previous_handle(inline_runner):
    controller, output, _ = _controller(inline_runner)
    controller.play("First sentence")
    controller.play("Second sentence")

    first, second = output.handles
    assert first.stopped
    assert output.active == [second]
    assert controller.active_handle is second


def test_superseded_synthesis_is_discarded(deferred_runner):
    controller, output, _ = _controller(deferred_runner)
    controller.play("First sentence")
    controller.play("Second sentence")

    deferred_runner.run_all()

    assert [h.pcm for h in output.handles] == [b"pcm:Second sentence"]


def test_stop_during_synthesis_discards_result(deferred_runner):
    controller, output, _ = _controller(deferred_runner)
    controller.play("Late reply")
    controller.stop()
    deferred_runner.run_all()

    assert output.handles == []
    assert controller.active_handle is None


def test_empty_synthesis_falls_back_to_local(inline_runner):
    controller, output, fallback = _controller(inline_runner, synthesize=lambda text: None)
    controller.play("Sari! That is correct.")

    assert output.handles == []
    assert fallback.spoken == ["Sari! That is correct."]


def test_synthesis_error_falls_back_to_local(inline_runner):
    def boom(text):
        raise ConnectionError("offline")

    controller, _, fallback = _controller(inline_runner, synthesize=boom)
    controller.play("Namaskara")
    assert fallback.spoken == ["Namaskara"]


def test_playback_error_falls_back_to_local(inline_runner):
    controller, _, fallback = _controller(inline_runner, output=FakeOutput(fail=True))
    controller.play("Namaskara")
    assert fallback.spoken == ["Namaskara"]
    assert controller.active_handle is None


def test_stop_is_idempotent(inline_runner):
    controller, output, fallback = _controller(inline_runner)
    controller.play("Namaskara")
    controller.stop()
    controller.stop()

    assert output.handles[0].stopped
    assert controller.active_handle is None
    assert not controller.is_playing
    assert fallback.cancels >= 2


def test_select_voice_prefers_kannada_then_indian_english():
    english = SimpleNamespace(id="en-us", name="US English", languages=[b"\x05en-us"])
    indian = SimpleNamespace(id="en-in", name="Indian English", languages=["en_IN"])
    kannada = SimpleNamespace(id="kn", name="Kannada", languages=["kn"])

    assert select_voice([english, indian, kannada], kannada=True) is kannada
    assert select_voice([english, indian], kannada=True) is indian
    assert select_voice([english, kannada], kannada=False) is None


class _FakeEngine:
    def __init__(self):
        self.said = []
        self.properties = {"rate": 200, "voices": []}
        self.stops = 0

    def getProperty(self, name):
        return self.properties[name]

    def setProperty(self, name, value):
        self.properties[name] = value

    def say(self, text):
        self.said.append(text)

    def runAndWait(self):
        pass

    def stop(self):
        self.stops += 1


@pytest.fixture
def engine(monkeypatch):
    fake = _FakeEngine()
    monkeypatch.setattr(audio.pyttsx3, "init", lambda: fake)
    return fake


def test_local_speech_speaks_slightly_slower(engine):
    speech = Pyttsx3Speech()
    speech.speak("Ok")
    speech._thread.join(timeout=5)

    assert engine.said == ["Ok"]
    assert engine.properties["rate"] == 180


def test_cancel_drops_speech_that_has_not_started(engine):
    speech = Pyttsx3Speech()
    with speech._lock:
        # Engine not created yet and the worker is waiting for the lock
        speech.speak("Ok")
        speech.cancel()
    speech._thread.join(timeout=5)

    assert engine.said == []


def test_speech_after_cancel_still_plays(engine):
    speech = Pyttsx3Speech()
    speech.cancel()
    speech.speak("Sari")
    speech._thread.join(timeout=5)
    assert engine.said == ["Sari"]
