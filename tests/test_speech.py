import os
import queue
from types import SimpleNamespace

import numpy as np
import pytest

from buddy import speech
from buddy.speech import RecognitionError, WhisperRecognizer
from buddy.voice import PERMISSION_NOTICE, VoiceCaptureController, VoiceState


@pytest.fixture
def events():
    return []


def _recognizer(events, transcribe):
    recognizer = WhisperRecognizer(transcribe=transcribe)
    recognizer.bind(
        on_result=lambda text: events.append(("result", text)),
        on_error=lambda error, detail: events.append(("error", error)),
    )
    return recognizer


def _samples(seconds):
    return np.zeros((int(WhisperRecognizer.SAMPLE_RATE * seconds), 1), dtype="int16")


def test_aborted_session_reports_aborted(events):
    recognizer = _recognizer(events, transcribe=lambda path, locale: "unused")
    recognizer._aborted = True
    recognizer._finish()
    assert events == [("error", RecognitionError.ABORTED)]


def test_empty_recording_is_no_speech(events):
    recognizer = _recognizer(events, transcribe=lambda path, locale: "unused")
    recognizer._finish()
    assert events == [("error", RecognitionError.NO_SPEECH)]


def test_very_short_recording_is_no_speech(events):
    recognizer = _recognizer(events, transcribe=lambda path, locale: "unused")
    recognizer._chunks = [_samples(0.2)]
    recognizer._finish()
    assert events == [("error", RecognitionError.NO_SPEECH)]


def test_recording_is_transcribed_and_removed(events):
    seen = {}

    def transcribe(path, locale):
        seen["path"], seen["locale"] = path, locale
        assert os.path.exists(path)
        return "  Namaskara  "

    recognizer = _recognizer(events, transcribe)
    recognizer._locale = "kn-IN"
    recognizer._chunks = [_samples(0.5), _samples(0.5)]
    recognizer._finish()

    assert events == [("result", "Namaskara")]
    assert seen["locale"] == "kn-IN"
    assert not os.path.exists(seen["path"])


def test_failed_transcription_reports_other(events):
    recognizer = _recognizer(events, transcribe=lambda path, locale: None)
    recognizer._chunks = [_samples(1.0)]
    recognizer._finish()
    assert events == [("error", RecognitionError.OTHER)]


def test_blank_transcription_is_no_speech(events):
    recognizer = _recognizer(events, transcribe=lambda path, locale: "  ")
    recognizer._chunks = [_samples(1.0)]
    recognizer._finish()
    assert events == [("error", RecognitionError.NO_SPEECH)]


def test_create_recognizer_without_recording_support(monkeypatch):
    monkeypatch.setattr(speech, "RECORDING_AVAILABLE", False)
    monkeypatch.setattr(speech, "RECORDING_ERROR", "Missing packages")
    recognizer = speech.create_recognizer()
    assert not recognizer.available
    assert recognizer.unavailable_reason == "Missing packages"


def test_create_recognizer_without_microphone(monkeypatch):
    monkeypatch.setattr(speech, "RECORDING_AVAILABLE", True)
    fake_sd = SimpleNamespace(query_devices=lambda: [{"max_input_channels": 0}])
    monkeypatch.setattr(speech, "sd", fake_sd, raising=False)
    recognizer = speech.create_recognizer()
    assert not recognizer.available
    assert "No microphone" in recognizer.unavailable_reason


class _PortAudioError(Exception):
    pass


def _failing_sd(error):
    def input_stream(**kwargs):
        raise error

    return SimpleNamespace(PortAudioError=_PortAudioError, InputStream=input_stream, sleep=lambda ms: None)


def _record_through_queue(monkeypatch, error):
    monkeypatch.setattr(speech, "sd", _failing_sd(error), raising=False)
    events = queue.Queue()
    recognizer = WhisperRecognizer(transcribe=lambda path, locale: "unused", post=events.put)
    return recognizer, events


def test_denied_microphone_reports_not_allowed_through_host_queue(monkeypatch):
    recognizer, events = _record_through_queue(monkeypatch, _PortAudioError("Device unavailable"))
    notices = []
    voice = VoiceCaptureController(recognizer, on_transcript=lambda text: None, on_notice=notices.append)

    assert voice.press()
    recognizer._record_thread.join(timeout=5)
    events.get(timeout=5)()

    assert voice.state is VoiceState.IDLE
    assert notices == [PERMISSION_NOTICE]
    assert voice.press()


def test_recording_failure_reports_other_through_host_queue(monkeypatch):
    recognizer, events = _record_through_queue(monkeypatch, ValueError("bad sample rate"))
    seen = []
    recognizer.bind(on_result=seen.append, on_error=lambda error, detail: seen.append((error, detail)))

    recognizer.start("kn-IN")
    recognizer._record_thread.join(timeout=5)
    events.get(timeout=5)()

    assert seen == [(RecognitionError.OTHER, "bad sample rate")]
