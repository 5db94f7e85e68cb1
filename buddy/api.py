"""
OpenAI-backed services for Kannada Buddy.

This module handles:
- Tutor conversation replies (with extracted vocabulary)
- Lesson generation (concept, examples, spoken quiz)
- Loose validation of spoken quiz answers
- Text-to-speech as raw PCM
- Speech-to-text for recorded answers

API key is expected in a .env file at the project root:

    OPENAI_API_KEY=sk-...

We use python-dotenv + os.getenv so secrets stay out of git. Without a key
every call takes its documented fallback path.
"""

import json
import os
from typing import Optional, Sequence, Tuple

from dotenv import load_dotenv
from openai import OpenAI

from .models import ChatReply, LessonContent, Role, UserLevel
from .schemas import CHAT_RESPONSE_SCHEMA, LESSON_RESPONSE_SCHEMA
from .logger import logger, Timer

# ---------------------------------------------------------------------------
# Environment & OpenAI client setup
# ---------------------------------------------------------------------------

logger.separator("Kannada Buddy - API Module Initialization")

logger.env("Loading environment variables from .env file...")
dotenv_result = load_dotenv()
if dotenv_result:
    logger.env_success("dotenv file loaded successfully")
else:
    logger.warning("No .env file found or file is empty")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

if OPENAI_API_KEY:
    # Mask the API key for logging (show first 8 and last 4 chars)
    masked_key = f"{OPENAI_API_KEY[:8]}...{OPENAI_API_KEY[-4:]}" if len(OPENAI_API_KEY) > 12 else "***"
    logger.env_success(f"OPENAI_API_KEY found: {masked_key}")
    client: Optional[OpenAI] = OpenAI(api_key=OPENAI_API_KEY)
    logger.env_success("OpenAI client initialized successfully")
else:
    logger.env_error("OPENAI_API_KEY not found in environment!")
    logger.warning("Tutor replies will be canned and lessons unavailable")
    client = None

DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_TTS_MODEL = "tts-1"  # tts-1 for speed, tts-1-hd for quality
DEFAULT_TTS_VOICE = "nova"
DEFAULT_STT_MODEL = "whisper-1"

# OpenAI "pcm" speech output: 16-bit signed little-endian samples
TTS_SAMPLE_RATE = 24000
TTS_CHANNELS = 1

TUTOR_NAME = "Sneha"

logger.env(f"Default chat model: {DEFAULT_CHAT_MODEL}")
logger.env(f"Default TTS model: {DEFAULT_TTS_MODEL} (voice: {DEFAULT_TTS_VOICE})")
logger.env(f"Default STT model: {DEFAULT_STT_MODEL}")
logger.separator("API Module Ready")


class LessonUnavailableError(RuntimeError):
    """Raised when a lesson cannot be generated. Callers show a retry state."""


def is_api_available() -> bool:
    """Check if the OpenAI API client is properly configured."""
    return client is not None


# ---------------------------------------------------------------------------
# Tutor conversation
# ---------------------------------------------------------------------------

def _chat_fallback() -> ChatReply:
    return ChatReply(
        reply="Kshamisi, connectivity problem.",
        translation="Sorry, connectivity problem.",
        next_question="Can you repeat that?",
        vocabulary=(),
        fallback=True,
    )


def chat_with_tutor(
    message: str,
    history: Sequence[Tuple[Role, str]],
    level: UserLevel,
) -> ChatReply:
    """
    Get the tutor's reply to the learner's latest utterance.

    Args:
        message: What the learner just said
        history: Prior transcript as ordered (role, text) pairs
        level: Learner level, shapes how much English helper text is used

    Returns:
        A ChatReply. Any failure yields the canned apology with no
        vocabulary; this function never raises.
    """
    logger.api(f"chat_with_tutor() - {len(history)} prior turns, level={level.value}")

    if client is None:
        logger.warning("OpenAI client not available, using canned reply")
        return _chat_fallback()

    try:
        messages = [
            {
                "role": "system",
                "content": (
                    f"You are a voice-based Kannada tutor named \"{TUTOR_NAME}\".\n"
                    f"Level: {level.value}.\n\n"
                    "Guidelines:\n"
                    "1. Reply conversationally. Short sentences (max 2).\n"
                    "2. Use Kannada suitable for the level + English helper.\n"
                    "3. ALWAYS ask a follow-up \"nextQuestion\" to keep the user talking.\n"
                    "4. Extract useful vocabulary.\n\n"
                    + CHAT_RESPONSE_SCHEMA
                ),
            },
        ]
        for role, text in history:
            # OpenAI names the model side "assistant"
            messages.append({
                "role": "assistant" if Role(role) is Role.MODEL else "user",
                "content": text,
            })
        messages.append({"role": "user", "content": message})

        logger.api_call("chat.completions.create (tutor chat)", model=DEFAULT_CHAT_MODEL)
        with Timer() as timer:
            completion = client.chat.completions.create(
                model=DEFAULT_CHAT_MODEL,
                response_format={"type": "json_object"},
                messages=messages,
                temperature=0.7,
                max_tokens=600,
            )
        logger.api_response("chat.completions.create", duration_ms=timer.duration_ms)

        raw = completion.choices[0].message.content
        if not raw:
            raise ValueError("empty response from tutor model")
        reply = ChatReply.from_dict(json.loads(raw))
        if not reply.reply:
            raise ValueError("tutor response has no reply text")

        logger.success(f"Tutor replied with {len(reply.vocabulary)} vocabulary item(s)")
        return reply

    except Exception as e:
        logger.api_error(f"Tutor chat failed: {e}")
        return _chat_fallback()


# ---------------------------------------------------------------------------
# Lesson generation
# ---------------------------------------------------------------------------

def generate_lesson(level: UserLevel, topic: Optional[str] = None) -> LessonContent:
    """
    Generate a short Kannada lesson with examples and a spoken quiz question.

    Raises:
        LessonUnavailableError: when the API is unavailable or returns
        something that cannot be turned into a lesson.
    """
    logger.api(f"generate_lesson() - level={level.value}, topic={topic or 'auto'}")

    if client is None:
        raise LessonUnavailableError("OpenAI client not configured (set OPENAI_API_KEY)")

    topic_line = f"Focus on the topic: {topic}." if topic else "Choose a relevant topic based on their level."
    messages = [
        {
            "role": "system",
            "content": (
                "You are an expert Kannada tutor. Create content for a mobile voice-first app.\n\n"
                + LESSON_RESPONSE_SCHEMA
            ),
        },
        {
            "role": "user",
            "content": (
                f"Create a short, engaging Kannada language lesson for a {level.value} level learner.\n"
                f"{topic_line}\n"
                "The explanation should be in English.\n"
                "Provide examples in Kannada with Transliteration and English.\n"
                "Assign a category to each example word/phrase.\n"
                "Include a single quiz question that requires a spoken answer."
            ),
        },
    ]

    try:
        logger.api_call("chat.completions.create (lesson)", model=DEFAULT_CHAT_MODEL)
        with Timer() as timer:
            completion = client.chat.completions.create(
                model=DEFAULT_CHAT_MODEL,
                response_format={"type": "json_object"},
                messages=messages,
                temperature=0.7,
            )
        logger.api_response("chat.completions.create", duration_ms=timer.duration_ms)

        raw = completion.choices[0].message.content
        if not raw:
            raise ValueError("empty response from lesson model")
        lesson = LessonContent.from_dict(json.loads(raw))

    except Exception as e:
        logger.api_error(f"Lesson generation failed: {e}")
        raise LessonUnavailableError(str(e)) from e

    logger.success(f"Lesson ready: '{lesson.title}' ({len(lesson.examples)} examples)")
    return lesson


# ---------------------------------------------------------------------------
# Quiz answer validation
# ---------------------------------------------------------------------------

def answer_matches_locally(user_answer: str, correct_answer: str) -> bool:
    """Case-insensitive containment of the expected answer in what was said."""
    expected = (correct_answer or "").strip().lower()
    if not expected:
        return False
    return expected in (user_answer or "").lower()


def validate_answer(user_answer: str, correct_answer: str) -> bool:
    """
    Loosely check a spoken quiz answer.

    The cheap local containment check runs first; only when it fails is the
    model asked whether the answer is close enough. Any failure counts as
    incorrect.
    """
    if answer_matches_locally(user_answer, correct_answer):
        logger.success("Answer accepted by local match")
        return True

    if client is None or not (user_answer or "").strip():
        return False

    try:
        logger.api_call("chat.completions.create (answer validation)", model=DEFAULT_CHAT_MODEL)
        with Timer() as timer:
            completion = client.chat.completions.create(
                model=DEFAULT_CHAT_MODEL,
                messages=[{
                    "role": "user",
                    "content": (
                        f"Is the answer \"{user_answer}\" effectively correct or close enough for the "
                        f"question expecting \"{correct_answer}\"? Reply TRUE or FALSE only."
                    ),
                }],
                temperature=0,
                max_tokens=5,
            )
        logger.api_response("chat.completions.create", duration_ms=timer.duration_ms)

        verdict = (completion.choices[0].message.content or "").strip().upper()
        is_correct = "TRUE" in verdict
        logger.api(f"Semantic answer check: {verdict or '<empty>'} -> {is_correct}")
        return is_correct

    except Exception as e:
        logger.api_error(f"Answer validation failed, treating as incorrect: {e}")
        return False


# ---------------------------------------------------------------------------
# Text-to-Speech (TTS)
# ---------------------------------------------------------------------------

def synthesize_speech(text: str, voice: Optional[str] = None) -> Optional[bytes]:
    """
    Synthesize speech with OpenAI TTS.

    Returns:
        Raw 16-bit PCM at TTS_SAMPLE_RATE / TTS_CHANNELS, or None on failure
        or when no audio came back.
    """
    if client is None:
        logger.warning("OpenAI client not available, skipping TTS generation")
        return None

    if not text or not text.strip():
        logger.warning("Empty text provided for TTS")
        return None

    selected_voice = voice or DEFAULT_TTS_VOICE
    logger.audio(f"synthesize_speech() - {len(text)} chars, voice={selected_voice}")

    try:
        logger.api_call("audio.speech.create", model=DEFAULT_TTS_MODEL)
        with Timer() as timer:
            response = client.audio.speech.create(
                model=DEFAULT_TTS_MODEL,
                voice=selected_voice,
                input=text,
                response_format="pcm",
            )
            pcm = b"".join(response.iter_bytes())
        logger.api_response("audio.speech.create", duration_ms=timer.duration_ms)

        if not pcm:
            logger.warning("TTS returned no audio")
            return None
        return pcm

    except Exception as e:
        logger.error(f"TTS generation failed: {e}")
        return None


# ---------------------------------------------------------------------------
# Speech-to-Text (STT)
# ---------------------------------------------------------------------------

def locale_to_language_code(locale: Optional[str]) -> Optional[str]:
    """'kn-IN' -> 'kn' (ISO 639-1, as Whisper expects)."""
    if not locale:
        return None
    code = locale.replace("_", "-").split("-")[0].strip().lower()
    return code or None


def transcribe_audio(audio_path: str, locale: Optional[str] = None) -> Optional[str]:
    """
    Transcribe a recorded answer with Whisper.

    Returns:
        The transcribed text (possibly empty when nothing was said), or None
        on failure.
    """
    if client is None:
        logger.warning("OpenAI client not available, cannot transcribe audio")
        return None

    if not audio_path:
        logger.warning("No audio path provided for transcription")
        return None

    lang_code = locale_to_language_code(locale)
    logger.mic(f"transcribe_audio() - file={audio_path}, lang={lang_code}")

    try:
        with open(audio_path, "rb") as audio_file:
            kwargs = {
                "model": DEFAULT_STT_MODEL,
                "file": audio_file,
                "response_format": "text",
            }
            if lang_code:
                kwargs["language"] = lang_code

            logger.api_call("audio.transcriptions.create", model=DEFAULT_STT_MODEL)
            with Timer() as timer:
                transcription = client.audio.transcriptions.create(**kwargs)
            logger.api_response("audio.transcriptions.create", duration_ms=timer.duration_ms)

        # Response is just the text when response_format="text"
        result = transcription.strip() if isinstance(transcription, str) else str(transcription).strip()
        logger.success(f"Transcription complete: '{result[:50]}' ({timer.duration_ms:.0f}ms)")
        return result

    except Exception as e:
        logger.error(f"Transcription failed: {e}")
        return None
