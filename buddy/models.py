from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import List, Optional, Dict, Any, Tuple


DEFAULT_CATEGORY = "General"


class UserLevel(str, Enum):
    """Learner level chosen during onboarding."""
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

    @classmethod
    def from_string(cls, s: str) -> "UserLevel":
        for level in cls:
            if level.value.lower() == (s or "").strip().lower():
                return level
        return cls.BEGINNER


class AppMode(str, Enum):
    ONBOARDING = "onboarding"
    DASHBOARD = "dashboard"
    CONVERSATION = "conversation"
    LESSON = "lesson"


class Role(str, Enum):
    USER = "user"
    MODEL = "model"


class BadgeType(str, Enum):
    WORDS = "words"
    LESSONS = "lessons"
    STREAK = "streak"


@dataclass(frozen=True)
class Word:
    """A vocabulary item. Two words are the same entry when their Kannada text matches."""
    kannada: str                        # Kannada script
    transliteration: str                # Latin-script reading ("Kanglish")
    english: str                        # English meaning
    category: Optional[str] = None      # e.g. Greetings, Food, Verbs

    @property
    def display_category(self) -> str:
        return self.category or DEFAULT_CATEGORY

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Word"]:
        """Build a Word from LLM JSON. Returns None when the Kannada text is missing."""
        if not isinstance(data, dict):
            return None
        kannada = str(data.get("kannada") or "").strip()
        if not kannada:
            return None
        category = str(data.get("category") or "").strip() or None
        return cls(
            kannada=kannada,
            transliteration=str(data.get("transliteration") or "").strip(),
            english=str(data.get("english") or "").strip(),
            category=category,
        )


def words_from_json(items: Any) -> List[Word]:
    """Parse a JSON list of word objects, skipping malformed entries."""
    if not isinstance(items, list):
        return []
    words = []
    for item in items:
        word = Word.from_dict(item)
        if word is not None:
            words.append(word)
    return words


@dataclass(frozen=True)
class Badge:
    """
    An achievement unlocked when a progress metric reaches its threshold.
    Badges only ever move from locked to unlocked.
    """
    id: str
    name: str
    icon: str
    description: str
    threshold: int
    type: BadgeType
    unlocked: bool = False

    def unlock(self) -> "Badge":
        return self if self.unlocked else replace(self, unlocked=True)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


INITIAL_BADGES: Tuple[Badge, ...] = (
    Badge("1", "Rookie", "🌱", "Learned first 10 words", threshold=10, type=BadgeType.WORDS),
    # The streak metric counts conversation messages sent
    Badge("2", "Chatter", "🗣️", "Sent 10 messages", threshold=10, type=BadgeType.STREAK),
    Badge("3", "Scholar", "🎓", "Completed 5 lessons", threshold=5, type=BadgeType.LESSONS),
)


@dataclass(frozen=True)
class Message:
    """One turn of a conversation transcript."""
    id: str
    role: Role
    text: str
    vocabulary: Tuple[Word, ...] = ()
    translation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "vocabulary": [w.to_dict() for w in self.vocabulary],
            "translation": self.translation,
        }


@dataclass(frozen=True)
class ChatReply:
    """Structured reply from the tutor chat service."""
    reply: str
    translation: str = ""
    next_question: str = ""
    vocabulary: Tuple[Word, ...] = ()
    fallback: bool = False              # canned reply used when the service failed

    @property
    def spoken_text(self) -> str:
        """Reply followed by the follow-up question, as read aloud."""
        return f"{self.reply} {self.next_question or ''}".strip()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatReply":
        return cls(
            reply=str(data.get("reply") or "").strip(),
            translation=str(data.get("translation") or "").strip(),
            next_question=str(data.get("nextQuestion") or data.get("next_question") or "").strip(),
            vocabulary=tuple(words_from_json(data.get("vocabulary"))),
        )


@dataclass(frozen=True)
class QuizQuestion:
    """Spoken-answer quiz question closing a lesson."""
    question: str
    correct_answer: str
    options: Tuple[str, ...] = ()
    explanation: str = ""


@dataclass(frozen=True)
class LessonContent:
    """A generated lesson. Fetched once per lesson session."""
    title: str
    concept: str
    explanation: str
    quiz_question: QuizQuestion
    examples: Tuple[Word, ...] = ()

    @property
    def intro_text(self) -> str:
        return f"Let's learn about {self.title}. {self.concept}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LessonContent":
        """
        Build lesson content from LLM JSON.

        Raises ValueError when the lesson has no title or no quiz answer,
        since neither can be recovered client-side.
        """
        quiz = data.get("quizQuestion") or data.get("quiz_question") or {}
        if not isinstance(quiz, dict):
            quiz = {}
        title = str(data.get("title") or "").strip()
        correct_answer = str(quiz.get("correctAnswer") or quiz.get("correct_answer") or "").strip()
        if not title:
            raise ValueError("lesson has no title")
        if not correct_answer:
            raise ValueError("lesson quiz has no correct answer")

        options = quiz.get("options") or []
        return cls(
            title=title,
            concept=str(data.get("concept") or "").strip(),
            explanation=str(data.get("explanation") or "").strip(),
            examples=tuple(words_from_json(data.get("examples"))),
            quiz_question=QuizQuestion(
                question=str(quiz.get("question") or "").strip(),
                correct_answer=correct_answer,
                options=tuple(str(o).strip() for o in options if str(o).strip()) if isinstance(options, list) else (),
                explanation=str(quiz.get("explanation") or "").strip(),
            ),
        )
