"""
Kannada Buddy - terminal host

Flow:
1. Onboarding: pick a level.
2. Dashboard: points, badges, word bank; choose conversation or lesson.
3. Conversation: press Enter to start talking, Enter again to send.
4. Lesson: listen to the concept, then answer the quiz question out loud.

Setup (from repo root):

    python -m venv .venv
    source .venv/bin/activate   # or .venv\\Scripts\\activate on Windows
    pip install -e .

Ensure .env contains:
    OPENAI_API_KEY=sk-...

Then run:
    python main.py
"""

import queue
import threading
from typing import Callable, List, Optional

from buddy import api
from buddy.app import TutorApp
from buddy.logger import logger
from buddy.models import AppMode, UserLevel
from buddy.session import ConversationSession, LessonSession, LessonStatus, QuizState
from buddy.tasks import TaskRunner

HELP = {
    AppMode.ONBOARDING: "Select your level: [1] Beginner  [2] Intermediate  [3] Advanced  [q] quit",
    AppMode.DASHBOARD: "[c] conversation  [l] lesson  [w] word bank  [v] change level  [q] quit",
    AppMode.CONVERSATION: "[Enter] hold/release mic  [t <text>] type instead  [w] word bank  [b] back",
    AppMode.LESSON: (
        "[Enter] hold/release mic  [t <text>] type answer  [p N] play example  "
        "[r] retry  [w] word bank  [b] back"
    ),
}


class TerminalHost:
    """
    Single-threaded host: keyboard lines and background completions are
    both queued as callables and run here one at a time.
    """

    def __init__(self, app: Optional[TutorApp] = None) -> None:
        self.events: "queue.Queue[Optional[Callable[[], None]]]" = queue.Queue()
        self.runner = TaskRunner(post=self.events.put)
        self.app = app or TutorApp(runner=self.runner, on_notice=self._show_notice)
        self._last_view: Optional[str] = None
        self._running = True

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self) -> None:
        threading.Thread(target=self._read_input, name="keyboard", daemon=True).start()
        self.render()
        while self._running:
            event = self.events.get()
            if event is None:
                break
            try:
                event()
            except Exception as e:
                logger.error(f"Unhandled error: {e}", exc_info=True)
            self.render()
        self.app.shutdown()

    def _read_input(self) -> None:
        while True:
            try:
                line = input()
            except EOFError:
                self.events.put(None)
                return
            self.events.put(lambda line=line: self.handle_line(line))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def handle_line(self, line: str) -> None:
        command = line.strip()
        mode = self.app.mode

        if command == "q":
            self._running = False
            return
        if command == "w":
            self.app.toggle_word_bank()
            self._last_view = None
            return
        if command.startswith("s "):
            self._speak_banked_word(command[2:])
            return

        if mode is AppMode.ONBOARDING:
            levels = {"1": UserLevel.BEGINNER, "2": UserLevel.INTERMEDIATE, "3": UserLevel.ADVANCED}
            if command in levels:
                self.app.select_level(levels[command])
        elif mode is AppMode.DASHBOARD:
            if command == "c":
                self.app.open_conversation()
            elif command == "l":
                self.app.open_lesson()
            elif command == "v":
                self.app.change_level()
        else:
            self._handle_session_command(command)

    def _handle_session_command(self, command: str) -> None:
        session = self.app.session
        if command == "b":
            self.app.go_to_dashboard()
        elif command == "":
            if self.app.voice.is_listening:
                self.app.release_to_talk()
            elif not self.app.press_to_talk():
                print("(mic unavailable right now)")
        elif command.startswith("t "):
            self.app.handle_transcript(command[2:])
        elif command == "r" and isinstance(session, LessonSession):
            if not session.retry():
                session.reload()
        elif command.startswith("p ") and isinstance(session, LessonSession) and session.lesson:
            try:
                example = session.lesson.examples[int(command[2:]) - 1]
            except (ValueError, IndexError):
                print("(no such example)")
                return
            session.play_example(example)

    def _speak_banked_word(self, number: str) -> None:
        words = self.app.state.word_bank.words
        try:
            index = int(number) - 1
        except ValueError:
            index = -1
        if not 0 <= index < len(words):
            print("(no such word)")
            return
        self.app.speak_word(words[index])

    def _show_notice(self, message: str) -> None:
        print(f"\n⚠  {message}\n")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> None:
        view = "\n".join(self._view_lines())
        if view == self._last_view:
            return
        self._last_view = view
        print(view, flush=True)

    def _view_lines(self) -> List[str]:
        app = self.app
        ledger = app.state.ledger
        lines = ["", f"━━ {app.mode.value.capitalize()} ━━  (+{ledger.points} XP)"]

        if app.mode is AppMode.ONBOARDING:
            lines.append("Kannada Buddy - master Kannada through adaptive lessons and conversation.")
        elif app.mode is AppMode.DASHBOARD:
            lines += [
                f"Level: {app.state.level.value}",
                f"Streak: {ledger.streak}   Lessons: {ledger.lessons_completed}   Words: {ledger.words_learned}",
                f"Next milestone: {ledger.milestone_percent()}%",
                "Badges: " + "  ".join(
                    f"{b.icon} {b.name}" if b.unlocked else f"· {b.name}" for b in ledger.badges
                ),
            ]
        elif isinstance(app.session, ConversationSession):
            for message in app.session.messages[-6:]:
                speaker = "You" if message.role.value == "user" else "Sneha"
                lines.append(f"{speaker}: {message.text}")
                if message.translation:
                    lines.append(f"      \"{message.translation}\"")
            if app.session.processing:
                lines.append("Sneha is thinking...")
        elif isinstance(app.session, LessonSession):
            lines += self._lesson_lines(app.session)

        if app.voice.is_listening:
            lines.append("🎤 Listening... press Enter to send")
        if app.navigation.word_bank_open:
            lines += self._word_bank_lines()
        lines.append(HELP[app.mode])
        return lines

    def _lesson_lines(self, session: LessonSession) -> List[str]:
        if session.status is LessonStatus.LOADING:
            return ["Generating your lesson..."]
        if session.status is LessonStatus.ERROR:
            return [f"Error loading lesson: {session.error}", "Press [r] to try again."]

        lesson = session.lesson
        lines = [lesson.title, lesson.explanation, ""]
        for i, word in enumerate(lesson.examples, start=1):
            lines.append(f"  {i}. {word.kannada} ({word.transliteration}) - {word.english}")
        lines += ["", f"Voice challenge: {lesson.quiz_question.question}"]

        if session.quiz_state is QuizState.VERIFYING:
            lines.append("Checking your answer...")
        elif session.quiz_state is QuizState.FAILURE:
            lines.append(f"Try again! You said \"{session.user_answer}\".")
            lines.append(f"Correct answer: {lesson.quiz_question.correct_answer}")
        return lines

    def _word_bank_lines(self) -> List[str]:
        bank = self.app.state.word_bank
        lines = ["", f"── Word Bank ({len(bank)} words) ──"]
        numbers = {w.kannada: i for i, w in enumerate(bank.words, start=1)}
        for category, words in bank.by_category().items():
            lines.append(f"{category}:")
            lines += [
                f"  {numbers[w.kannada]:>2}. {w.kannada}  {w.transliteration}  {w.english}" for w in words
            ]
        lines.append("[s N] hear word N")
        return lines


if __name__ == "__main__":
    logger.banner("Kannada Buddy - Starting")
    if not api.is_api_available():
        print("OPENAI_API_KEY is not set: the tutor will only give canned replies and lessons are unavailable.")
    TerminalHost().run()
    logger.separator("Kannada Buddy Closed")
