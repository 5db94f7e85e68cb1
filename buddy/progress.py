"""
Learner progress ledger and badge evaluation.

The ledger is immutable: every transition returns a new ProgressLedger, so
the application root can swap its reference in one step and tests can
compare before/after snapshots directly.
"""

from dataclasses import dataclass, replace
from typing import Dict, Any, Iterable, List, Tuple

from .models import Badge, BadgeType, Word, INITIAL_BADGES

LESSON_REWARD_POINTS = 50
NEXT_MILESTONE_POINTS = 500


@dataclass(frozen=True)
class ProgressLedger:
    """Points, counters and badge states for the current session."""
    points: int = 0
    streak: int = 1
    lessons_completed: int = 0
    words_learned: int = 0
    messages_sent: int = 0
    badges: Tuple[Badge, ...] = INITIAL_BADGES

    def metric(self, badge_type: BadgeType) -> int:
        """Counter a badge of the given type is measured against."""
        if badge_type is BadgeType.WORDS:
            return self.words_learned
        if badge_type is BadgeType.LESSONS:
            return self.lessons_completed
        return self.messages_sent

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def apply_words_learned(self, new_words: Iterable[Word]) -> "ProgressLedger":
        """
        Count words just accepted into the word bank.

        The caller passes only the words the bank accepted; repeated Kannada
        keys within the batch still count once.
        """
        count = len({w.kannada for w in new_words})
        if count == 0:
            return self
        return self._reevaluate(replace(self, words_learned=self.words_learned + count))

    def apply_lesson_complete(self) -> "ProgressLedger":
        return self._reevaluate(replace(
            self,
            lessons_completed=self.lessons_completed + 1,
            points=self.points + LESSON_REWARD_POINTS,
        ))

    def apply_message_sent(self) -> "ProgressLedger":
        return self._reevaluate(replace(self, messages_sent=self.messages_sent + 1))

    def _reevaluate(self, ledger: "ProgressLedger") -> "ProgressLedger":
        badges = evaluate_badges(ledger)
        if badges == ledger.badges:
            return ledger
        return replace(ledger, badges=badges)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def unlocked_badges(self) -> List[Badge]:
        return [b for b in self.badges if b.unlocked]

    def milestone_percent(self, next_level_points: int = NEXT_MILESTONE_POINTS) -> int:
        """Dashboard progress toward the next points milestone, 0-100."""
        if next_level_points <= 0:
            return 100
        return min(int(self.points * 100 / next_level_points), 100)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": self.points,
            "streak": self.streak,
            "lessons_completed": self.lessons_completed,
            "words_learned": self.words_learned,
            "messages_sent": self.messages_sent,
            "badges": [b.to_dict() for b in self.badges],
        }


def evaluate_badges(ledger: ProgressLedger) -> Tuple[Badge, ...]:
    """
    Unlock every locked badge whose metric has reached its threshold.

    Unlocked badges are returned untouched, so repeated evaluation of the
    same ledger yields an equal tuple.
    """
    updated = []
    for badge in ledger.badges:
        if not badge.unlocked and ledger.metric(badge.type) >= badge.threshold:
            badge = badge.unlock()
        updated.append(badge)
    return tuple(updated)


def newly_unlocked(before: ProgressLedger, after: ProgressLedger) -> List[Badge]:
    """Badges locked in `before` and unlocked in `after`."""
    previously = {b.id for b in before.badges if b.unlocked}
    return [b for b in after.badges if b.unlocked and b.id not in previously]
