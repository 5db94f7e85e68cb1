from typing import Callable, Dict, FrozenSet, List

from .logger import logger
from .models import AppMode

ModeListener = Callable[[AppMode, AppMode], None]

TRANSITIONS: Dict[AppMode, FrozenSet[AppMode]] = {
    AppMode.ONBOARDING: frozenset({AppMode.DASHBOARD}),
    AppMode.DASHBOARD: frozenset({AppMode.CONVERSATION, AppMode.LESSON, AppMode.ONBOARDING}),
    AppMode.CONVERSATION: frozenset({AppMode.DASHBOARD}),
    AppMode.LESSON: frozenset({AppMode.DASHBOARD}),
}

SESSION_MODES = frozenset({AppMode.CONVERSATION, AppMode.LESSON})


class InvalidTransition(ValueError):
    def __init__(self, current: AppMode, target: AppMode) -> None:
        super().__init__(f"cannot go from {current.value} to {target.value}")
        self.current = current
        self.target = target


class ModeController:
    """
    Top-level navigation between onboarding, dashboard, conversation and
    lesson. Listeners run after each change with (previous, current).
    """

    def __init__(self, initial: AppMode = AppMode.ONBOARDING) -> None:
        self.mode = initial
        self.word_bank_open = False
        self._listeners: List[ModeListener] = []

    def add_listener(self, listener: ModeListener) -> None:
        self._listeners.append(listener)

    def can_go(self, target: AppMode) -> bool:
        return target == self.mode or target in TRANSITIONS[self.mode]

    def go(self, target: AppMode) -> bool:
        """
        Switch to `target`. Returns False when already there.

        Raises:
            InvalidTransition: the move is not allowed from the current mode.
        """
        if target == self.mode:
            return False
        if target not in TRANSITIONS[self.mode]:
            raise InvalidTransition(self.mode, target)

        previous, self.mode = self.mode, target
        if target in SESSION_MODES:
            self.word_bank_open = False
        logger.ui_transition(previous.value, target.value)

        for listener in list(self._listeners):
            listener(previous, target)
        return True

    def toggle_word_bank(self) -> bool:
        self.word_bank_open = not self.word_bank_open
        return self.word_bank_open
