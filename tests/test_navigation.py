import pytest

from buddy.models import AppMode
from buddy.navigation import InvalidTransition, ModeController


def test_starts_in_onboarding():
    assert ModeController().mode is AppMode.ONBOARDING


def test_allowed_path_notifies_listeners():
    nav = ModeController()
    seen = []
    nav.add_listener(lambda previous, current: seen.append((previous, current)))

    assert nav.go(AppMode.DASHBOARD)
    assert nav.go(AppMode.LESSON)
    assert nav.go(AppMode.DASHBOARD)

    assert seen == [
        (AppMode.ONBOARDING, AppMode.DASHBOARD),
        (AppMode.DASHBOARD, AppMode.LESSON),
        (AppMode.LESSON, AppMode.DASHBOARD),
    ]


def test_going_to_current_mode_is_a_no_op():
    nav = ModeController(AppMode.DASHBOARD)
    seen = []
    nav.add_listener(lambda previous, current: seen.append(current))
    assert not nav.go(AppMode.DASHBOARD)
    assert seen == []


@pytest.mark.parametrize("start, target", [
    (AppMode.ONBOARDING, AppMode.CONVERSATION),
    (AppMode.CONVERSATION, AppMode.LESSON),
    (AppMode.LESSON, AppMode.ONBOARDING),
])
def test_disallowed_moves_raise(start, target):
    nav = ModeController(start)
    assert not nav.can_go(target)
    with pytest.raises(InvalidTransition):
        nav.go(target)
    assert nav.mode is start


def test_entering_a_session_closes_the_word_bank():
    nav = ModeController(AppMode.DASHBOARD)
    assert nav.toggle_word_bank()
    nav.go(AppMode.CONVERSATION)
    assert not nav.word_bank_open

    assert nav.toggle_word_bank()
    nav.go(AppMode.DASHBOARD)
    assert nav.word_bank_open
