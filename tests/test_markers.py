"""Tests for phase marker checks."""

from zenmind.conversation.handlers import GOAL_TRANSITION_MESSAGE
from zenmind.conversation.markers import (
    EXPENSES_COMPLETE_MARKER,
    GOAL_COMPLETE_MARKER,
    asks_goal_confirmation,
    marks_expenses_complete,
    marks_goal_complete,
    states_goal,
)


class TestMarkers:
    def test_transition_message_carries_goal_marker(self):
        assert marks_goal_complete(GOAL_TRANSITION_MESSAGE)

    def test_goal_marker_absent(self):
        assert not marks_goal_complete("Qual é o seu objetivo?")
        assert not marks_goal_complete(None)

    def test_expenses_marker_either_case_first_letter(self):
        assert marks_expenses_complete(f"Ok, {EXPENSES_COMPLETE_MARKER}\n• Moradia: R$ 1.500")
        assert marks_expenses_complete(
            "Então essa é a estimativa dos seus custos mensais:\n• Moradia: R$ 1.500"
        )
        assert not marks_expenses_complete("ENTÃO ESSA É A ESTIMATIVA DOS SEUS CUSTOS MENSAIS:")
        assert not marks_expenses_complete("Quanto você gasta com mercado?")
        assert not marks_expenses_complete(None)

    def test_confirmation_question(self):
        text = (
            "Então podemos considerar que seu objetivo é: juntar R$ 10.000 até "
            "dezembro. Podemos considerar este objetivo e seguir para a próxima etapa?"
        )
        assert asks_goal_confirmation(text)
        assert states_goal(text)
        assert not asks_goal_confirmation(GOAL_COMPLETE_MARKER)
