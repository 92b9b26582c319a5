"""Tests for conversation phase detection."""

from zenmind.conversation.detector import FALLBACK_PHASE, ConversationStateDetector
from zenmind.conversation.handlers import GOAL_TRANSITION_MESSAGE, WELCOME_MESSAGE
from zenmind.conversation.markers import EXPENSES_COMPLETE_MARKER
from zenmind.conversation.phases import Phase

from .helpers import USER_ID, FakeHistoryStore

EXPENSES_SUMMARY = f"Ok, {EXPENSES_COMPLETE_MARKER}\n• Moradia: R$ 1.500\nTotal mensal: R$ 1.500"


class TestInferPhaseFromHistory:
    """Decision table over outbound history."""

    def test_no_outbound_is_welcome(self):
        detector = ConversationStateDetector(FakeHistoryStore())
        assert detector.detect_phase(USER_ID) is Phase.WELCOME

    def test_outbound_without_markers_is_goal_discovery(self):
        store = FakeHistoryStore(outbound=[WELCOME_MESSAGE, "Qual o valor?"])
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.GOAL_DISCOVERY

    def test_goal_marker_is_monthly_expenses(self):
        store = FakeHistoryStore(outbound=[WELCOME_MESSAGE, GOAL_TRANSITION_MESSAGE])
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.MONTHLY_EXPENSES

    def test_both_markers_is_complete(self):
        store = FakeHistoryStore(
            outbound=[WELCOME_MESSAGE, GOAL_TRANSITION_MESSAGE, EXPENSES_SUMMARY]
        )
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.COMPLETE

    def test_capitalized_summary_is_complete(self):
        summary = "Então essa é a estimativa dos seus custos mensais:\n• Moradia: R$ 1.500"
        store = FakeHistoryStore(outbound=[WELCOME_MESSAGE, GOAL_TRANSITION_MESSAGE, summary])
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.COMPLETE

    def test_expenses_marker_alone_is_still_goal_discovery(self):
        store = FakeHistoryStore(outbound=[WELCOME_MESSAGE, EXPENSES_SUMMARY])
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.GOAL_DISCOVERY


class TestStoredPhase:
    def test_stored_phase_wins_over_history(self):
        store = FakeHistoryStore(outbound=[WELCOME_MESSAGE], phase=Phase.COMPLETE)
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.COMPLETE

    def test_inferred_phase_is_backfilled(self):
        store = FakeHistoryStore(outbound=[WELCOME_MESSAGE, GOAL_TRANSITION_MESSAGE])
        ConversationStateDetector(store).detect_phase(USER_ID)
        assert store.saved_phases == [Phase.MONTHLY_EXPENSES]

    def test_welcome_is_not_stored(self):
        store = FakeHistoryStore()
        ConversationStateDetector(store).detect_phase(USER_ID)
        assert store.saved_phases == []


class TestDetectionFailure:
    def test_read_failure_falls_back_to_goal_discovery(self):
        store = FakeHistoryStore()
        store.fail_reads = True
        assert ConversationStateDetector(store).detect_phase(USER_ID) is FALLBACK_PHASE
        assert FALLBACK_PHASE is Phase.GOAL_DISCOVERY

    def test_backfill_failure_keeps_goal_discovery(self):
        store = FakeHistoryStore(outbound=[WELCOME_MESSAGE])
        store.fail_save = True
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.GOAL_DISCOVERY

    def test_backfill_failure_keeps_inferred_phase(self):
        store = FakeHistoryStore(outbound=[WELCOME_MESSAGE, GOAL_TRANSITION_MESSAGE])
        store.fail_save = True
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.MONTHLY_EXPENSES
        assert store.saved_phases == []

    def test_backfill_failure_keeps_complete(self):
        store = FakeHistoryStore(
            outbound=[WELCOME_MESSAGE, GOAL_TRANSITION_MESSAGE, EXPENSES_SUMMARY]
        )
        store.fail_save = True
        assert ConversationStateDetector(store).detect_phase(USER_ID) is Phase.COMPLETE

    def test_last_outbound_message_none_on_failure(self):
        store = FakeHistoryStore(outbound=["x"])
        store.fail_reads = True
        assert ConversationStateDetector(store).get_last_outbound_message(USER_ID) is None

    def test_last_outbound_message(self):
        store = FakeHistoryStore(outbound=["a", "b"])
        assert ConversationStateDetector(store).get_last_outbound_message(USER_ID) == "b"
