"""Marker phrases that tie generated text to phase transitions.

Phase completion is signalled by fixed sentences in bot-authored messages.
Every check on those sentences goes through this module.
"""

# Sent by the goal discovery handler once the user confirms the goal
GOAL_COMPLETE_MARKER = "Perfeito! Agora vamos entender seus gastos mensais"

# Emitted by the model when the monthly expenses summary is ready
EXPENSES_COMPLETE_MARKER = "então essa é a estimativa dos seus custos mensais:"

# Closing question of the model's goal statement
GOAL_CONFIRMATION_QUESTION = (
    "Podemos considerar este objetivo e seguir para a próxima etapa?"
)

# Opening of the model's goal statement
GOAL_STATEMENT_MARKER = "Então podemos considerar que seu objetivo é:"


def marks_goal_complete(text: str | None) -> bool:
    """True if a stored bot message closes the goal discovery phase."""
    return bool(text) and GOAL_COMPLETE_MARKER in text


def marks_expenses_complete(text: str | None) -> bool:
    """True if a bot message is the final expenses summary.

    The summary may open a sentence ("Então essa é..."), so the first letter
    is matched case-insensitively. Everything after it must match exactly.
    Used both on fresh model replies and on stored history.
    """
    if not text:
        return False
    head, tail = EXPENSES_COMPLETE_MARKER[0], EXPENSES_COMPLETE_MARKER[1:]
    return (head.lower() + tail) in text or (head.upper() + tail) in text


def asks_goal_confirmation(text: str | None) -> bool:
    """True if a bot message asks the user to confirm the goal."""
    return bool(text) and GOAL_CONFIRMATION_QUESTION in text


def states_goal(text: str | None) -> bool:
    """True if a model reply states the complete goal."""
    return bool(text) and GOAL_STATEMENT_MARKER in text
