"""Event type constants

Every event the engine publishes on the EventBus.
"""


class EventTypes:
    """Event name constants"""

    # memory
    MEMORY_ADDED = "memory_added"
    MEMORY_REMOVED = "memory_removed"
    MEMORY_CLEARED = "memory_cleared"

    # dialogue
    ENTRY_SHOWN = "entry_shown"
    CHOICE_SELECTED = "choice_selected"
    DIALOGUE_STARTED = "dialogue_started"
    DIALOGUE_ENDED = "dialogue_ended"

    # loop
    LOOP_ADVANCED = "loop_advanced"
    LOOP_REJECTED = "loop_rejected"
    LOOP_RESET = "loop_reset"
    LOOP_DIALOGUE_DUE = "loop_dialogue_due"

    # corpus
    CORPUS_ANALYZED = "corpus_analyzed"
