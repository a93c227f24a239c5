"""API request/response schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field


# === Request Schemas ===


class SelectChoiceRequest(BaseModel):
    """Pick a choice by its position in the current waiting queue"""

    queue_index: int = Field(..., ge=0, description="0-based index into the queue")


class FlagRequest(BaseModel):
    """Grant a memory flag"""

    flag: str = Field(..., min_length=1, max_length=100, description="flag id")


class StartSessionRequest(BaseModel):
    """Open a conversation"""

    target: str = Field(..., min_length=1, description="NPC id or collection id")


class SessionSelectRequest(BaseModel):
    """Pick one of the visible slots of the open conversation"""

    slot_index: int = Field(..., ge=0)


# === Response Schemas ===


class ChoiceInfo(BaseModel):
    """One offerable choice"""

    key: str
    entry_id: str
    choice_index: int
    queue_index: Optional[int] = None
    prompt: str
    response: str = ""
    required_flags: list[str] = []
    added_flags: list[str] = []


class EntryInfo(BaseModel):
    """One dialogue entry"""

    id: str
    collection: str
    min_loop: int
    required_flags: list[str] = []
    text: str = ""
    added_flags: list[str] = []
    choice_count: int = 0


class EntriesResponse(BaseModel):
    collection: str
    entries: list[EntryInfo] = []


class BestEntryResponse(BaseModel):
    collection: str
    entry: Optional[EntryInfo] = None
    new_flags: list[str] = []


class ChoicesResponse(BaseModel):
    """Visible slots plus how many choices wait behind them"""

    collection: str
    visible: list[ChoiceInfo] = []
    waiting: int = 0
    total: int = 0


class SelectChoiceResponse(BaseModel):
    accepted: bool
    choice: Optional[ChoiceInfo] = None
    new_flags: list[str] = []
    response_text: str = ""


class FlagResponse(BaseModel):
    flag: str
    held: bool
    changed: bool = False


class LoopAdvanceResponse(BaseModel):
    advanced: bool
    from_loop: int
    to_loop: int
    missing: list[str] = []
    unconditional: bool = False
    loop_dialogue: Optional[str] = None


class RelevantFlagsResponse(BaseModel):
    loop: int
    flags: list[str] = []


class GameStateResponse(BaseModel):
    """Current playthrough state"""

    player_name: str
    loop: int
    flags: list[str] = []
    found_this_loop: list[str] = []
    missing_for_loop: list[str] = []
    loop_dialogue: Optional[str] = None
    session: Optional[dict[str, Any]] = None


class SessionResponse(BaseModel):
    """What the conversation shows right now"""

    phase: str
    speaker: str
    text: str = ""
    slots: list[ChoiceInfo] = []
    waiting: int = 0
    new_flags: list[str] = []


class ItemVariantResponse(BaseModel):
    base_id: str
    item_id: Optional[str] = None


class ItemStageInfo(BaseModel):
    hierarchy_key: str
    item_id: str
    min_loop: int
    required_flags: list[str] = []
    priority: int


class ItemGroupInfo(BaseModel):
    base_id: str
    current: Optional[str] = None
    stages: list[ItemStageInfo] = []


class ItemsResponse(BaseModel):
    groups: list[ItemGroupInfo] = []


class DiagnosticInfo(BaseModel):
    kind: str
    message: str
    collection: Optional[str] = None
    row: Optional[int] = None
    subject: Optional[str] = None


class DiagnosticsResponse(BaseModel):
    count: int
    diagnostics: list[DiagnosticInfo] = []
    classification: dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """Error response"""

    success: bool = False
    error: str
    detail: Optional[str] = None
