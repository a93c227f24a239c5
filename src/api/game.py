"""Game API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.schemas import (
    BestEntryResponse,
    ChoiceInfo,
    ChoicesResponse,
    DiagnosticInfo,
    DiagnosticsResponse,
    EntriesResponse,
    EntryInfo,
    ErrorResponse,
    FlagRequest,
    FlagResponse,
    GameStateResponse,
    ItemGroupInfo,
    ItemsResponse,
    ItemStageInfo,
    ItemVariantResponse,
    LoopAdvanceResponse,
    RelevantFlagsResponse,
    SelectChoiceRequest,
    SelectChoiceResponse,
    SessionResponse,
    SessionSelectRequest,
    StartSessionRequest,
)
from src.core.dialogue import ChoiceRef, DialogueEntry, DialogueView
from src.core.engine import LoopEngine
from src.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/game", tags=["game"])

NOT_FOUND = {404: {"model": ErrorResponse}}


def get_engine(request: Request) -> LoopEngine:
    """Engine instance (dependency injection)"""
    engine: Optional[LoopEngine] = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


def _require_collection(engine: LoopEngine, collection_id: str) -> None:
    if not engine.repository.has_collection(collection_id):
        raise HTTPException(
            status_code=404, detail=f"Collection not found: {collection_id}"
        )


def _build_entry_info(entry: DialogueEntry) -> EntryInfo:
    return EntryInfo(
        id=entry.id,
        collection=entry.collection,
        min_loop=entry.min_loop,
        required_flags=list(entry.required_flags),
        text=entry.text,
        added_flags=list(entry.added_flags),
        choice_count=len(entry.choices),
    )


def _build_choice_info(ref: ChoiceRef, queue_index: Optional[int] = None) -> ChoiceInfo:
    choice = ref.choice
    return ChoiceInfo(
        key=ref.key,
        entry_id=ref.entry.id,
        choice_index=ref.choice_index,
        queue_index=queue_index,
        prompt=choice.prompt_text,
        response=choice.response_text,
        required_flags=list(choice.required_flags),
        added_flags=list(choice.added_flags),
    )


def _build_session_response(view: DialogueView, new_flags: list[str]) -> SessionResponse:
    return SessionResponse(
        phase=view.phase.value,
        speaker=view.speaker,
        text=view.text,
        slots=[_build_choice_info(ref, i) for i, ref in enumerate(view.slots)],
        waiting=view.waiting,
        new_flags=new_flags,
    )


# === State ===


@router.get("/state", response_model=GameStateResponse)
def get_game_state(engine: LoopEngine = Depends(get_engine)) -> GameStateResponse:
    """Loop, held flags and what the current loop still needs."""
    with engine.lock:
        return GameStateResponse(**engine.get_state())


# === Collections ===


@router.get(
    "/collections/{collection_id}/entries",
    response_model=EntriesResponse,
    responses=NOT_FOUND,
)
def get_available_entries(
    collection_id: str, engine: LoopEngine = Depends(get_engine)
) -> EntriesResponse:
    """Entries of a collection unlocked for the current loop and flags."""
    with engine.lock:
        _require_collection(engine, collection_id)
        entries = engine.get_available_entries(collection_id)
        return EntriesResponse(
            collection=collection_id,
            entries=[_build_entry_info(e) for e in entries],
        )


@router.get(
    "/collections/{collection_id}/best",
    response_model=BestEntryResponse,
    responses=NOT_FOUND,
)
def get_best_entry(
    collection_id: str, engine: LoopEngine = Depends(get_engine)
) -> BestEntryResponse:
    """The entry to narrate right now (read only)."""
    with engine.lock:
        _require_collection(engine, collection_id)
        entry = engine.select_best_entry(collection_id)
        return BestEntryResponse(
            collection=collection_id,
            entry=_build_entry_info(entry) if entry else None,
        )


@router.post(
    "/collections/{collection_id}/best/show",
    response_model=BestEntryResponse,
    responses=NOT_FOUND,
)
def show_best_entry(
    collection_id: str, engine: LoopEngine = Depends(get_engine)
) -> BestEntryResponse:
    """Display the best entry and grant its added flags."""
    with engine.lock:
        _require_collection(engine, collection_id)
        entry = engine.select_best_entry(collection_id)
        if entry is None:
            return BestEntryResponse(collection=collection_id)
        new_flags = engine.show_entry(entry)
        return BestEntryResponse(
            collection=collection_id,
            entry=_build_entry_info(entry),
            new_flags=new_flags,
        )


@router.get(
    "/collections/{collection_id}/choices",
    response_model=ChoicesResponse,
    responses=NOT_FOUND,
)
def get_choices(
    collection_id: str, engine: LoopEngine = Depends(get_engine)
) -> ChoicesResponse:
    """Visible choice slots; the rest wait in the queue."""
    with engine.lock:
        _require_collection(engine, collection_id)
        queue = engine.collect_available_choices(collection_id)
        visible = engine.visible_choices(collection_id)
        return ChoicesResponse(
            collection=collection_id,
            visible=[_build_choice_info(ref, i) for i, ref in enumerate(visible)],
            waiting=len(queue) - len(visible),
            total=len(queue),
        )


@router.post(
    "/collections/{collection_id}/choices/select",
    response_model=SelectChoiceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def select_choice(
    collection_id: str,
    request: SelectChoiceRequest,
    engine: LoopEngine = Depends(get_engine),
) -> SelectChoiceResponse:
    """Consume the choice at queue_index and apply its flags."""
    with engine.lock:
        _require_collection(engine, collection_id)
        queue_size = len(engine.collect_available_choices(collection_id))
        if request.queue_index >= queue_size:
            raise HTTPException(
                status_code=404,
                detail=f"No choice at queue index {request.queue_index} "
                f"({queue_size} available)",
            )

        outcome = engine.select_choice(collection_id, request.queue_index)
        if not outcome.accepted:
            raise HTTPException(status_code=409, detail="Choice already chosen")

        assert outcome.ref is not None
        return SelectChoiceResponse(
            accepted=True,
            choice=_build_choice_info(outcome.ref),
            new_flags=list(outcome.new_flags),
            response_text=outcome.response_text,
        )


# === Memory flags ===


@router.post("/flags", response_model=FlagResponse)
def add_flag(request: FlagRequest, engine: LoopEngine = Depends(get_engine)) -> FlagResponse:
    """Grant a flag from outside the corpus (scene triggers, debug)."""
    with engine.lock:
        changed = engine.add_flag(request.flag)
        return FlagResponse(flag=request.flag, held=True, changed=changed)


@router.get("/flags/{flag}", response_model=FlagResponse)
def get_flag(flag: str, engine: LoopEngine = Depends(get_engine)) -> FlagResponse:
    with engine.lock:
        return FlagResponse(flag=flag, held=engine.has_flag(flag))


@router.delete("/flags/{flag}", response_model=FlagResponse)
def remove_flag(flag: str, engine: LoopEngine = Depends(get_engine)) -> FlagResponse:
    with engine.lock:
        changed = engine.remove_flag(flag)
        return FlagResponse(flag=flag, held=False, changed=changed)


# === Loop ===


@router.post("/loop/advance", response_model=LoopAdvanceResponse)
def advance_loop(engine: LoopEngine = Depends(get_engine)) -> LoopAdvanceResponse:
    """Loop boundary: advance if the loop is complete, otherwise repeat it."""
    with engine.lock:
        advanced = engine.request_loop_advance()
        result = engine.last_advance
        assert result is not None
        return LoopAdvanceResponse(
            advanced=advanced,
            from_loop=result.from_loop,
            to_loop=result.to_loop,
            missing=list(result.missing),
            unconditional=result.unconditional,
            loop_dialogue=engine.loop_dialogue() if advanced else None,
        )


@router.post("/reset", response_model=GameStateResponse)
def reset_game(engine: LoopEngine = Depends(get_engine)) -> GameStateResponse:
    """Start a new playthrough."""
    with engine.lock:
        engine.reset()
        logger.info("Playthrough reset via API")
        return GameStateResponse(**engine.get_state())


@router.get("/loops/{loop}/relevant-flags", response_model=RelevantFlagsResponse)
def get_relevant_flags(
    loop: int, engine: LoopEngine = Depends(get_engine)
) -> RelevantFlagsResponse:
    with engine.lock:
        return RelevantFlagsResponse(
            loop=loop, flags=sorted(engine.get_loop_relevant_flags_for(loop))
        )


# === Items ===


@router.get("/items", response_model=ItemsResponse)
def list_items(engine: LoopEngine = Depends(get_engine)) -> ItemsResponse:
    """Every evolving scene object, its stages and the stage shown now."""
    with engine.lock:
        groups = [
            ItemGroupInfo(
                base_id=base,
                current=engine.item_variant(base),
                stages=[
                    ItemStageInfo(
                        hierarchy_key=stage.hierarchy_key,
                        item_id=stage.item_id,
                        min_loop=stage.min_loop,
                        required_flags=list(stage.required_flags),
                        priority=stage.priority,
                    )
                    for stage in stages
                ],
            )
            for base, stages in engine.item_hierarchy().items()
        ]
        return ItemsResponse(groups=groups)


@router.get("/items/{base_id}", response_model=ItemVariantResponse)
def get_item_variant(
    base_id: str, engine: LoopEngine = Depends(get_engine)
) -> ItemVariantResponse:
    """Which variant of an evolving scene object to show."""
    with engine.lock:
        return ItemVariantResponse(base_id=base_id, item_id=engine.item_variant(base_id))


# === Conversation ===


@router.post("/session/start", response_model=SessionResponse, responses=NOT_FOUND)
def start_session(
    request: StartSessionRequest, engine: LoopEngine = Depends(get_engine)
) -> SessionResponse:
    with engine.lock:
        view = engine.start_session(request.target)
        if view is None or engine.session is None:
            raise HTTPException(
                status_code=404, detail=f"Nothing to talk to: {request.target}"
            )
        return _build_session_response(view, list(engine.session.last_new_flags))


@router.post(
    "/session/select",
    response_model=SessionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def session_select(
    request: SessionSelectRequest, engine: LoopEngine = Depends(get_engine)
) -> SessionResponse:
    with engine.lock:
        if engine.session is None:
            raise HTTPException(status_code=404, detail="No open conversation")
        outcome = engine.session_select(request.slot_index)
        if not outcome.accepted:
            raise HTTPException(status_code=409, detail="Slot is not selectable")
        return _build_session_response(engine.session.view(), list(outcome.new_flags))


@router.post("/session/next", response_model=SessionResponse, responses=NOT_FOUND)
def session_next(engine: LoopEngine = Depends(get_engine)) -> SessionResponse:
    """Click through narration or an answer."""
    with engine.lock:
        if engine.session is None:
            raise HTTPException(status_code=404, detail="No open conversation")
        view = engine.session_acknowledge()
        assert view is not None
        return _build_session_response(view, [])


@router.post("/session/end", response_model=GameStateResponse)
def session_end(engine: LoopEngine = Depends(get_engine)) -> GameStateResponse:
    with engine.lock:
        engine.end_session()
        return GameStateResponse(**engine.get_state())


# === Diagnostics ===


@router.get("/diagnostics", response_model=DiagnosticsResponse)
def get_diagnostics(engine: LoopEngine = Depends(get_engine)) -> DiagnosticsResponse:
    """Authoring problems found while loading and playing, plus the flag analysis."""
    with engine.lock:
        items = [DiagnosticInfo(**d.to_dict()) for d in engine.log]
        return DiagnosticsResponse(
            count=len(items),
            diagnostics=items,
            classification=engine.classification.to_dict(),
        )
