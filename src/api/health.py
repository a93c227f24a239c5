"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health_check(request: Request) -> dict[str, object]:
    """Return application and corpus health status."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return {"status": "error", "corpus": "not loaded", "entries": 0}
    entries = engine.repository.entry_count()
    return {
        "status": "ok" if entries else "error",
        "corpus": "loaded" if entries else "empty",
        "entries": entries,
    }
