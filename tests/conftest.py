"""Shared test fixtures."""

from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from src.api.game import get_engine
from src.config import Settings
from src.core.engine import LoopEngine
from src.main import app
from src.services.corpus_loader import load_corpus_dir

SAMPLE_DIR = Path(__file__).resolve().parents[1] / "src" / "data" / "dialogues"

HEADER = "id,minLoop,requiredFlags,text,addedFlags,c1Req,c1Text,c1Answer,c1Add\n"


def make_settings(**overrides) -> Settings:
    """Settings that ignore the environment defaults under test."""
    values = {
        "DIALOGUE_DIR": str(SAMPLE_DIR),
        "DIALOGUE_FILES": [],
        "NOTEBOOK_COLLECTION": None,
        "UNCONDITIONAL_LOOPS": [1, 2],
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings_factory() -> Callable[..., Settings]:
    """Build Settings with keyword overrides."""
    return make_settings


@pytest.fixture()
def sample_engine() -> LoopEngine:
    """Engine loaded with the bundled sample corpus."""
    engine = LoopEngine(make_settings())
    load_corpus_dir(SAMPLE_DIR, engine)
    return engine


@pytest.fixture()
def write_corpus(tmp_path: Path) -> Callable[..., Path]:
    """Write {name: rows} as CSV files (header added) and return the directory."""

    def _write(collections: dict[str, str], registry: str | None = None) -> Path:
        for name, rows in collections.items():
            (tmp_path / f"{name}.csv").write_text(HEADER + rows, encoding="utf-8")
        if registry is not None:
            (tmp_path / "registry.json").write_text(registry, encoding="utf-8")
        return tmp_path

    return _write


@pytest.fixture()
def client(sample_engine: LoopEngine) -> TestClient:
    """FastAPI TestClient wired to a fresh sample engine."""
    app.state.engine = sample_engine
    app.dependency_overrides[get_engine] = lambda: sample_engine
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.engine = None
