"""Application configuration loaded from environment variables and .env file."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    List and dict values are read as JSON (e.g. ``UNCONDITIONAL_LOOPS=[1,2]``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    LOG_LEVEL: str = "INFO"

    # Corpus
    DIALOGUE_DIR: str = "src/data/dialogues"
    # Explicit load order. Empty = sorted file names. The last one is the notebook.
    DIALOGUE_FILES: list[str] = []
    CSV_DELIMITER: str = ","
    NOTEBOOK_COLLECTION: Optional[str] = None

    # Dependency analysis
    EPHEMERAL_FLAG_PREFIX: str = "newdraw"

    # Presentation
    CHOICE_SLOT_LIMIT: int = 3
    PLAYER_NAME: str = "Traveller"

    # Loop progression
    UNCONDITIONAL_LOOPS: list[int] = [1, 2]
    # loop number -> scripted dialogue id; "9+" style keys mean "this loop and later"
    LOOP_DIALOGUES: dict[str, str] = {
        "2": "loop_intro",
        "3": "loop_two",
        "9+": "loop_last",
    }


settings = Settings()
