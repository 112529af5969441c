"""Runtime settings read from the environment."""

import os
from pydantic import BaseModel
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings(BaseModel):
    """Tunables for the entry store, the embedding index and RocksDB."""

    max_entries: int = 300
    duplicate_window: int = 50
    recent_limit: int = 25
    search_limit: int = 100

    # RocksDB tuning
    write_buffer_size: int = 4 * 1024 * 1024
    max_write_buffers: int = 2
    target_file_size: int = 16 * 1024 * 1024

    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CLIPBOARD_HISTORY_* variables."""
        return cls(
            max_entries=int(os.getenv("CLIPBOARD_HISTORY_MAX_ENTRIES", "300")),
            duplicate_window=int(
                os.getenv("CLIPBOARD_HISTORY_DUPLICATE_WINDOW", "50")
            ),
            recent_limit=int(os.getenv("CLIPBOARD_HISTORY_RECENT_LIMIT", "25")),
            search_limit=int(os.getenv("CLIPBOARD_HISTORY_SEARCH_LIMIT", "100")),
            write_buffer_size=int(
                os.getenv("CLIPBOARD_HISTORY_WRITE_BUFFER_SIZE", str(4 * 1024 * 1024))
            ),
            max_write_buffers=int(os.getenv("CLIPBOARD_HISTORY_MAX_WRITE_BUFFERS", "2")),
            target_file_size=int(
                os.getenv("CLIPBOARD_HISTORY_TARGET_FILE_SIZE", str(16 * 1024 * 1024))
            ),
            log_level=os.getenv("CLIPBOARD_HISTORY_LOG_LEVEL", "WARNING").upper(),
        )
