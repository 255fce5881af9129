import json
import logging
import os
from typing import Optional

from pydantic import ValidationError

from copernica_client.config import settings
from copernica_client.errors import InvalidCursorState
from copernica_client.schemas import PageCursor

logger = logging.getLogger(__name__)


class CursorStore:
    """Persists an exported PageCursor as JSON so another process can resume."""

    def __init__(self, state_file: Optional[str] = None):
        self.state_file = state_file or settings.CURSOR_STATE_FILE

    def save(self, cursor: PageCursor):
        tmp_file = f"{self.state_file}.tmp"
        try:
            # Atomic write
            with open(tmp_file, "w") as f:
                json.dump(cursor.model_dump(mode="json"), f, indent=2)
            os.replace(tmp_file, self.state_file)
        except OSError as e:
            logger.error(f"Failed to save cursor state to {self.state_file}: {e}")
            raise
        logger.info(f"Saved cursor for {cursor.resource} at {cursor.next_start} to {self.state_file}")

    def load(self) -> Optional[PageCursor]:
        if not os.path.exists(self.state_file):
            return None
        try:
            with open(self.state_file, "r") as f:
                data = json.load(f)
        except OSError as e:
            logger.error(f"Failed to load cursor state from {self.state_file}: {e}")
            raise
        except ValueError as e:
            logger.error(f"Cursor state in {self.state_file} is not valid JSON: {e}")
            raise InvalidCursorState(f"Cursor state in {self.state_file} is not valid JSON.") from e

        try:
            cursor = PageCursor.model_validate(data)
        except ValidationError as e:
            raise InvalidCursorState(details={"state_file": self.state_file}) from e
        logger.info(f"Loaded cursor for {cursor.resource} at {cursor.next_start} from {self.state_file}")
        return cursor

    def clear(self):
        if os.path.exists(self.state_file):
            os.remove(self.state_file)
            logger.info(f"Removed cursor state {self.state_file}")
