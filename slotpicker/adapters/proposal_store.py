"""
JSON file persistence for submitted proposals.
"""

import json
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError

from ..domain.exceptions import ProposalStoreError
from ..services.proposals import ProposalRecord

logger = logging.getLogger(__name__)


class JsonProposalStore:
    """
    Stores proposals as a pretty-printed JSON array.

    The file is created as ``[]`` on first use. Not safe for concurrent
    writers; one process owns the file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _ensure_file(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("[]", encoding="utf-8")
        logger.info("Created proposal store %s", self.path)

    def _read_raw(self) -> List[dict]:
        """
        Raises:
            ProposalStoreError: If the file is unreadable or not a JSON array
        """
        try:
            self._ensure_file()
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ProposalStoreError(f"Could not read proposal store {self.path}: {exc}") from exc

        if not isinstance(data, list):
            raise ProposalStoreError(f"Proposal store {self.path} must contain a JSON array")
        return data

    def check(self) -> None:
        """Make sure an existing store file can be read."""
        if self.path.exists():
            self._read_raw()

    def append(self, record: ProposalRecord) -> None:
        records = self._read_raw()
        records.append(record.model_dump(mode="json"))

        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise ProposalStoreError(f"Could not write proposal store {self.path}: {exc}") from exc

    def list(self) -> List[ProposalRecord]:
        try:
            return [ProposalRecord.model_validate(item) for item in self._read_raw()]
        except ValidationError as exc:
            raise ProposalStoreError(f"Invalid proposal in {self.path}: {exc}") from exc
