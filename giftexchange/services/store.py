import json
import logging
import os
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import StoreError
from ..models.participants import Participant

logger = logging.getLogger(__name__)


def _empty_document() -> Dict[str, Any]:
    return {
        "participants": [],
        "config": {"historicalPairings": {"year1": "", "year2": ""}},
        "counter": {"count": 0},
    }


class DocumentStore:
    """
    Participant records, exchange config and the public signup counter,
    kept in a single JSON file. Every call reads the file fresh so callers
    always work on a current snapshot.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    # ---- raw document ----
    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return _empty_document()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, ValueError) as e:
            logger.warning("Failed to read store %s: %s", self.path, e)
            raise StoreError(f"Could not read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Unexpected contents in {self.path}")
        config = data.get("config") or {}
        doc = _empty_document()
        doc["participants"] = list(data.get("participants") or [])
        doc["config"].update(config)
        doc["config"]["historicalPairings"] = {
            "year1": "", "year2": "", **(config.get("historicalPairings") or {})
        }
        doc["counter"].update(data.get("counter") or {})
        return doc

    def _write(self, doc: Dict[str, Any]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(doc, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise StoreError(f"Could not write {self.path}: {e}") from e

    # ---- participants ----
    def list_participants(self) -> List[Participant]:
        return [Participant.from_record(r) for r in self._read()["participants"] if isinstance(r, dict)]

    def add_participant(self, participant: Participant) -> Participant:
        if participant.timestamp is None:
            participant = replace(participant, timestamp=int(time.time() * 1000))
        doc = self._read()
        doc["participants"].append(participant.to_record())
        self._write(doc)
        logger.info("Saved participant %s", participant.name)
        return participant

    def clear_participants(self) -> int:
        doc = self._read()
        removed = len(doc["participants"])
        doc["participants"] = []
        doc["counter"]["count"] = 0
        self._write(doc)
        logger.info("Cleared %d participants", removed)
        return removed

    # ---- config ----
    def historical_blocks(self) -> Tuple[str, str]:
        pairings = self._read()["config"]["historicalPairings"]
        return pairings.get("year1") or "", pairings.get("year2") or ""

    def update_historical_pairings(self, year1: Optional[str] = None, year2: Optional[str] = None) -> None:
        doc = self._read()
        pairings = doc["config"]["historicalPairings"]
        if year1 is not None:
            pairings["year1"] = year1
        if year2 is not None:
            pairings["year2"] = year2
        self._write(doc)

    # ---- public counter ----
    def participant_count(self) -> int:
        try:
            return max(0, int(self._read()["counter"].get("count", 0)))
        except (TypeError, ValueError):
            return 0

    def set_participant_count(self, count: int) -> int:
        doc = self._read()
        doc["counter"]["count"] = max(0, int(count))
        self._write(doc)
        return doc["counter"]["count"]

    def adjust_participant_count(self, delta: int) -> int:
        return self.set_participant_count(self.participant_count() + delta)
