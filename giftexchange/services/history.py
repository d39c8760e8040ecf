import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from ..errors import ValidationError

logger = logging.getLogger(__name__)

# Entries are separated by commas or newlines; within one entry the first
# "->", "-", "→" or ">" splits giver from receiver.
ENTRY_SPLIT_RE = re.compile(r"[,\n]")
PAIR_RE = re.compile(r"(.+?)\s*(?:->|[-→>])\s*(.+)")


@dataclass(frozen=True)
class HistoricalPairing:
    giver: str
    receiver: str


def normalize(name: Optional[str]) -> str:
    """Identity key for a name: trimmed and lower-cased, "" for None/blank."""
    if not name:
        return ""
    return str(name).strip().lower()


def parse_historical_pairings(*year_blocks: Optional[str], strict: bool = False) -> List[HistoricalPairing]:
    """
    Parse free-text "giver -> receiver" records, one block per past year.

    Entries without a separator are dropped; with strict=True they raise
    ValidationError instead.
    """
    pairings: List[HistoricalPairing] = []
    for block in year_blocks:
        if not block or not block.strip():
            continue
        entries = [e.strip() for e in ENTRY_SPLIT_RE.split(block)]
        for entry in entries:
            if not entry:
                continue
            match = PAIR_RE.match(entry)
            if not match:
                if strict:
                    raise ValidationError(f"Could not read historical pairing {entry!r} (expected 'Giver -> Receiver').")
                logger.debug("Skipping malformed historical pairing %r", entry)
                continue
            pairings.append(HistoricalPairing(giver=match.group(1).strip(), receiver=match.group(2).strip()))
    return pairings


def build_historical_index(pairings: Iterable[HistoricalPairing]) -> Dict[str, Set[str]]:
    index: Dict[str, Set[str]] = {}
    for pair in pairings:
        giver = normalize(pair.giver)
        receiver = normalize(pair.receiver)
        if not giver or not receiver:
            continue
        index.setdefault(giver, set()).add(receiver)
    return index


def index_historical_text(*year_blocks: Optional[str], strict: bool = False) -> Dict[str, Set[str]]:
    return build_historical_index(parse_historical_pairings(*year_blocks, strict=strict))
