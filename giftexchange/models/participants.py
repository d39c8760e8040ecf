import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from ..errors import ValidationError

# Simple, pragmatic email pattern (not perfect RFC5322)
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
MAX_QUICK_PICKS = 3


@dataclass(frozen=True)
class QuickPick:
    title: str = ""
    link: str = ""


@dataclass(frozen=True)
class Participant:
    name: str
    email: str
    spouse_name: Optional[str] = None
    wishlist: str = ""
    quick_picks: Tuple[QuickPick, ...] = field(default_factory=tuple)
    timestamp: Optional[int] = None

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "name": self.name,
            "email": self.email,
            "spouseName": self.spouse_name or "",
            "wishlist": self.wishlist,
            "quickPicks": [{"title": q.title, "link": q.link} for q in self.quick_picks],
        }
        if self.timestamp is not None:
            record["timestamp"] = self.timestamp
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Participant":
        picks = tuple(
            QuickPick(title=(q.get("title") or ""), link=(q.get("link") or ""))
            for q in (record.get("quickPicks") or [])
            if isinstance(q, dict)
        )
        return cls(
            name=record.get("name") or "",
            email=record.get("email") or "",
            spouse_name=record.get("spouseName") or None,
            wishlist=record.get("wishlist") or "",
            quick_picks=picks[:MAX_QUICK_PICKS],
            timestamp=record.get("timestamp"),
        )


def normalize_quick_pick_link(raw: Optional[str]) -> str:
    """
    Blank stays blank; a bare domain gets https:// prepended.
    Raises ValueError when the result still isn't an http(s) URL with a host.
    """
    candidate = (raw or "").strip()
    if not candidate:
        return ""
    if not SCHEME_RE.match(candidate):
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    if not parsed.netloc or any(ch.isspace() for ch in candidate):
        raise ValueError(f"Not a usable link: {raw!r}")
    return candidate


def build_participant_or_raise(
    name: str,
    email: str,
    spouse_name: str = "",
    wishlist: str = "",
    quick_picks: Sequence[Tuple[str, str]] = (),
    existing: Iterable[Participant] = (),
) -> Participant:
    """
    Validates one signup and returns the Participant to store.
    quick_picks is a sequence of (title, link) tuples; empty ones are dropped.
    Raises ValidationError for missing/invalid fields or a duplicate signup.
    """
    name = (name or "").strip()
    email = (email or "").strip()
    spouse_name = (spouse_name or "").strip()
    wishlist = (wishlist or "").strip()

    missing = [label for label, value in [("your name", name), ("your email", email)] if not value]
    if missing:
        raise ValidationError(f"Please fill out {', '.join(missing)} before signing up.")
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a complete email address (example: name@example.com).")
    if re.search(r"\s", name):
        raise ValidationError("First name only, please. First names are used to build the matches.")

    for other in existing:
        if other.name.strip().lower() == name.lower() or other.email.strip().lower() == email.lower():
            raise ValidationError("Looks like you're already on the list. Ask the organizer if you need a change.")

    picks: List[QuickPick] = []
    for index, (title, link) in enumerate(list(quick_picks)[:MAX_QUICK_PICKS], start=1):
        title = (title or "").strip()
        try:
            link = normalize_quick_pick_link(link)
        except ValueError:
            raise ValidationError(
                f"Please use a full link for Quick Pick {index} link (for example: https://giftideas.com)."
            ) from None
        if title or link:
            picks.append(QuickPick(title=title, link=link))

    return Participant(
        name=name,
        email=email,
        spouse_name=spouse_name or None,
        wishlist=wishlist,
        quick_picks=tuple(picks),
    )
