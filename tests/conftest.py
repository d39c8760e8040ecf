import pytest

from giftexchange.models.participants import Participant
from giftexchange.services.store import DocumentStore

ENV_KEYS = [
    "GIFTEXCHANGE_DATA_DIR", "GIFTEXCHANGE_MAX_ATTEMPTS", "GIFTEXCHANGE_ALLOW_RECIPROCAL",
    "GIFTEXCHANGE_PARTICIPANT_TARGET", "GIFTEXCHANGE_STRICT_HISTORY", "SuperSecret",
    "SMTP_HOST", "SMTP_PORT", "SMTP_USERNAME", "SMTP_PASSWORD", "SMTP_FROM", "SMTP_FROM_NAME",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def store(tmp_path):
    return DocumentStore(tmp_path / "exchange.json")


def person(name, spouse=None, email=None, **kwargs):
    return Participant(name=name, email=email or f"{name.strip().lower()}@example.com", spouse_name=spouse, **kwargs)


def couples(*pairs):
    out = []
    for a, b in pairs:
        out.append(person(a, spouse=b))
        out.append(person(b, spouse=a))
    return out
