import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from ..errors import InfeasibleError, ValidationError
from ..settings import AppSettings
from .draw import Assignment, generate_assignments
from .emailer import DeliveryReport, SMTPSettings, send_assignment_emails
from .store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class PreviewResult:
    assignments: List[Assignment] = field(default_factory=list)
    error_kind: Optional[str] = None  # None, "validation" or "infeasible"
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error_kind is None


def generate_preview(
    store: DocumentStore,
    settings: AppSettings,
    rng: Optional[random.Random] = None,
) -> PreviewResult:
    participants = store.list_participants()
    blocks = store.historical_blocks()
    try:
        assignments = generate_assignments(
            participants,
            blocks,
            max_tries=settings.max_attempts,
            allow_reciprocal=settings.allow_reciprocal,
            strict_history=settings.strict_history,
            rng=rng,
        )
    except ValidationError as e:
        return PreviewResult(error_kind="validation", message=str(e))
    except InfeasibleError as e:
        logger.warning("Preview failed (%s): %s", e.reason, e)
        return PreviewResult(
            error_kind="infeasible",
            message=f"{e} Try again, or edit the historical pairings.",
        )
    for a in assignments:
        logger.debug("%s -> %s", a.giver.name, a.receiver.name)
    return PreviewResult(
        assignments=assignments,
        message=f"Assignments generated for {len(assignments)} participants.",
    )


def send_preview(
    preview: Union[PreviewResult, Sequence[Assignment], None],
    smtp_settings: SMTPSettings,
    dry_run: bool = False,
) -> DeliveryReport:
    assignments = preview.assignments if isinstance(preview, PreviewResult) else list(preview or [])
    if not assignments:
        raise ValidationError("Generate a preview first, then send emails.")
    return send_assignment_emails(assignments, smtp_settings, dry_run=dry_run)


def summarize_report(report: DeliveryReport) -> str:
    if report.ok:
        return f"Success! {len(report.sent)} Secret Santa emails have been sent."
    failed = ", ".join(name for name, _ in report.failed)
    return f"Partially complete: {len(report.sent)} emails sent, {len(report.failed)} failed ({failed})."
