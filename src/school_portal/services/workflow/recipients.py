"""Parent and guardian audience resolution for report cards."""

import logging
from typing import Iterable

from school_portal.services.directory.memory import Directory
from school_portal.services.directory.schemas import canonical_student_id
from school_portal.services.workflow.errors import UpstreamFailure, WorkflowError
from school_portal.services.workflow.schemas import Recipient, WorkflowRecord

logger = logging.getLogger(__name__)

CONTACT_PREFIX = "contact:"


def _recipient_key(recipient: Recipient) -> str:
    return recipient.parent_id.strip().lower()


def _email_key(recipient: Recipient) -> str | None:
    return recipient.email.strip().lower() if recipient.email else None


def previous_recipients(record: WorkflowRecord | None) -> list[Recipient]:
    """Recipients granted by the record's last approval plus any still published.

    @param record - Existing report card record, or None
    @returns Recipients in grant order
    """
    if record is None:
        return []
    granted: list[Recipient] = []
    for entry in reversed(record.history):
        if entry.action == "approve":
            granted = [
                Recipient.model_validate(item)
                for item in entry.details.get("recipients", [])
            ]
            break
    return granted + list(record.published_to)


class RecipientResolver:
    """Decides which parent accounts receive a student's report card."""

    def __init__(self, directory: Directory):
        """Initialize resolver.

        Args:
            directory: Student and parent account lookups
        """
        self.directory = directory

    async def resolve(
        self,
        student_id: str,
        prior: Iterable[Recipient] = (),
    ) -> list[Recipient]:
        """Resolve recipients for a student.

        Linked parent accounts come first. When none exist the contact on the
        student record stands in. Recipients granted earlier are always kept.

        Args:
            student_id: Student whose report card is being published
            prior: Recipients from earlier publications of the same record

        Returns:
            De-duplicated recipients, linked accounts sorted by id first

        Raises:
            UpstreamFailure: If the directory cannot be read
        """
        try:
            accounts = await self.directory.lookup_parent_accounts(student_id)
            student = None
            if not accounts:
                student = await self.directory.lookup_student(student_id)
        except WorkflowError:
            raise
        except Exception as e:
            logger.error(f"Directory lookup failed for student {student_id}: {e}")
            raise UpstreamFailure(
                f"Directory unavailable while resolving recipients: {e}",
                student_id=student_id,
            ) from e

        resolved = [
            Recipient(parent_id=account.id, name=account.name, email=account.email)
            for account in sorted(accounts, key=lambda a: a.id)
        ]

        if not resolved and student is not None:
            contact_email = (student.parent_email or "").strip() or None
            if contact_email or (student.parent_name or "").strip():
                resolved.append(
                    Recipient(
                        parent_id=f"{CONTACT_PREFIX}"
                        f"{contact_email or canonical_student_id(student.id)}",
                        name=(student.parent_name or "").strip()
                        or f"Guardian of {student.name}",
                        email=contact_email,
                    )
                )

        merged = self._merge(resolved, prior)
        logger.debug(
            f"Resolved {len(merged)} recipients for student {student_id}",
            extra={"student_id": student_id},
        )
        return merged

    @staticmethod
    def _merge(
        resolved: list[Recipient], prior: Iterable[Recipient]
    ) -> list[Recipient]:
        merged: list[Recipient] = []
        seen_ids: set[str] = set()
        seen_emails: set[str] = set()
        for recipient in [*resolved, *prior]:
            key = _recipient_key(recipient)
            email = _email_key(recipient)
            if key in seen_ids:
                continue
            # A contact stand-in is the same person as an account with its email
            if key.startswith(CONTACT_PREFIX) and email and email in seen_emails:
                continue
            seen_ids.add(key)
            if email:
                seen_emails.add(email)
            merged.append(recipient)
        return merged
