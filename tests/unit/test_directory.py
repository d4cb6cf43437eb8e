"""Tests for the student directory and recipient resolution."""

import json

import pytest

from factories import DIRECTORY_PAYLOAD
from school_portal.services.directory import (
    DirectoryLoadError,
    InMemoryDirectory,
    ParentAccount,
    canonical_student_id,
)
from school_portal.services.workflow import RecipientResolver, UpstreamFailure
from school_portal.services.workflow.schemas import Recipient


class TestCanonicalStudentId:
    """Tests for student id normalisation."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("S1", "s1"),
            (" 7 ", "7"),
            (7, "7"),
            ("007", "7"),
            ("Student_007", "7"),
            ("student_abc", "abc"),
        ],
    )
    def test_canonical(self, raw, expected):
        """Prefix, padding and case are ignored."""
        assert canonical_student_id(raw) == expected

    def test_parent_link_tolerates_formats(self):
        """Linked ids match across numeric and prefixed forms."""
        parent = ParentAccount(id="P7", name="Parent Seven", studentIds=[7])

        assert parent.student_ids == ["7"]
        assert parent.is_linked_to("student_007")
        assert parent.is_linked_to("7")
        assert not parent.is_linked_to("70")


class TestInMemoryDirectory:
    """Tests for InMemoryDirectory."""

    def setup_method(self):
        """Set up test fixtures."""
        self.directory = InMemoryDirectory.from_payload(DIRECTORY_PAYLOAD)

    @pytest.mark.asyncio
    async def test_lookup_student(self):
        """Students are found by any form of their id."""
        student = await self.directory.lookup_student("7")

        assert student is not None
        assert student.name == "Tunde Bello"
        assert student.class_name == "JSS1A"

    @pytest.mark.asyncio
    async def test_lookup_parent_accounts(self):
        """Only accounts linked to the student are returned."""
        accounts = await self.directory.lookup_parent_accounts("S1")

        assert [a.id for a in accounts] == ["P1"]
        assert await self.directory.lookup_parent_accounts("S3") == []

    @pytest.mark.asyncio
    async def test_lookup_exam(self):
        """Exams are keyed by id."""
        exam = await self.directory.lookup_exam("EXAM1")

        assert exam.subject == "Mathematics"
        assert await self.directory.lookup_exam("EXAM2") is None

    def test_malformed_entries_are_listed(self):
        """Every bad entry is reported at once."""
        payload = {
            "students": [{"id": "S1", "name": "Ada"}, {"id": "", "name": "Nobody"}],
            "parents": [{"name": "No id"}],
            "exams": "not a list",
        }

        with pytest.raises(DirectoryLoadError) as exc_info:
            InMemoryDirectory.from_payload(payload)

        assert exc_info.value.errors == [
            "students[1]: invalid id",
            "parents[0]: invalid id",
            "exams: expected a list",
        ]

    @pytest.mark.asyncio
    async def test_from_file(self, tmp_path):
        """Seed files hold the same payload as JSON."""
        seed = tmp_path / "directory.json"
        seed.write_text(json.dumps(DIRECTORY_PAYLOAD), encoding="utf-8")

        directory = InMemoryDirectory.from_file(seed)

        assert (await directory.lookup_student("S3")).parent_name == "Mr Ade"


class FailingDirectory:
    """Directory whose backend is down."""

    async def lookup_student(self, student_id):
        raise ConnectionError("directory offline")

    async def lookup_parent_accounts(self, student_id):
        raise ConnectionError("directory offline")

    async def lookup_exam(self, exam_id):
        raise ConnectionError("directory offline")


class TestRecipientResolver:
    """Tests for RecipientResolver."""

    def setup_method(self):
        """Set up test fixtures."""
        self.resolver = RecipientResolver(InMemoryDirectory.from_payload(DIRECTORY_PAYLOAD))

    @pytest.mark.asyncio
    async def test_linked_accounts(self):
        """Linked parent accounts are the audience."""
        recipients = await self.resolver.resolve("S1")

        assert recipients == [
            Recipient(parent_id="P1", name="Parent One", email="p1@example.com")
        ]

    @pytest.mark.asyncio
    async def test_linked_account_across_id_formats(self):
        """A padded, prefixed id still finds the linked account."""
        recipients = await self.resolver.resolve("student_007")

        assert [r.parent_id for r in recipients] == ["P7"]

    @pytest.mark.asyncio
    async def test_contact_fallback(self):
        """Without accounts the student's parent contact stands in."""
        recipients = await self.resolver.resolve("S3")

        assert recipients == [
            Recipient(
                parent_id="contact:ade@example.com", name="Mr Ade", email="ade@example.com"
            )
        ]

    @pytest.mark.asyncio
    async def test_unknown_student_has_no_recipients(self):
        """Nothing to resolve for a student the directory does not know."""
        assert await self.resolver.resolve("S404") == []

    @pytest.mark.asyncio
    async def test_prior_recipients_kept(self):
        """Earlier recipients stay after the linked accounts, without duplicates."""
        prior = [
            Recipient(parent_id="P9", name="Former Guardian"),
            Recipient(parent_id="p1", name="Parent One"),
        ]

        recipients = await self.resolver.resolve("S1", prior)

        assert [r.parent_id for r in recipients] == ["P1", "P9"]

    @pytest.mark.asyncio
    async def test_prior_contact_with_account_email_dropped(self):
        """An old contact stand-in is dropped once an account has its email."""
        prior = [
            Recipient(parent_id="contact:p1@example.com", name="Mrs Obi", email="P1@example.com")
        ]

        recipients = await self.resolver.resolve("S1", prior)

        assert [r.parent_id for r in recipients] == ["P1"]

    @pytest.mark.asyncio
    async def test_directory_failure(self):
        """Backend errors surface as upstream failures."""
        resolver = RecipientResolver(FailingDirectory())

        with pytest.raises(UpstreamFailure) as exc_info:
            await resolver.resolve("S1")

        assert exc_info.value.code == "upstream_failure"
