"""
Subject Uniqueness

An instructor teaches exactly one subject across the whole school once any
binding exists. The check runs over the primary binding and every secondary
section assignment together.
"""

from collections.abc import Iterable
from uuid import UUID

import structlog

from shared.domain.bindings import Binding, bound_subjects
from shared.domain.exceptions import ConflictError

logger = structlog.get_logger(__name__)


class SubjectUniquenessRegistry:
    """Enforces the one-subject-per-instructor rule."""

    def assert_single_subject(
        self, instructor_id: UUID, proposed_subject: str, current_bindings: Iterable[str]
    ) -> None:
        """
        Require that every subject already bound equals the proposed one.

        Args:
            instructor_id: Instructor being bound
            proposed_subject: Subject of the new or edited binding
            current_bindings: Subjects the instructor already holds

        Raises:
            ConflictError: Carrying the subject the instructor already teaches
        """
        existing = sorted(subject for subject in set(current_bindings) if subject != proposed_subject)
        if not existing:
            return

        existing_subject = existing[0]
        logger.warning(
            "Instructor already teaches another subject",
            instructor_id=str(instructor_id),
            existing_subject=existing_subject,
            proposed_subject=proposed_subject,
        )
        raise ConflictError(
            f"instructor already teaches {existing_subject}; "
            "an instructor can only teach one subject across all grades and sections",
            conflicting_subject=existing_subject,
            context={"instructor_id": str(instructor_id), "proposed_subject": proposed_subject},
        )

    def assert_bindings_allow(
        self, instructor_id: UUID, proposed_subject: str, bindings: Iterable[Binding]
    ) -> None:
        """Run the check against the subjects of a merged binding collection."""
        self.assert_single_subject(instructor_id, proposed_subject, bound_subjects(bindings))
