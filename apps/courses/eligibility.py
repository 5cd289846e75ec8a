"""Decide whether a learner may claim a certificate for a course."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from django.apps import apps
from django.conf import settings

from .models import Course, CourseProgress

ALREADY_CLAIMED_REASON = "Certificate already claimed for this course"


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: Optional[str] = None
    completion_percentage: int = 0
    already_claimed: bool = False


def _completion_threshold() -> int:
    return int(getattr(settings, "CERTIFICATE_COMPLETION_THRESHOLD", 100))


def check_certificate_eligibility(user, course: Course) -> Eligibility:
    """Return whether ``user`` has finished ``course`` and not yet claimed it."""

    Certificate = apps.get_model("certificates", "Certificate")
    progress = (
        CourseProgress.objects.filter(user=user, course=course)
        .values_list("progress_percentage", flat=True)
        .first()
    )
    completion = int(progress or 0)

    if Certificate.objects.filter(user=user, course=course).exists():
        return Eligibility(
            eligible=False,
            reason=ALREADY_CLAIMED_REASON,
            completion_percentage=completion,
            already_claimed=True,
        )

    threshold = _completion_threshold()
    if completion < threshold:
        return Eligibility(
            eligible=False,
            reason=f"Course not completed (must reach {threshold}%)",
            completion_percentage=completion,
        )

    return Eligibility(eligible=True, completion_percentage=completion)


__all__ = ["ALREADY_CLAIMED_REASON", "Eligibility", "check_certificate_eligibility"]
