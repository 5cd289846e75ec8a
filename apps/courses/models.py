"""Course catalogue and learner progress records consumed by issuance."""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Course(models.Model):
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    is_published = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("title",)

    def __str__(self) -> str:  # pragma: no cover - human readable representation
        return self.title


class LearnerProfile(models.Model):
    """Display name and ledger account a learner receives credentials on."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="learner_profile",
    )
    display_name = models.CharField(max_length=255)
    ledger_account_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Ledger account in shard.realm.num form, e.g. 0.0.12345.",
    )

    def __str__(self) -> str:  # pragma: no cover - human readable representation
        return self.display_name


class CourseProgress(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="course_progress",
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="progress_records",
    )
    progress_percentage = models.PositiveSmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "course"], name="unique_course_progress_per_user"
            ),
        ]
        verbose_name_plural = "Course progress"

    def __str__(self) -> str:  # pragma: no cover - human readable representation
        return f"{self.user} - {self.course}: {self.progress_percentage}%"
