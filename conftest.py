import os

import pytest


os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.test")

import django  # noqa: E402

django.setup()


from django.contrib.auth import get_user_model  # noqa: E402

from apps.courses.models import Course, CourseProgress, LearnerProfile  # noqa: E402


User = get_user_model()


@pytest.fixture
def user_factory(db):
    def create_user(username="learner", *, staff=False, account_id="0.0.7007"):
        user = User.objects.create_user(username=username, password="password123")

        if staff:
            user.is_staff = True
            user.save(update_fields=["is_staff"])

        LearnerProfile.objects.create(
            user=user,
            display_name=username.title(),
            ledger_account_id=account_id,
        )
        return user

    return create_user


@pytest.fixture
def course_factory(db):
    def create_course(slug="intro-to-ledgers", title="Intro to Ledgers"):
        return Course.objects.create(slug=slug, title=title, is_published=True)

    return create_course


@pytest.fixture
def completed_enrollment(user_factory, course_factory):
    user = user_factory()
    course = course_factory()
    CourseProgress.objects.create(user=user, course=course, progress_percentage=100)
    return user, course
