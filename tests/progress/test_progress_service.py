"""Credit-on-first-completion sub-ledger."""
import pytest

from conftest import make_enrollment
from smartlearn.core.errors import Forbidden, NotFound
from smartlearn.models.course import Video
from smartlearn.models.enrollment import VideoProgress
from smartlearn.models.enums import EnrollmentStatus
from smartlearn.models.user import User
from smartlearn.services.progress.service import ProgressService


@pytest.fixture
def videos(db, course):
    return db.query(Video).filter(Video.course_id == course.id).order_by(Video.order_index).all()


@pytest.fixture
def enrolled(db, student, course):
    return make_enrollment(db, student, course, status=EnrollmentStatus.APPROVED)


def test_first_completion_awards_credits_once(db, student, course, videos, enrolled):
    svc = ProgressService(db)

    first = svc.record(student.id, course.id, videos[0].id, completed=True)
    second = svc.record(student.id, course.id, videos[0].id, completed=True)

    assert first["credits_awarded"] == 10
    assert first["total_credits"] == 10
    assert second["credits_awarded"] == 0
    assert second["total_credits"] == 10
    assert db.get(User, student.id).credits == 10


def test_watch_then_complete(db, student, course, videos, enrolled):
    svc = ProgressService(db)

    watched = svc.record(student.id, course.id, videos[1].id, completed=False)
    assert watched["credits_awarded"] == 0
    assert watched["progress"].completed is False
    assert watched["progress"].completed_at is None

    done = svc.record(student.id, course.id, videos[1].id, completed=True)

    assert done["credits_awarded"] == 10
    assert done["progress"].completed_at is not None
    assert db.query(VideoProgress).count() == 1


def test_completed_is_sticky(db, student, course, videos, enrolled):
    svc = ProgressService(db)
    svc.record(student.id, course.id, videos[0].id, completed=True)
    result = svc.record(student.id, course.id, videos[0].id, completed=False)
    assert result["progress"].completed is True


def test_requires_approved_enrollment(db, student, course, videos):
    make_enrollment(db, student, course, status=EnrollmentStatus.PENDING)
    with pytest.raises(Forbidden):
        ProgressService(db).record(student.id, course.id, videos[0].id, completed=True)


def test_video_must_belong_to_course(db, student, course, enrolled):
    with pytest.raises(NotFound):
        ProgressService(db).record(student.id, course.id, "other-video", completed=True)
