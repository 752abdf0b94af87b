"""Import every model so Base.metadata knows all tables."""
from smartlearn.models.certificate import Certificate
from smartlearn.models.course import Course, Video
from smartlearn.models.delivery import Delivery
from smartlearn.models.enrollment import Enrollment, VideoProgress
from smartlearn.models.notification import Notification
from smartlearn.models.payment import Payment
from smartlearn.models.user import User

__all__ = [
    "Certificate",
    "Course",
    "Delivery",
    "Enrollment",
    "Notification",
    "Payment",
    "User",
    "Video",
    "VideoProgress",
]
