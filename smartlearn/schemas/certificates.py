from datetime import datetime

from smartlearn.schemas.common import CamelModel


class CertificateOut(CamelModel):
    id: str
    student_id: str
    course_id: str
    completed_at: datetime
    issued_at: datetime
    artifact_ready: bool = False


class CompletionOut(CamelModel):
    completed: bool
    message: str
    completed_videos: int | None = None
    total_videos: int | None = None
    certificate: CertificateOut | None = None
