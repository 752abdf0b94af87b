from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from smartlearn.api.deps import get_identity
from smartlearn.db.session import get_db
from smartlearn.models.certificate import Certificate
from smartlearn.schemas.certificates import CertificateOut, CompletionOut
from smartlearn.services.auth.identity import Identity
from smartlearn.services.certificates.service import CertificateService


router = APIRouter(tags=["certificates"])


def certificate_out(certificate: Certificate) -> CertificateOut:
    return CertificateOut(
        id=certificate.id,
        student_id=certificate.student_id,
        course_id=certificate.course_id,
        completed_at=certificate.completed_at,
        issued_at=certificate.issued_at,
        artifact_ready=bool(certificate.storage_key),
    )


@router.post("/api/courses/{course_id}/complete", response_model=CompletionOut)
def complete_course(
    course_id: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> CompletionOut:
    result = CertificateService(db).check_completion(identity.user_id, course_id)
    certificate = result.pop("certificate", None)
    return CompletionOut(
        **result,
        certificate=certificate_out(certificate) if certificate is not None else None,
    )


@router.get("/api/certificates/{certificate_id}/download")
def download_certificate(
    certificate_id: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    url = CertificateService(db).get_download(certificate_id, identity)
    return RedirectResponse(url, status_code=302)
