"""Certificate email body."""
from html import escape

from smartlearn.services.email.base import EmailMessage

_HTML = """<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; background: #f4f6f8; padding: 24px;">
    <div style="max-width: 600px; margin: 0 auto; background: #ffffff; border-radius: 8px; padding: 32px;">
      <h1 style="color: #1565C0;">&#127891; Congratulations!</h1>
      <p>Dear {student_name},</p>
      <p>You have successfully completed <strong>{course_title}</strong>.</p>
      <p>Your certificate of completion is ready.</p>
      <p style="text-align: center; margin: 32px 0;">
        <a href="{url}" style="background: #1976D2; color: #ffffff; padding: 12px 24px; border-radius: 4px; text-decoration: none;">Download Certificate</a>
      </p>
      <p style="color: #757575; font-size: 12px;">{from_name}</p>
    </div>
  </body>
</html>
"""

_TEXT = """Congratulations {student_name}!

You have successfully completed {course_title}.

Download your certificate: {url}

{from_name}
"""


def certificate_email(
    to: str,
    student_name: str,
    course_title: str,
    download_url: str,
    from_name: str,
) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"\U0001f393 Certificate of Completion - {course_title}",
        html=_HTML.format(
            student_name=escape(student_name),
            course_title=escape(course_title),
            url=escape(download_url, quote=True),
            from_name=escape(from_name),
        ),
        text=_TEXT.format(
            student_name=student_name,
            course_title=course_title,
            url=download_url,
            from_name=from_name,
        ),
    )
