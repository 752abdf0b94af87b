"""Certificate email task: dead-letter logging, never raises."""
from unittest.mock import MagicMock, patch

from smartlearn.services.email.templates import certificate_email
from smartlearn.workers.tasks import email as email_tasks


def test_template_carries_link_and_names():
    message = certificate_email("s@example.lk", "Nimal <b>", "Python", "https://x.test/c.pdf", "SmartLearn LMS")
    assert "Certificate of Completion - Python" in message.subject
    assert "https://x.test/c.pdf" in message.html
    assert "Nimal &lt;b&gt;" in message.html
    assert "Nimal <b>" in message.text


@patch("smartlearn.workers.tasks.email.get_email_sender")
def test_task_sends(mock_sender):
    sender = MagicMock()
    sender.send.return_value = "msg-1"
    mock_sender.return_value = sender

    result = email_tasks.send_certificate_email.run("c1", "s@example.lk", "Nimal", "Python", "https://x")

    assert result == {"sent": True, "message_id": "msg-1"}
    assert sender.send.call_args.args[0].to == "s@example.lk"


@patch("smartlearn.workers.tasks.email.get_email_sender")
def test_task_failure_dead_letters(mock_sender, caplog):
    mock_sender.return_value.send.side_effect = RuntimeError("ses throttled")

    result = email_tasks.send_certificate_email.run("c1", "s@example.lk", "Nimal", "Python", "https://x")

    assert result["sent"] is False
    assert "email_dead_letter" in caplog.text


def test_dispatch_swallows_broker_errors(caplog):
    with patch.object(email_tasks.send_certificate_email, "delay", side_effect=ConnectionError("no broker")):
        ok = email_tasks.dispatch_certificate_email("c1", "s@example.lk", "Nimal", "Python", "https://x")
    assert ok is False
    assert "email_dead_letter" in caplog.text


def test_dispatch_queues_task():
    with patch.object(email_tasks.send_certificate_email, "delay") as delay:
        assert email_tasks.dispatch_certificate_email("c1", "s@example.lk", "Nimal", "Python", "https://x")
    delay.assert_called_once_with("c1", "s@example.lk", "Nimal", "Python", "https://x")
