import smtplib
import time
import pytest
from unittest.mock import MagicMock, patch

from skillforge.services import email_service
from skillforge.services.email_service import mask_email, render_hiring_update, send_hiring_update
from skillforge.utils.exceptions import NotificationError

DATA = {"candidate_name": "Ada", "job_title": "Backend Engineer", "company_name": "Acme", "round_name": "Technical"}


@pytest.fixture
def smtp_configured():
    with patch.object(email_service, "EMAIL_USERNAME", "hiring@acme.test"), \
         patch.object(email_service, "EMAIL_PASSWORD", "secret"):
        yield


class TestRendering:

    def test_placeholders_replaced_and_wrapped(self):
        body = render_hiring_update(
            "<p>Hi {{candidate_name}}, {{company_name}} moved you to {{round_name}} for {{job_title}}.</p>", DATA
        )

        assert "Hi Ada, Acme moved you to Technical for Backend Engineer." in body
        assert body.startswith("<!DOCTYPE html>")

    def test_defaults_for_missing_values(self):
        body = render_hiring_update("{{candidate_name}}|{{job_title}}|{{company_name}}|{{round_name}}|", {})

        assert "Candidate|Job|Company||" in body

    def test_full_html_templates_are_not_wrapped(self):
        template = "<html><body>Dear {{candidate_name}}</body></html>"

        assert render_hiring_update(template, DATA) == "<html><body>Dear Ada</body></html>"

    def test_values_are_escaped(self):
        body = render_hiring_update("{{candidate_name}}", {"candidate_name": "<script>x</script>"})

        assert "<script>" not in body
        assert "&lt;script&gt;" in body

    def test_mask_email(self):
        assert mask_email("ada@example.com") == "***@example.com"
        assert mask_email("") == "***"
        assert mask_email("not-an-address") == "***"


class TestSending:

    @pytest.mark.asyncio
    async def test_no_template_is_a_no_op(self, smtp_configured):
        with patch.object(email_service, "_deliver") as deliver:
            assert await send_hiring_update("ada@example.com", None, None, DATA) is False
            deliver.assert_not_called()

    @pytest.mark.asyncio
    async def test_unconfigured_smtp_skips(self):
        with patch.object(email_service, "EMAIL_USERNAME", ""), patch.object(email_service, "_deliver") as deliver:
            assert await send_hiring_update("ada@example.com", "Hi", "Hello", DATA) is False
            deliver.assert_not_called()

    @pytest.mark.asyncio
    async def test_default_subject(self, smtp_configured):
        with patch.object(email_service, "_deliver") as deliver:
            assert await send_hiring_update("ada@example.com", None, "Hello {{candidate_name}}", DATA) is True

        msg = deliver.call_args[0][0]
        assert msg["Subject"] == "Update regarding your application for Backend Engineer"
        assert msg["To"] == "ada@example.com"

    @pytest.mark.asyncio
    async def test_starttls_delivery(self, smtp_configured):
        with patch.object(email_service, "EMAIL_PORT", 587), \
             patch("skillforge.services.email_service.smtplib.SMTP") as smtp_cls:
            server = MagicMock()
            smtp_cls.return_value.__enter__.return_value = server

            await send_hiring_update("ada@example.com", "Next steps", "Hi", DATA)

        server.starttls.assert_called_once()
        server.login.assert_called_once_with("hiring@acme.test", "secret")
        server.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_smtp_failure_raises_notification_error(self, smtp_configured):
        with patch.object(email_service, "_deliver", side_effect=smtplib.SMTPAuthenticationError(535, b"bad")):
            with pytest.raises(NotificationError) as exc_info:
                await send_hiring_update("ada@example.com", "Hi", "Hello", DATA)

        assert exc_info.value.details["recipient"] == "***@example.com"

    @pytest.mark.asyncio
    async def test_timeout_raises_notification_error(self, smtp_configured):
        with patch.object(email_service, "NOTIFICATION_TIMEOUT", 0.05), \
             patch.object(email_service, "_deliver", side_effect=lambda msg: time.sleep(0.5)):
            with pytest.raises(NotificationError) as exc_info:
                await send_hiring_update("ada@example.com", "Hi", "Hello", DATA)

        assert "Timed out" in exc_info.value.message
