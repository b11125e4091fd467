"""
Tests for SMTP delivery and template rendering in the email service.
"""

import pytest
pytest.importorskip("jinja2")

from unittest.mock import AsyncMock, MagicMock, patch

from lmsbox.services.email_service import EmailService, EmailServiceConfig


@pytest.fixture
def smtp_env(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_USERNAME", "mailer")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    monkeypatch.setenv("SMTP_USE_TLS", "true")
    monkeypatch.setenv("SMTP_USE_SSL", "false")
    monkeypatch.setenv("FROM_EMAIL", "noreply@example.com")
    monkeypatch.setenv("FROM_NAME", "Acme Learning")
    monkeypatch.delenv("EMAIL_TEMPLATE_DIR", raising=False)


def _smtp_mock():
    smtp = MagicMock()
    smtp.__aenter__ = AsyncMock(return_value=smtp)
    smtp.__aexit__ = AsyncMock(return_value=None)
    smtp.login = AsyncMock()
    smtp.send_message = AsyncMock(return_value=({}, "OK"))
    return smtp


class TestEmailServiceConfig:
    def test_ssl_and_tls_together_is_invalid(self, smtp_env, monkeypatch):
        monkeypatch.setenv("SMTP_USE_SSL", "true")
        errors = EmailServiceConfig().validate()
        assert "Cannot use both SSL and TLS simultaneously" in errors

    def test_valid_config_has_no_errors(self, smtp_env):
        assert EmailServiceConfig().validate() == []


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_send_email_via_smtp(self, smtp_env):
        smtp = _smtp_mock()
        with patch("aiosmtplib.SMTP", return_value=smtp) as smtp_cls:
            service = EmailService()
            result = await service.send_email(
                to_email="learner@example.com",
                subject="Hello",
                html_content="<p>Hi</p>",
                text_content="Hi",
            )
        assert result["success"] is True
        assert result["error"] is None
        smtp_cls.assert_called_once_with(hostname="smtp.example.com", port=587, use_tls=False, start_tls=True)
        smtp.login.assert_awaited_once_with("mailer", "secret")
        message = smtp.send_message.await_args.args[0]
        assert message["To"] == "learner@example.com"
        assert message["From"] == "Acme Learning <noreply@example.com>"

    @pytest.mark.asyncio
    async def test_smtp_failure_is_reported_not_raised(self, smtp_env):
        smtp = _smtp_mock()
        smtp.send_message = AsyncMock(side_effect=OSError("connection reset"))
        with patch("aiosmtplib.SMTP", return_value=smtp):
            result = await EmailService().send_email("learner@example.com", "Hello", "<p>Hi</p>")
        assert result["success"] is False
        assert "connection reset" in result["error"]

    @pytest.mark.asyncio
    async def test_invalid_config_short_circuits(self, smtp_env, monkeypatch):
        monkeypatch.setenv("SMTP_USE_SSL", "true")
        with patch("aiosmtplib.SMTP") as smtp_cls:
            result = await EmailService().send_email("learner@example.com", "Hello", "<p>Hi</p>")
        assert result["success"] is False
        assert "Configuration errors" in result["error"]
        smtp_cls.assert_not_called()


class TestTemplates:
    def test_login_link_template_renders_both_parts(self, smtp_env):
        service = EmailService()
        html, text = service.render_template(
            "login_link",
            {
                "user_name": "Lee",
                "login_url": "http://localhost:5174/verify-login?token=abc",
                "expiry_minutes": 15,
                "brand_name": "Acme Academy",
            },
        )
        assert "http://localhost:5174/verify-login?token=abc" in html
        assert "http://localhost:5174/verify-login?token=abc" in text
        assert "15" in text

    def test_html_fallback_when_text_template_missing(self, smtp_env, monkeypatch, tmp_path):
        (tmp_path / "notice.html").write_text("<h1>Hello &amp; welcome</h1>\n<p>{{ name }}</p>")
        monkeypatch.setenv("EMAIL_TEMPLATE_DIR", str(tmp_path))
        html, text = EmailService().render_template("notice", {"name": "Lee"})
        assert "<p>Lee</p>" in html
        assert text == "Hello & welcome Lee"
