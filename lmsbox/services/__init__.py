"""Business logic services package with public service helpers."""

from .email_service import EmailService, EmailServiceConfig, get_email_service
from .login_link_service import LoginLinkConfig, LoginLinkService
from .certificate_service import CertificateConfig

__all__ = [
    "EmailService",
    "EmailServiceConfig",
    "get_email_service",
    "LoginLinkConfig",
    "LoginLinkService",
    "CertificateConfig",
]
