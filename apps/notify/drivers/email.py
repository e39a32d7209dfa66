"""Email notification driver."""

import logging
import smtplib
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from apps.notify.drivers.base import AlertNotification, BaseNotifyDriver

logger = logging.getLogger(__name__)


class EmailNotifyDriver(BaseNotifyDriver):
    """Driver for sending email notifications over SMTP."""

    name = "email"

    # X-Priority header per severity
    PRIORITY_MAP = {
        "critical": "1",
        "high": "2",
        "medium": "3",
        "low": "5",
    }

    def validate_config(self, config: dict[str, Any]) -> bool:
        required_keys = {"smtp_host", "from_address"}
        return all(config.get(key) for key in required_keys)

    def _resolve_to_addresses(self, config: dict[str, Any]) -> list[str]:
        """Recipients from config; a comma-separated string is accepted."""
        to_addresses = config.get("to_addresses") or []
        if isinstance(to_addresses, str):
            to_addresses = [a.strip() for a in to_addresses.split(",") if a.strip()]
        if not to_addresses:
            to_addresses = [config["from_address"]]
        return list(to_addresses)

    def build_subject(self, notification: AlertNotification) -> str:
        prefix = "[TEST] " if notification.is_test else ""
        return f"{prefix}[{notification.severity_label}] Pipeline Alert: {notification.title}"

    def _build_email(self, notification: AlertNotification, config: dict[str, Any]) -> MIMEMultipart:
        email = MIMEMultipart("alternative")

        email["Subject"] = self.build_subject(notification)
        email["From"] = config["from_address"]
        email["To"] = ", ".join(self._resolve_to_addresses(config))
        email["X-Priority"] = self.PRIORITY_MAP.get(notification.severity, "3")

        rendered = self._render_message_templates(notification, config)

        text_body = rendered.get("text")
        if not text_body:
            raise ValueError("Email text template required but not rendered")
        email.attach(MIMEText(text_body, "plain"))

        html_body = rendered.get("html")
        if html_body:
            email.attach(MIMEText(html_body, "html"))

        return email

    def send(self, notification: AlertNotification, config: dict[str, Any]) -> dict[str, Any]:
        if not self.validate_config(config):
            return {
                "success": False,
                "error": "Invalid email configuration (smtp_host and from_address required)",
            }

        smtp_host = config["smtp_host"]
        smtp_port = config.get("smtp_port", 587)
        use_tls = config.get("use_tls", True)
        use_ssl = config.get("use_ssl", False)
        username = config.get("username")
        password = config.get("password")
        timeout = config.get("timeout", self.DEFAULT_TIMEOUT)

        try:
            email = self._build_email(notification, config)
            message_id = str(uuid.uuid4())
            email["Message-ID"] = f"<{message_id}@{smtp_host}>"

            server: smtplib.SMTP | smtplib.SMTP_SSL
            if use_ssl:
                server = smtplib.SMTP_SSL(smtp_host, smtp_port, timeout=timeout)
            else:
                server = smtplib.SMTP(smtp_host, smtp_port, timeout=timeout)

            try:
                if use_tls and not use_ssl:
                    server.starttls()

                if username and password:
                    server.login(username, password)

                to_addresses = self._resolve_to_addresses(config)
                server.sendmail(config["from_address"], to_addresses, email.as_string())

                logger.info(f"Email sent successfully: {message_id}")
                return {
                    "success": True,
                    "message_id": message_id,
                    "metadata": {
                        "to": to_addresses,
                        "from": config["from_address"],
                        "subject": email["Subject"],
                    },
                }
            finally:
                try:
                    server.quit()
                except smtplib.SMTPException:
                    pass

        except smtplib.SMTPAuthenticationError as e:
            return self._handle_exception(e, "Email", "authenticate SMTP")
        except smtplib.SMTPException as e:
            return self._handle_exception(e, "Email", "send SMTP")
        except Exception as e:
            return self._handle_exception(e, "Email", "send email")
