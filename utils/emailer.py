"""SMTP delivery for rows drained from the email queue (see utils.jobs)."""
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, make_msgid

from flask import current_app


def _smtp_settings() -> dict:
    cfg = current_app.config
    username = cfg.get("SMTP_USERNAME")
    return {
        "host": cfg.get("SMTP_HOST"),
        "port": cfg.get("SMTP_PORT", 587),
        "username": username,
        "password": cfg.get("SMTP_PASSWORD"),
        "from_email": cfg.get("SMTP_FROM_EMAIL") or username,
        "use_tls": cfg.get("SMTP_USE_TLS", True),
    }


def build_message(to_email: str, subject: str, body: str, from_email: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = formataddr((current_app.config.get("PANTRY_NAME", "Pantry"), from_email))
    msg["To"] = to_email
    msg["Subject"] = subject
    msg["Message-ID"] = make_msgid(domain=from_email.rpartition("@")[2] or None)
    msg.set_content(body)
    return msg


def send_email(to_email: str, subject: str, body: str):
    """
    Returns (ok, error). Never raises for delivery problems: the queue
    records the error and retries later.
    """
    smtp = _smtp_settings()
    if not smtp["host"] or not smtp["from_email"]:
        return False, "Email not configured"

    msg = build_message(to_email, subject, body, smtp["from_email"])

    # port 465 is implicit TLS; anything else may upgrade with STARTTLS
    transport = smtplib.SMTP_SSL if smtp["port"] == 465 else smtplib.SMTP
    try:
        with transport(smtp["host"], smtp["port"], timeout=10) as server:
            if smtp["use_tls"] and transport is smtplib.SMTP:
                server.starttls()
            if smtp["username"] and smtp["password"]:
                server.login(smtp["username"], smtp["password"])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        return False, str(exc)

    current_app.logger.debug("Sent '%s' to %s", subject, to_email)
    return True, None
