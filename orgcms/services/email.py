from typing import Optional, Dict, Any
from flask import current_app, render_template
from flask_mail import Message
from orgcms.extensions import db, mail
from orgcms.models import ContactForm, SystemLog
import json
import time


def _log_system(level: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
    """SystemLog row from a background task; never raises."""
    try:
        db.session.add(SystemLog(level=level, message=message, data=data or {}))
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("system log write failed: %s", message)


def send_email(to_email: str, subject: str, template: str, context: Optional[Dict[str, Any]] = None) -> None:
    """
    template: basename under templates/email/ without extension.
    Renders both HTML and plaintext. Raises on SMTP failure.
    """
    context = context or {}
    msg = Message(recipients=[to_email], subject=subject)
    msg.body = render_template(f"email/{template}.txt", **context)
    msg.html = render_template(f"email/{template}.html", **context)

    start = time.perf_counter()
    try:
        mail.send(msg)
    except Exception as ex:
        current_app.logger.warning(json.dumps({
            "event": "mail_send",
            "template": template,
            "to": to_email.lower(),
            "outcome": "smtp_error",
            "latency_ms": int((time.perf_counter() - start) * 1000),
            "smtp_error": str(ex),
        }))
        raise
    current_app.logger.info(json.dumps({
        "event": "mail_send",
        "template": template,
        "to": to_email.lower(),
        "outcome": "sent",
        "latency_ms": int((time.perf_counter() - start) * 1000),
    }))


def send_contact_notification(contact: ContactForm) -> bool:
    admin_email = current_app.config.get("ADMIN_EMAIL")
    if not admin_email:
        current_app.logger.info("ADMIN_EMAIL not set; contact notification skipped (contact_id=%s)", contact.id)
        return False
    send_email(
        to_email=admin_email,
        subject=f"New contact form: {contact.service}",
        template="contact_notification",
        context={"contact": contact, "site_name": current_app.config.get("SITE_NAME")},
    )
    return True


def send_auto_reply(to_email: str, name: str) -> None:
    send_email(
        to_email=to_email,
        subject="We received your message",
        template="contact_auto_reply",
        context={"name": name, "site_name": current_app.config.get("SITE_NAME")},
    )


def notify_contact_submission(contact_id: int) -> None:
    """
    Admin notification + customer auto-reply for a stored submission.
    Each send fails independently and is recorded as an ERROR SystemLog.
    """
    contact = db.session.get(ContactForm, contact_id)
    if contact is None:
        return

    try:
        send_contact_notification(contact)
    except Exception as ex:
        _log_system("ERROR", "Admin notification email failed", {
            "error": str(ex),
            "contactId": contact.id,
            "adminEmail": current_app.config.get("ADMIN_EMAIL"),
        })

    try:
        send_auto_reply(contact.email, contact.name)
    except Exception as ex:
        _log_system("ERROR", "Auto-reply email failed", {
            "error": str(ex),
            "contactId": contact.id,
            "customerEmail": contact.email,
        })
