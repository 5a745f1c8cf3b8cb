import smtplib
import os
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from jinja2 import Environment, FileSystemLoader, select_autoescape
from loguru import logger
from core_portal.core.config import settings

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "email")

_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
)


def get_template(template_name):
    return _env.get_template(template_name)


def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """
    Sends a multipart/alternative email. Without SMTP_HOST the message is
    logged instead (development mode). Never raises.
    """
    if not settings.SMTP_HOST:
        logger.info(
            f"[DEV EMAIL] to={to_email} subject={subject!r}\n{text_content or html_content}"
        )
        return False

    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>"
        msg["To"] = to_email
        if text_content:
            msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.ehlo()
            if settings.SMTP_PORT in (587, 2525):
                server.starttls()
                server.ehlo()
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAILS_FROM_EMAIL, to_email, msg.as_string())

        logger.success(f"Email sent to {to_email}: {subject}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _render_and_send(template_name: str, to_email: str, subject: str, context: dict, text_content: str):
    try:
        html_content = get_template(template_name).render(context)
    except Exception:
        logger.exception(f"Error rendering email template {template_name}")
        return False
    return send_email(to_email, subject, html_content, text_content)


# ---------------------------------------------------------
# 1. NEW REGISTRATION (to super admin)
# ---------------------------------------------------------
def send_registration_pending_email(data: dict):
    """data requires: admin_email, student_name, student_email, service_name"""
    context = {
        "student_name": data.get("student_name"),
        "student_email": data.get("student_email"),
        "service_name": data.get("service_name"),
        "registered_at": datetime.utcnow().strftime("%d-%m-%Y %H:%M"),
        "dashboard_url": f"{settings.FRONTEND_URL}/super-admin/registrations",
    }
    text = (
        f"{context['student_name']} ({context['student_email']}) registered for "
        f"{context['service_name']}. Assign OPS staff from the dashboard."
    )
    return _render_and_send(
        "registration_pending.html",
        data.get("admin_email"),
        "New Service Registration - Role Assignment Pending",
        context,
        text,
    )


# ---------------------------------------------------------
# 2. DOCUMENT REJECTED
# ---------------------------------------------------------
def send_document_rejected_email(data: dict):
    """data requires: email, name, document_name, rejection_message"""
    context = {
        "name": data.get("name"),
        "document_name": data.get("document_name"),
        "rejection_message": data.get("rejection_message"),
        "rejected_by": data.get("rejected_by", "our team"),
        "login_url": f"{settings.FRONTEND_URL}/login",
    }
    text = (
        f"Hello {context['name']},\n\n"
        f"Your document \"{context['document_name']}\" was rejected.\n"
        f"Reason: {context['rejection_message']}\n\n"
        "Please upload a corrected document."
    )
    return _render_and_send(
        "document_rejected.html",
        data.get("email"),
        f"Document Rejected: {data.get('document_name')}",
        context,
        text,
    )


# ---------------------------------------------------------
# 3. MEETING SCHEDULED
# ---------------------------------------------------------
def send_meeting_scheduled_email(data: dict):
    """data requires: email, name, subject, date, time, duration, meeting_type, meeting_url, other_party"""
    context = dict(data)
    text = (
        f"Hello {data.get('name')},\n\n"
        f"A meeting \"{data.get('subject')}\" with {data.get('other_party')} is scheduled on "
        f"{data.get('date')} at {data.get('time')} ({data.get('duration')} minutes).\n"
        + (f"Join: {data.get('meeting_url')}\n" if data.get("meeting_url") else "")
    )
    return _render_and_send(
        "meeting_scheduled.html",
        data.get("email"),
        f"Meeting Scheduled: {data.get('subject')}",
        context,
        text,
    )


# ---------------------------------------------------------
# 4. WELCOME (lead converted to student)
# ---------------------------------------------------------
def send_student_welcome_email(data: dict):
    """data requires: email, name, temporary_password"""
    context = {
        "name": data.get("name"),
        "email": data.get("email"),
        "temporary_password": data.get("temporary_password"),
        "login_url": f"{settings.FRONTEND_URL}/login",
    }
    text = (
        f"Hello {context['name']},\n\nYour CORE account is ready.\n"
        f"Email: {context['email']}\nTemporary password: {context['temporary_password']}\n"
        f"Log in at {context['login_url']} and change your password."
    )
    return _render_and_send(
        "student_welcome.html",
        data.get("email"),
        "Welcome to CORE - Your Account is Ready!",
        context,
        text,
    )


# ---------------------------------------------------------
# 5. CONVERSION APPROVED (to super admin)
# ---------------------------------------------------------
def send_conversion_approved_email(data: dict):
    """data requires: admin_email, student_name, student_email, approved_by"""
    context = {
        "student_name": data.get("student_name"),
        "student_email": data.get("student_email"),
        "approved_by": data.get("approved_by"),
        "company_name": data.get("company_name"),
    }
    text = (
        f"Lead {context['student_name']} ({context['student_email']}) was converted to a "
        f"student by {context['approved_by']}."
    )
    return _render_and_send(
        "conversion_approved.html",
        data.get("admin_email"),
        f"New Student Conversion: {data.get('student_name')}",
        context,
        text,
    )
