from datetime import datetime
from urllib.parse import quote

from flask import current_app
from flask_mail import Connection, Message

from .helpers import format_currency, parse_timestamp, to_db_timestamp, utcnow

DEFAULT_QR_CODE_BASE_URL = 'https://api.qrserver.com/v1/create-qr-code/'


class EmailResult:
    def __init__(self, success, message):
        self.success = success
        self.message = message

    def __bool__(self):
        return self.success

    def __repr__(self):
        return f"<EmailResult success={self.success} message={self.message!r}>"


def _log_email(recipient, subject, body, status, error_message=None):
    """Persist the attempt to email_logs; a logging failure must not turn into a send failure."""
    from ..models.database import execute_query
    db_path = current_app.config.get('DATABASE_PATH', 'gymtrack.db')
    try:
        execute_query(
            '''INSERT INTO email_logs (recipient_email, subject, body, status, sent_at, error_message)
               VALUES (?, ?, ?, ?, ?, ?)''',
            (recipient, subject, body, status, to_db_timestamp(utcnow()), error_message),
            db_path
        )
    except Exception as e:
        current_app.logger.warning(f"Could not write email log for {recipient}: {e}")


def base_email_html(content, subject):
    app_name = current_app.config.get('APP_NAME', 'GymTrack Lite')
    year = datetime.now().year
    return f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
      <meta charset="UTF-8">
      <title>{subject}</title>
    </head>
    <body style="font-family: Arial, sans-serif; background-color: #080808; color: #e0e0e0;">
      <div style="max-width: 600px; margin: 20px auto; background-color: #1a1a1a; border: 1px solid #333; border-radius: 8px;">
        <div style="background-color: #0D0D0D; padding: 20px; text-align: center;">
          <h1 style="color: #FFD700; margin: 0;">{app_name}</h1>
        </div>
        <div style="padding: 20px; line-height: 1.6; color: #cccccc;">
          {content}
        </div>
        <div style="padding: 15px; text-align: center; font-size: 12px; color: #888;">
          <p>&copy; {year} {app_name}. All rights reserved.</p>
        </div>
      </div>
    </body>
    </html>
    """


def send_email(to_email, subject, html_body, gym_id=None):
    """
    Send one HTML email through Flask-Mail using the gym's resolved SMTP settings.

    Never raises: every outcome comes back as an EmailResult. With no SMTP
    configured anywhere the message is only logged and counts as sent.
    """
    from ..models.gym import Gym, resolve_smtp_settings

    try:
        gym = Gym.get_by_id(gym_id) if gym_id is not None else None
        smtp = resolve_smtp_settings(gym)
    except Exception as e:
        current_app.logger.warning(f"SMTP settings lookup failed for gym {gym_id}: {e}")
        smtp = None

    if smtp is None:
        current_app.logger.info(f"SMTP not configured. Would send to {to_email}: {subject}")
        _log_email(to_email, subject, html_body, 'logged')
        return EmailResult(True, 'Email logged (SMTP not configured).')

    try:
        mail = current_app.mail
        state = mail.init_mail(smtp.to_mail_config(), debug=current_app.debug, testing=current_app.testing)
        msg = Message(
            subject=subject,
            recipients=[to_email],
            html=base_email_html(html_body, subject),
            sender=smtp.from_email
        )
        with Connection(state) as connection:
            connection.send(msg)
    except Exception as e:
        current_app.logger.warning(f"Error sending email to {to_email}: {e}")
        _log_email(to_email, subject, html_body, 'failed', str(e))
        return EmailResult(False, f"Failed to send email: {e}")

    _log_email(to_email, subject, html_body, 'sent')
    return EmailResult(True, f"Email successfully sent to {to_email}.")


def qr_code_url(member_code):
    base = current_app.config.get('QR_CODE_BASE_URL', DEFAULT_QR_CODE_BASE_URL)
    return f"{base}?size=150x150&data={quote(member_code, safe='')}"


def _qr_code_block(member_code, caption):
    return f"""
        <p>{caption}</p>
        <div style="text-align: center; margin: 20px 0;">
          <img src="{qr_code_url(member_code)}" alt="Membership QR Code" style="max-width: 150px; border: 3px solid #FFD700; border-radius: 4px;" />
        </div>
    """


def _format_date(value):
    parsed = parse_timestamp(value)
    return parsed.strftime('%b %d, %Y') if parsed else 'N/A'


def apply_placeholders(text, gym_name, formatted_gym_id):
    """Replace {{gymName}} / {{gymId}} everywhere. Unknown placeholders stay as written."""
    return (text or '').replace('{{gymName}}', gym_name or '').replace('{{gymId}}', formatted_gym_id or '')


def send_welcome_email(member, gym_name):
    subject = f"Welcome to {gym_name}, {member.name}!"
    html_body = f"""
        <p>Dear {member.name},</p>
        <p>We're thrilled to have you as a new member of {gym_name}.</p>
        <p>Here are your membership details:</p>
        <ul style="list-style-type: none; padding-left: 0;">
          <li><strong>Member ID:</strong> {member.member_id}</li>
          <li><strong>Name:</strong> {member.name}</li>
          <li><strong>Join Date:</strong> {_format_date(member.join_date)}</li>
          <li><strong>Membership Type:</strong> {member.membership_type or 'N/A'}</li>
          <li><strong>Plan Price:</strong> {format_currency(member.plan_price)}</li>
          <li><strong>Membership Expires:</strong> {_format_date(member.expiry_date)}</li>
        </ul>
        {_qr_code_block(member.member_id, 'You can use the QR code below for quick check-ins:')}
        <p>If you have any questions, feel free to contact us.</p>
        <p>Best regards,<br/>The {gym_name} Team</p>
    """
    return send_email(member.email, subject, html_body, member.gym_id)


STATUS_EXPLANATIONS = {
    'active': 'Your membership has been set to <strong>Active</strong>. You can continue to enjoy all the facilities.',
    'expired': 'Your membership has been set to <strong>Expired</strong>. Please visit the reception to renew your plan and regain access.',
}


def send_status_change_email(member, new_status, gym_name):
    subject = f"Your Membership Status at {gym_name} has been Updated"
    html_body = f"""
        <p>Dear {member.name},</p>
        <p>This is a notification to inform you that your membership status at {gym_name} has been updated.</p>
        <p><strong>New Status:</strong> {new_status.capitalize()}</p>
        <div style="padding: 10px; border-left: 3px solid #FFD700; margin: 10px 0; background-color: #222;">
            <p>{STATUS_EXPLANATIONS.get(new_status, '')}</p>
        </div>
        <p>If you have any questions, please contact us or visit the reception.</p>
        <p>Best regards,<br/>The {gym_name} Team</p>
    """
    return send_email(member.email, subject, html_body, member.gym_id)


def build_custom_email_body(member_name, body, gym_name, qr_member_code=None):
    html_body = f"<p>Dear {member_name or 'Member'},</p><p>{body.replace(chr(10), '<br />')}</p>"
    if qr_member_code:
        html_body += _qr_code_block(qr_member_code, 'Your Member ID QR Code:')
    html_body += f"<p>Regards,<br/>The {gym_name} Team</p>"
    return html_body


def build_announcement_email(member_name, announcement, gym_name):
    subject = f"New Announcement from {gym_name}: {announcement.title}"
    html_body = f"""
        <p>Dear {member_name or 'Member'},</p>
        <p>A new announcement has been posted at {gym_name}:</p>
        <h2>{announcement.title}</h2>
        <p><em>Posted on: {_format_date(announcement.created_at)}</em></p>
        <div style="padding: 10px; border-left: 3px solid #FFD700; margin: 10px 0; background-color: #222;">
          {announcement.content.replace(chr(10), '<br />')}
        </div>
        <p>Please check the dashboard for more details.</p>
        <p>Regards,<br/>The {gym_name} Team</p>
    """
    return subject, html_body
