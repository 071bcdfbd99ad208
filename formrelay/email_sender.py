# formrelay/email_sender.py
import smtplib, ssl, logging
from email.message import EmailMessage
from email.errors import HeaderParseError
from email.utils import formataddr

from formrelay.utils import utc_now_iso

DEFAULT_SMTP_PORT = 587


def build_message(smtp_config, recipient_config, submission, html_body):
    """
    Builds the lead email. The technical sender is always the configured SMTP
    'from' address so the relay passes the server's sender policy; the visitor
    is reachable through Reply-To.
    """
    name = submission.get('name') or 'Anonymous'
    visitor_email = (submission.get('email') or '').strip()

    msg = EmailMessage()
    msg['From'] = formataddr((name, smtp_config.get('from') or ''))
    msg['To'] = recipient_config.get('to')
    subject_prefix = recipient_config.get('subjectPrefix') or ''
    msg['Subject'] = f"{subject_prefix} New Lead from {name}".strip()
    if visitor_email:
        try:
            msg['Reply-To'] = visitor_email
        except (ValueError, HeaderParseError) as e:
            logging.warning(f"Reply-To not set, submitted email {visitor_email!r} is not a usable header: {e}")

    msg.set_content("This message contains HTML content. Please view it in an HTML-capable mail client.")
    msg.add_alternative(html_body, subtype='html')
    return msg


def _open_connection(smtp_config):
    host = smtp_config.get('host') or 'localhost'
    port = int(smtp_config.get('port') or DEFAULT_SMTP_PORT)
    context = ssl.create_default_context()
    if smtp_config.get('secure'):
        return smtplib.SMTP_SSL(host, port, context=context, timeout=30)

    server = smtplib.SMTP(host, port, timeout=30)
    server.ehlo()
    if server.has_extn('starttls'):
        server.starttls(context=context)
        server.ehlo()
    return server


def send_submission_email(smtp_config, recipient_config, submission, html_body):
    """
    Sends a single lead email and returns a dictionary with the result.
    """
    recipient_email = recipient_config.get('to')
    status = 'Failed'
    reason = ''
    timestamp = ''

    try:
        msg = build_message(smtp_config, recipient_config, submission, html_body)
        with _open_connection(smtp_config) as server:
            auth = smtp_config.get('auth') or {}
            if auth.get('user'):
                server.login(auth['user'], auth.get('pass') or '')
            server.send_message(msg)

        status = 'Success'
        timestamp = utc_now_iso()
        logging.info(f"Email successfully sent to {recipient_email}")

    except smtplib.SMTPAuthenticationError:
        reason = "Authentication error with the SMTP server. Check the SMTP credentials."
        logging.error(f"Failed to send to {recipient_email}: {reason}")
    except Exception as e:
        reason = str(e)
        logging.error(f"Failed to send to {recipient_email}: {reason}")

    return {
        'recipient_email': recipient_email,
        'timestamp': timestamp,
        'status': status,
        'reason': reason
    }
