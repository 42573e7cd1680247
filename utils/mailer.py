import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from flask import current_app, render_template


def render_email(template_name, **context):
    return render_template(f"emails/{template_name}", **context)


def send_email(to_email, subject, html_body, to_name=None):
    """
    Hand a rendered message to the SMTP relay.
    Raises whatever smtplib raises; callers decide whether a failure matters.
    """
    config = current_app.config
    sender = config.get("MAIL_FROM") or config.get("MAIL_USERNAME")

    msg = MIMEMultipart()
    msg['From'] = sender
    msg['To'] = f"{to_name} <{to_email}>" if to_name else to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(html_body, 'html'))

    if config.get("MAIL_SUPPRESS_SEND"):
        current_app.logger.info("Mail suppressed: to=%s subject=%r", to_email, subject)
        return

    server = smtplib.SMTP(config["MAIL_SERVER"], config["MAIL_PORT"], timeout=config.get("MAIL_TIMEOUT", 10))
    try:
        server.starttls()
        if config.get("MAIL_USERNAME"):
            server.login(config["MAIL_USERNAME"], config.get("MAIL_PASSWORD"))
        server.send_message(msg)
    finally:
        server.quit()
    current_app.logger.info("Mail sent: to=%s subject=%r", to_email, subject)
