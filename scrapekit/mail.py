"""Plain-text mail with attachments over SMTP"""

import mimetypes
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from pathlib import Path
from typing import List, Optional, Tuple, Union

from loguru import logger

from .exceptions import MailError

DEFAULT_SMTP_PORT = 25
DEFAULT_SMTP_TIMEOUT = 30.0


@dataclass
class Attachment:
    name: str
    mime_type: str
    data: bytes


@dataclass
class Message:
    """A text message with optional file attachments"""

    sender: str
    recipients: List[str]
    subject: str
    body: str
    attachments: List[Attachment] = field(default_factory=list)

    def add_recipient(self, recipient: str) -> None:
        self.recipients.append(recipient)

    def attach(self, path: Union[str, Path]) -> None:
        """
        Attach a file, guessing its MIME type from the extension.

        Raises:
            MailError: the file cannot be read
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise MailError(f"cannot read file {path}: {e}") from e

        mime_type, _ = mimetypes.guess_type(path.name)
        self.attachments.append(
            Attachment(name=path.name, mime_type=mime_type or "application/octet-stream", data=data)
        )

    def build(self) -> EmailMessage:
        """Assemble the MIME message"""
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = ", ".join(self.recipients)
        msg["Subject"] = self.subject
        msg.set_content(self.body, charset="utf-8")

        for att in self.attachments:
            maintype, _, subtype = att.mime_type.partition("/")
            msg.add_attachment(att.data, maintype=maintype, subtype=subtype, filename=att.name)

        return msg


def _split_addr(addr: str) -> Tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep:
        return addr, DEFAULT_SMTP_PORT
    return host, int(port)


def send_mail(
    addr: str,
    message: Message,
    username: Optional[str] = None,
    password: Optional[str] = None,
    timeout: float = DEFAULT_SMTP_TIMEOUT,
) -> None:
    """
    Send ``message`` through the SMTP server at ``addr`` ("host:port").

    STARTTLS is used when the server offers it; credentials, when given,
    are sent after that.
    """
    host, port = _split_addr(addr)
    msg = message.build()

    with smtplib.SMTP(host, port, timeout=timeout) as smtp:
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls()
            smtp.ehlo()
        if username:
            smtp.login(username, password or "")
        smtp.send_message(msg, from_addr=message.sender, to_addrs=message.recipients)

    logger.info(f"✉️ Mail sent to {', '.join(message.recipients)}: {message.subject}")
