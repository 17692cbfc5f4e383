"""ZeptoMail implementation of Notifier.

Renders one Jinja2 template per NotificationKind and posts it through the
shared HttpClient. Delivery problems are logged and reported as False;
this class never raises for a failed send.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from infrastructure.notifier.protocol import NotificationKind, NotificationPayload
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)

_TEMPLATES = {
    NotificationKind.OTP_CODE: "otp_code.html",
    NotificationKind.SECURITY_NOTICE: "security_notice.html",
}


class ZeptoMailNotifier:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_name: str = "Shop",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _render(self, payload: NotificationPayload) -> tuple[str, str]:
        template = self._jinja.get_template(_TEMPLATES[payload.kind])
        html_body = template.render(app_name=self._app_name, **payload.data)
        if payload.kind is NotificationKind.OTP_CODE:
            text_body = (
                f"{payload.subject}\n\n"
                f"Your code is: {payload.data.get('code')}\n\n"
                f"This code expires in {payload.data.get('expires_in_minutes')} minutes."
            )
        else:
            text_body = f"{payload.subject}\n\n{payload.data.get('message', '')}"
        return html_body, text_body

    async def send(self, identifier: str, payload: NotificationPayload) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        html_body, text_body = self._render(payload)
        body: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": identifier, "name": identifier}}],
            "subject": payload.subject,
            "htmlbody": html_body,
            "textbody": text_body,
        }

        auth_header = self._settings.zepto_api_token
        if not auth_header.startswith("Zoho-enczapikey "):
            auth_header = f"Zoho-enczapikey {auth_header}"
        headers = {"Authorization": auth_header, "Content-Type": "application/json"}

        try:
            response = await self._http.post(_ZEPTO_API_URL, json=body, headers=headers)
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=identifier,
                kind=payload.kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", to_email=identifier, kind=payload.kind.value)
            return True
        log.error(
            "email_sent_failed",
            to_email=identifier,
            kind=payload.kind.value,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False


def subject_for(kind: NotificationKind, app_name: Optional[str] = None) -> str:
    suffix = f" - {app_name}" if app_name else ""
    if kind is NotificationKind.OTP_CODE:
        return f"Your verification code{suffix}"
    return f"Security notice{suffix}"
