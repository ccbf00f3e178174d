"""
Firebase Cloud Messaging (HTTP v1) client.

Authenticates with a service account (google-auth) and posts one message per
device token through ``requests``.
"""
import json
import logging
import threading

import requests
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2.service_account import Credentials

from flowmoney.config import Settings
from flowmoney.domain.errors import DeliveryFailure, StaleEndpoint
from flowmoney.domain.notification import NotificationPayload

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"


class FcmClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._credentials: Credentials | None = None
        self._lock = threading.Lock()

    def _access_token(self) -> str:
        # Workers share one client; token refresh must not race
        with self._lock:
            if self._credentials is None:
                info = json.loads(self.settings.FIREBASE_SERVICE_ACCOUNT)
                self._credentials = Credentials.from_service_account_info(info, scopes=[FCM_SCOPE])
            if not self._credentials.valid:
                self._credentials.refresh(GoogleAuthRequest())
            return self._credentials.token

    def build_message(self, token: str, payload: NotificationPayload) -> dict:
        icon = payload.icon or self.settings.icon_url()
        return {
            "message": {
                "token": token,
                "notification": {"title": payload.title, "body": payload.body},
                "webpush": {
                    "notification": {"title": payload.title, "body": payload.body, "icon": icon},
                    "fcm_options": {"link": self.settings.FRONTEND_URL},
                },
                "data": payload.string_data(),
            }
        }

    def send(self, token: str, payload: NotificationPayload) -> None:
        """
        Raises:
            StaleEndpoint: token is unregistered (caller deletes it)
            DeliveryFailure: any other provider or transport error
        """
        url = FCM_SEND_URL.format(project_id=self.settings.FIREBASE_PROJECT_ID)
        try:
            response = requests.post(
                url,
                json=self.build_message(token, payload),
                headers={"Authorization": f"Bearer {self._access_token()}"},
                timeout=self.settings.OUTBOUND_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise DeliveryFailure(f"FCM request failed: {exc}") from exc

        if response.status_code == 200:
            return
        if response.status_code == 404 or "UNREGISTERED" in response.text:
            raise StaleEndpoint(f"FCM token unregistered (HTTP {response.status_code})")
        raise DeliveryFailure(f"FCM error (HTTP {response.status_code}): {response.text[:200]}")
