"""
Delivery channels.

A channel pushes one payload to one subscription and classifies the outcome as
ok, terminal (the endpoint is gone and must be pruned) or transient (retry on a
later tick). Channels never raise for delivery problems.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import json
import logging
import os
import threading

import httpx
from firebase_admin import messaging, credentials, initialize_app, _apps  # type: ignore
from firebase_admin import exceptions as firebase_exceptions  # type: ignore
from pywebpush import WebPushException, webpush

from .config import ReminderSettings, settings as reminder_settings
from .domain import DeliveryResult, SubscriptionData
from .exceptions import ChannelConfigurationError

logger = logging.getLogger(__name__)

# HTTP statuses a push service uses for an expired or unknown registration
TERMINAL_HTTP_STATUSES = frozenset({404, 410})


class DeliveryChannel(ABC):
    name = "channel"

    @abstractmethod
    def send(self, subscription: SubscriptionData, payload: Dict[str, Any]) -> DeliveryResult:
        raise NotImplementedError

    def close(self) -> None:
        return None


class WebhookChannel(DeliveryChannel):
    """POST the payload as JSON to the subscription endpoint."""

    name = "webhook"

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def send(self, subscription: SubscriptionData, payload: Dict[str, Any]) -> DeliveryResult:
        try:
            r = self._client.post(subscription.endpoint, json=payload)
        except httpx.TimeoutException as e:
            return DeliveryResult.transient(f"timeout: {e!r}")
        except httpx.HTTPError as e:
            return DeliveryResult.transient(f"transport error: {e!r}")

        if 200 <= r.status_code < 300:
            return DeliveryResult.ok(status_code=r.status_code)
        if r.status_code in TERMINAL_HTTP_STATUSES:
            return DeliveryResult.terminal(f"endpoint gone (HTTP {r.status_code})", status_code=r.status_code)
        return DeliveryResult.transient(f"HTTP {r.status_code}: {r.text[:200]}", status_code=r.status_code)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class WebPushChannel(DeliveryChannel):
    """Web Push (RFC 8030) with VAPID; the payload is encrypted with the subscription's keys."""

    name = "webpush"

    def __init__(self, cfg: Optional[ReminderSettings] = None, timeout: Optional[float] = None):
        self._cfg = cfg or reminder_settings
        if not self._cfg.VAPID_PRIVATE_KEY:
            raise ChannelConfigurationError("REMINDER_VAPID_PRIVATE_KEY is required for web push")
        self._timeout = timeout if timeout is not None else self._cfg.DISPATCH_TIMEOUT_SECONDS

    def send(self, subscription: SubscriptionData, payload: Dict[str, Any]) -> DeliveryResult:
        keys = subscription.keys or {}
        if not keys.get("p256dh") or not keys.get("auth"):
            return DeliveryResult.terminal("subscription has no p256dh/auth keys")

        try:
            response = webpush(
                subscription_info={"endpoint": subscription.endpoint, "keys": dict(keys)},
                data=json.dumps(payload),
                vapid_private_key=self._cfg.VAPID_PRIVATE_KEY,
                # pywebpush adds aud/exp to the claims it is given
                vapid_claims={"sub": self._cfg.VAPID_SUBJECT},
                timeout=self._timeout,
            )
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            if status_code in TERMINAL_HTTP_STATUSES:
                return DeliveryResult.terminal(f"endpoint gone (HTTP {status_code})", status_code=status_code)
            return DeliveryResult.transient(f"web push failed: {e}", status_code=status_code)
        except OSError as e:
            # requests' connection and timeout errors derive from OSError
            return DeliveryResult.transient(f"transport error: {e!r}")

        return DeliveryResult.ok(status_code=getattr(response, "status_code", None))


_firebase_init_lock = threading.Lock()


def _ensure_firebase_initialized(cfg: ReminderSettings) -> bool:
    """Initialize the default Firebase app once. Returns False when no credentials are usable."""
    with _firebase_init_lock:
        if _apps:
            return True

        proj = cfg.FCM_PROJECT_ID
        creds_json: Optional[str] = (
            cfg.FCM_CREDENTIALS_JSON
            or os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON")
            or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
        )
        options = {"projectId": proj} if proj else None

        try:
            if creds_json and creds_json.strip().startswith("{"):
                logger.info("[FCM] Initializing Firebase with inline JSON credentials")
                initialize_app(credentials.Certificate(json.loads(creds_json)), options=options)
            elif creds_json and os.path.exists(creds_json):
                logger.info(f"[FCM] Initializing Firebase with credentials file {creds_json}")
                initialize_app(credentials.Certificate(creds_json), options=options)
            elif proj:
                logger.info(f"[FCM] Initializing Firebase with project id only ({proj})")
                initialize_app(options=options)
            else:
                logger.warning("[FCM] No credentials provided - push notifications are disabled")
                return False
        except (ValueError, OSError) as e:
            logger.error(f"[FCM] Failed to initialize Firebase: {e!r}")
            return False

        logger.info(f"[FCM] Firebase app initialized. apps={len(_apps)}")
        return True


class FCMChannel(DeliveryChannel):
    """Firebase Cloud Messaging; the subscription endpoint is the registration token."""

    name = "fcm"

    def __init__(self, cfg: Optional[ReminderSettings] = None, dry_run: bool = False):
        self._cfg = cfg or reminder_settings
        self._dry_run = dry_run

    def _build_message(self, subscription: SubscriptionData, payload: Dict[str, Any]) -> messaging.Message:
        title = str(payload.get("title") or self._cfg.NOTIFICATION_TITLE)
        body = str(payload.get("body") or "")
        data = {k: str(v) for k, v in payload.items() if k not in ("title", "body") and v is not None}
        apns_headers = {"apns-push-type": "alert", "apns-priority": "10"}
        notification_id = data.get("notification_id")
        if notification_id:
            # Distinct collapse ids keep iOS from folding repeated reminders together
            apns_headers["apns-collapse-id"] = notification_id

        return messaging.Message(
            token=subscription.endpoint,
            notification=messaging.Notification(title=title, body=body),
            data=data,
            apns=messaging.APNSConfig(headers=apns_headers) if subscription.platform == "ios" else None,
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(title=title, body=body),
            ) if subscription.platform == "web" else None,
        )

    def send(self, subscription: SubscriptionData, payload: Dict[str, Any]) -> DeliveryResult:
        if not _ensure_firebase_initialized(self._cfg):
            return DeliveryResult.transient("firebase not initialized")

        try:
            message_id = messaging.send(self._build_message(subscription, payload), dry_run=self._dry_run)
        except (messaging.UnregisteredError, messaging.SenderIdMismatchError) as e:
            return DeliveryResult.terminal(f"{type(e).__name__}: {e}", status_code=_status_code(e))
        except firebase_exceptions.NotFoundError as e:
            return DeliveryResult.terminal(f"NotFoundError: {e}", status_code=_status_code(e))
        except firebase_exceptions.FirebaseError as e:
            return DeliveryResult.transient(f"{type(e).__name__}: {e}", status_code=_status_code(e))
        except ValueError as e:
            # Raised by the SDK for a message it refuses to build (e.g. empty token)
            return DeliveryResult.terminal(f"invalid registration: {e}")

        logger.debug(f"[FCM] Sent message {message_id} to {subscription.endpoint[:20]}...")
        return DeliveryResult.ok()


def _status_code(error: Exception) -> Optional[int]:
    response = getattr(error, "http_response", None)
    return getattr(response, "status_code", None) if response is not None else None


def build_channel(cfg: Optional[ReminderSettings] = None) -> DeliveryChannel:
    cfg = cfg or reminder_settings
    if cfg.DELIVERY_CHANNEL == "fcm":
        return FCMChannel(cfg)
    if cfg.DELIVERY_CHANNEL == "webpush":
        return WebPushChannel(cfg)
    if cfg.DELIVERY_CHANNEL == "webhook":
        return WebhookChannel(timeout=cfg.DISPATCH_TIMEOUT_SECONDS)
    raise ChannelConfigurationError(f"Unknown delivery channel: {cfg.DELIVERY_CHANNEL}")
