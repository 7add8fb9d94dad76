"""
Share links for BP Tracker.

A patient can hand out a link that shows their measurement history, read
only, without logging in. The link embeds a signed token (JWT, HS256):

    {"userId": "<patient id>", "type": "share", "iat": ..., "exp": ...}

Tokens are valid for 2 days and nothing is stored server side: a token is
good if its signature checks out, it hasn't expired and its type is "share".
The type check keeps tokens signed for any other purpose from being used as
share links.

When a token is refused the caller only ever gets TokenRejected, with the
same message whatever the cause. The cause is logged.

Usage:
    service = ShareTokenService.from_config()
    link = service.issue_share_link(patient_id)['share_url']
    shared = service.verify_and_fetch(token)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

import jwt

from . import config
from . import models
from .errors import (
    BPTrackerError,
    ConfigurationError,
    InternalError,
    NotFoundError,
    TokenRejected,
    ValidationError,
)


logger = logging.getLogger(__name__)

SHARE_TOKEN_TYPE = "share"
ALGORITHM = "HS256"
DATE_FORMAT = "%d/%m/%Y %H:%M"


class RejectionReason(Enum):
    """Why a token was refused. Logged, never shown to the caller."""

    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    WRONG_TYPE = "wrong_type"


@dataclass(frozen=True)
class TokenCheck:
    """Outcome of decoding a token: either a payload or a rejection reason."""

    payload: Optional[dict] = None
    reason: Optional[RejectionReason] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


def format_shared_measurement(measurement: dict) -> dict:
    """Shape a stored measurement for the shared view."""
    return {
        'id': measurement['id'],
        'heart_rate': measurement['heart_rate'],
        'systolic_pressure': measurement['systolic_pressure'],
        'diastolic_pressure': measurement['diastolic_pressure'],
        'tags': ", ".join(measurement.get('tags') or []),
        'date': measurement['created_at'].strftime(DATE_FORMAT),
        'created_at': measurement['created_at'],
    }


class ShareTokenService:
    """
    Issues and verifies share tokens.

    Args:
        secret: Signing secret. Required; an empty secret raises
            ConfigurationError right away instead of on the first request.
        app_url: Public base URL used to build links
        find_patient: Callable(patient_id) -> patient dict or None
        list_measurements: Callable(patient_id) -> measurements, newest first
        validity: How long a token stays valid (default 2 days)
    """

    def __init__(self, secret: str, app_url: str,
                 find_patient: Callable = None,
                 list_measurements: Callable = None,
                 validity: timedelta = timedelta(days=config.SHARE_LINK_DAYS)):
        if not secret:
            raise ConfigurationError(
                "JWT_SECRET is not configured, share links cannot be signed")
        self._secret = secret
        self.app_url = (app_url or '').rstrip('/')
        self.find_patient = find_patient or models.get_patient_by_id
        self.list_measurements = list_measurements or models.list_measurements
        self.validity = validity

    @classmethod
    def from_config(cls) -> "ShareTokenService":
        """Build the service from JWT_SECRET and APP_URL."""
        return cls(config.JWT_SECRET, config.APP_URL)

    # ------------------------------------------------------------
    # Issuing
    # ------------------------------------------------------------

    def issue_token(self, user_id: str, now: datetime = None) -> str:
        """Sign a share token for a patient. Does not check the patient exists."""
        if now is None:
            now = datetime.now(timezone.utc)
        payload = {
            'userId': user_id,
            'type': SHARE_TOKEN_TYPE,
            'iat': now,
            'exp': now + self.validity,
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.exception("Failed to sign share token")
            raise InternalError("Could not sign share token") from e

    def issue_share_link(self, user_id: str) -> dict:
        """
        Create a share link for a patient.

        Returns:
            {'share_url': '<app_url>/shared/<token>'}

        Raises:
            ValidationError: no user ID given
            NotFoundError: the patient doesn't exist (no token is created)
            InternalError: signing or lookup failed
        """
        if not user_id or not isinstance(user_id, str):
            raise ValidationError("User ID is required")

        if self._lookup(self.find_patient, user_id) is None:
            raise NotFoundError("User not found")

        token = self.issue_token(user_id)
        logger.info("Share link issued for patient %s", user_id)

        return {'share_url': f"{self.app_url}/shared/{token}"}

    # ------------------------------------------------------------
    # Verifying
    # ------------------------------------------------------------

    def check_token(self, token: str) -> TokenCheck:
        """
        Decode and verify a token.

        Never raises for a bad token; the result says what was wrong.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={'require': ['exp', 'iat']},
            )
        except jwt.ExpiredSignatureError:
            return TokenCheck(reason=RejectionReason.EXPIRED)
        except jwt.InvalidSignatureError:
            return TokenCheck(reason=RejectionReason.BAD_SIGNATURE)
        except jwt.InvalidTokenError:
            return TokenCheck(reason=RejectionReason.MALFORMED)

        if payload.get('type') != SHARE_TOKEN_TYPE:
            return TokenCheck(reason=RejectionReason.WRONG_TYPE)

        user_id = payload.get('userId')
        if not user_id or not isinstance(user_id, str):
            return TokenCheck(reason=RejectionReason.MALFORMED)

        return TokenCheck(payload=payload)

    def verify_and_fetch(self, token: str) -> dict:
        """
        Return the shared view for a token.

        Returns:
            {
                'user': {'name': ..., 'email': ...},
                'measurements': [...],   # newest first, tags joined with ", "
                'token_info': {'user_id': ..., 'issued_at': datetime,
                               'expires_at': datetime},
            }

        Raises:
            ValidationError: no token given
            TokenRejected: bad signature, expired or not a share token
            NotFoundError: the patient no longer exists
            InternalError: the data store failed
        """
        if not token or not isinstance(token, str):
            raise ValidationError("Token is required")

        check = self.check_token(token)
        if not check.ok:
            logger.info("Share token rejected: %s", check.reason.value)
            raise TokenRejected()

        payload = check.payload
        user_id = payload['userId']

        patient = self._lookup(self.find_patient, user_id)
        if patient is None:
            raise NotFoundError("User not found")

        measurements = self._lookup(self.list_measurements, user_id)

        return {
            'user': {
                'name': patient['name'],
                'email': patient['email'],
            },
            'measurements': [format_shared_measurement(m) for m in measurements],
            'token_info': {
                'user_id': user_id,
                'issued_at': datetime.fromtimestamp(payload['iat'], tz=timezone.utc),
                'expires_at': datetime.fromtimestamp(payload['exp'], tz=timezone.utc),
            },
        }

    def _lookup(self, func: Callable, *args):
        """Call the data store, turning unexpected failures into InternalError."""
        try:
            return func(*args)
        except BPTrackerError:
            raise
        except Exception as e:
            logger.exception("Data store lookup failed")
            raise InternalError("Data store lookup failed") from e
