"""Signed decision tokens.

Each decision link in the reviewer email carries a JWT bound to one case
and one action, expiring after a configurable TTL (24 hours by default).
The ``jti`` claim identifies the token so the case store can refuse a
second use.
"""

import time
from typing import Any, Dict
from uuid import uuid4

import jwt

from onboarding.errors import InvalidToken
from onboarding.models import DecisionAction
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

ALGORITHM = "HS256"


class DecisionTokenSigner:
    """Issues and verifies decision tokens with a shared secret."""

    def __init__(self, secret: str, ttl_seconds: int = 24 * 3600) -> None:
        if not secret:
            raise ValueError("Decision token secret must not be empty")
        self.secret = secret
        self.ttl_seconds = ttl_seconds

    def issue(self, case_id: str, action: DecisionAction) -> str:
        now = int(time.time())
        claims = {
            "sub": case_id,
            "action": DecisionAction(action).value,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + self.ttl_seconds,
        }
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str, case_id: str, action: DecisionAction) -> Dict[str, Any]:
        """Decode a token and check it was issued for this case and action.

        Raises:
            InvalidToken: If the token is malformed, forged, expired, or bound
                to a different case or action
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "action", "jti", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as e:
            LOGGER.warning(f"Expired decision token presented for case {case_id}")
            raise InvalidToken("Decision link has expired", original_error=e) from e
        except jwt.InvalidTokenError as e:
            LOGGER.warning(f"Invalid decision token presented for case {case_id}: {e}")
            raise InvalidToken("Invalid decision token", original_error=e) from e

        if claims["sub"] != case_id or claims["action"] != DecisionAction(action).value:
            LOGGER.warning(f"Decision token for {claims['sub']}/{claims['action']} presented for {case_id}/{action}")
            raise InvalidToken("Decision token was not issued for this case and action")

        return claims
