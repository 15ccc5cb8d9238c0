"""
HMAC-SHA256 request signing for the smart-plug cloud API.

The provider verifies every request against a signature computed as::

    body_hash      = SHA256(body)                      (lowercase hex)
    string_to_sign = method \\n body_hash \\n "" \\n path
    signature      = HMAC-SHA256(client_secret,
                                 client_id + t + string_to_sign)   (UPPER hex)

The third field of ``string_to_sign`` is reserved for signed headers, which
this client never sends. ``path`` includes the query string exactly as it
is sent on the wire.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import hashlib
import hmac
from dataclasses import dataclass

SIGN_METHOD = "HMAC-SHA256"


def compute_signature(
    client_id: str,
    client_secret: str,
    method: str,
    path: str,
    body: str,
    timestamp: str,
) -> str:
    """Compute the provider request signature.

    Args:
        client_id: API client identifier.
        client_secret: API client secret, used as the HMAC key.
        method: HTTP method (``"GET"``, ``"POST"``).
        path: Request path including any query string.
        body: Exact request body that will be sent (``""`` for none).
        timestamp: Epoch milliseconds as a decimal string.

    Returns:
        The signature as an uppercase hex string.
    """
    body_hash = hashlib.sha256(body.encode("utf-8")).hexdigest()
    string_to_sign = "\n".join([method, body_hash, "", path])
    payload = client_id + timestamp + string_to_sign
    digest = hmac.new(
        client_secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest.upper()


@dataclass(frozen=True)
class RequestSigner:
    """Signs requests and builds the provider auth headers for one client."""

    client_id: str
    client_secret: str
    api_version: str = "1.0"

    def sign(self, method: str, path: str, body: str, timestamp: str) -> str:
        return compute_signature(
            self.client_id, self.client_secret, method, path, body, timestamp
        )

    def headers(
        self,
        method: str,
        path: str,
        body: str,
        timestamp: str,
        access_token: str | None = None,
    ) -> dict[str, str]:
        """Build the header set every provider request carries.

        ``access_token`` is added for everything except the token endpoint.
        """
        headers = {
            "client_id": self.client_id,
            "sign": self.sign(method, path, body, timestamp),
            "sign_method": SIGN_METHOD,
            "t": timestamp,
            "v": self.api_version,
            "Content-Type": "application/json",
        }
        if access_token is not None:
            headers["access_token"] = access_token
        return headers
