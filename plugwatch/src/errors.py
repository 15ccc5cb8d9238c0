"""
Typed error hierarchy for the smart-plug cloud client.

Only the token manager lets these escape to callers. The gateway's public
read/control operations catch them and degrade (empty list, ``None`` or
``False``) after logging.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""


class PlugCloudError(Exception):
    """Base class for every failure talking to the provider API."""


class AuthenticationError(PlugCloudError):
    """The token endpoint rejected the credentials or could not be reached."""


class TransportError(PlugCloudError):
    """Network failure, timeout, or non-2xx HTTP status on a resource call."""


class ProviderError(PlugCloudError):
    """Well-formed provider envelope with ``success=false``.

    Attributes:
        code: Provider error code, when the envelope carries one.
        msg: Provider error message.
    """

    def __init__(self, msg: str, code: int | str | None = None) -> None:
        super().__init__(f"Provider request failed: {msg} (code={code})")
        self.code = code
        self.msg = msg


class MappingError(PlugCloudError):
    """The response envelope itself could not be parsed."""
