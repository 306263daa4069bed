"""
Steam OpenID 2.0 service.

Builds the indirect ``checkid_setup`` request that sends the browser to the
provider, and validates the provider's callback by replaying the signed
parameters back to the provider with ``openid.mode=check_authentication``.
Uses ``httpx`` for the server-to-server round trip.
"""

import logging
import re
from typing import Mapping, Optional, Protocol
from urllib.parse import urlencode, urlsplit

import httpx

logger = logging.getLogger(__name__)

OPENID_NS = "http://specs.openid.net/auth/2.0"
IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"

# Fields the provider always includes and that must be echoed back verbatim
_REQUIRED_FIELDS = (
    "openid.assoc_handle",
    "openid.signed",
    "openid.sig",
    "openid.claimed_id",
    "openid.return_to",
    "openid.op_endpoint",
)

# Fields the provider signature must cover for the assertion to bind to us
_MUST_BE_SIGNED = ("claimed_id", "return_to", "op_endpoint")

# Steam claimed ids look like https://steamcommunity.com/openid/id/<steamid64>
_CLAIMED_ID_RE = re.compile(r"/(\d+)/?$")


class OpenIDError(Exception):
    """Base class for OpenID callback validation failures."""


class CallbackMalformed(OpenIDError):
    """The callback query string is missing provider fields or is not a positive assertion."""


class TransportError(OpenIDError):
    """The provider could not be reached, timed out, or answered with an HTTP error."""


class MalformedResponse(OpenIDError):
    """The provider's verification response is missing or cannot be parsed."""


class AssertionInvalid(OpenIDError):
    """The provider explicitly rejected the assertion."""


class CallbackValidator(Protocol):
    """Capability needed by the login endpoints."""

    def build_redirect(self, return_url: str) -> str: ...

    async def validate_callback(self, params: Mapping[str, str]) -> str: ...


class OpenIDValidator:
    """
    Stateless OpenID 2.0 relying party for a single provider.

    Args:
        provider_url: The provider's OpenID endpoint
            (e.g. ``https://steamcommunity.com/openid/login``).
        return_url: This service's callback URL. Assertions addressed to
            any other ``return_to`` are refused.
        timeout: Upper bound, in seconds, for the verification round trip.
        transport: Optional ``httpx`` transport (used by tests).
    """

    def __init__(
        self,
        provider_url: str,
        return_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider_url = provider_url
        self.return_url = return_url
        self.timeout = timeout
        self._transport = transport

    def build_redirect(self, return_url: str) -> str:
        """Return the provider URL the browser should be redirected to."""
        parts = urlsplit(return_url)
        params = {
            "openid.ns": OPENID_NS,
            "openid.mode": "checkid_setup",
            "openid.return_to": return_url,
            "openid.realm": f"{parts.scheme}://{parts.netloc}",
            "openid.identity": IDENTIFIER_SELECT,
            "openid.claimed_id": IDENTIFIER_SELECT,
        }
        return f"{self.provider_url}?{urlencode(params)}"

    async def validate_callback(self, params: Mapping[str, str]) -> str:
        """
        Confirm a callback assertion with the provider and return the identity.

        The client-supplied assertion is never trusted on its own: the signed
        fields are posted back to the provider, which must answer
        ``is_valid:true``.

        Before the round trip the assertion must be addressed to this
        service: ``openid.return_to`` has to match :attr:`return_url`,
        ``openid.op_endpoint`` has to be :attr:`provider_url`, and both
        fields plus ``claimed_id`` have to be covered by the signature.

        Note: there is no ``response_nonce`` replay tracking or freshness
        check, so a captured callback URL can be replayed for as long as the
        provider keeps accepting it.

        Raises:
            CallbackMalformed: Required ``openid.*`` fields are missing, or
                the assertion was issued for another return URL or provider.
            TransportError: The provider could not be reached in time.
            MalformedResponse: The verification response has no validity flag.
            AssertionInvalid: The provider rejected the assertion.
        """
        check_params = self._check_authentication_params(params)
        self._check_audience(params)
        identity = self._identity_from_claimed_id(params["openid.claimed_id"])

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport,
            ) as client:
                resp = await client.post(self.provider_url, data=check_params)
                resp.raise_for_status()
                body = resp.text
        except httpx.HTTPError as exc:
            logger.error(f"OpenID verification request failed: {exc!r}")
            raise TransportError(f"provider verification failed: {exc}") from exc

        is_valid = _parse_key_values(body).get("is_valid")
        if is_valid is None:
            raise MalformedResponse("verification response has no is_valid field")
        if is_valid == "false":
            raise AssertionInvalid("provider rejected the assertion")
        if is_valid != "true":
            raise MalformedResponse(f"unexpected is_valid value: {is_valid!r}")

        logger.info(f"OpenID assertion verified for {identity}")
        return identity

    @staticmethod
    def _check_authentication_params(params: Mapping[str, str]) -> dict[str, str]:
        mode = params.get("openid.mode")
        if mode == "cancel":
            raise CallbackMalformed("login was cancelled at the provider")
        if mode != "id_res":
            raise CallbackMalformed(f"unexpected openid.mode: {mode!r}")

        missing = [name for name in _REQUIRED_FIELDS if not params.get(name)]
        if missing:
            raise CallbackMalformed(f"missing callback parameters: {', '.join(missing)}")

        signed = [name.strip() for name in params["openid.signed"].split(",")]
        unsigned = [name for name in _MUST_BE_SIGNED if name not in signed]
        if unsigned:
            raise CallbackMalformed(f"fields not covered by signature: {', '.join(unsigned)}")

        check = {
            "openid.ns": params.get("openid.ns", OPENID_NS),
            "openid.assoc_handle": params["openid.assoc_handle"],
            "openid.signed": params["openid.signed"],
            "openid.sig": params["openid.sig"],
        }
        for name in signed:
            key = f"openid.{name}"
            if key not in params:
                raise CallbackMalformed(f"signed field {key} is not present")
            check[key] = params[key]

        check["openid.mode"] = "check_authentication"
        return check

    def _check_audience(self, params: Mapping[str, str]) -> None:
        if params["openid.op_endpoint"] != self.provider_url:
            raise CallbackMalformed(
                f"assertion issued by another endpoint: {params['openid.op_endpoint']}"
            )

        expected = urlsplit(self.return_url)
        actual = urlsplit(params["openid.return_to"])
        if (
            actual.scheme.lower() != expected.scheme.lower()
            or actual.netloc.lower() != expected.netloc.lower()
            or actual.path != expected.path
        ):
            raise CallbackMalformed(
                f"assertion issued for another return URL: {params['openid.return_to']}"
            )

    @staticmethod
    def _identity_from_claimed_id(claimed_id: str) -> str:
        match = _CLAIMED_ID_RE.search(claimed_id)
        if not match:
            raise CallbackMalformed(f"claimed_id has no numeric identity: {claimed_id}")
        return match.group(1)


def _parse_key_values(body: str) -> dict[str, str]:
    """Parse an OpenID key-value form (``key:value`` per line)."""
    values = {}
    for line in body.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            values[key.strip()] = value.strip()
    return values
