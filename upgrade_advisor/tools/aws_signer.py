"""
AWS Signature Version 4 request signing for Bedrock.

Canonical request -> string-to-sign -> derived key -> signature, exactly as
AWS verifies it. The service name is a parameter because Bedrock's endpoint
host and signing name do not always agree ("bedrock" vs "bedrock-runtime").
Every call gets its own timestamp; signatures are never reused.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import parse_qsl, quote, urlsplit

from ..schemas.analysis import AuthHook

logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
EMPTY_PAYLOAD_HASH = hashlib.sha256(b"").hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_access_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """HMAC chain: "AWS4"+secret -> date -> region -> service -> "aws4_request"."""
    k_date = _hmac(("AWS4" + secret_access_key).encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def canonical_uri(path: str, service: str) -> str:
    """URI-encode the (already URL-encoded) path; S3 is the only service signed single-encoded."""
    if not path:
        return "/"
    if service == "s3":
        return path
    return quote(path, safe="/~")


def canonical_query(query: str) -> str:
    pairs = parse_qsl(query, keep_blank_values=True)
    encoded = [(quote(k, safe="-_.~"), quote(v, safe="-_.~")) for k, v in pairs]
    return "&".join(f"{k}={v}" for k, v in sorted(encoded))


def canonical_headers(headers: Dict[str, str]) -> Tuple[str, str]:
    """Return (header block, signed header names) for the given headers."""
    normalized: Dict[str, str] = {}
    for name, value in headers.items():
        normalized[name.strip().lower()] = " ".join(str(value).split())
    names = sorted(normalized)
    block = "".join(f"{name}:{normalized[name]}\n" for name in names)
    return block, ";".join(names)


@dataclass
class SigningContext:
    """Everything that goes into one signature. Rebuilt for every request."""

    timestamp: datetime
    region: str
    service: str
    access_key_id: str
    secret_access_key: str = field(repr=False)
    canonical_request: str = ""
    signed_headers: str = ""

    @property
    def amz_date(self) -> str:
        return self.timestamp.strftime("%Y%m%dT%H%M%SZ")

    @property
    def date_stamp(self) -> str:
        return self.timestamp.strftime("%Y%m%d")

    @property
    def credential_scope(self) -> str:
        return f"{self.date_stamp}/{self.region}/{self.service}/aws4_request"

    def string_to_sign(self) -> str:
        request_hash = hashlib.sha256(self.canonical_request.encode("utf-8")).hexdigest()
        return "\n".join([ALGORITHM, self.amz_date, self.credential_scope, request_hash])

    def signature(self) -> str:
        key = derive_signing_key(self.secret_access_key, self.date_stamp, self.region, self.service)
        return hmac.new(key, self.string_to_sign().encode("utf-8"), hashlib.sha256).hexdigest()

    def authorization(self) -> str:
        return (
            f"{ALGORITHM} Credential={self.access_key_id}/{self.credential_scope}, "
            f"SignedHeaders={self.signed_headers}, Signature={self.signature()}"
        )


class AwsSigV4Signer:
    """Signs outbound Bedrock requests with an access key pair.

    Credentials are read-only for the signer's lifetime. The clock is
    injectable so tests can pin the timestamp.
    """

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        region: str,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self.region = region
        self._clock = clock or _utcnow

    def build_context(
        self,
        method: str,
        url: str,
        service: str,
        timestamp: datetime,
        payload: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> SigningContext:
        parts = urlsplit(url)
        context = SigningContext(
            timestamp=timestamp.astimezone(timezone.utc) if timestamp.tzinfo else timestamp,
            region=self.region,
            service=service,
            access_key_id=self.access_key_id,
            secret_access_key=self._secret_access_key,
        )

        to_sign = dict(headers or {})
        to_sign["host"] = parts.netloc
        to_sign["x-amz-date"] = context.amz_date
        header_block, signed_headers = canonical_headers(to_sign)

        context.signed_headers = signed_headers
        context.canonical_request = "\n".join([
            method.upper(),
            canonical_uri(parts.path, service),
            canonical_query(parts.query),
            header_block,
            signed_headers,
            hashlib.sha256(payload).hexdigest() if payload else EMPTY_PAYLOAD_HASH,
        ])
        return context

    def sign(
        self,
        method: str,
        url: str,
        service: str,
        timestamp: datetime,
        payload: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """Authorization header value for the request. Deterministic for fixed inputs."""
        return self.build_context(method, url, service, timestamp, payload, headers).authorization()

    def sign_headers(
        self,
        method: str,
        url: str,
        payload: bytes = b"",
        service: str = "bedrock",
        timestamp: Optional[datetime] = None,
    ) -> Dict[str, str]:
        """Host, X-Amz-Date and Authorization headers stamped with the current time."""
        context = self.build_context(method, url, service, timestamp or self._clock(), payload)
        logger.debug(f"SigV4: signing {method} {urlsplit(url).path} as '{service}' ({context.credential_scope})")
        return {
            "Host": urlsplit(url).netloc,
            "X-Amz-Date": context.amz_date,
            "Authorization": context.authorization(),
        }

    def auth_hook(self, service: str) -> AuthHook:
        """Hook for ProviderRequest.auth that re-signs on every attempt."""
        def _sign(method: str, url: str, content: bytes) -> Dict[str, str]:
            return self.sign_headers(method, url, content, service=service)
        return _sign


def alternate_service_name(service: str) -> str:
    """The other signing name Bedrock may expect."""
    return "bedrock-runtime" if service == "bedrock" else "bedrock"
