"""AWS Signature Version 4 request signing.

Pure functions: given the same request parts, credentials and timestamp the
same signature comes out. Used by the Amazon PA-API client but kept apart
from any HTTP code so it can be tested on its own.

Reference: https://docs.aws.amazon.com/IAM/latest/UserGuide/create-signed-request.html
"""

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Tuple

ALGORITHM = "AWS4-HMAC-SHA256"


@dataclass(frozen=True)
class SigV4Credentials:
    """Credentials and scope for one signed service."""

    access_key: str
    secret_key: str
    region: str
    service: str


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def sha256_hex(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def amz_timestamps(timestamp: datetime) -> Tuple[str, str]:
    """Return (amz_date, date_stamp) for a timestamp, converted to UTC."""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime("%Y%m%dT%H%M%SZ"), timestamp.strftime("%Y%m%d")


def canonical_headers(headers: Mapping[str, str]) -> Tuple[str, str]:
    """Build the canonical header block and the signed-headers list.

    Header names are lowercased and sorted, values trimmed with inner
    whitespace collapsed.

    Returns:
        Tuple of (canonical_headers, signed_headers)
    """
    normalized = {
        name.strip().lower(): " ".join(str(value).split())
        for name, value in headers.items()
    }
    names = sorted(normalized)
    block = "".join(f"{name}:{normalized[name]}\n" for name in names)
    return block, ";".join(names)


def canonical_request(
    method: str,
    path: str,
    query: str,
    headers: Mapping[str, str],
    payload: bytes,
) -> Tuple[str, str]:
    """Build the canonical request string.

    Returns:
        Tuple of (canonical_request, signed_headers)
    """
    header_block, signed_headers = canonical_headers(headers)
    request = "\n".join(
        [
            method.upper(),
            path or "/",
            query,
            header_block,
            signed_headers,
            sha256_hex(payload),
        ]
    )
    return request, signed_headers


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive the per-day, per-region, per-service signing key."""
    k_date = _hmac(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def sign_request(
    method: str,
    path: str,
    headers: Mapping[str, str],
    payload: bytes,
    *,
    credentials: SigV4Credentials,
    timestamp: datetime,
    query: str = "",
) -> Dict[str, str]:
    """Sign a request and return the headers to send.

    The ``host`` header must be among ``headers``. ``x-amz-date`` is added
    from ``timestamp`` and signed with the rest.

    Args:
        method: HTTP method
        path: Canonical URI path (e.g. "/paapi5/searchitems")
        headers: Headers to sign
        payload: Exact request body bytes
        credentials: Access/secret key plus region and service scope
        timestamp: Signing time
        query: Canonical query string (already sorted and encoded)

    Returns:
        The input headers plus X-Amz-Date and Authorization
    """
    amz_date, date_stamp = amz_timestamps(timestamp)

    to_sign = dict(headers)
    to_sign["X-Amz-Date"] = amz_date

    request, signed_headers = canonical_request(method, path, query, to_sign, payload)

    credential_scope = f"{date_stamp}/{credentials.region}/{credentials.service}/aws4_request"
    string_to_sign = "\n".join(
        [ALGORITHM, amz_date, credential_scope, sha256_hex(request.encode("utf-8"))]
    )

    signing_key = derive_signing_key(
        credentials.secret_key, date_stamp, credentials.region, credentials.service
    )
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    to_sign["Authorization"] = (
        f"{ALGORITHM} "
        f"Credential={credentials.access_key}/{credential_scope}, "
        f"SignedHeaders={signed_headers}, "
        f"Signature={signature}"
    )
    return to_sign
