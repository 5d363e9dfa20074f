"""Tests for AWS Signature Version 4 request signing."""

from datetime import datetime, timedelta, timezone

from pricelens.integrations.utils.signing import (
    SigV4Credentials,
    amz_timestamps,
    canonical_headers,
    canonical_request,
    derive_signing_key,
    sha256_hex,
    sign_request,
)

EXAMPLE_SECRET = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"
EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def _credentials(service: str = "service") -> SigV4Credentials:
    return SigV4Credentials(
        access_key="AKIDEXAMPLE",
        secret_key=EXAMPLE_SECRET,
        region="us-east-1",
        service=service,
    )


class TestSigningPrimitives:

    def test_sha256_of_empty_payload(self):
        assert sha256_hex(b"") == EMPTY_SHA256

    def test_derive_signing_key_published_example(self):
        key = derive_signing_key(EXAMPLE_SECRET, "20120215", "us-east-1", "iam")
        assert key.hex() == "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"

    def test_amz_timestamps_converts_to_utc(self):
        local = datetime(2015, 8, 30, 14, 36, tzinfo=timezone(timedelta(hours=2)))
        assert amz_timestamps(local) == ("20150830T123600Z", "20150830")

    def test_canonical_headers_sorted_lowercase_collapsed(self):
        block, signed = canonical_headers(
            {"X-Amz-Date": "20150830T123600Z", "Host": "example.amazonaws.com", "My-Header": "  a   b  "}
        )
        assert block == (
            "host:example.amazonaws.com\n"
            "my-header:a b\n"
            "x-amz-date:20150830T123600Z\n"
        )
        assert signed == "host;my-header;x-amz-date"

    def test_canonical_request_layout(self):
        request, signed = canonical_request(
            "get",
            "/",
            "",
            {"Host": "example.amazonaws.com", "X-Amz-Date": "20150830T123600Z"},
            b"",
        )
        assert request == (
            "GET\n"
            "/\n"
            "\n"
            "host:example.amazonaws.com\n"
            "x-amz-date:20150830T123600Z\n"
            "\n"
            "host;x-amz-date\n"
            + EMPTY_SHA256
        )
        assert signed == "host;x-amz-date"


class TestSignRequest:

    TIMESTAMP = datetime(2015, 8, 30, 12, 36, tzinfo=timezone.utc)

    def test_get_vanilla_vector(self):
        headers = sign_request(
            "GET",
            "/",
            {"Host": "example.amazonaws.com"},
            b"",
            credentials=_credentials(),
            timestamp=self.TIMESTAMP,
        )
        assert headers["X-Amz-Date"] == "20150830T123600Z"
        assert headers["Authorization"] == (
            "AWS4-HMAC-SHA256 "
            "Credential=AKIDEXAMPLE/20150830/us-east-1/service/aws4_request, "
            "SignedHeaders=host;x-amz-date, "
            "Signature=5fa00fa31553b73ebf1942676e86291e8372ff2a2260956d9b8aae1d763fbf31"
        )

    def test_same_inputs_same_signature(self):
        args = ("POST", "/paapi5/searchitems", {"host": "webservices.amazon.com"}, b'{"Keywords":"tv"}')
        first = sign_request(*args, credentials=_credentials(), timestamp=self.TIMESTAMP)
        second = sign_request(*args, credentials=_credentials(), timestamp=self.TIMESTAMP)
        assert first == second

    def test_signature_depends_on_payload_and_time(self):
        base = sign_request(
            "POST", "/x", {"host": "h"}, b"a", credentials=_credentials(), timestamp=self.TIMESTAMP
        )
        other_payload = sign_request(
            "POST", "/x", {"host": "h"}, b"b", credentials=_credentials(), timestamp=self.TIMESTAMP
        )
        later = sign_request(
            "POST",
            "/x",
            {"host": "h"},
            b"a",
            credentials=_credentials(),
            timestamp=self.TIMESTAMP + timedelta(seconds=1),
        )
        assert base["Authorization"] != other_payload["Authorization"]
        assert base["Authorization"] != later["Authorization"]

    def test_input_headers_not_mutated(self):
        headers = {"host": "h"}
        sign_request("GET", "/", headers, b"", credentials=_credentials(), timestamp=self.TIMESTAMP)
        assert headers == {"host": "h"}
