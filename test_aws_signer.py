"""
SigV4 signer tests.

Uses the published AWS example request (IAM ListUsers, 2015-08-30) so the
canonical request, signing key and signature are checked against known values.
"""

import hashlib
from datetime import datetime, timedelta, timezone

from upgrade_advisor.tools.aws_signer import (
    AwsSigV4Signer,
    alternate_service_name,
    canonical_query,
    canonical_uri,
    derive_signing_key,
)

# ─── AWS example credentials ─────────────────────────────────────────────────

ACCESS_KEY = "AKIDEXAMPLE"
SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"
EXAMPLE_TIME = datetime(2015, 8, 30, 12, 36, 0, tzinfo=timezone.utc)
EXAMPLE_URL = "https://iam.amazonaws.com/?Action=ListUsers&Version=2010-05-08"
EXAMPLE_HEADERS = {"Content-Type": "application/x-www-form-urlencoded; charset=utf-8"}


def _example_signer() -> AwsSigV4Signer:
    return AwsSigV4Signer(ACCESS_KEY, SECRET_KEY, "us-east-1")


def test_canonical_request_matches_aws_example():
    context = _example_signer().build_context("GET", EXAMPLE_URL, "iam", EXAMPLE_TIME, headers=EXAMPLE_HEADERS)

    assert context.canonical_request == "\n".join([
        "GET",
        "/",
        "Action=ListUsers&Version=2010-05-08",
        "content-type:application/x-www-form-urlencoded; charset=utf-8",
        "host:iam.amazonaws.com",
        "x-amz-date:20150830T123600Z",
        "",
        "content-type;host;x-amz-date",
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
    ])
    assert hashlib.sha256(context.canonical_request.encode()).hexdigest() == (
        "f536975d06c0309214f805bb90ccff089219ecd68b2577efef23edd43b7e1a59"
    )


def test_signing_key_matches_aws_example():
    key = derive_signing_key(SECRET_KEY, "20150830", "us-east-1", "iam")
    assert key.hex() == "c4afb1cc5771d871763a393e44b703571b55cc28424d1a5e86da6ed3c154a4b9"


def test_authorization_header_matches_aws_example():
    header = _example_signer().sign("GET", EXAMPLE_URL, "iam", EXAMPLE_TIME, headers=EXAMPLE_HEADERS)
    assert header == (
        "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20150830/us-east-1/iam/aws4_request, "
        "SignedHeaders=content-type;host;x-amz-date, "
        "Signature=5d672d79c15b13162d9279b0855cfba6789a8edb4c82c400e06b5924a6f2b5d7"
    )


def test_string_to_sign_layout():
    context = _example_signer().build_context("GET", EXAMPLE_URL, "iam", EXAMPLE_TIME, headers=EXAMPLE_HEADERS)
    lines = context.string_to_sign().split("\n")
    assert lines == [
        "AWS4-HMAC-SHA256",
        "20150830T123600Z",
        "20150830/us-east-1/iam/aws4_request",
        "f536975d06c0309214f805bb90ccff089219ecd68b2577efef23edd43b7e1a59",
    ]


# ─── Determinism and parameterization ────────────────────────────────────────

def test_same_inputs_give_identical_signature():
    signer = AwsSigV4Signer("AKIDTEST", "secret", "us-west-2")
    url = "https://bedrock.us-west-2.amazonaws.com/foundation-models"
    first = signer.sign("GET", url, "bedrock", EXAMPLE_TIME)
    for _ in range(5):
        assert signer.sign("GET", url, "bedrock", EXAMPLE_TIME) == first


def test_service_name_changes_scope_and_signature():
    signer = AwsSigV4Signer("AKIDTEST", "secret", "us-east-1")
    url = "https://bedrock-runtime.us-east-1.amazonaws.com/model/x/invoke"
    as_bedrock = signer.sign("POST", url, "bedrock", EXAMPLE_TIME, payload=b"{}")
    as_runtime = signer.sign("POST", url, "bedrock-runtime", EXAMPLE_TIME, payload=b"{}")

    assert "/us-east-1/bedrock/aws4_request" in as_bedrock
    assert "/us-east-1/bedrock-runtime/aws4_request" in as_runtime
    assert as_bedrock.split("Signature=")[1] != as_runtime.split("Signature=")[1]


def test_payload_is_part_of_signature():
    signer = AwsSigV4Signer("AKIDTEST", "secret", "us-east-1")
    url = "https://bedrock-runtime.us-east-1.amazonaws.com/model/x/invoke"
    assert signer.sign("POST", url, "bedrock", EXAMPLE_TIME, payload=b'{"a": 1}') != \
        signer.sign("POST", url, "bedrock", EXAMPLE_TIME, payload=b'{"a": 2}')


def test_sign_headers_uses_a_fresh_timestamp_per_call():
    times = iter([EXAMPLE_TIME, EXAMPLE_TIME + timedelta(seconds=7)])
    signer = AwsSigV4Signer("AKIDTEST", "secret", "us-east-1", clock=lambda: next(times))
    url = "https://bedrock-runtime.us-east-1.amazonaws.com/model/x/invoke"

    first = signer.sign_headers("POST", url, b"{}")
    second = signer.sign_headers("POST", url, b"{}")

    assert first["X-Amz-Date"] == "20150830T123600Z"
    assert second["X-Amz-Date"] == "20150830T123607Z"
    assert first["Authorization"] != second["Authorization"]
    assert first["Host"] == "bedrock-runtime.us-east-1.amazonaws.com"


def test_auth_hook_signs_with_given_service():
    signer = AwsSigV4Signer("AKIDTEST", "secret", "eu-west-1", clock=lambda: EXAMPLE_TIME)
    hook = signer.auth_hook("bedrock-runtime")
    headers = hook("POST", "https://bedrock-runtime.eu-west-1.amazonaws.com/model/x/invoke", b"{}")
    assert "Credential=AKIDTEST/20150830/eu-west-1/bedrock-runtime/aws4_request" in headers["Authorization"]
    assert "SignedHeaders=host;x-amz-date" in headers["Authorization"]


def test_secret_is_not_in_context_repr():
    context = _example_signer().build_context("GET", EXAMPLE_URL, "iam", EXAMPLE_TIME)
    assert SECRET_KEY not in repr(context)


# ─── Canonical helpers ───────────────────────────────────────────────────────

def test_model_id_path_is_double_encoded():
    path = "/model/anthropic.claude-3-5-sonnet-20241022-v2%3A0/invoke"
    assert canonical_uri(path, "bedrock") == "/model/anthropic.claude-3-5-sonnet-20241022-v2%253A0/invoke"
    assert canonical_uri(path, "s3") == path
    assert canonical_uri("", "bedrock") == "/"


def test_query_is_sorted_and_encoded():
    assert canonical_query("b=2&a=1&c=x y") == "a=1&b=2&c=x%20y"
    assert canonical_query("") == ""


def test_alternate_service_name():
    assert alternate_service_name("bedrock") == "bedrock-runtime"
    assert alternate_service_name("bedrock-runtime") == "bedrock"
