"""
Unit tests for Stripe-Signature verification
"""

from bolao.api.webhooks import compute_stripe_signature, verify_stripe_signature

SECRET = "whsec_unit"
BODY = b'{"id": "evt_1", "type": "checkout.session.completed"}'
NOW = 1_700_000_000


def header_for(body: bytes, timestamp: int = NOW, secret: str = SECRET) -> str:
    return f"t={timestamp},v1={compute_stripe_signature(secret, timestamp, body)}"


def test_valid_signature():
    assert verify_stripe_signature(header_for(BODY), BODY, SECRET, tolerance=300, now=NOW)


def test_any_matching_v1_is_accepted():
    good = compute_stripe_signature(SECRET, NOW, BODY)
    header = f"t={NOW},v1={'0' * 64},v1={good}"
    assert verify_stripe_signature(header, BODY, SECRET, tolerance=300, now=NOW)


def test_tampered_body_is_rejected():
    assert not verify_stripe_signature(header_for(BODY), BODY + b" ", SECRET, tolerance=300, now=NOW)


def test_wrong_secret_is_rejected():
    header = header_for(BODY, secret="whsec_other")
    assert not verify_stripe_signature(header, BODY, SECRET, tolerance=300, now=NOW)


def test_stale_timestamp_is_rejected():
    header = header_for(BODY, timestamp=NOW - 301)
    assert not verify_stripe_signature(header, BODY, SECRET, tolerance=300, now=NOW)


def test_missing_or_malformed_header():
    assert not verify_stripe_signature(None, BODY, SECRET, tolerance=300, now=NOW)
    assert not verify_stripe_signature("garbage", BODY, SECRET, tolerance=300, now=NOW)
    assert not verify_stripe_signature("t=abc,v1=00", BODY, SECRET, tolerance=300, now=NOW)


def test_no_secret_configured_skips_verification():
    assert verify_stripe_signature(None, BODY, None, tolerance=300, now=NOW)
