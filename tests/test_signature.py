from aquahome.services import SignatureVerifier
from tests.conftest import TEST_SECRET, sign


def test_compute_matches_gateway_scheme():
    assert SignatureVerifier.compute("order_gw_1", "pay_1", TEST_SECRET) == sign("order_gw_1", "pay_1")


def test_verify_accepts_valid_signature():
    assert SignatureVerifier.verify("order_gw_1", "pay_1", TEST_SECRET, sign("order_gw_1", "pay_1"))


def test_verify_rejects_tampered_inputs():
    signature = sign("order_gw_1", "pay_1")
    assert not SignatureVerifier.verify("order_gw_1", "pay_2", TEST_SECRET, signature)
    assert not SignatureVerifier.verify("order_gw_2", "pay_1", TEST_SECRET, signature)
    assert not SignatureVerifier.verify("order_gw_1", "pay_1", "another_secret", signature)
    flipped = signature[:-1] + ("1" if signature.endswith("0") else "0")
    assert not SignatureVerifier.verify("order_gw_1", "pay_1", TEST_SECRET, flipped)


def test_verify_rejects_empty_values():
    signature = sign("order_gw_1", "pay_1")
    assert not SignatureVerifier.verify("", "pay_1", TEST_SECRET, signature)
    assert not SignatureVerifier.verify("order_gw_1", "", TEST_SECRET, signature)
    assert not SignatureVerifier.verify("order_gw_1", "pay_1", "", signature)
    assert not SignatureVerifier.verify("order_gw_1", "pay_1", TEST_SECRET, "")


def test_verify_handles_non_ascii_signature():
    assert not SignatureVerifier.verify("order_gw_1", "pay_1", TEST_SECRET, "é" * 64)
