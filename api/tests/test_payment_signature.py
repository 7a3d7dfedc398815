from api.app.payments.signature import sign, verify

KNOWN = "444ab3353f39d9a6cd042ce01e598f3a2819f46159b58f0ff40d4eed15d8e158"


def test_sign_matches_known_digest():
    assert sign("test_secret", "order_1", "pay_1") == KNOWN


def test_verify_accepts_valid_signature():
    assert verify("test_secret", "order_1", "pay_1", KNOWN)
    assert verify("test_secret", "order_1", "pay_1", KNOWN.upper())


def test_verify_rejects_tampering():
    assert not verify("test_secret", "order_1", "pay_2", KNOWN)
    assert not verify("other_secret", "order_1", "pay_1", KNOWN)
    assert not verify("test_secret", "order_1", "pay_1", KNOWN[:-1] + "0")


def test_verify_without_secret_or_signature_fails():
    assert not verify("", "order_1", "pay_1", KNOWN)
    assert not verify("test_secret", "order_1", "pay_1", "")
