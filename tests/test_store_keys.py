import hashlib

from store import keys


def test_slug_consistency():
    v = "hello"
    assert keys._slug(v) == hashlib.sha256(v.encode()).hexdigest()[:32]


def test_keys_format():
    tid = "tenant"
    assert keys.watermark(tid, "abc") == f"hf:{tid}:watermark:abc"
    assert keys.alert_state(tid, "abc", "page-fast").startswith(f"hf:{tid}:alert:abc:")
    assert keys.policy_state(tid, "checkout") == f"hf:{tid}:policy:{keys._slug('checkout')}"
    assert keys.alert_states(tid) == f"hf:{tid}:alert:*"
