from summary_gateway.origin_gate import Decision, OriginGate
from summary_gateway.settings import DEFAULT_ALLOWED_ORIGINS


def make_gate():
    return OriginGate(DEFAULT_ALLOWED_ORIGINS)


def test_allowed_origin_gets_full_header_set():
    result = make_gate().evaluate("POST", "https://blog.alearn.org.tw")
    assert result.decision is Decision.ALLOW
    assert result.cors_headers == {
        "access-control-allow-origin": "https://blog.alearn.org.tw",
        "access-control-allow-methods": "POST, OPTIONS",
        "access-control-allow-headers": "Content-Type",
        "access-control-max-age": "86400",
        "vary": "Origin",
    }
    assert not result.is_preflight


def test_unknown_origin_is_denied_without_headers():
    result = make_gate().evaluate("POST", "https://evil.example")
    assert result.denied
    assert result.cors_headers == {}


def test_missing_origin_is_not_denied_and_gets_no_headers():
    result = make_gate().evaluate("POST", None)
    assert result.decision is Decision.NO_ORIGIN
    assert not result.denied
    assert result.cors_headers == {}


def test_origin_match_is_exact():
    gate = make_gate()
    assert gate.evaluate("POST", "https://blog.alearn.org.tw/").denied
    assert gate.evaluate("POST", "HTTPS://BLOG.ALEARN.ORG.TW").denied
    assert gate.evaluate("POST", "").denied


def test_preflight_flag_and_injected_allowlist():
    gate = OriginGate(["https://only.example"])
    result = gate.evaluate("options", "https://only.example")
    assert result.is_preflight
    assert result.decision is Decision.ALLOW
    assert gate.evaluate("OPTIONS", "http://localhost:5173").denied
