# summary_gateway/origin_gate.py - CORS allowlist enforcement for browser callers
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional

PREFLIGHT_MAX_AGE_S = 86400


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    NO_ORIGIN = "no_origin"


@dataclass(frozen=True)
class CorsDecision:
    decision: Decision
    cors_headers: Dict[str, str] = field(default_factory=dict)
    is_preflight: bool = False

    @property
    def denied(self) -> bool:
        return self.decision is Decision.DENY


def cors_headers_for(origin: str) -> Dict[str, str]:
    return {
        "access-control-allow-origin": origin,
        "access-control-allow-methods": "POST, OPTIONS",
        "access-control-allow-headers": "Content-Type",
        "access-control-max-age": str(PREFLIGHT_MAX_AGE_S),
        "vary": "Origin",
    }


class OriginGate:
    """
    Requests without an Origin header are treated as non-browser callers:
    they are never denied and never get CORS headers. A present Origin must
    match the allowlist exactly.
    """

    def __init__(self, allowed_origins: Iterable[str]):
        self.allowed_origins = frozenset(allowed_origins)

    def evaluate(self, method: str, origin: Optional[str]) -> CorsDecision:
        preflight = method.upper() == "OPTIONS"
        if origin is None:
            return CorsDecision(Decision.NO_ORIGIN, is_preflight=preflight)
        if origin in self.allowed_origins:
            return CorsDecision(Decision.ALLOW, cors_headers_for(origin), is_preflight=preflight)
        return CorsDecision(Decision.DENY, is_preflight=preflight)
