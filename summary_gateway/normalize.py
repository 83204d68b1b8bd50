# summary_gateway/normalize.py - canonical form of request text before hashing
import re

# a run of CRs before LF collapses fully, so normalizing twice is a no-op
_CRLF = re.compile(r"\r+\n")


def normalize_text(raw: str) -> str:
    """CRLF -> LF, then strip surrounding whitespace. Never fails."""
    return _CRLF.sub("\n", raw).strip()
