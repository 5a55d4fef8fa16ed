# /scanrules/domain/text_match.py
from __future__ import annotations

import logging
import re

LOG = logging.getLogger("domain.text_match")


def regexp_matches(string: str | None, pattern: str | None) -> bool:
    if string is None or pattern is None:
        return False
    try:
        return re.search(pattern, string) is not None
    except re.error as e:
        LOG.debug("regexp.invalid", extra={"extra": {"pattern": pattern, "error": str(e)}})
        return False
