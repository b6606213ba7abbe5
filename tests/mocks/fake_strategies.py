from typing import List, Optional

from mediarelay.extractors.base import BaseExtractor


class ScriptedExtractor(BaseExtractor):
    """Returns or raises a fixed outcome and logs its invocation."""

    def __init__(self, name: str, outcome, log: Optional[List[str]] = None, backend: Optional[str] = None):
        self.name = name
        self.outcome = outcome
        self.log = log if log is not None else []
        self.backend = backend
        self.calls = 0

    def supports(self, profile) -> bool:
        return self.backend is None or profile.direct == self.backend

    async def try_extract(self, url, profile):
        self.calls += 1
        self.log.append(self.name)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome
