from typing import Protocol, runtime_checkable


@runtime_checkable
class LabelServicePort(Protocol):
    async def label(self, url: str, snippet: str) -> str | None: ...
    """Return the raw label token for a page, or None when the service has no answer."""
