from typing import Literal

ContentTypeLabel = Literal["article", "product", "social", "video", "other", "pdf"]
RemoteLabel = Literal["article", "product", "social", "video", "other"]
ClassificationSource = Literal["url", "remote", "default", "pdf"]

REMOTE_LABELS: tuple[RemoteLabel, ...] = ("article", "product", "social", "video", "other")
DEFAULT_LABEL: ContentTypeLabel = "other"
