class IngestionError(Exception):
    """Base class for errors that end an item's processing."""


class FetchError(IngestionError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ExtractionError(IngestionError):
    pass


class PdfExtractionError(IngestionError):
    pass


class BatchNotFoundError(IngestionError):
    def __init__(self, batch_id: str) -> None:
        super().__init__(f"Batch not found: {batch_id}")
        self.batch_id = batch_id
