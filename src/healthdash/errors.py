"""Exceptions raised by the aggregation engine and its data sources."""


class HealthDashError(Exception):
    """Base class for all healthdash errors."""


class MalformedSampleError(HealthDashError):
    """A sample of a recognized kind has an unparsable value or timestamp.

    Callers drop the single sample and continue with the rest of the batch.
    """

    def __init__(self, type_tag: str, reason: str) -> None:
        self.type_tag = type_tag
        self.reason = reason
        super().__init__(f"Malformed {type_tag} sample: {reason}")


class FetchError(HealthDashError):
    """One (day, metric) query against a data source failed."""


class SourceUnavailableError(HealthDashError):
    """The data source as a whole cannot be queried (authorization, offline)."""


class ArchiveParseError(HealthDashError):
    """An exported archive is corrupt and cannot be imported."""
