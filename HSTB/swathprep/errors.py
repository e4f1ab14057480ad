from enum import Enum
from dataclasses import dataclass


class ConfigError(ValueError):
    """
    Bad path, unknown format, malformed platform/latency file or inconsistent options.  Always fatal, raised before
    any pass begins.
    """
    pass


class SwathIOError(OSError):
    """
    Read/write failure on a swath or side file.  Fatal for the required output streams, for an input file the file is
    skipped and the run continues.
    """
    pass


@dataclass
class DataAnomaly:
    """
    Non-monotonic or empty ancillary source, repaired timestamps, etc.  Counted and reported at the end of the run,
    never raised.
    """
    channel: str
    description: str
    count: int = 1

    def __str__(self):
        return f'{self.channel}: {self.description} ({self.count})'


class InterpolationEdgeCase(Enum):
    """
    Where an interpolation query falls relative to the series.  Queries outside the series are clamped to the nearest
    end sample, this is not an error.
    """
    BEFORE = -1
    INSIDE = 0
    AFTER = 1
