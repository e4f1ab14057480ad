import os
import json
import logging
from enum import Enum
from dataclasses import dataclass, field, fields

import numpy as np

from HSTB.swathprep import swathprep_variables
from HSTB.swathprep.errors import ConfigError, SwathIOError


class RecordKind(Enum):
    DATA = 'data'
    COMMENT = 'comment'
    NAV = 'nav'
    NAV1 = 'nav1'
    NAV2 = 'nav2'
    NAV3 = 'nav3'
    ATTITUDE = 'attitude'
    ATTITUDE1 = 'attitude1'
    ATTITUDE2 = 'attitude2'
    ATTITUDE3 = 'attitude3'
    HEADING = 'heading'
    SENSORDEPTH = 'sensordepth'
    ALTITUDE = 'altitude'
    SOUNDSPEED = 'soundspeed'
    ERROR = 'error'  # unreadable record, counted and passed over


scalar_fields = ['time_d', 'longitude', 'latitude', 'speed', 'heading', 'sensordepth', 'draft', 'roll', 'pitch',
                 'heave', 'altitude', 'soundspeed']
beam_fields = ['beamflag', 'bath', 'bathacrosstrack', 'bathalongtrack', 'amp']
reduced_drop_fields = ['amp', 'sidescan']


def _empty_float():
    return np.zeros(0, dtype=np.float64)


@dataclass
class SwathRecord:
    """
    One record of a swath file.  Survey pings (kind DATA) carry navigation, attitude and the beam arrays, the other
    kinds only fill the fields relevant to them (ex: an ATTITUDE record fills roll/pitch/heave).

    Units: degrees for angles and positions, meters for depths/distances, km/hr for speed, m/s for sound speed.
    Beam depths are positive down relative to the sea surface.
    """
    kind: RecordKind
    time_d: float = 0.0
    longitude: float = 0.0
    latitude: float = 0.0
    speed: float = 0.0
    heading: float = 0.0
    sensordepth: float = 0.0
    draft: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    heave: float = 0.0
    altitude: float = 0.0
    soundspeed: float = 0.0
    beamflag: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint8))
    bath: np.ndarray = field(default_factory=_empty_float)
    bathacrosstrack: np.ndarray = field(default_factory=_empty_float)
    bathalongtrack: np.ndarray = field(default_factory=_empty_float)
    amp: np.ndarray = field(default_factory=_empty_float)
    sidescan: np.ndarray = field(default_factory=_empty_float)
    comment: str = ''

    def __post_init__(self):
        self.kind = RecordKind(self.kind)
        for fld in scalar_fields:
            setattr(self, fld, float(getattr(self, fld)))
        if not np.isfinite(self.time_d):
            raise ValueError('SwathRecord: time_d must be finite, found {}'.format(self.time_d))
        self.beamflag = np.asarray(self.beamflag, dtype=np.uint8)
        for fld in ['bath', 'bathacrosstrack', 'bathalongtrack', 'amp', 'sidescan']:
            setattr(self, fld, np.asarray(getattr(self, fld), dtype=np.float64))
        beamcounts = set()
        for fld in beam_fields + ['sidescan']:
            arr = getattr(self, fld)
            if arr.ndim != 1:
                raise ValueError('SwathRecord: {} must be one dimensional, found shape {}'.format(fld, arr.shape))
            if arr.shape[0] and fld in beam_fields:
                beamcounts.add(arr.shape[0])
        if len(beamcounts) > 1:
            raise ValueError('SwathRecord: beam arrays differ in length, found {}'.format(sorted(beamcounts)))
        self.comment = str(self.comment)

    @property
    def is_survey(self):
        return self.kind == RecordKind.DATA

    @property
    def nbeams(self):
        return self.bath.shape[0]

    def copy(self):
        newrec = SwathRecord(self.kind)
        for fld in fields(self):
            val = getattr(self, fld.name)
            setattr(newrec, fld.name, val.copy() if isinstance(val, np.ndarray) else val)
        return newrec

    def to_dict(self, reduced: bool = False):
        """
        Plain python representation, reduced drops the amplitude and sidescan arrays
        """
        data = {'kind': self.kind.value}
        for fld in scalar_fields:
            data[fld] = float(getattr(self, fld))
        for fld in beam_fields + ['sidescan']:
            if reduced and fld in reduced_drop_fields:
                continue
            arr = getattr(self, fld)
            if arr.shape[0] and fld in beam_fields:
                data[fld] = arr.tolist()
        if self.comment:
            data['comment'] = self.comment
        return data

    @classmethod
    def from_dict(cls, data: dict):
        kwargs = {fld: data[fld] for fld in scalar_fields + beam_fields + ['sidescan', 'comment'] if fld in data}
        return cls(RecordKind(data['kind']), **kwargs)


class SwathReader:
    """
    Base class for the readers of a swath format.  Subclasses implement open/next/close, next returns a SwathRecord
    or None at the end of the file.  Usable as a context manager and as an iterator.
    """

    def __init__(self, path: str, fmt: str = None):
        self.path = path
        self.fmt = fmt
        self.logger = None

    def print(self, msg: str, loglevel: int = logging.INFO):
        if self.logger is not None:
            self.logger.log(loglevel, msg)
        else:
            print(msg)

    def open(self):
        raise NotImplementedError('SwathReader: open method must be implemented')

    def next(self):
        raise NotImplementedError('SwathReader: next method must be implemented')

    def close(self):
        raise NotImplementedError('SwathReader: close method must be implemented')

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __iter__(self):
        while True:
            rec = self.next()
            if rec is None:
                return
            yield rec


class SwathWriter:
    """
    Base class for the writers of a swath format.  Subclasses implement open/put/close.
    """

    def __init__(self, path: str, fmt: str = None):
        self.path = path
        self.fmt = fmt
        self.logger = None

    def open(self):
        raise NotImplementedError('SwathWriter: open method must be implemented')

    def put(self, record: SwathRecord):
        raise NotImplementedError('SwathWriter: put method must be implemented')

    def close(self):
        raise NotImplementedError('SwathWriter: close method must be implemented')

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class JsonSwathReader(SwathReader):
    """
    Reader for the generic swath format, one JSON object per line.  Lines that do not parse come back as ERROR
    records, blank lines are skipped.
    """

    def __init__(self, path: str, fmt: str = 'jsonswath'):
        super().__init__(path, fmt)
        self._fil = None
        self.line_number = 0

    def open(self):
        try:
            self._fil = open(self.path, 'rb')
        except OSError as e:
            raise SwathIOError('JsonSwathReader: unable to open {}: {}'.format(self.path, e))
        self.line_number = 0
        return self

    def next(self):
        if self._fil is None:
            raise SwathIOError('JsonSwathReader: {} is not open'.format(self.path))
        for rawline in self._fil:
            self.line_number += 1
            try:
                line = rawline.decode('utf-8').strip()
                if not line:
                    continue
                return SwathRecord.from_dict(json.loads(line))
            # UnicodeDecodeError and JSONDecodeError are ValueErrors
            except (ValueError, KeyError, TypeError, OverflowError) as e:
                return SwathRecord(RecordKind.ERROR, comment='line {}: {}'.format(self.line_number, e))
        return None

    def close(self):
        if self._fil is not None:
            self._fil.close()
            self._fil = None


class JsonSwathWriter(SwathWriter):
    """
    Writer for the generic swath format.  reduced=True writes the fast bathymetry variant (no amplitude/sidescan).
    """

    def __init__(self, path: str, fmt: str = 'jsonswath', reduced: bool = False):
        super().__init__(path, fmt)
        self.reduced = reduced
        self._fil = None

    def open(self):
        try:
            self._fil = open(self.path, 'w')
        except OSError as e:
            raise SwathIOError('JsonSwathWriter: unable to open {} for writing: {}'.format(self.path, e))
        return self

    def put(self, record: SwathRecord):
        if self._fil is None:
            raise SwathIOError('JsonSwathWriter: {} is not open'.format(self.path))
        if record.kind == RecordKind.ERROR:
            return
        self._fil.write(json.dumps(record.to_dict(reduced=self.reduced)) + '\n')

    def close(self):
        if self._fil is not None:
            self._fil.close()
            self._fil = None


def write_swath_file(path: str, records: list, fmt: str = None):
    """
    Convenience function to write a list of records to a new swath file in the given format
    """
    with return_writer(path, fmt) as wrt:
        for rec in records:
            wrt.put(rec)


def read_swath_file(path: str, fmt: str = None):
    """
    Convenience function to read every record of a swath file

    Returns
    -------
    list
        list of SwathRecord
    """
    with return_reader(path, fmt) as rdr:
        return list(rdr)


class FormatPreprocessHook:
    """
    Format aware equivalent of the generic platform/beam correction done by the merge engine.  try_preprocess returns
    True when it handled the ping, False asks the engine to fall back to the generic correction.
    """

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger

    def try_preprocess(self, ping: SwathRecord, platform, params):
        """
        Parameters
        ----------
        ping
            survey ping with the interpolated ancillary values already inserted, modified in place
        platform
            PlatformModel, or None if no platform was given
        params
            the run's PreprocessOptions

        Returns
        -------
        bool
            True if the ping was fully corrected, False to fall back to the generic correction
        """
        raise NotImplementedError('FormatPreprocessHook: try_preprocess method must be implemented')


class GenericPreprocessHook(FormatPreprocessHook):
    """
    Used for formats without a format specific preprocess, always falls back
    """

    def try_preprocess(self, ping: SwathRecord, platform, params):
        return False


@dataclass
class SwathFormat:
    name: str
    extension: str
    reader_class: type
    writer_class: type
    hook_class: type = GenericPreprocessHook
    async_sources: dict = None  # channel name: RecordKind to extract that channel from


swath_formats = {}


def register_format(name: str, extension: str, reader_class: type, writer_class: type, hook_class: type = None,
                    async_sources: dict = None):
    """
    Register a swath format so that the merge engine can read, write and preprocess it.

    Parameters
    ----------
    name
        format identifier (ex: 'jsonswath')
    extension
        file extension including the dot
    reader_class
        SwathReader subclass, constructed with (path, name)
    writer_class
        SwathWriter subclass, constructed with (path, name) and optionally reduced=True
    hook_class
        FormatPreprocessHook subclass, GenericPreprocessHook when None
    async_sources
        default record kind to extract each ancillary channel from, swathprep_variables.default_async_sources
        when None
    """

    if hook_class is None:
        hook_class = GenericPreprocessHook
    if async_sources is None:
        async_sources = {ky: RecordKind(val) for ky, val in swathprep_variables.default_async_sources.items()}
    swath_formats[name] = SwathFormat(name, extension, reader_class, writer_class, hook_class, async_sources)
    return swath_formats[name]


def return_format(name: str = None):
    """
    Get the registered format, raises ConfigError for an unknown format
    """
    if name is None:
        name = swathprep_variables.default_swath_format
    try:
        return swath_formats[name]
    except KeyError:
        raise ConfigError('return_format: unknown swath format {}, expected one of {}'.format(name, list(swath_formats.keys())))


def format_from_path(path: str):
    """
    Guess the registered format from the file extension, None if no format matches
    """
    ext = os.path.splitext(path)[1].lower()
    for fmt in swath_formats.values():
        if fmt.extension == ext:
            return fmt.name
    return None


def return_reader(path: str, fmt: str = None):
    if fmt is None:
        fmt = format_from_path(path)
    swfmt = return_format(fmt)
    return swfmt.reader_class(path, swfmt.name)


def return_writer(path: str, fmt: str = None, reduced: bool = False):
    if fmt is None:
        fmt = format_from_path(path)
    swfmt = return_format(fmt)
    if reduced:
        return swfmt.writer_class(path, swfmt.name, reduced=True)
    return swfmt.writer_class(path, swfmt.name)


register_format('jsonswath', swathprep_variables.swath_format_extensions['jsonswath'], JsonSwathReader, JsonSwathWriter)
