import os
import logging
import warnings

import numpy as np

from HSTB.swathprep import swathprep_variables
from HSTB.swathprep.ancillary import AncillarySeries, ChannelKind, channel_components
from HSTB.swathprep.errors import ConfigError, SwathIOError, DataAnomaly
from HSTB.swathprep.logging_conf import LoggerClass
from HSTB.swathprep.utc_helpers import calendar_day_time_to_utctimestamp, julian_day_time_to_utctimestamp, \
    julian_day_minute_to_utctimestamp

# number of leading columns holding the time, for each file format
time_columns = {1: 1, 2: 6, 3: 5, 4: 4}
# columns of the fast navigation (fnv) format that feed each channel
fnv_columns = {ChannelKind.NAV: [7, 8, 10], ChannelKind.HEADING: [9], ChannelKind.ATTITUDE: [12, 13, 14]}
fnv_time_column = 6
fnv_draft_column = 11
fnv_heave_column = 14

# minimum number of value columns needed after the time, for each channel
min_value_columns = {ChannelKind.NAV: 2, ChannelKind.SENSORDEPTH: 1, ChannelKind.HEADING: 1, ChannelKind.ALTITUDE: 1,
                     ChannelKind.ATTITUDE: 2, ChannelKind.SOUNDSPEED: 1}


def _times_from_columns(data: np.ndarray, file_format: int):
    if file_format == 1:
        return data[:, 0].astype(np.float64)
    elif file_format == 2:
        return np.array([calendar_day_time_to_utctimestamp(int(r[0]), int(r[1]), int(r[2]), int(r[3]), int(r[4]), r[5]) for r in data])
    elif file_format == 3:
        return np.array([julian_day_time_to_utctimestamp(int(r[0]), int(r[1]), int(r[2]), int(r[3]), r[4]) for r in data])
    elif file_format == 4:
        return np.array([julian_day_minute_to_utctimestamp(int(r[0]), int(r[1]), int(r[2]), r[3]) for r in data])
    raise ConfigError('AncillaryFileLoader: unsupported file format {}'.format(file_format))


class AncillaryFileLoader(LoggerClass):
    """
    Load ancillary samples from plain text files, whitespace delimited, '#' lines are comments.  Supported layouts
    (see swathprep_variables.ancillary_file_formats):

    1 - time_d value ...
    2 - yr mon day hr min sec value ...
    3 - yr jday hr min sec value ...
    4 - yr jday daymin sec value ...
    9 - fast navigation (fnv) lines, as written by the merge engine

    Samples that are not later than the previous sample are dropped and reported in the anomalies list.
    """

    def __init__(self, silent: bool = False, logger: logging.Logger = None):
        super().__init__(silent=silent, logger=logger)
        self.anomalies = []

    def _read_table(self, filepath: str):
        if not os.path.exists(filepath):
            raise SwathIOError('AncillaryFileLoader: {} can not be found'.format(filepath))
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')  # empty files warn, they are reported as an anomaly below
                data = np.genfromtxt(filepath, comments='#', dtype=np.float64, invalid_raise=False, ndmin=2)
        except OSError as e:
            raise SwathIOError('AncillaryFileLoader: unable to read {}: {}'.format(filepath, e))
        if data.size:
            data = data[~np.isnan(data).any(axis=1)]
        return data

    def load(self, channel: ChannelKind, filepath: str, file_format: int = 1):
        """
        Load one channel from the given file

        Parameters
        ----------
        channel
            ancillary channel to load
        filepath
            path to the text file
        file_format
            one of the ancillary_file_formats keys

        Returns
        -------
        AncillarySeries
            loaded series, finalized (strictly increasing time)
        """

        channel = ChannelKind(channel)
        if file_format not in swathprep_variables.ancillary_file_formats:
            raise ConfigError('AncillaryFileLoader: unknown file format {} for {}, expected one of {}'.format(file_format, filepath, list(swathprep_variables.ancillary_file_formats.keys())))
        data = self._read_table(filepath)
        if data.size == 0:
            self.anomalies.append(DataAnomaly(channel.value, 'no samples found in {}'.format(filepath)))
            self.print_msg('No {} samples found in {}'.format(channel.value, filepath), logging.WARNING)
            return AncillarySeries(channel)

        if file_format == 9:
            times, values = self._fnv_columns(channel, data, filepath)
        else:
            ntime = time_columns[file_format]
            nvalues = data.shape[1] - ntime
            if nvalues < min_value_columns[channel]:
                raise ConfigError('AncillaryFileLoader: {} needs {} value column(s) for {} in format {}, found {}'.format(filepath, min_value_columns[channel], channel.value, file_format, nvalues))
            ncomp = min(nvalues, len(channel_components[channel]))
            times = _times_from_columns(data, file_format)
            values = data[:, ntime:ntime + ncomp]

        series = AncillarySeries.from_arrays(channel, times, values)
        dropped = series.finalize()
        if dropped:
            self.anomalies.append(DataAnomaly(channel.value, 'non-increasing times dropped from {}'.format(filepath), dropped))
            self.print_msg('Dropped {} {} samples with non-increasing times from {}'.format(dropped, channel.value, filepath), logging.WARNING)
        self.print_msg('Loaded {} {} samples from {}'.format(len(series), channel.value, filepath), logging.INFO)
        return series

    def _fnv_columns(self, channel: ChannelKind, data: np.ndarray, filepath: str):
        if data.shape[1] < fnv_heave_column + 1:
            raise ConfigError('AncillaryFileLoader: {} is not a fast navigation file, found {} columns'.format(filepath, data.shape[1]))
        times = data[:, fnv_time_column]
        if channel == ChannelKind.SENSORDEPTH:
            values = data[:, fnv_draft_column] + data[:, fnv_heave_column]
        elif channel in fnv_columns:
            values = data[:, fnv_columns[channel]]
        else:
            raise ConfigError('AncillaryFileLoader: fast navigation files do not contain {} data'.format(channel.value))
        return times, values

    def load_nav(self, filepath: str, file_format: int = 1):
        return self.load(ChannelKind.NAV, filepath, file_format)

    def load_heading(self, filepath: str, file_format: int = 1):
        return self.load(ChannelKind.HEADING, filepath, file_format)

    def load_altitude(self, filepath: str, file_format: int = 1):
        return self.load(ChannelKind.ALTITUDE, filepath, file_format)

    def load_attitude(self, filepath: str, file_format: int = 1):
        return self.load(ChannelKind.ATTITUDE, filepath, file_format)

    def load_sensordepth(self, filepath: str, file_format: int = 1):
        return self.load(ChannelKind.SENSORDEPTH, filepath, file_format)

    def load_soundspeed(self, filepath: str, file_format: int = 1):
        return self.load(ChannelKind.SOUNDSPEED, filepath, file_format)
