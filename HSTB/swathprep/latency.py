import os
from typing import Union

import numpy as np

from HSTB.swathprep import swathprep_variables
from HSTB.swathprep.errors import ConfigError


def _validate_convention(convention: str):
    if convention is None:
        convention = swathprep_variables.default_latency_convention
    if convention not in swathprep_variables.latency_conventions:
        raise ConfigError('TimeLatencyModel: convention must be one of {}, found {}'.format(swathprep_variables.latency_conventions, convention))
    return convention


class TimeLatencyModel:
    """
    Base class for the timestamp correction models.  apply shifts a time by the latency, with the direction set by
    the convention, 'add' gives t + latency and 'subtract' gives t - latency.
    """

    def __init__(self, convention: str = None):
        self.convention = _validate_convention(convention)

    @property
    def sign(self):
        return 1.0 if self.convention == 'add' else -1.0

    def latency(self, time_d: float, index: int = 0):
        raise NotImplementedError('TimeLatencyModel: latency method must be implemented')

    def latency_array(self, times: np.array):
        raise NotImplementedError('TimeLatencyModel: latency_array method must be implemented')

    def apply(self, time_d: float, index: int = 0):
        """
        Return the shifted time for a single timestamp

        Parameters
        ----------
        time_d
            time in utc seconds
        index
            forward scan index for the time varying model, ignored by the static model

        Returns
        -------
        float
            corrected time in utc seconds
        """

        lat, index = self.latency(time_d, index)
        return time_d + self.sign * lat

    def apply_array(self, times: np.array):
        """
        Return the shifted copy of an array of timestamps
        """
        times = np.asarray(times, dtype=np.float64)
        return times + self.sign * self.latency_array(times)


class StaticLatency(TimeLatencyModel):
    def __init__(self, offset: float, convention: str = None):
        super().__init__(convention)
        self.offset = float(offset)

    def __repr__(self):
        return 'StaticLatency({}, convention={})'.format(self.offset, self.convention)

    def latency(self, time_d: float, index: int = 0):
        return self.offset, index

    def latency_array(self, times: np.array):
        return np.full(np.asarray(times).shape, self.offset, dtype=np.float64)


class PiecewiseLinearLatency(TimeLatencyModel):
    """
    Time varying latency, linearly interpolated between (time, latency) table entries and clamped to the first/last
    latency outside of the table.
    """

    def __init__(self, times: Union[list, np.array], values: Union[list, np.array], convention: str = None):
        super().__init__(convention)
        self.times = np.asarray(times, dtype=np.float64).ravel()
        self.values = np.asarray(values, dtype=np.float64).ravel()
        if self.times.shape[0] == 0 or self.times.shape[0] != self.values.shape[0]:
            raise ConfigError('PiecewiseLinearLatency: expected matching, non-empty time and latency tables, found {} times and {} values'.format(self.times.shape[0], self.values.shape[0]))
        if np.any(np.diff(self.times) <= 0):
            raise ConfigError('PiecewiseLinearLatency: latency table times must be strictly increasing')

    def __repr__(self):
        return 'PiecewiseLinearLatency({} entries, convention={})'.format(self.times.shape[0], self.convention)

    def latency(self, time_d: float, index: int = 0):
        n = self.times.shape[0]
        if n == 1 or time_d <= self.times[0]:
            return float(self.values[0]), 0
        if time_d >= self.times[n - 1]:
            return float(self.values[n - 1]), n - 1
        if index < 0 or index > n - 2 or time_d < self.times[index]:
            index = 0
        while index < n - 2 and time_d >= self.times[index + 1]:
            index += 1
        frac = (time_d - self.times[index]) / (self.times[index + 1] - self.times[index])
        return float(self.values[index] + (self.values[index + 1] - self.values[index]) * frac), index

    def latency_array(self, times: np.array):
        # np.interp clamps to the end values, same as the forward scan
        return np.interp(np.asarray(times, dtype=np.float64), self.times, self.values)


def load_latency_file(filepath: str, convention: str = None):
    """
    Read a time latency table, two whitespace separated columns (time_d latency) per line, '#' lines are comments

    Parameters
    ----------
    filepath
        path to the latency table
    convention
        'add' or 'subtract', see TimeLatencyModel

    Returns
    -------
    PiecewiseLinearLatency
        time varying latency model
    """

    if not os.path.exists(filepath):
        raise ConfigError('load_latency_file: {} can not be found'.format(filepath))
    try:
        data = np.genfromtxt(filepath, comments='#', dtype=np.float64, ndmin=2)
    except ValueError as e:
        raise ConfigError('load_latency_file: unable to read {}: {}'.format(filepath, e))
    if data.size == 0 or data.shape[1] < 2:
        raise ConfigError('load_latency_file: expected two columns (time_d latency) in {}'.format(filepath))
    return PiecewiseLinearLatency(data[:, 0], data[:, 1], convention=convention)


def build_latency_model(constant: float = None, filepath: str = None, convention: str = None):
    """
    Build the global latency model from the run options, a latency file takes precedence over a constant

    Returns
    -------
    TimeLatencyModel
        model, or None if neither a constant nor a file was given
    """

    if filepath:
        return load_latency_file(filepath, convention=convention)
    elif constant is not None:
        return StaticLatency(constant, convention=convention)
    return None
