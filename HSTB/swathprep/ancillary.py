from enum import Enum
from typing import Union

import numpy as np
import xarray as xr

from HSTB.swathprep import swathprep_variables
from HSTB.swathprep.errors import InterpolationEdgeCase


class ChannelKind(Enum):
    NAV = 'nav'
    SENSORDEPTH = 'sensordepth'
    HEADING = 'heading'
    ALTITUDE = 'altitude'
    ATTITUDE = 'attitude'
    SOUNDSPEED = 'soundspeed'


# component names of each channel, in the order they are stored in the values array
channel_components = {ChannelKind.NAV: ('longitude', 'latitude', 'speed'),
                      ChannelKind.SENSORDEPTH: ('sensordepth',),
                      ChannelKind.HEADING: ('heading',),
                      ChannelKind.ALTITUDE: ('altitude',),
                      ChannelKind.ATTITUDE: ('roll', 'pitch', 'heave'),
                      ChannelKind.SOUNDSPEED: ('soundspeed',)}


def wrap_heading(heading):
    """
    Wrap heading in degrees into [0, 360), scalar or array
    """
    if np.ndim(heading):
        wrapped = np.mod(np.asarray(heading, dtype=np.float64), 360.0)
        # tiny negative values round up to 360.0
        wrapped[wrapped >= 360.0] = 0.0
        return wrapped
    if 0.0 <= heading < 360.0:
        return heading
    wrapped = heading % 360.0
    return 0.0 if wrapped >= 360.0 else wrapped


def wrap_longitude(longitude):
    """
    Wrap longitude in degrees into [-180, 180), scalar or array.  Values already in range are returned unchanged.
    """
    if np.ndim(longitude):
        wrapped = np.array(longitude, dtype=np.float64)
        outside = (wrapped < -180.0) | (wrapped >= 180.0)
        wrapped[outside] = np.mod(wrapped[outside] + 180.0, 360.0) - 180.0
        wrapped[wrapped >= 180.0] = -180.0
        return wrapped
    if -180.0 <= longitude < 180.0:
        return longitude
    wrapped = (longitude + 180.0) % 360.0 - 180.0
    return -180.0 if wrapped >= 180.0 else wrapped


def _shortest_arc(delta: float):
    if delta > 180.0:
        delta -= 360.0
    elif delta < -180.0:
        delta += 360.0
    return delta


class AncillarySeries:
    """
    Growable, time ordered store of the samples of one ancillary channel (position, heading, sensor depth, altitude,
    attitude or sound speed).  Backed by numpy arrays with an explicit count and capacity, the capacity doubles
    whenever an append would overflow it.

    Interpolation uses a forward only scan index that the caller supplies and gets back.  Queries within one pass are
    expected to be non-decreasing in time, a query earlier than the current index restarts the scan from the
    beginning.
    """

    def __init__(self, channel: Union[ChannelKind, str], capacity: int = None):
        self.channel = ChannelKind(channel)
        self.components = channel_components[self.channel]
        if capacity is None:
            capacity = swathprep_variables.series_start_capacity
        capacity = max(int(capacity), 1)
        self._time = np.zeros(capacity, dtype=np.float64)
        self._values = np.zeros((capacity, len(self.components)), dtype=np.float64)
        self._count = 0
        self.finalized = False

    @classmethod
    def from_arrays(cls, channel: Union[ChannelKind, str], times: np.array, values: np.array):
        """
        Build a new series from a 1d time array and a 1d (scalar channel) or 2d (time, component) values array.
        Multi component channels given fewer columns than they have components (lon/lat without speed) get the
        missing components zero filled.
        """

        times = np.asarray(times, dtype=np.float64).ravel()
        values = np.asarray(values, dtype=np.float64)
        if values.ndim == 1:
            values = values[:, np.newaxis]
        if values.shape[0] != times.shape[0]:
            raise ValueError('AncillarySeries: found {} times and {} values'.format(times.shape[0], values.shape[0]))
        series = cls(channel, capacity=max(times.shape[0], 1))
        ncomp = len(series.components)
        if values.shape[1] > ncomp:
            raise ValueError('AncillarySeries: {} has {} components, found {}'.format(series.channel.value, ncomp, values.shape[1]))
        series._time[:times.shape[0]] = times
        series._values[:times.shape[0], :values.shape[1]] = values
        series._count = times.shape[0]
        return series

    def __len__(self):
        return self._count

    def __repr__(self):
        return 'AncillarySeries({}, {} samples)'.format(self.channel.value, self._count)

    @property
    def capacity(self):
        return self._time.shape[0]

    @property
    def time(self):
        return self._time[:self._count]

    @property
    def values(self):
        return self._values[:self._count]

    def component(self, name: str):
        """
        Return a view of the values of one component (ex: 'roll')
        """
        try:
            return self._values[:self._count, self.components.index(name)]
        except ValueError:
            raise ValueError('AncillarySeries: {} has no component {}, expected one of {}'.format(self.channel.value, name, self.components))

    def _grow(self, min_capacity: int):
        newcap = self.capacity
        while newcap < min_capacity:
            newcap = int(np.ceil(newcap * swathprep_variables.series_growth_factor))
        if newcap == self.capacity:
            return
        newtime = np.zeros(newcap, dtype=np.float64)
        newvalues = np.zeros((newcap, len(self.components)), dtype=np.float64)
        newtime[:self._count] = self.time
        newvalues[:self._count] = self.values
        self._time = newtime
        self._values = newvalues

    def append(self, time_d: float, values):
        """
        Append one sample, growing the storage if needed.

        Parameters
        ----------
        time_d
            time of the sample in utc seconds
        values
            float for scalar channels, sequence of component values otherwise (trailing components may be omitted and
            are stored as zero)
        """

        values = np.atleast_1d(np.asarray(values, dtype=np.float64))
        if values.shape[0] > len(self.components):
            raise ValueError('AncillarySeries: {} has {} components, found {}'.format(self.channel.value, len(self.components), values.shape[0]))
        if self._count >= self.capacity:
            self._grow(self._count + 1)
        self._time[self._count] = time_d
        self._values[self._count, :] = 0.0
        self._values[self._count, :values.shape[0]] = values
        self._count += 1
        self.finalized = False

    def set_times(self, times: np.array):
        """
        Overwrite the sample times (time repair, latency), must be the same length as the series
        """
        times = np.asarray(times, dtype=np.float64)
        if times.shape[0] != self._count:
            raise ValueError('AncillarySeries: expected {} times, found {}'.format(self._count, times.shape[0]))
        self._time[:self._count] = times
        self.finalized = False

    def set_component(self, name: str, values: np.array):
        values = np.asarray(values, dtype=np.float64)
        if values.shape[0] != self._count:
            raise ValueError('AncillarySeries: expected {} values, found {}'.format(self._count, values.shape[0]))
        self.component(name)[:] = values

    def keep(self, mask: np.array):
        """
        Compact the series in place, retaining only the samples where mask is True

        Returns
        -------
        int
            number of samples removed
        """

        mask = np.asarray(mask, dtype=bool)
        removed = int(self._count - np.count_nonzero(mask))
        if removed:
            kept_time = self.time[mask]
            kept_values = self.values[mask]
            self._count = kept_time.shape[0]
            self._time[:self._count] = kept_time
            self._values[:self._count] = kept_values
        return removed

    def finalize(self):
        """
        Enforce strictly increasing time by dropping every sample that is not later than the last retained sample.

        Returns
        -------
        int
            number of samples dropped
        """

        mask = np.ones(self._count, dtype=bool)
        if self._count > 1:
            running_max = np.maximum.accumulate(self.time)
            mask[1:] = self.time[1:] > running_max[:-1]
        dropped = self.keep(mask)
        self.finalized = True
        return dropped

    def window(self, start_time: float, end_time: float):
        """
        Return a new series with the samples in [start_time, end_time]
        """
        mask = (self.time >= start_time) & (self.time <= end_time)
        return AncillarySeries.from_arrays(self.channel, self.time[mask], self.values[mask])

    def copy(self):
        return AncillarySeries.from_arrays(self.channel, self.time, self.values)

    def edge_case(self, query_time: float):
        """
        Classify a query time relative to the first/last sample of the series
        """
        if self._count and query_time < self._time[0]:
            return InterpolationEdgeCase.BEFORE
        elif self._count and query_time > self._time[self._count - 1]:
            return InterpolationEdgeCase.AFTER
        return InterpolationEdgeCase.INSIDE

    def _bracket(self, query_time: float, index: int):
        # returns (lower index, fraction) or (clamped index, None)
        n = self._count
        if n == 1 or query_time <= self._time[0]:
            return 0, None
        if query_time >= self._time[n - 1]:
            return n - 1, None
        if index < 0 or index > n - 2 or query_time < self._time[index]:
            index = 0
        while index < n - 2 and query_time >= self._time[index + 1]:
            index += 1
        frac = (query_time - self._time[index]) / (self._time[index + 1] - self._time[index])
        return index, frac

    def linear_interp(self, query_time: float, index: int = 0):
        """
        Linear interpolation of every component at query_time.  Returns the first sample before the series and the
        last sample after it.

        Parameters
        ----------
        query_time
            time in utc seconds
        index
            scan index returned by the previous call in this pass, 0 to start

        Returns
        -------
        np.array
            interpolated component values
        int
            scan index to pass to the next call
        """

        if not self._count:
            raise ValueError('AncillarySeries: unable to interpolate {}, series is empty'.format(self.channel.value))
        index, frac = self._bracket(query_time, index)
        if frac is None:
            return self._values[index].copy(), index
        v0 = self._values[index]
        v1 = self._values[index + 1]
        return v0 + (v1 - v0) * frac, index

    def heading_interp(self, query_time: float, index: int = 0, component: int = 0):
        """
        Interpolation of an angle in degrees along the shortest arc, so that 359 -> 1 passes through 0 and not 180.
        The other components are interpolated linearly.  Result wrapped into [0, 360).
        """

        values, newindex = self.linear_interp(query_time, index)
        bidx, frac = self._bracket(query_time, index)
        if frac is not None:
            y0 = self._values[bidx, component]
            delta = _shortest_arc(self._values[bidx + 1, component] - y0)
            values[component] = y0 + delta * frac
        values[component] = wrap_heading(values[component])
        return values, newindex

    def longitude_interp(self, query_time: float, index: int = 0, component: int = 0):
        """
        Interpolation of a longitude in degrees across the +/-180 date line.  The other components (latitude, speed)
        are interpolated linearly.
        """

        values, newindex = self.linear_interp(query_time, index)
        bidx, frac = self._bracket(query_time, index)
        if frac is not None:
            y0 = self._values[bidx, component]
            delta = _shortest_arc(self._values[bidx + 1, component] - y0)
            values[component] = wrap_longitude(y0 + delta * frac)
        return values, newindex

    def interp(self, query_time: float, index: int = 0):
        """
        Interpolate using the method appropriate for this channel, longitude for nav, heading for heading and linear
        for everything else
        """
        if self.channel == ChannelKind.NAV:
            return self.longitude_interp(query_time, index)
        elif self.channel == ChannelKind.HEADING:
            return self.heading_interp(query_time, index)
        return self.linear_interp(query_time, index)

    def to_xarray(self):
        """
        Return the series as an xarray Dataset, with a time coordinate and one variable per component

        Returns
        -------
        xr.Dataset
            dataset of this channel
        """

        dvars = {comp: (['time'], self.values[:, cnt].copy()) for cnt, comp in enumerate(self.components)}
        return xr.Dataset(dvars, coords={'time': self.time.copy()}, attrs={'channel': self.channel.value})

    @classmethod
    def from_xarray(cls, dataset: xr.Dataset, channel: Union[ChannelKind, str] = None):
        """
        Build a series from an xarray Dataset laid out like to_xarray returns
        """
        if channel is None:
            channel = dataset.attrs['channel']
        channel = ChannelKind(channel)
        comps = [c for c in channel_components[channel] if c in dataset]
        if not comps:
            raise ValueError('AncillarySeries: dataset contains none of {}'.format(channel_components[channel]))
        times = dataset['time'].values
        series = cls.from_arrays(channel, times, np.zeros((times.shape[0], 0)))
        for c in comps:
            series.set_component(c, dataset[c].values)
        return series
