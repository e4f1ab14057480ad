import numpy as np

from HSTB.swathprep import swathprep_variables
from HSTB.swathprep.ancillary import AncillarySeries, ChannelKind, wrap_heading, wrap_longitude
from HSTB.swathprep.numba_helpers import gaussian_time_filter


class GaussianTimeFilter:
    """
    Time domain (not sample count) gaussian smoothing of an ancillary series.  Every component is filtered on its
    own, headings (and longitudes crossing the date line) are unwrapped first so the wrap boundary does not smear.

    Parameters
    ----------
    window_multiple
        samples within window_multiple * length seconds of each sample contribute to it, defaults to
        swathprep_variables.filter_window_multiple
    """

    def __init__(self, window_multiple: float = None):
        if window_multiple is None:
            window_multiple = swathprep_variables.filter_window_multiple
        if window_multiple <= 0:
            raise ValueError('GaussianTimeFilter: window multiple must be greater than zero, found {}'.format(window_multiple))
        self.window_multiple = float(window_multiple)

    def filter_values(self, times: np.array, values: np.array, length: float):
        """
        Filter one component

        Parameters
        ----------
        times
            1d increasing times in utc seconds
        values
            1d values
        length
            filter length in seconds, no-op when <= 0

        Returns
        -------
        np.array
            filtered copy of values
        """

        values = np.asarray(values, dtype=np.float64)
        if length <= 0 or values.shape[0] < 2:
            return values.copy()
        return gaussian_time_filter(np.asarray(times, dtype=np.float64), values, float(length), self.window_multiple)

    def apply(self, series: AncillarySeries, length: float, components: list = None):
        """
        Filter the series in place.

        Parameters
        ----------
        series
            ancillary series, times must be increasing (finalize first)
        length
            filter length in seconds, the series is left untouched when <= 0
        components
            optional list of component names to filter, defaults to all of them.  Nav speed is never filtered unless
            asked for explicitly.

        Returns
        -------
        AncillarySeries
            the same series instance
        """

        if length <= 0 or len(series) < 2:
            return series
        if components is None:
            components = list(series.components)
            if series.channel == ChannelKind.NAV:
                components.remove('speed')
        for comp in components:
            vals = series.component(comp)
            if series.channel == ChannelKind.HEADING:
                unwrapped = np.rad2deg(np.unwrap(np.deg2rad(vals)))
                series.set_component(comp, wrap_heading(self.filter_values(series.time, unwrapped, length)))
            elif comp == 'longitude' and np.any(np.abs(np.diff(vals)) > 180):
                unwrapped = np.rad2deg(np.unwrap(np.deg2rad(vals)))
                series.set_component(comp, wrap_longitude(self.filter_values(series.time, unwrapped, length)))
            else:
                series.set_component(comp, self.filter_values(series.time, vals, length))
        return series
