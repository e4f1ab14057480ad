import unittest

import numpy as np
import pytest
import xarray as xr

from HSTB.swathprep.ancillary import AncillarySeries, ChannelKind, channel_components, wrap_heading, wrap_longitude
from HSTB.swathprep.errors import InterpolationEdgeCase


class TestAncillarySeries(unittest.TestCase):

    def setUp(self) -> None:
        self.nav = AncillarySeries.from_arrays(ChannelKind.NAV, [0.0, 2.0, 4.0],
                                               np.array([[10.0000, 45.0], [10.0002, 45.0], [10.0004, 45.0]]))

    def test_channel_components(self):
        assert channel_components[ChannelKind.NAV] == ('longitude', 'latitude', 'speed')
        assert channel_components[ChannelKind.ATTITUDE] == ('roll', 'pitch', 'heave')
        assert AncillarySeries('heading').components == ('heading',)

    def test_wrap(self):
        assert wrap_heading(-1.0) == 359.0
        assert wrap_heading(360.0) == 0.0
        assert wrap_longitude(181.0) == -179.0
        assert wrap_longitude(-181.0) == 179.0
        # half open ranges, including values that round onto the upper bound
        assert wrap_longitude(180.0) == -180.0
        assert wrap_longitude(-180.0) == -180.0
        assert wrap_heading(-1e-20) == 0.0
        assert wrap_longitude(-180.0 - 1e-20) == -180.0
        assert wrap_longitude(10.0001) == 10.0001
        assert np.array_equal(wrap_heading(np.array([-1.0, 360.0, -1e-20, 45.0])), [359.0, 0.0, 0.0, 45.0])
        assert np.array_equal(wrap_longitude(np.array([181.0, 180.0, -181.0, 10.5])), [-179.0, -180.0, 179.0, 10.5])

    def test_append_grows(self):
        series = AncillarySeries(ChannelKind.ATTITUDE, capacity=2)
        for cnt in range(5):
            series.append(float(cnt), [cnt * 0.1, cnt * 0.2])
        assert len(series) == 5
        assert series.capacity >= 5
        assert np.allclose(series.component('pitch'), [0.0, 0.2, 0.4, 0.6, 0.8])
        # omitted trailing component stored as zero
        assert np.array_equal(series.component('heave'), np.zeros(5))
        with pytest.raises(ValueError):
            series.append(6.0, [1.0, 2.0, 3.0, 4.0])
        with pytest.raises(ValueError):
            series.component('heading')

    def test_from_arrays_pads(self):
        assert np.array_equal(self.nav.component('speed'), np.zeros(3))
        assert np.array_equal(self.nav.component('latitude'), np.full(3, 45.0))
        with pytest.raises(ValueError):
            AncillarySeries.from_arrays('heading', [0.0, 1.0], [1.0])

    def test_nav_interp(self):
        vals, idx = self.nav.interp(1.0)
        assert vals[0] == pytest.approx(10.0001)
        assert vals[1] == pytest.approx(45.0)
        vals, idx = self.nav.interp(3.0, idx)
        assert vals[0] == pytest.approx(10.0003)
        assert idx == 1

    def test_interp_clamps(self):
        vals, idx = self.nav.interp(-5.0)
        assert vals[0] == 10.0
        assert self.nav.edge_case(-5.0) == InterpolationEdgeCase.BEFORE
        vals, idx = self.nav.interp(50.0)
        assert vals[0] == 10.0004
        assert self.nav.edge_case(50.0) == InterpolationEdgeCase.AFTER
        assert self.nav.edge_case(2.5) == InterpolationEdgeCase.INSIDE

    def test_interp_single_sample(self):
        series = AncillarySeries.from_arrays('sensordepth', [5.0], [2.5])
        assert series.interp(0.0)[0][0] == 2.5
        assert series.interp(10.0)[0][0] == 2.5

    def test_interp_empty(self):
        with pytest.raises(ValueError):
            AncillarySeries('altitude').interp(1.0)

    def test_heading_interp(self):
        series = AncillarySeries.from_arrays(ChannelKind.HEADING, [0.0, 2.0], [359.0, 1.0])
        vals, idx = series.interp(1.0)
        assert vals[0] == pytest.approx(0.0, abs=1e-9)
        vals, idx = series.interp(0.5)
        assert vals[0] == pytest.approx(359.5)
        series = AncillarySeries.from_arrays(ChannelKind.HEADING, [0.0, 2.0], [1.0, 359.0])
        assert series.interp(1.5)[0][0] == pytest.approx(359.5)

    def test_longitude_interp_dateline(self):
        series = AncillarySeries.from_arrays(ChannelKind.NAV, [0.0, 2.0], np.array([[179.9, 10.0], [-179.9, 10.2]]))
        vals, idx = series.interp(1.0)
        assert abs(vals[0]) == pytest.approx(180.0)
        assert vals[1] == pytest.approx(10.1)
        vals, idx = series.interp(1.5)
        assert vals[0] == pytest.approx(-179.95)

    def test_finalize(self):
        series = AncillarySeries.from_arrays('altitude', [0.0, 1.0, 1.0, 0.5, 2.0, 3.0], [1, 2, 3, 4, 5, 6])
        dropped = series.finalize()
        assert dropped == 2
        assert np.array_equal(series.time, [0.0, 1.0, 2.0, 3.0])
        assert np.array_equal(series.component('altitude'), [1, 2, 5, 6])
        assert series.finalized
        assert np.all(np.diff(series.time) > 0)

    def test_keep(self):
        series = self.nav.copy()
        removed = series.keep(np.array([True, False, True]))
        assert removed == 1
        assert np.array_equal(series.time, [0.0, 4.0])
        # copy is independent
        assert len(self.nav) == 3

    def test_set_times(self):
        series = self.nav.copy()
        series.set_times(series.time + 1.0)
        assert np.array_equal(series.time, [1.0, 3.0, 5.0])
        with pytest.raises(ValueError):
            series.set_times([1.0])

    def test_window(self):
        win = self.nav.window(1.0, 4.0)
        assert np.array_equal(win.time, [2.0, 4.0])
        assert win.channel == ChannelKind.NAV

    def test_xarray(self):
        dset = self.nav.to_xarray()
        assert isinstance(dset, xr.Dataset)
        assert dset.attrs['channel'] == 'nav'
        assert np.array_equal(dset.time.values, [0.0, 2.0, 4.0])
        assert np.allclose(dset.longitude.values, [10.0, 10.0002, 10.0004])
        series = AncillarySeries.from_xarray(dset)
        assert series.channel == ChannelKind.NAV
        assert np.array_equal(series.values, self.nav.values)
