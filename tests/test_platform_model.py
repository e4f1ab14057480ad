import os
import json
import shutil
import tempfile
import unittest

import numpy as np
import pytest

from HSTB.swathprep.errors import ConfigError
from HSTB.swathprep.latency import StaticLatency, PiecewiseLinearLatency
from HSTB.swathprep.platform_model import Sensor, PlatformModel, PlatformFile, load_platform_file, \
    create_platform_file
from HSTB.swathprep.rotations import meters_per_degree


class TestPlatformModel(unittest.TestCase):

    @classmethod
    def setUpClass(cls) -> None:
        cls.testfile = os.path.join(os.path.dirname(__file__), 'resources', 'platform_launch.json')
        cls.clsFolder = tempfile.mkdtemp()

    @classmethod
    def tearDownClass(cls) -> None:
        shutil.rmtree(cls.clsFolder)

    def setUp(self) -> None:
        self.platform = load_platform_file(self.testfile)

    def test_load_platform_file(self):
        assert self.platform.name == 'survey launch'
        assert [s.id for s in self.platform.sensor_list] == ['gnss', 'imu', 'sonar']
        assert self.platform.reference_sensor == 'gnss'
        assert self.platform.target_sensor == 'sonar'
        assert self.platform.depth_sensor is None
        assert self.platform.sensor('sonar').offset_xyz == (10.0, 0.0, 2.0)
        assert self.platform.sensor('imu').capability == ['attitude']
        assert isinstance(self.platform.sensor_latency('gnss'), StaticLatency)
        assert self.platform.sensor_latency('sonar') is None
        assert self.platform.sensor_latency(None) is None

    def test_unknown_sensor(self):
        with pytest.raises(ConfigError):
            self.platform.sensor('multibeam')
        assert self.platform.sensor(None) is None

    def test_validate(self):
        with pytest.raises(ConfigError):
            PlatformModel().validate()
        with pytest.raises(ConfigError):
            PlatformModel([Sensor('a')]).validate()
        with pytest.raises(ConfigError):
            PlatformModel([Sensor('a')], reference_sensor='a', target_sensor='b').validate()
        PlatformModel([Sensor('a')], reference_sensor='a').validate()

    def test_sensor_checks(self):
        with pytest.raises(ConfigError):
            Sensor('a', offset_xyz=(1.0, 2.0))
        with pytest.raises(ConfigError):
            Sensor('a', capability=['teleport'])
        with pytest.raises(ConfigError):
            PlatformModel([Sensor('a'), Sensor('a')])

    def test_lever_arm(self):
        assert np.array_equal(self.platform.lever_arm('sonar'), [10.0, 0.0, 2.0])
        assert np.array_equal(self.platform.lever_arm('gnss'), [0.0, 0.0, 0.0])
        self.platform.depth_sensor = 'imu'
        self.platform.sensors['imu'].offset_xyz = (1.0, 0.0, -1.0)
        assert np.array_equal(self.platform.lever_arm('sonar'), [10.0, 0.0, 3.0])

    def test_position_heading_east(self):
        lon, lat, depth = self.platform.position('sonar', 10.0, 0.0, 1.0, 90.0, 0.0, 0.0)
        mtodeglon, mtodeglat = meters_per_degree(0.0)
        assert lon == pytest.approx(10.0 + 10.0 * mtodeglon)
        assert lat == pytest.approx(0.0, abs=1e-12)
        assert depth == pytest.approx(3.0)

    def test_position_reference_is_identity(self):
        lon, lat, depth = self.platform.position('gnss', -70.5, 42.1, 1.5, 123.0, 2.0, -1.0)
        assert (lon, lat, depth) == pytest.approx((-70.5, 42.1, 1.5))

    def test_position_round_trip(self):
        ref = (-70.5, 42.1, 1.5)
        lon, lat, depth = self.platform.position('sonar', ref[0], ref[1], ref[2], 37.0, 3.0, -2.0)
        assert (lon, lat) != pytest.approx(ref[:2], abs=1e-7)
        rlon, rlat, rdepth = self.platform.reference_position('sonar', lon, lat, depth, 37.0, 3.0, -2.0)
        assert rlon == pytest.approx(ref[0], abs=1e-6)
        assert rlat == pytest.approx(ref[1], abs=1e-6)
        assert rdepth == pytest.approx(ref[2], abs=1e-6)

    def test_orientation(self):
        heading, roll, pitch = self.platform.orientation('sonar', 359.8, 1.0, 0.0)
        assert heading == pytest.approx(0.3)
        assert roll == pytest.approx(1.1)
        assert pitch == pytest.approx(-0.05)
        heading, roll, pitch = self.platform.orientation('imu', 10.0, 1.0, 2.0)
        assert (heading, roll, pitch) == pytest.approx((10.0, 1.0, 2.0))

    def test_create_platform_file(self):
        newfile = os.path.join(self.clsFolder, 'new_platform.json')
        self.platform.sensors['sonar'].time_latency = PiecewiseLinearLatency([0.0, 10.0], [0.1, 0.2], convention='subtract')
        create_platform_file(newfile, self.platform)
        newplatform = load_platform_file(newfile)
        assert [s.id for s in newplatform.sensor_list] == ['gnss', 'imu', 'sonar']
        assert newplatform.sensor('imu').offset_hrp == (0.0, 0.1, 0.05)
        lat = newplatform.sensor_latency('sonar')
        assert isinstance(lat, PiecewiseLinearLatency)
        assert lat.convention == 'subtract'
        assert lat.apply(5.0) == pytest.approx(4.85)

    def test_bad_platform_files(self):
        with pytest.raises(ConfigError):
            PlatformFile(os.path.join(self.clsFolder, 'notafile.json'))
        badext = os.path.join(self.clsFolder, 'platform.txt')
        shutil.copyfile(self.testfile, badext)
        with pytest.raises(ConfigError):
            PlatformFile(badext)
        badjson = os.path.join(self.clsFolder, 'badjson.json')
        with open(badjson, 'w') as fil:
            fil.write('{"sensors": [')
        with pytest.raises(ConfigError):
            PlatformFile(badjson)
        nosensors = os.path.join(self.clsFolder, 'nosensors.json')
        with open(nosensors, 'w') as fil:
            json.dump({'name': 'empty'}, fil)
        with pytest.raises(ConfigError):
            PlatformFile(nosensors)
        badsensor = os.path.join(self.clsFolder, 'badsensor.json')
        with open(badsensor, 'w') as fil:
            json.dump({'reference_sensor': 'a', 'sensors': [{'offset_xyz': [0, 0, 0]}]}, fil)
        with pytest.raises(ConfigError):
            load_platform_file(badsensor)
        badlatency = os.path.join(self.clsFolder, 'badlatency.json')
        with open(badlatency, 'w') as fil:
            json.dump({'reference_sensor': 'a', 'sensors': [{'id': 'a', 'time_latency': {'constant': 0.1}}]}, fil)
        with pytest.raises(ConfigError):
            load_platform_file(badlatency)
