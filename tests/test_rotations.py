import pytest
import numpy as np
import unittest

from HSTB.swathprep.rotations import build_rot_mat, rotate_vector, rotate_beams, meters_per_degree, return_geod, \
    geods


class TestRotations(unittest.TestCase):

    @classmethod
    def setUpClass(cls) -> None:
        cls.roll = np.array([0.1, 0.2, 0.3])
        cls.pitch = np.array([0.01, 0.02, -0.04])
        cls.yaw = np.array([359.5, 1.2, 2.3])

    @staticmethod
    def make_matrix(roll, pitch, yaw, dtype=np.float64):
        r = np.deg2rad(roll, dtype=dtype)
        p = np.deg2rad(pitch, dtype=dtype)
        y = np.deg2rad(yaw, dtype=dtype)

        rcos = np.cos(r)
        pcos = np.cos(p)
        ycos = np.cos(y)
        rsin = np.sin(r)
        psin = np.sin(p)
        ysin = np.sin(y)

        return [[ycos * pcos, ycos * psin * rsin - ysin * rcos, ycos * psin * rcos + ysin * rsin],
                [ysin * pcos, ysin * psin * rsin + ycos * rcos, ysin * psin * rcos - ycos * rsin],
                [-psin, pcos * rsin, pcos * rcos]]

    @staticmethod
    def assert_matrix_row(act_mat, expected_mat):
        for d_row, e_row in zip(act_mat, expected_mat):
            assert pytest.approx(d_row, 0.00000001) == e_row

    def test_build_rot_mat(self):
        rotmat = build_rot_mat(self.roll, self.pitch, self.yaw, order='rpy', degrees=True)
        assert rotmat.shape == (3, 3, 3)
        assert pytest.approx(rotmat[0][0, :], 0.00000001) == np.array(
            [0.9999619078338804, 0.00872682681276807, 0.00015929534287439177])
        assert pytest.approx(rotmat[0][1, :], 0.00000001) == np.array(
            [-0.0087265353654609, 0.9999603973772001, -0.0017467849745820114])
        assert pytest.approx(rotmat[0][2, :], 0.00000001) == np.array(
            [-0.0001745329243133368, 0.0017453283393154377, 0.99999846168244])

        assert pytest.approx(rotmat[1][0, :], 0.00000001) == np.array(
            [0.9997806225647237, -0.020941074095018365, 0.00042208984884417513])
        assert pytest.approx(rotmat[1][1, :], 0.00000001) == np.array(
            [0.02094241860747179, 0.9997746179864385, -0.00348257561876403])
        assert pytest.approx(rotmat[1][2, :], 0.00000001) == np.array(
            [-0.00034906584331009674, 0.0034906512025610886, 0.9999938467346782])

        assert pytest.approx(rotmat[2][0, :], 0.00000001) == np.array(
            [0.9991941516168411, -0.040134894863113696, -0.000487431049527475])
        assert pytest.approx(rotmat[2][1, :], 0.00000001) == np.array(
            [0.040131782752685655, 0.9991805517074703, -0.005259762603623477])
        assert pytest.approx(rotmat[2][2, :], 0.00000001) == np.array(
            [0.0006981316440875792, 0.005235962555446998, 0.9999860485568414])

        # should be able to do this manually too, and get the right answer
        manual_mat = self.make_matrix(0.1, 0.01, 359.5)
        self.assert_matrix_row(rotmat[0], manual_mat)

    def test_build_rot_mat_scalar(self):
        rotmat = build_rot_mat(0.142, -0.241, 0.314)
        assert rotmat.shape == (3, 3)
        self.assert_matrix_row(rotmat, self.make_matrix(0.142, -0.241, 0.314))

    def test_build_rot_mat_ypr(self):
        assert np.allclose(build_rot_mat(0.314, -0.241, 0.142, order='ypr'), build_rot_mat(0.142, -0.241, 0.314))
        with pytest.raises(ValueError):
            build_rot_mat(0.1, 0.1, 0.1, order='pyr')

    def test_rotate_vector(self):
        # heading of 90 takes a forward lever arm to the east
        north, east, down = rotate_vector(build_rot_mat(0.0, 0.0, 90.0), 10.0, 0.0, 0.0)
        assert north == pytest.approx(0.0, abs=1e-9)
        assert east == pytest.approx(10.0)
        assert down == pytest.approx(0.0, abs=1e-9)

        north, east, down = rotate_vector(build_rot_mat(0.0, 0.0, 0.0), np.array([1.0, 2.0]), np.array([3.0, 4.0]),
                                          np.array([5.0, 6.0]))
        assert np.allclose(north, [1.0, 2.0])
        assert np.allclose(east, [3.0, 4.0])
        assert np.allclose(down, [5.0, 6.0])

    def test_rotate_beams_roll(self):
        across, along, depth = rotate_beams(np.array([100.0]), np.array([0.0]), np.array([50.0]), 2.0, 0.0)
        rad = np.deg2rad(2.0)
        assert across[0] == pytest.approx(100 * np.cos(rad) - 50 * np.sin(rad))
        assert across[0] == pytest.approx(98.1942, abs=1e-4)
        assert along[0] == pytest.approx(0.0, abs=1e-9)
        assert depth[0] == pytest.approx(100 * np.sin(rad) + 50 * np.cos(rad))
        assert depth[0] == pytest.approx(53.4594, abs=1e-4)

    def test_rotate_beams_pitch(self):
        # positive pitch takes forward beams shallower
        across, along, depth = rotate_beams(np.array([0.0]), np.array([10.0]), np.array([50.0]), 0.0, 1.0)
        rad = np.deg2rad(1.0)
        assert along[0] == pytest.approx(10 * np.cos(rad) + 50 * np.sin(rad))
        assert depth[0] == pytest.approx(-10 * np.sin(rad) + 50 * np.cos(rad))
        assert depth[0] < 50.0

    def test_rotate_beams_identity(self):
        across, along, depth = rotate_beams(np.array([-20.0, 30.0]), np.array([1.0, 2.0]), np.array([40.0, 45.0]), 0.0, 0.0)
        assert np.allclose(across, [-20.0, 30.0])
        assert np.allclose(along, [1.0, 2.0])
        assert np.allclose(depth, [40.0, 45.0])

    def test_meters_per_degree(self):
        mtodeglon, mtodeglat = meters_per_degree(0.0)
        # one degree at the equator is about 111.3 km of longitude, 110.6 km of latitude
        assert 1.0 / mtodeglon == pytest.approx(111319.49, abs=1.0)
        assert 1.0 / mtodeglat == pytest.approx(110574.28, abs=1.0)
        mtodeglon_45, mtodeglat_45 = meters_per_degree(45.0)
        assert mtodeglon_45 > mtodeglon
        assert mtodeglat_45 < mtodeglat
        lons, lats = meters_per_degree(np.array([0.0, 45.0]))
        assert lons[1] == pytest.approx(mtodeglon_45)

    def test_return_geod_cached(self):
        geod = return_geod()
        assert return_geod() is geod
        assert return_geod('WGS84') is geod
        assert 'WGS84' in geods
        meters_per_degree(30.0)
        assert return_geod('WGS84') is geod
        assert return_geod('GRS80') is not geod
