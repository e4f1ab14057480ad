import os
import shutil
import tempfile
import unittest

import pytest

from HSTB.swathprep import swathprep_variables


class TestSwathprepVariables(unittest.TestCase):

    @classmethod
    def setUpClass(cls) -> None:
        cls.clsFolder = tempfile.mkdtemp()

    @classmethod
    def tearDownClass(cls) -> None:
        shutil.rmtree(cls.clsFolder)

    def tearDown(self) -> None:
        swathprep_variables.restore_all_variables()

    def test_defaults(self):
        assert swathprep_variables.default_latency_convention in swathprep_variables.latency_conventions
        assert swathprep_variables.beam_flag_none == 0
        assert swathprep_variables.swath_format_extensions[swathprep_variables.default_swath_format] == '.jsw'

    def test_alter_variable(self):
        swathprep_variables.alter_variable('filter_window_multiple', '3.0')
        assert swathprep_variables.filter_window_multiple == 3.0
        swathprep_variables.alter_variable('series_start_capacity', '16')
        assert swathprep_variables.series_start_capacity == 16
        swathprep_variables.restore_all_variables()
        assert swathprep_variables.filter_window_multiple == 4.0
        assert swathprep_variables.series_start_capacity == 1024
        with pytest.raises(NotImplementedError):
            swathprep_variables.alter_variable('not_a_variable', 1)

    def test_load_ini(self):
        ini = os.path.join(self.clsFolder, 'swathprep.ini')
        with open(ini, 'w') as fil:
            fil.write('[SwathPrep]\nsvariables_default_latency_convention = subtract\nsvariables_async_window_padding = 5\n')
        altered = swathprep_variables.load_ini(ini)
        assert sorted(altered) == ['async_window_padding', 'default_latency_convention']
        assert swathprep_variables.default_latency_convention == 'subtract'
        assert swathprep_variables.async_window_padding == 5.0

    def test_load_ini_wrong_section(self):
        ini = os.path.join(self.clsFolder, 'other.ini')
        with open(ini, 'w') as fil:
            fil.write('[Kluster]\nsvariables_output_suffix = _new\n')
        assert swathprep_variables.load_ini(ini) == []
        assert swathprep_variables.output_suffix == 'r'
