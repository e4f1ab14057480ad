import logging
import os
import shutil
import tempfile
import unittest

from HSTB.swathprep.logging_conf import LoggerClass, LevelFilter, return_log_name, return_logger, \
    add_file_handler, logger_remove_file_handlers, logfile_matches


def file_handlers(logger: logging.Logger):
    return [hndlr for hndlr in logger.handlers if isinstance(hndlr, logging.FileHandler)]


class TestLoggingConf(unittest.TestCase):

    def setUp(self) -> None:
        self.folder = tempfile.mkdtemp()
        self.logfile = os.path.join(self.folder, 'run_log.txt')
        self.logger = None

    def tearDown(self) -> None:
        if self.logger is not None:
            logger_remove_file_handlers(self.logger)
        shutil.rmtree(self.folder)

    def test_return_logger(self):
        self.logger = return_logger('merge_test')
        assert self.logger.level == logging.INFO
        assert self.logger.name.startswith('merge_test_')
        assert len(self.logger.handlers) == 2
        assert not file_handlers(self.logger)
        # new counter each call, consecutive engines never share a logger
        assert return_logger('merge_test') is not self.logger

    def test_stream_levels(self):
        self.logger = return_logger('merge_test')
        outhandler, errhandler = self.logger.handlers
        info = logging.LogRecord('x', logging.INFO, '', 0, 'msg', None, None)
        warn = logging.LogRecord('x', logging.WARNING, '', 0, 'msg', None, None)
        assert outhandler.filter(info) and not outhandler.filter(warn)
        assert errhandler.filter(warn) and not errhandler.filter(info)
        assert LevelFilter((logging.ERROR,)).filter(logging.LogRecord('x', logging.ERROR, '', 0, 'msg', None, None))

    def test_return_log_name(self):
        assert return_log_name() == 'swathprep_log.txt'
        assert return_log_name(self.folder) == os.path.join(self.folder, 'swathprep_log.txt')
        stamped = return_log_name(timestamped=True)
        assert stamped.startswith('swathprep_log_')
        assert stamped.endswith('.txt')
        assert stamped[14:-4].isdigit()

    def test_file_handlers(self):
        self.logger = return_logger('merge_test', self.logfile)
        assert len(file_handlers(self.logger)) == 1
        assert logfile_matches(self.logger, self.logfile)
        assert not logfile_matches(self.logger, self.logfile + '.old')
        # same destination is not attached twice
        assert not add_file_handler(self.logger, self.logfile, remove_existing=False)
        assert add_file_handler(self.logger, self.logfile + '.old', remove_existing=False)
        assert len(file_handlers(self.logger)) == 2
        assert add_file_handler(self.logger, self.logfile, remove_existing=True)
        assert len(file_handlers(self.logger)) == 1
        assert logger_remove_file_handlers(self.logger) == 1
        assert not file_handlers(self.logger)
        assert len(self.logger.handlers) == 2

    def test_loggerclass_print_msg(self):
        self.logger = return_logger('merge_test', self.logfile)
        lc = LoggerClass(logger=self.logger)
        lc.print_msg('pass 1 complete', logging.INFO)
        lc.print_msg('nav samples dropped', logging.WARNING)
        for hndlr in self.logger.handlers:
            hndlr.flush()
        with open(self.logfile, 'r') as fil:
            contents = fil.read()
        assert 'INFO - pass 1 complete' in contents
        assert 'WARNING - nav samples dropped' in contents
        with self.assertRaises(ValueError):
            lc.print_msg('bad level', 'INFO')

    def test_loggerclass_without_logger(self):
        LoggerClass(silent=True).print_msg('never shown')
        LoggerClass().print_msg('printed to console')
