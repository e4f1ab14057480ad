import logging
import sys
import os
from datetime import datetime, timezone

loglevel = logging.INFO
log_counter = 0
log_format = '%(asctime)s - %(levelname)s - %(message)s'
log_name_root = 'swathprep_log'


class LoggerClass:
    """
    Mixin for the classes that report progress (merge engine, ancillary file loaders).  Messages go to the attached
    logging.Logger, to the console with print when there is no logger, or nowhere when silent.
    """

    def __init__(self, silent=False, logger=None):
        self.silent = silent
        self.logger = logger

    def print_msg(self, msg: str, loglvl: int = logging.INFO):
        """
        Parameters
        ----------
        msg
            message contents as string
        loglvl
            logging level constant, ex: logging.INFO or logging.WARNING
        """

        if self.logger is None:
            if not self.silent:
                print(msg)
            return
        if not isinstance(loglvl, int):
            raise ValueError('LoggerClass: log level must be an int (see the logging constants), found {}'.format(loglvl))
        self.logger.log(loglvl, msg)


class LevelFilter(logging.Filter):
    """
    Only pass records whose level is one of the given levels
    """

    def __init__(self, levels: tuple):
        super().__init__()
        self.levels = tuple(levels)

    def filter(self, rec):
        return rec.levelno in self.levels


def _stream_handler(stream, level: int, levels: tuple):
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format))
    handler.addFilter(LevelFilter(levels))
    return handler


def return_log_name(output_directory: str = None, timestamped: bool = False):
    """
    Run log file name, swathprep_log.txt, or swathprep_log_<utc seconds>.txt when timestamped so that repeated runs
    into the same output directory keep their own log.

    Parameters
    ----------
    output_directory
        if provided, the full path to the log file in this directory is returned
    timestamped
        if True, include the utc timestamp in the name

    Returns
    -------
    str
        log file name or path
    """

    if timestamped:
        logname = '{}_{}.txt'.format(log_name_root, int(datetime.now(timezone.utc).timestamp()))
    else:
        logname = log_name_root + '.txt'
    if output_directory:
        return os.path.join(output_directory, logname)
    return logname


def return_logger(name, logfile: str = None):
    """
    Build a new logger for one merge engine.  The counter appended to name keeps the loggers of consecutive runs in
    one session apart, so each run drives its own log file.  DEBUG/INFO go to stdout, WARNING and above to stderr, and
    everything at loglevel to logfile when provided.

    The root logger handlers are cleared, the default root stderr handler would duplicate every message.

    Parameters
    ----------
    name
        logger name, the counter is appended to it
    logfile
        optional path to the text log file

    Returns
    -------
    logging.Logger
        new logger instance
    """

    global log_counter
    logger = logging.getLogger('{}_{}'.format(name, log_counter))
    log_counter += 1
    logger.setLevel(loglevel)
    logger.addHandler(_stream_handler(sys.stdout, loglevel, (logging.DEBUG, logging.INFO)))
    logger.addHandler(_stream_handler(sys.stderr, logging.WARNING, (logging.WARNING, logging.ERROR, logging.CRITICAL)))
    if logfile is not None:
        add_file_handler(logger, logfile, remove_existing=False)
    logging.getLogger().handlers = []
    return logger


def logger_remove_file_handlers(logger: logging.Logger):
    """
    Close and detach every file handler of the logger, the merge engine does this at the end of a run to release
    the log file.

    Returns
    -------
    int
        number of file handlers removed
    """

    filehandlers = [hndlr for hndlr in logger.handlers if isinstance(hndlr, logging.FileHandler)]
    for hndlr in filehandlers:
        hndlr.close()
        logger.removeHandler(hndlr)
    return len(filehandlers)


def logfile_matches(logger: logging.Logger, logfile: str):
    """
    True if one of the file handlers of the logger already writes to logfile
    """

    target = os.path.normcase(os.path.abspath(logfile))
    return any(os.path.normcase(os.path.abspath(hndlr.baseFilename)) == target
               for hndlr in logger.handlers if isinstance(hndlr, logging.FileHandler))


def add_file_handler(logger: logging.Logger, logfile: str, remove_existing: bool = True):
    """
    Drive the logger output to logfile as well.  Nothing is added when the logger already writes to that file.

    Parameters
    ----------
    logger
        logger instance
    logfile
        path to the text log file, opened in append mode
    remove_existing
        if True, the file handlers already attached are closed and removed first

    Returns
    -------
    bool
        True if a new file handler was attached
    """

    if remove_existing:
        logger_remove_file_handlers(logger)
    elif logfile_matches(logger, logfile):
        return False
    filehandler = logging.FileHandler(logfile)
    filehandler.setLevel(loglevel)
    filehandler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(filehandler)
    return True
