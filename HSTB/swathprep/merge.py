import os
import logging
from enum import Enum
from collections import Counter
from contextlib import ExitStack
from dataclasses import dataclass, field
from time import perf_counter

import numpy as np

from HSTB.swathprep import swathprep_variables
from HSTB.swathprep.ancillary import AncillarySeries, ChannelKind
from HSTB.swathprep.ancillary_loaders import AncillaryFileLoader
from HSTB.swathprep.errors import ConfigError, SwathIOError, DataAnomaly, InterpolationEdgeCase
from HSTB.swathprep.jumprepair import repair_series, repair_policies, forward_patch_policy, delete_reversal_policy, \
    SurveyTimeJumpFix
from HSTB.swathprep.latency import TimeLatencyModel, build_latency_model
from HSTB.swathprep.logging_conf import LoggerClass, return_logger, return_log_name, add_file_handler, \
    logger_remove_file_handlers
from HSTB.swathprep.platform_model import PlatformModel, load_platform_file
from HSTB.swathprep.rotations import rotate_beams
from HSTB.swathprep.sidefiles import SyncAttitudeWriter, FastNavWriter, SensorFnvWriter, write_async_scalar, \
    write_async_attitude, remove_old_ancillary_files
from HSTB.swathprep.timefilter import GaussianTimeFilter
from HSTB.swathprep.swath_io import RecordKind, SwathRecord, return_format, format_from_path, return_reader, \
    return_writer

# the ancillary channels that latency/filtering apply to when no channel is named
default_ancillary_channels = [ChannelKind.NAV, ChannelKind.SENSORDEPTH, ChannelKind.HEADING, ChannelKind.ALTITUDE,
                              ChannelKind.ATTITUDE]
survey_latency_key = 'survey'


class MergeState(Enum):
    INIT = 0
    PASS1_SCAN = 1
    PASS1_CORRECT = 2
    PASS2_SCAN = 3
    TERMINAL = 4


@dataclass
class AncillarySource:
    """
    Where the samples of one ancillary channel come from, either an external text file (filepath/file_format) or
    the asynchronous records of kind async_kind embedded in the swath files.  sensor optionally names the platform
    sensor that produced the data, its time latency is applied in the first pass.
    """
    channel: ChannelKind
    filepath: str = None
    file_format: int = 1
    async_kind: RecordKind = None
    sensor: str = None

    def __post_init__(self):
        self.channel = ChannelKind(self.channel)
        if self.async_kind is not None:
            self.async_kind = RecordKind(self.async_kind)


@dataclass
class JumpRepairConfig:
    """
    One time jump repair to run on a channel in the first pass, policy is one of jumprepair.repair_policies
    """
    channel: ChannelKind
    threshold: float
    policy: str = forward_patch_policy

    def __post_init__(self):
        self.channel = ChannelKind(self.channel)


@dataclass
class PreprocessOptions:
    """
    Everything one preprocessing run needs.  Call validate (the MergeEngine does) before using it.
    """
    input_files: list = field(default_factory=list)
    swath_format: str = None
    output_directory: str = None
    platform_file: str = None
    platform: PlatformModel = None
    target_sensor: str = None
    sources: dict = field(default_factory=dict)  # ChannelKind: AncillarySource
    extract_async: bool = True
    latency_constant: float = None
    latency_file: str = None
    latency_convention: str = None
    latency_apply: list = field(default_factory=list)  # channel names and/or 'survey'
    filter_length: float = 0.0
    filter_apply: list = field(default_factory=list)  # channel names
    jump_repairs: list = field(default_factory=list)  # JumpRepairConfig
    survey_jump_threshold: float = None
    recalculate_bathymetry: bool = True
    no_change_survey: bool = False
    skip_existing: bool = False
    output_sensor_fnv: bool = False
    write_fast_bathymetry: bool = True
    write_fast_navigation: bool = True
    logfile: str = None
    write_logfile: bool = False  # with no logfile, log to return_log_name() in the output directory

    def add_source(self, source: AncillarySource):
        self.sources[source.channel] = source

    def validate(self):
        """
        Check paths, formats and option consistency.  Raises ConfigError on the first problem found.
        """

        if not self.input_files:
            raise ConfigError('PreprocessOptions: no input files provided')
        if isinstance(self.input_files, str):
            self.input_files = [self.input_files]
        for fil in self.input_files:
            if not os.path.isfile(fil):
                raise ConfigError('PreprocessOptions: input file {} can not be found'.format(fil))
            if self.swath_format is None and format_from_path(fil) is None:
                raise ConfigError('PreprocessOptions: unable to determine the swath format of {}'.format(fil))
        if self.swath_format is not None:
            return_format(self.swath_format)
        if self.output_directory and os.path.exists(self.output_directory) and not os.path.isdir(self.output_directory):
            raise ConfigError('PreprocessOptions: output directory {} is not a directory'.format(self.output_directory))
        if self.platform_file and self.platform is not None:
            raise ConfigError('PreprocessOptions: provide either a platform file or a platform, not both')
        if self.platform_file and not os.path.isfile(self.platform_file):
            raise ConfigError('PreprocessOptions: platform file {} can not be found'.format(self.platform_file))
        self.sources = {ChannelKind(ky): src for ky, src in self.sources.items()}
        for src in self.sources.values():
            if src.filepath is not None:
                if not os.path.isfile(src.filepath):
                    raise ConfigError('PreprocessOptions: {} file {} can not be found'.format(src.channel.value, src.filepath))
                if src.file_format not in swathprep_variables.ancillary_file_formats:
                    raise ConfigError('PreprocessOptions: unknown {} file format {}'.format(src.channel.value, src.file_format))
        if self.latency_file and not os.path.isfile(self.latency_file):
            raise ConfigError('PreprocessOptions: time latency file {} can not be found'.format(self.latency_file))
        if self.latency_convention is not None and self.latency_convention not in swathprep_variables.latency_conventions:
            raise ConfigError('PreprocessOptions: latency convention must be one of {}'.format(swathprep_variables.latency_conventions))
        for chan in self.latency_apply:
            if chan != survey_latency_key:
                self._check_channel(chan, 'latency_apply')
        if self.filter_length is None or self.filter_length < 0:
            raise ConfigError('PreprocessOptions: filter length must be zero (off) or positive, found {}'.format(self.filter_length))
        for chan in self.filter_apply:
            self._check_channel(chan, 'filter_apply')
        for rep in self.jump_repairs:
            if rep.threshold is None or rep.threshold <= 0:
                raise ConfigError('PreprocessOptions: jump repair threshold for {} must be positive, found {}'.format(rep.channel.value, rep.threshold))
            if rep.policy not in repair_policies:
                raise ConfigError('PreprocessOptions: jump repair policy must be one of {}, found {}'.format(repair_policies, rep.policy))
        if self.survey_jump_threshold is not None and self.survey_jump_threshold <= 0:
            raise ConfigError('PreprocessOptions: survey jump threshold must be positive, found {}'.format(self.survey_jump_threshold))
        return True

    @staticmethod
    def _check_channel(chan, optname: str):
        try:
            ChannelKind(chan)
        except ValueError:
            raise ConfigError('PreprocessOptions: {} contains unknown channel {}, expected one of {}'.format(optname, chan, [c.value for c in ChannelKind]))


class PipelineStats:
    """
    Record counters for one pass, per file and accumulated over all files, plus the anomaly and interpolation
    tallies.  Counters are collections.Counter instances keyed by RecordKind.
    """

    def __init__(self, pass_name: str = ''):
        self.reset(pass_name)

    def reset(self, pass_name: str = ''):
        self.pass_name = pass_name
        self.files_read = 0
        self.files_written = 0
        self.files_skipped = 0
        self.read_file = Counter()
        self.read_total = Counter()
        self.written_file = Counter()
        self.written_total = Counter()
        self.interpolation_edge_cases = Counter()
        self.timestamps_changed = 0

    def start_file(self):
        self.read_file = Counter()
        self.written_file = Counter()

    def count_read(self, kind: RecordKind):
        self.read_file[kind] += 1
        self.read_total[kind] += 1

    def count_written(self, kind: RecordKind):
        self.written_file[kind] += 1
        self.written_total[kind] += 1

    @staticmethod
    def _format_counts(counts: Counter):
        return ', '.join('{} {}'.format(counts[kind], kind.value) for kind in RecordKind if counts[kind])

    def file_summary(self):
        msg = '{}: records read: {}'.format(self.pass_name, self._format_counts(self.read_file) or 'none')
        if self.written_file:
            msg += ' | records written: {}'.format(self._format_counts(self.written_file))
        return msg

    def summary(self):
        msg = '{}: {} file(s) read, {} written, {} skipped, total records read: {}'.format(
            self.pass_name, self.files_read, self.files_written, self.files_skipped,
            self._format_counts(self.read_total) or 'none')
        if self.written_total:
            msg += ' | total records written: {}'.format(self._format_counts(self.written_total))
        return msg


def extract_ancillary_sample(channel: ChannelKind, record: SwathRecord):
    """
    Pull the values of one ancillary channel out of a swath record

    Returns
    -------
    list
        component values in the order of ancillary.channel_components
    """

    if channel == ChannelKind.NAV:
        return [record.longitude, record.latitude, record.speed]
    elif channel == ChannelKind.SENSORDEPTH:
        return [record.sensordepth]
    elif channel == ChannelKind.HEADING:
        return [record.heading]
    elif channel == ChannelKind.ALTITUDE:
        return [record.altitude]
    elif channel == ChannelKind.ATTITUDE:
        return [record.roll, record.pitch, record.heave]
    elif channel == ChannelKind.SOUNDSPEED:
        return [record.soundspeed]
    raise ValueError('extract_ancillary_sample: unknown channel {}'.format(channel))


def build_output_path(input_file: str, output_directory: str = None):
    """
    Output swath file path for the given input, same name in the output directory (input directory by default),
    with swathprep_variables.output_suffix appended to the file root when it would overwrite the input.
    """

    if not output_directory:
        output_directory = os.path.dirname(os.path.abspath(input_file))
    root, ext = os.path.splitext(os.path.basename(input_file))
    outpath = os.path.join(output_directory, root + ext)
    if os.path.abspath(outpath) == os.path.abspath(input_file):
        outpath = os.path.join(output_directory, root + swathprep_variables.output_suffix + ext)
    return outpath


class MergeEngine(LoggerClass):
    """
    Two pass ancillary data merge.  The first pass harvests ancillary samples (external files or asynchronous records
    in the swath files) and corrects them (jump repair, time latency, gaussian filter, in that order).  The second
    pass replays the swath files, interpolates the corrected ancillary data onto every survey ping, runs the format
    preprocess hook or the generic platform/beam correction, and writes the output swath file and side files.

    engine = MergeEngine(options)
    engine.run()

    Parameters
    ----------
    options
        PreprocessOptions for this run, validated here
    logger
        optional logging.Logger, a new one is built with logging_conf.return_logger otherwise.  The run log file is
        attached to it either way, but only a logger built here has its file handlers closed at the end of run.
    hooks
        optional dict of format name: FormatPreprocessHook instance, overrides the hook registered for that format
    """

    def __init__(self, options: PreprocessOptions, logger: logging.Logger = None, hooks: dict = None):
        options.validate()
        self.options = options
        self.state = MergeState.INIT

        self.platform = options.platform
        if options.platform_file:
            self.platform = load_platform_file(options.platform_file)
        self.target_sensor = None
        if self.platform is not None:
            self.platform.validate()
            self.target_sensor = options.target_sensor or self.platform.target_sensor
            if self.target_sensor is not None:
                self.platform.sensor(self.target_sensor)

        self.global_latency = build_latency_model(options.latency_constant, options.latency_file,
                                                  options.latency_convention)
        self.latency_channels = self._resolve_channels(options.latency_apply, self.global_latency is not None)
        self.latency_survey = survey_latency_key in options.latency_apply
        self.filter_channels = self._resolve_channels(options.filter_apply, options.filter_length > 0)

        # log file opened once every configuration error has had its chance to raise
        self.logfile = options.logfile
        if self.logfile is None and options.write_logfile:
            self.logfile = return_log_name(self.run_directory())
        self._owns_logger = logger is None
        if logger is None:
            logger = return_logger(__name__)
        if self.logfile is not None:
            add_file_handler(logger, self.logfile, remove_existing=False)
        super().__init__(logger=logger)

        # preprocess hook selected once per format used by the input files
        self.hooks = {}
        for fil in options.input_files:
            fmtname = self.file_format(fil)
            if fmtname not in self.hooks:
                if hooks and fmtname in hooks:
                    self.hooks[fmtname] = hooks[fmtname]
                else:
                    self.hooks[fmtname] = return_format(fmtname).hook_class(logger)

        self.series = {}
        self.anomalies = []
        self.pass1_stats = PipelineStats('Pass 1')
        self.pass2_stats = PipelineStats('Pass 2')
        self.output_files = []
        self._scan_index = {}
        self._nav_has_speed = False
        self._survey_fix = None

    @staticmethod
    def _resolve_channels(names: list, enabled: bool):
        if not enabled:
            return []
        if not names:
            return list(default_ancillary_channels)
        return [ChannelKind(n) for n in names if n != survey_latency_key]

    def run_directory(self):
        """
        Directory for the run level outputs (sensor fnv files, run log), created if needed.  The output directory, or
        the directory of the first input file.
        """
        outdir = self.options.output_directory or os.path.dirname(os.path.abspath(self.options.input_files[0]))
        os.makedirs(outdir, exist_ok=True)
        return outdir

    def close_log(self):
        """
        Close the run log file.  Loggers passed in to the engine are left alone, the caller owns their handlers.

        Returns
        -------
        int
            number of file handlers closed
        """
        if not self._owns_logger:
            return 0
        return logger_remove_file_handlers(self.logger)

    def file_format(self, filepath: str):
        if self.options.swath_format is not None:
            return self.options.swath_format
        return format_from_path(filepath)

    def _transition(self, expected: MergeState, new_state: MergeState):
        if self.state != expected:
            raise RuntimeError('MergeEngine: unable to enter {}, expected state {} but found {}'.format(new_state.name, expected.name, self.state.name))
        self.state = new_state

    def add_anomaly(self, anomaly: DataAnomaly):
        self.anomalies.append(anomaly)
        self.print_msg('Data anomaly: {}'.format(anomaly), logging.WARNING)

    def return_series(self, channel):
        """
        Ancillary series for the channel, None if it was never populated
        """
        return self.series.get(ChannelKind(channel), None)

    def ancillary_dataset(self, channel):
        """
        Ancillary series for the channel as an xarray Dataset, None if the channel has no samples
        """
        series = self.return_series(channel)
        if series is None or not len(series):
            return None
        return series.to_xarray()

    def run(self):
        """
        Run both passes, returns the list of output swath files written
        """
        strttime = perf_counter()
        try:
            self.pass1_scan()
            self.pass1_correct()
            self.pass2_scan()
            self.report()
            self.print_msg('Preprocessing complete in {:.1f} seconds'.format(perf_counter() - strttime), logging.INFO)
        finally:
            self.close_log()
        return self.output_files

    # ------------------------------------------------------------------ pass 1

    def _async_sources(self, fmtname: str):
        # channel: RecordKind for every channel extracted from the swath stream
        fmt = return_format(fmtname)
        sources = {}
        for chan in ChannelKind:
            src = self.options.sources.get(chan, None)
            if src is not None and src.filepath is not None:
                continue
            if src is not None and src.async_kind is not None:
                sources[chan] = src.async_kind
            elif self.options.extract_async and chan.value in fmt.async_sources:
                sources[chan] = RecordKind(fmt.async_sources[chan.value])
        return sources

    def pass1_scan(self):
        """
        Load the external ancillary files and harvest the asynchronous ancillary records from every input file
        """

        self._transition(MergeState.INIT, MergeState.PASS1_SCAN)
        stats = self.pass1_stats
        stats.reset('Pass 1')

        loader = AncillaryFileLoader(logger=self.logger)
        for chan, src in self.options.sources.items():
            if src.filepath is not None:
                self.series[chan] = loader.load(chan, src.filepath, src.file_format)
        for anomaly in loader.anomalies:
            self.add_anomaly(anomaly)

        invalid_nav = 0
        for fil in self.options.input_files:
            fmtname = self.file_format(fil)
            async_sources = self._async_sources(fmtname)
            for chan in async_sources:
                if chan not in self.series:
                    self.series[chan] = AncillarySeries(chan)
            stats.start_file()
            try:
                with return_reader(fil, fmtname) as rdr:
                    for rec in rdr:
                        stats.count_read(rec.kind)
                        for chan, kind in async_sources.items():
                            if rec.kind != kind:
                                continue
                            if chan == ChannelKind.NAV and (rec.time_d <= 0.0 or rec.longitude == 0.0 or rec.latitude == 0.0):
                                invalid_nav += 1
                                continue
                            self.series[chan].append(rec.time_d, extract_ancillary_sample(chan, rec))
            except SwathIOError as e:
                stats.files_skipped += 1
                self.print_msg('Pass 1: skipping {}: {}'.format(fil, e), logging.ERROR)
                continue
            stats.files_read += 1
            self.print_msg('{} {}'.format(fil, stats.file_summary()), logging.INFO)
        if invalid_nav:
            self.add_anomaly(DataAnomaly(ChannelKind.NAV.value, 'navigation samples with zero time or position ignored', invalid_nav))
        self.print_msg(stats.summary(), logging.INFO)
        for chan, series in self.series.items():
            if len(series):
                self.print_msg('Pass 1: {} {} samples'.format(len(series), chan.value), logging.INFO)

    def _platform_latency(self, chan: ChannelKind):
        if self.platform is None:
            return None
        src = self.options.sources.get(chan, None)
        if src is not None and src.sensor is not None:
            return self.platform.sensor_latency(src.sensor)
        if chan == ChannelKind.NAV:
            return self.platform.sensor_latency(self.platform.reference_sensor)
        elif chan == ChannelKind.SENSORDEPTH:
            return self.platform.sensor_latency(self.platform.depth_sensor or self.platform.reference_sensor)
        elif chan == ChannelKind.HEADING:
            return self.platform.sensor_latency(self.platform.heading_sensor)
        elif chan == ChannelKind.ATTITUDE:
            return self.platform.sensor_latency(self.platform.attitude_sensor)
        return None

    def _apply_latency(self, series: AncillarySeries, model: TimeLatencyModel, source: str):
        self.print_msg('Applying {} time latency correction to {} {} samples using {}'.format(source, len(series), series.channel.value, model), logging.INFO)
        series.set_times(model.apply_array(series.time))

    def pass1_correct(self):
        """
        Correct every populated ancillary series: jump repair, platform latency, global latency, gaussian filter
        """

        self._transition(MergeState.PASS1_SCAN, MergeState.PASS1_CORRECT)
        filt = GaussianTimeFilter() if self.filter_channels else None

        for chan in list(self.series.keys()):
            series = self.series[chan]
            if not len(series):
                self.print_msg('No {} samples found, {} will not be modified'.format(chan.value, chan.value), logging.INFO)
                del self.series[chan]
                continue

            for rep in self.options.jump_repairs:
                if rep.channel != chan:
                    continue
                patched, removed = repair_series(series, rep.threshold, rep.policy)
                self.print_msg('Time jump repair ({}, threshold {}) on {}: {} patched, {} removed'.format(rep.policy, rep.threshold, chan.value, patched, removed), logging.INFO)
                if patched:
                    self.add_anomaly(DataAnomaly(chan.value, 'timestamps patched by {}'.format(rep.policy), patched))
                if removed:
                    self.add_anomaly(DataAnomaly(chan.value, 'samples removed by {}'.format(rep.policy), removed))

            platform_latency = self._platform_latency(chan)
            if platform_latency is not None:
                self._apply_latency(series, platform_latency, 'platform')
            if chan in self.latency_channels:
                self._apply_latency(series, self.global_latency, 'global')

            dropped = series.finalize()
            if dropped:
                self.add_anomaly(DataAnomaly(chan.value, 'non-increasing times dropped', dropped))

            if filt is not None and chan in self.filter_channels:
                self.print_msg('Applying {} second gaussian filter to {} {} samples'.format(self.options.filter_length, len(series), chan.value), logging.INFO)
                filt.apply(series, self.options.filter_length)

        nav = self.series.get(ChannelKind.NAV, None)
        self._nav_has_speed = nav is not None and bool(np.any(nav.component('speed') != 0.0))

    # ------------------------------------------------------------------ pass 2

    def pass2_scan(self):
        """
        Replay every input file, correct the survey pings and write the output swath and side files
        """

        self._transition(MergeState.PASS1_CORRECT, MergeState.PASS2_SCAN)
        stats = self.pass2_stats
        stats.reset('Pass 2')
        self._scan_index = {chan: 0 for chan in self.series}
        if self.options.survey_jump_threshold is not None:
            self._survey_fix = SurveyTimeJumpFix(self.options.survey_jump_threshold)

        with ExitStack() as sensor_stack:
            sensor_writers = self._open_sensor_fnv(sensor_stack)
            for fil in self.options.input_files:
                self._process_file(fil, stats, sensor_writers)
        if self._survey_fix is not None and self._survey_fix.changed:
            self.add_anomaly(DataAnomaly('survey', 'ping timestamps changed by the time jump fix', self._survey_fix.changed))
        self.print_msg(stats.summary(), logging.INFO)
        self.state = MergeState.TERMINAL

    def _open_sensor_fnv(self, stack: ExitStack):
        writers = []
        if not self.options.output_sensor_fnv or self.platform is None:
            return writers
        outdir = self.run_directory()
        for cnt, sensor in enumerate(self.platform.sensor_list):
            wrt = SensorFnvWriter(outdir, cnt, sensor.sensor_type)
            stack.callback(wrt.close)
            wrt.open()
            self.print_msg('Writing integrated navigation of sensor {} to {}'.format(sensor.id, wrt.path), logging.INFO)
            writers.append((sensor, wrt))
        return writers

    def _process_file(self, fil: str, stats: PipelineStats, sensor_writers: list):
        fmtname = self.file_format(fil)
        outpath = build_output_path(fil, self.options.output_directory)
        if self.options.skip_existing and os.path.exists(outpath):
            stats.files_skipped += 1
            self.print_msg('Pass 2: skipping {}, output {} already exists'.format(fil, outpath), logging.INFO)
            return
        os.makedirs(os.path.dirname(outpath), exist_ok=True)
        for removed in remove_old_ancillary_files(outpath):
            self.print_msg('Removed old ancillary file {}'.format(removed), logging.INFO)

        hook = self.hooks[fmtname]
        ping_times = []
        stats.start_file()
        try:
            reader = return_reader(fil, fmtname)
            reader.open()
        except SwathIOError as e:
            stats.files_skipped += 1
            self.print_msg('Pass 2: skipping {}: {}'.format(fil, e), logging.ERROR)
            return

        with ExitStack() as stack:
            stack.callback(reader.close)
            # output open failures are fatal, SwathIOError propagates
            writer = return_writer(outpath, fmtname)
            stack.callback(writer.close)
            writer.open()
            fbt_writer = None
            if self.options.write_fast_bathymetry:
                fbt_writer = return_writer(outpath + swathprep_variables.fast_bathymetry_extension, fmtname, reduced=True)
                stack.callback(fbt_writer.close)
                fbt_writer.open()
            fnv_writer = None
            if self.options.write_fast_navigation:
                fnv_writer = stack.enter_context(FastNavWriter(outpath + swathprep_variables.fast_navigation_extension))
            bsa_writer = stack.enter_context(SyncAttitudeWriter(outpath + swathprep_variables.sync_attitude_extension))

            for rec in reader:
                stats.count_read(rec.kind)
                if rec.kind == RecordKind.ERROR:
                    continue
                if rec.is_survey:
                    reference = self.correct_ping(rec, hook)
                    ping_times.append(rec.time_d)
                    if fbt_writer is not None:
                        fbt_writer.put(rec)
                    if fnv_writer is not None:
                        fnv_writer.put(rec)
                    bsa_writer.put(rec.time_d, rec.roll, rec.pitch)
                    for sensor, swrt in sensor_writers:
                        self._write_sensor_nav(sensor, swrt, rec, reference)
                writer.put(rec)
                stats.count_written(rec.kind)

        stats.files_read += 1
        stats.files_written += 1
        self.output_files.append(outpath)
        self.print_msg('{} -> {} {}'.format(fil, outpath, stats.file_summary()), logging.INFO)
        if ping_times:
            self._write_async_files(outpath, min(ping_times), max(ping_times))

    def _write_sensor_nav(self, sensor, writer: SensorFnvWriter, ping: SwathRecord, reference: dict):
        lon, lat, depth = self.platform.position(sensor.id, reference['longitude'], reference['latitude'],
                                                 reference['sensordepth'], reference['heading'], reference['roll'],
                                                 reference['pitch'])
        heading, roll, pitch = self.platform.orientation(sensor.id, reference['heading'], reference['roll'], reference['pitch'])
        writer.put(ping.time_d, lon, lat, heading, ping.speed, depth - reference['heave'], roll, pitch, reference['heave'])

    def _write_async_files(self, outpath: str, first_time: float, last_time: float):
        start = first_time - swathprep_variables.async_window_padding
        end = last_time + swathprep_variables.async_window_padding
        heading = self.series.get(ChannelKind.HEADING, None)
        if heading is not None:
            win = heading.window(start, end)
            write_async_scalar(outpath + swathprep_variables.async_heading_extension, win.time, win.component('heading'))
        sensordepth = self.series.get(ChannelKind.SENSORDEPTH, None)
        if sensordepth is not None:
            win = sensordepth.window(start, end)
            write_async_scalar(outpath + swathprep_variables.async_sensordepth_extension, win.time, win.component('sensordepth'))
        attitude = self.series.get(ChannelKind.ATTITUDE, None)
        if attitude is not None:
            win = attitude.window(start, end)
            write_async_attitude(outpath + swathprep_variables.async_attitude_extension, win.time,
                                 win.component('roll'), win.component('pitch'))

    def _survey_time(self, time_d: float):
        if self._survey_fix is not None:
            time_d, changed = self._survey_fix.correct(time_d)
            if changed:
                self.pass2_stats.timestamps_changed += 1
        if self.latency_survey:
            if self.platform is not None and self.target_sensor is not None:
                model = self.platform.sensor_latency(self.target_sensor)
                if model is not None:
                    time_d = model.apply(time_d)
            if self.global_latency is not None:
                time_d = self.global_latency.apply(time_d)
        return time_d

    def interpolate_ping(self, ping: SwathRecord):
        """
        Overwrite the ping values of every populated ancillary channel with the series interpolated at the ping time
        """

        for chan, series in self.series.items():
            edge = series.edge_case(ping.time_d)
            if edge != InterpolationEdgeCase.INSIDE:
                self.pass2_stats.interpolation_edge_cases[chan.value] += 1
            vals, self._scan_index[chan] = series.interp(ping.time_d, self._scan_index.get(chan, 0))
            if chan == ChannelKind.NAV:
                ping.longitude, ping.latitude = float(vals[0]), float(vals[1])
                if self._nav_has_speed:
                    ping.speed = float(vals[2])
            elif chan == ChannelKind.SENSORDEPTH:
                ping.sensordepth = float(vals[0])
            elif chan == ChannelKind.HEADING:
                ping.heading = float(vals[0])
            elif chan == ChannelKind.ALTITUDE:
                ping.altitude = float(vals[0])
            elif chan == ChannelKind.ATTITUDE:
                ping.roll, ping.pitch, ping.heave = float(vals[0]), float(vals[1]), float(vals[2])
            elif chan == ChannelKind.SOUNDSPEED:
                ping.soundspeed = float(vals[0])
        if ChannelKind.SENSORDEPTH in self.series or ChannelKind.ATTITUDE in self.series:
            ping.draft = ping.sensordepth - ping.heave

    def correct_ping(self, ping: SwathRecord, hook=None):
        """
        Correct one survey ping in place: survey time fixes, ancillary interpolation, then the format hook or the
        generic platform and beam correction.

        Returns
        -------
        dict
            navigation/attitude at the reference point (after interpolation, before the platform correction)
        """

        if self.options.no_change_survey:
            return {ky: getattr(ping, ky) for ky in ['longitude', 'latitude', 'sensordepth', 'heading', 'roll', 'pitch', 'heave']}

        ping.time_d = self._survey_time(ping.time_d)
        original = ping.copy()
        self.interpolate_ping(ping)
        reference = {ky: getattr(ping, ky) for ky in ['longitude', 'latitude', 'sensordepth', 'heading', 'roll', 'pitch', 'heave']}

        if hook is not None and hook.try_preprocess(ping, self.platform, self.options):
            return reference
        self.generic_preprocess(ping, original)
        return reference

    def generic_preprocess(self, ping: SwathRecord, original: SwathRecord):
        """
        Fallback correction when the format has no preprocess hook (or the hook declined): move navigation and
        attitude to the target sensor, then recompute the valid beams if attitude or sensor depth changed.

        Parameters
        ----------
        ping
            survey ping with the interpolated ancillary data inserted, modified in place
        original
            copy of the ping as it was read
        """

        if self.platform is not None and self.target_sensor is not None:
            lon, lat, depth = self.platform.position(self.target_sensor, ping.longitude, ping.latitude, ping.sensordepth,
                                                     ping.heading, ping.roll, ping.pitch)
            heading, roll, pitch = self.platform.orientation(self.target_sensor, ping.heading, ping.roll, ping.pitch)
            ping.longitude, ping.latitude, ping.sensordepth = lon, lat, depth
            ping.heading, ping.roll, ping.pitch = heading, roll, pitch
            ping.draft = ping.sensordepth - ping.heave

        if not self.options.recalculate_bathymetry or not ping.nbeams:
            return
        roll_delta = ping.roll - original.roll
        pitch_delta = ping.pitch - original.pitch
        attitude_changed = roll_delta != 0.0 or pitch_delta != 0.0
        sensordepth_changed = ping.sensordepth != original.sensordepth
        if not attitude_changed and not sensordepth_changed:
            return

        valid = ping.beamflag == swathprep_variables.beam_flag_none
        relative_depth = ping.bath[valid] - original.sensordepth
        across = ping.bathacrosstrack[valid]
        along = ping.bathalongtrack[valid]
        if attitude_changed:
            across, along, relative_depth = rotate_beams(across, along, relative_depth, roll_delta, pitch_delta)
        ping.bath[valid] = relative_depth + ping.sensordepth
        ping.bathacrosstrack[valid] = across
        ping.bathalongtrack[valid] = along

    def report(self):
        """
        Log the anomalies and interpolation edge cases collected over the run
        """

        if self.pass2_stats.interpolation_edge_cases:
            for chan, cnt in self.pass2_stats.interpolation_edge_cases.items():
                self.print_msg('{} ping(s) outside of the {} data, nearest {} sample used'.format(cnt, chan, chan), logging.INFO)
        if not self.anomalies:
            self.print_msg('No data anomalies found', logging.INFO)
            return
        self.print_msg('{} data anomalies found:'.format(len(self.anomalies)), logging.WARNING)
        for anomaly in self.anomalies:
            self.print_msg('  {}'.format(anomaly), logging.WARNING)


def preprocess_swath_files(files: list, swath_format: str = None, output_directory: str = None, platform_file: str = None,
                           target_sensor: str = None, nav_file: str = None, nav_file_format: int = 1,
                           sensordepth_file: str = None, sensordepth_file_format: int = 1, heading_file: str = None,
                           heading_file_format: int = 1, altitude_file: str = None, altitude_file_format: int = 1,
                           attitude_file: str = None, attitude_file_format: int = 1, soundspeed_file: str = None,
                           soundspeed_file_format: int = 1, nav_async: str = None, sensordepth_async: str = None,
                           heading_async: str = None, altitude_async: str = None, attitude_async: str = None,
                           latency_constant: float = None, latency_file: str = None, latency_convention: str = None,
                           latency_apply: list = None, filter_length: float = 0.0, filter_apply: list = None,
                           kluge_ancillary_time_jumps: float = None, kluge_sensordepth_reversal: float = None,
                           kluge_survey_time_jumps: float = None, recalculate_bathymetry: bool = True,
                           no_change_survey: bool = False, skip_existing: bool = False, output_sensor_fnv: bool = False,
                           logfile: str = None, write_logfile: bool = False):
    """
    Convenience function for running the full preprocessing of a set of swath files in one call.  Builds the
    PreprocessOptions from the keyword arguments and runs the MergeEngine.

    Parameters
    ----------
    files
        list of swath file paths (or a single path)
    swath_format
        registered swath format name, determined from the file extension if not provided
    output_directory
        directory for the output files, defaults to the directory of each input file
    platform_file
        path to a platform (.json) file with the sensor offsets and designations
    target_sensor
        sensor id to move navigation and attitude to, defaults to the platform file target sensor
    nav_file
        optional external navigation file, read in nav_file_format (see ancillary_loaders.AncillaryFileLoader)
    nav_file_format
        ancillary file format of nav_file
    sensordepth_file
        optional external sensor depth file
    sensordepth_file_format
        ancillary file format of sensordepth_file
    heading_file
        optional external heading file
    heading_file_format
        ancillary file format of heading_file
    altitude_file
        optional external altitude file
    altitude_file_format
        ancillary file format of altitude_file
    attitude_file
        optional external attitude file
    attitude_file_format
        ancillary file format of attitude_file
    soundspeed_file
        optional external surface sound speed file
    soundspeed_file_format
        ancillary file format of soundspeed_file
    nav_async
        record kind to extract navigation from, overrides the format default
    sensordepth_async
        record kind to extract sensor depth from, overrides the format default
    heading_async
        record kind to extract heading from, overrides the format default
    altitude_async
        record kind to extract altitude from, overrides the format default
    attitude_async
        record kind to extract attitude from, overrides the format default
    latency_constant
        global time latency in seconds
    latency_file
        global time latency table file (time_d latency), overrides latency_constant
    latency_convention
        one of swathprep_variables.latency_conventions
    latency_apply
        channels to apply the global latency to, plus 'survey' for the ping timestamps, all ancillary channels if empty
    filter_length
        gaussian filter length in seconds, 0 to disable
    filter_apply
        channels to filter, all ancillary channels if empty
    kluge_ancillary_time_jumps
        threshold in seconds for forward patching time jumps in every ancillary channel
    kluge_sensordepth_reversal
        threshold in seconds for the delete reversal repair of the sensor depth channel
    kluge_survey_time_jumps
        threshold in seconds for the streaming time jump fix of the survey ping timestamps
    recalculate_bathymetry
        if True, recompute the beams when attitude or sensor depth change
    no_change_survey
        if True, survey pings are copied unchanged
    skip_existing
        if True, input files whose output already exists are skipped
    output_sensor_fnv
        if True, write the integrated navigation of every platform sensor
    logfile
        optional path to a text log file
    write_logfile
        if True and no logfile is given, log to swathprep_log.txt in the output directory

    Returns
    -------
    MergeEngine
        the engine after the run, see output_files/anomalies/pass1_stats/pass2_stats
    """

    if isinstance(files, str):
        files = [files]
    options = PreprocessOptions(input_files=list(files), swath_format=swath_format, output_directory=output_directory,
                                platform_file=platform_file, target_sensor=target_sensor,
                                latency_constant=latency_constant, latency_file=latency_file,
                                latency_convention=latency_convention, latency_apply=list(latency_apply or []),
                                filter_length=filter_length, filter_apply=list(filter_apply or []),
                                survey_jump_threshold=kluge_survey_time_jumps,
                                recalculate_bathymetry=recalculate_bathymetry, no_change_survey=no_change_survey,
                                skip_existing=skip_existing, output_sensor_fnv=output_sensor_fnv, logfile=logfile,
                                write_logfile=write_logfile)
    external = {ChannelKind.NAV: (nav_file, nav_file_format), ChannelKind.SENSORDEPTH: (sensordepth_file, sensordepth_file_format),
                ChannelKind.HEADING: (heading_file, heading_file_format), ChannelKind.ALTITUDE: (altitude_file, altitude_file_format),
                ChannelKind.ATTITUDE: (attitude_file, attitude_file_format), ChannelKind.SOUNDSPEED: (soundspeed_file, soundspeed_file_format)}
    for chan, (fpath, fformat) in external.items():
        if fpath:
            options.add_source(AncillarySource(chan, filepath=fpath, file_format=int(fformat)))
    asyncs = {ChannelKind.NAV: nav_async, ChannelKind.SENSORDEPTH: sensordepth_async, ChannelKind.HEADING: heading_async,
              ChannelKind.ALTITUDE: altitude_async, ChannelKind.ATTITUDE: attitude_async}
    for chan, kind in asyncs.items():
        if kind and chan not in options.sources:
            options.add_source(AncillarySource(chan, async_kind=kind))

    # sensor depth reversal repair runs before the forward patch of all channels
    if kluge_sensordepth_reversal is not None:
        options.jump_repairs.append(JumpRepairConfig(ChannelKind.SENSORDEPTH, kluge_sensordepth_reversal, delete_reversal_policy))
    if kluge_ancillary_time_jumps is not None:
        for chan in default_ancillary_channels:
            options.jump_repairs.append(JumpRepairConfig(chan, kluge_ancillary_time_jumps, forward_patch_policy))

    engine = MergeEngine(options)
    engine.run()
    return engine
