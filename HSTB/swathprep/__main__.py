# standard modules
import sys
import argparse


# custom modules
from HSTB.swathprep.merge import preprocess_swath_files
from HSTB.swathprep.errors import ConfigError, SwathIOError
from HSTB.swathprep import swathprep_variables


def str2bool(v):
    if isinstance(v, bool):
       return v
    if v.lower() in ('yes', 'true', 't', 'y', '1'):
        return True
    elif v.lower() in ('no', 'false', 'f', 'n', '0'):
        return False
    else:
        raise argparse.ArgumentTypeError('Boolean value expected.')


class SmartFormatter(argparse.HelpFormatter):

    def _split_lines(self, text, width):
        if text.startswith('R|'):
            return text[2:].splitlines()
        # this is the RawTextHelpFormatter._split_lines
        return argparse.HelpFormatter._split_lines(self, text, width)


def build_parser():
    parser = argparse.ArgumentParser(formatter_class=SmartFormatter)
    subparsers = parser.add_subparsers(help='Available processing commands within swathprep currently', dest='swathprep_function')

    fmthelp = ', '.join('{} ({})'.format(k, v) for k, v in swathprep_variables.ancillary_file_formats.items())
    prephelp = 'R|Merge ancillary data into swath files, correcting navigation, attitude and sensor depth and recomputing the bathymetry\n'
    prephelp += 'example (relying on the asynchronous data in the files): preprocess -f fileone.jsw filetwo.jsw\n'
    prephelp += 'example (external navigation, platform offsets): preprocess -f fileone.jsw -nav nav.txt -navfmt 1 -plat platform.json -o new/output/folder'
    prep = subparsers.add_parser('preprocess', help=prephelp)
    prep.add_argument('-f', '--files', nargs='+', required=True,
                      help='one or more swath files to preprocess')
    prep.add_argument('-fmt', '--swath_format', required=False,
                      help='swath format name, determined from the file extension by default')
    prep.add_argument('-o', '--output_folder', required=False,
                      help='full file path to the directory you want to contain the output files, defaults to the directory of each input file')
    prep.add_argument('-plat', '--platform_file', required=False,
                      help='platform file (.json) with the sensor offsets, mounting angles and time latencies')
    prep.add_argument('-target', '--target_sensor', required=False,
                      help='sensor id of the platform sensor to move navigation and attitude to, defaults to the platform file target sensor')
    for chan in ['nav', 'sensordepth', 'heading', 'altitude', 'attitude', 'soundspeed']:
        prep.add_argument('-{}'.format(chan), '--{}_file'.format(chan), required=False,
                          help='external {} file, replaces the {} data in the swath files'.format(chan, chan))
        prep.add_argument('-{}fmt'.format(chan), '--{}_file_format'.format(chan), type=int, required=False, nargs='?', const=1, default=1,
                          help='format of the external {} file, one of {}, default is 1'.format(chan, fmthelp))
    for chan in ['nav', 'sensordepth', 'heading', 'altitude', 'attitude']:
        prep.add_argument('-{}async'.format(chan), '--{}_async'.format(chan), required=False,
                          help='record kind to extract the {} data from, defaults to the format default'.format(chan))
    prep.add_argument('-lat', '--latency_constant', type=float, required=False,
                      help='global time latency in seconds')
    prep.add_argument('-latfile', '--latency_file', required=False,
                      help='global time latency table file (time_d latency), overrides --latency_constant')
    prep.add_argument('-latconv', '--latency_convention', required=False, nargs='?', const=swathprep_variables.default_latency_convention,
                      default=swathprep_variables.default_latency_convention,
                      help='sign convention of the time latency, one of {}, default is {}'.format(swathprep_variables.latency_conventions, swathprep_variables.default_latency_convention))
    prep.add_argument('-latapply', '--latency_apply', nargs='+', required=False,
                      help='channels to apply the global latency to (nav, sensordepth, heading, altitude, attitude, survey), all ancillary channels by default')
    prep.add_argument('-filt', '--filter_length', type=float, required=False, nargs='?', const=0.0, default=0.0,
                      help='gaussian filter length in seconds, default is 0 (no filtering)')
    prep.add_argument('-filtapply', '--filter_apply', nargs='+', required=False,
                      help='channels to filter (nav, sensordepth, heading, altitude, attitude), all ancillary channels by default')
    prep.add_argument('-kanc', '--kluge_ancillary_time_jumps', type=float, required=False,
                      help='threshold in seconds, forward patch time jumps in every ancillary channel')
    prep.add_argument('-ksd', '--kluge_sensordepth_reversal', type=float, required=False,
                      help='threshold in seconds, delete sensor depth samples in runs of time jumps that reverse the clock')
    prep.add_argument('-ksurv', '--kluge_survey_time_jumps', type=float, required=False,
                      help='threshold in seconds, fix time jumps in the survey ping timestamps')
    prep.add_argument('-recalc', '--recalculate_bathymetry', type=str2bool, required=False, nargs='?', const=True, default=True,
                      help='If true, recomputes the bathymetry when attitude or sensor depth change, default is True')
    prep.add_argument('-nochange', '--no_change_survey', type=str2bool, required=False, nargs='?', const=True, default=False,
                      help='If true, survey pings are copied unchanged, default is False')
    prep.add_argument('-skip', '--skip_existing', type=str2bool, required=False, nargs='?', const=True, default=False,
                      help='If true, files whose output already exists are skipped, default is False')
    prep.add_argument('-sensnav', '--output_sensor_fnv', type=str2bool, required=False, nargs='?', const=True, default=False,
                      help='If true, writes the navigation of every platform sensor to its own fnv file, default is False')
    prep.add_argument('-log', '--logfile', required=False,
                      help='optional path to a text log file')
    prep.add_argument('-wlog', '--write_logfile', type=str2bool, required=False, nargs='?', const=True, default=False,
                      help='If true and no log file is given, logs to swathprep_log.txt in the output folder, default is False')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.swathprep_function:
        parser.print_help()
        return 1

    funcname = args.swathprep_function
    if funcname == 'preprocess':
        try:
            preprocess_swath_files(args.files, swath_format=args.swath_format, output_directory=args.output_folder,
                                   platform_file=args.platform_file, target_sensor=args.target_sensor,
                                   nav_file=args.nav_file, nav_file_format=args.nav_file_format,
                                   sensordepth_file=args.sensordepth_file, sensordepth_file_format=args.sensordepth_file_format,
                                   heading_file=args.heading_file, heading_file_format=args.heading_file_format,
                                   altitude_file=args.altitude_file, altitude_file_format=args.altitude_file_format,
                                   attitude_file=args.attitude_file, attitude_file_format=args.attitude_file_format,
                                   soundspeed_file=args.soundspeed_file, soundspeed_file_format=args.soundspeed_file_format,
                                   nav_async=args.nav_async, sensordepth_async=args.sensordepth_async,
                                   heading_async=args.heading_async, altitude_async=args.altitude_async,
                                   attitude_async=args.attitude_async, latency_constant=args.latency_constant,
                                   latency_file=args.latency_file, latency_convention=args.latency_convention,
                                   latency_apply=args.latency_apply, filter_length=args.filter_length,
                                   filter_apply=args.filter_apply, kluge_ancillary_time_jumps=args.kluge_ancillary_time_jumps,
                                   kluge_sensordepth_reversal=args.kluge_sensordepth_reversal,
                                   kluge_survey_time_jumps=args.kluge_survey_time_jumps,
                                   recalculate_bathymetry=args.recalculate_bathymetry, no_change_survey=args.no_change_survey,
                                   skip_existing=args.skip_existing, output_sensor_fnv=args.output_sensor_fnv,
                                   logfile=args.logfile, write_logfile=args.write_logfile)
        except ConfigError as e:
            print('{}: configuration error: {}'.format(funcname, e))
            return 2
        except SwathIOError as e:
            print('{}: file error: {}'.format(funcname, e))
            return 3
    else:
        print('Unknown function {}'.format(funcname))
        return 1
    return 0


if __name__ == "__main__":  # run from command line
    sys.exit(main())
