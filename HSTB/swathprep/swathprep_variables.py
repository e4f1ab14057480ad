import os
import configparser
from HSTB.swathprep import __file__ as swathprep_init_file


# beam flags
#  a beam is only considered valid (and has its geometry recomputed) when the flag is exactly beam_flag_none
beam_flag_none = 0
beam_flag_null = 1
beam_flag_flag = 2

# ancillary series
series_start_capacity = 1024  # starting number of samples allocated for a new ancillary series (grows geometrically)
series_growth_factor = 2.0

# gaussian time filter, samples within (filter_window_multiple * filter length) seconds are used in the weighted mean
filter_window_multiple = 4.0

# time latency, 'add' shifts timestamps forward by the latency (t + latency), 'subtract' matches MB-System (t - latency)
latency_conventions = ['add', 'subtract']
default_latency_convention = 'add'

# async side files contain all samples within this many seconds of the first/last survey ping in each file
async_window_padding = 10.0

# meters per degree scale factors are computed on this pyproj ellipsoid
default_ellipsoid = 'WGS84'

# swath formats
default_swath_format = 'jsonswath'
swath_format_extensions = {'jsonswath': '.jsw'}
fast_bathymetry_extension = '.fbt'
fast_navigation_extension = '.fnv'
output_suffix = 'r'  # appended to the file root when the output would otherwise overwrite the input

# side files
sync_attitude_extension = '.bsa'
async_heading_extension = '.bah'
async_sensordepth_extension = '.bas'
async_attitude_extension = '.baa'
# stale ancillary files removed before an output file is rewritten
old_ancillary_extensions = ['.ata', '.ath', '.ats', '.sta', '.baa', '.bah', '.bas', '.bsa']

fnv_header = '## <yyyy mm dd hh mm ss.ssssss> <epoch seconds> <longitude (deg)> <latitude (deg)> <heading (deg)> ' \
             '<speed (km/hr)> <draft (m)> <roll (deg)> <pitch (deg)> <heave (m)> <portlon (deg)> <portlat (deg)> ' \
             '<stbdlon (deg)> <stbdlat (deg)>'
fnv_line_format = '{:04d} {:02d} {:02d} {:02d} {:02d} {:09.6f}\t{:.6f}\t{:15.10f}\t{:15.10f}\t{:7.3f}\t{:6.3f}\t' \
                  '{:.4f}\t{:6.3f}\t{:6.3f}\t{:7.4f}\t{:15.10f}\t{:15.10f}\t{:15.10f}\t{:15.10f}\n'
sensor_fnv_line_format = '{:04d} {:02d} {:02d} {:02d} {:02d} {:09.6f}\t{:.6f}\t{:.10f}\t{:.10f}\t{:.3f}\t{:.3f}\t' \
                         '{:.4f}\t{:.3f}\t{:.3f}\t{:.3f}\n'
sensor_fnv_name = 'sensor_{:02d}_{:02d}_{:02d}.fnv'

# ancillary text file formats accepted by ancillary_loaders
ancillary_file_formats = {1: 'time_d value',
                          2: 'yr mon day hr min sec value',
                          3: 'yr jday hr min sec value',
                          4: 'yr jday daymin sec value',
                          9: 'fast navigation (fnv)'}

# async record kind used for each ancillary channel when extracting from the survey stream, when not specified
default_async_sources = {'nav': 'nav', 'sensordepth': 'sensordepth', 'heading': 'nav', 'altitude': 'altitude',
                         'attitude': 'attitude', 'soundspeed': 'soundspeed'}

# platform files
platform_file_extensions = ['.json']
sensor_capabilities = ['position', 'depth', 'heading', 'attitude', 'mapping', 'soundspeed']

int_parameters = ['series_start_capacity', 'beam_flag_none', 'beam_flag_null', 'beam_flag_flag']
float_parameters = ['series_growth_factor', 'filter_window_multiple', 'async_window_padding']
str_parameters = ['default_latency_convention', 'default_ellipsoid', 'default_swath_format', 'output_suffix']

# retain the default values before overwriting with values written to the swathprep initialization file
svar_initial_state = globals().copy()
svar_altered_keys = []


def restore_all_variables():
    for varname in str_parameters:
        globals()[varname] = str(svar_initial_state[varname])
    for varname in float_parameters:
        globals()[varname] = float(svar_initial_state[varname])
    for varname in int_parameters:
        globals()[varname] = int(svar_initial_state[varname])


def alter_variable(varname, varvalue):
    if varname in str_parameters:
        globals()[varname] = str(varvalue)
    elif varname in float_parameters:
        globals()[varname] = float(varvalue)
    elif varname in int_parameters:
        globals()[varname] = int(varvalue)
    else:
        raise NotImplementedError(f'Unable to find matching parameter entry for {varname}, see swathprep_variables')


def load_ini(ini_path: str):
    """
    Overwrite the module variables with the svariables_ entries found in the SwathPrep section of the given ini file

    Parameters
    ----------
    ini_path
        path to the ini file

    Returns
    -------
    list
        names of the variables that were altered
    """

    altered = []
    config = configparser.ConfigParser()
    config.read(ini_path)
    if config.sections() != ['SwathPrep']:
        print(f'WARNING: Unable to find "SwathPrep" section in {ini_path}, skipping overwriting default variables')
        return altered
    for svar in int_parameters + float_parameters + str_parameters:
        if f'svariables_{svar}' in config['SwathPrep'].keys():
            alter_variable(svar, config['SwathPrep'][f'svariables_{svar}'])
            altered.append(svar)
            if svar not in svar_altered_keys:
                svar_altered_keys.append(svar)
    return altered


# load custom values saved to the swathprep initialization file, if it exists
_swathprep_dir = os.path.dirname(swathprep_init_file)
_swathprep_ini = os.path.join(_swathprep_dir, 'misc', 'swathprep.ini')
if os.path.exists(_swathprep_ini):
    load_ini(_swathprep_ini)
