"""
Binary and text side files written next to each preprocessed swath file.

All binary side files are big endian with fixed width records:

.bsa   synchronized attitude, one record per survey ping    [>f8 time_d][>f4 roll][>f4 pitch]
.bah   asynchronous heading                                 [>f8 time_d][>f4 heading]
.bas   asynchronous sensor depth                            [>f8 time_d][>f4 sensordepth]
.baa   asynchronous attitude (heave omitted)                [>f8 time_d][>f4 roll][>f4 pitch]

.fnv is the fast navigation text file, one line per survey ping.
"""

import os

import numpy as np

from HSTB.swathprep import swathprep_variables
from HSTB.swathprep.errors import SwathIOError
from HSTB.swathprep.rotations import meters_per_degree
from HSTB.swathprep.utc_helpers import utctimestamp_to_calendar

attitude_dtype = np.dtype([('time_d', '>f8'), ('roll', '>f4'), ('pitch', '>f4')])
scalar_dtype = np.dtype([('time_d', '>f8'), ('value', '>f4')])


def _open_output(path: str, mode: str):
    try:
        return open(path, mode)
    except OSError as e:
        raise SwathIOError('sidefiles: unable to open {} for writing: {}'.format(path, e))


class SyncAttitudeWriter:
    """
    Appends one [time_d, roll, pitch] record per survey ping to the .bsa file
    """

    def __init__(self, path: str):
        self.path = path
        self._fil = None
        self.count = 0

    def open(self):
        self._fil = _open_output(self.path, 'wb')
        self.count = 0
        return self

    def put(self, time_d: float, roll: float, pitch: float):
        rec = np.array([(time_d, roll, pitch)], dtype=attitude_dtype)
        self._fil.write(rec.tobytes())
        self.count += 1

    def close(self):
        if self._fil is not None:
            self._fil.close()
            self._fil = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def write_async_scalar(path: str, times: np.array, values: np.array):
    """
    Write an asynchronous heading (.bah) or sensor depth (.bas) file

    Parameters
    ----------
    path
        output file path
    times
        1d array of times in utc seconds
    values
        1d array of values, same length as times

    Returns
    -------
    int
        number of records written
    """

    data = np.empty(len(times), dtype=scalar_dtype)
    data['time_d'] = times
    data['value'] = values
    with _open_output(path, 'wb') as fil:
        fil.write(data.tobytes())
    return data.shape[0]


def write_async_attitude(path: str, times: np.array, roll: np.array, pitch: np.array):
    """
    Write an asynchronous attitude (.baa) file, heave is not stored

    Returns
    -------
    int
        number of records written
    """

    data = np.empty(len(times), dtype=attitude_dtype)
    data['time_d'] = times
    data['roll'] = roll
    data['pitch'] = pitch
    with _open_output(path, 'wb') as fil:
        fil.write(data.tobytes())
    return data.shape[0]


def read_attitude_file(path: str):
    """
    Read a .bsa or .baa file into a structured array with time_d, roll and pitch fields
    """
    return np.fromfile(path, dtype=attitude_dtype)


def read_scalar_file(path: str):
    """
    Read a .bah or .bas file into a structured array with time_d and value fields
    """
    return np.fromfile(path, dtype=scalar_dtype)


def swath_edges(longitude: float, latitude: float, heading: float, beamflag: np.ndarray,
                acrosstrack: np.ndarray, alongtrack: np.ndarray):
    """
    Positions of the outermost valid port and starboard beams.  With no valid beams on a side, that side is the
    ping position.

    Returns
    -------
    tuple
        (portlon, portlat, stbdlon, stbdlat)
    """

    valid = np.asarray(beamflag) == swathprep_variables.beam_flag_none
    if not np.any(valid):
        return longitude, latitude, longitude, latitude
    mtodeglon, mtodeglat = meters_per_degree(latitude)
    headingx = np.sin(np.deg2rad(heading))
    headingy = np.cos(np.deg2rad(heading))
    idx = np.flatnonzero(valid)
    across = np.asarray(acrosstrack)[idx]
    along = np.asarray(alongtrack)[idx]
    edges = []
    for pick in (np.argmin(across), np.argmax(across)):
        edges.append(float(longitude + headingy * mtodeglon * across[pick] + headingx * mtodeglon * along[pick]))
        edges.append(float(latitude - headingx * mtodeglat * across[pick] + headingy * mtodeglat * along[pick]))
    return tuple(edges)


def format_fnv_line(ping):
    """
    Build the fast navigation line for a survey ping (SwathRecord)
    """
    yr, mon, day, hr, mn, sec = utctimestamp_to_calendar(ping.time_d)
    edges = swath_edges(ping.longitude, ping.latitude, ping.heading, ping.beamflag, ping.bathacrosstrack,
                        ping.bathalongtrack)
    return swathprep_variables.fnv_line_format.format(yr, mon, day, hr, mn, sec, ping.time_d, ping.longitude,
                                                      ping.latitude, ping.heading, ping.speed, ping.draft, ping.roll,
                                                      ping.pitch, ping.heave, *edges)


class FastNavWriter:
    """
    Writes the .fnv header and one line per survey ping
    """

    def __init__(self, path: str):
        self.path = path
        self._fil = None
        self.count = 0

    def open(self):
        self._fil = _open_output(self.path, 'w')
        self._fil.write(swathprep_variables.fnv_header + '\n')
        self.count = 0
        return self

    def put(self, ping):
        self._fil.write(format_fnv_line(ping))
        self.count += 1

    def close(self):
        if self._fil is not None:
            self._fil.close()
            self._fil = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SensorFnvWriter:
    """
    Integrated navigation of one platform sensor, one line per survey ping, used when every sensor's navigation is
    requested.  File named sensor_<sensor index>_<offset index>_<sensor type>.fnv in the output directory.
    """

    def __init__(self, output_directory: str, sensor_index: int, sensor_type: int, offset_index: int = 0):
        self.path = os.path.join(output_directory, swathprep_variables.sensor_fnv_name.format(sensor_index, offset_index, sensor_type))
        self._fil = None

    def open(self):
        self._fil = _open_output(self.path, 'w')
        return self

    def put(self, time_d: float, lon: float, lat: float, heading: float, speed: float, draft: float, roll: float,
            pitch: float, heave: float):
        yr, mon, day, hr, mn, sec = utctimestamp_to_calendar(time_d)
        self._fil.write(swathprep_variables.sensor_fnv_line_format.format(yr, mon, day, hr, mn, sec, time_d, lon, lat,
                                                                          heading, speed, draft, roll, pitch, heave))

    def close(self):
        if self._fil is not None:
            self._fil.close()
            self._fil = None


def remove_old_ancillary_files(output_path: str):
    """
    Delete stale ancillary files left by a previous run for this output file

    Returns
    -------
    list
        paths of the deleted files
    """

    removed = []
    for ext in swathprep_variables.old_ancillary_extensions:
        pth = output_path + ext
        if os.path.exists(pth):
            os.remove(pth)
            removed.append(pth)
    return removed
