import os
import json
from dataclasses import dataclass, field
from typing import Union

import numpy as np

from HSTB.swathprep import swathprep_variables
from HSTB.swathprep.ancillary import wrap_heading
from HSTB.swathprep.errors import ConfigError
from HSTB.swathprep.latency import TimeLatencyModel, StaticLatency, PiecewiseLinearLatency
from HSTB.swathprep.rotations import build_rot_mat, rotate_vector, meters_per_degree


@dataclass
class Sensor:
    """
    One sensor mounted on the platform.  offset_xyz is the position of the sensor relative to the platform origin
    (x forward, y starboard, z down, meters), offset_hrp the mounting angles (heading, roll, pitch, degrees).
    """
    id: str
    offset_xyz: tuple = (0.0, 0.0, 0.0)
    offset_hrp: tuple = (0.0, 0.0, 0.0)
    time_latency: TimeLatencyModel = None
    sensor_type: int = 0
    capability: list = field(default_factory=list)

    def __post_init__(self):
        self.id = str(self.id)
        self.offset_xyz = tuple(float(v) for v in self.offset_xyz)
        self.offset_hrp = tuple(float(v) for v in self.offset_hrp)
        if len(self.offset_xyz) != 3 or len(self.offset_hrp) != 3:
            raise ConfigError('Sensor: {} expected 3 values for offset_xyz and offset_hrp, found {} and {}'.format(self.id, self.offset_xyz, self.offset_hrp))
        badcap = [c for c in self.capability if c not in swathprep_variables.sensor_capabilities]
        if badcap:
            raise ConfigError('Sensor: {} has unknown capability {}, expected one of {}'.format(self.id, badcap, swathprep_variables.sensor_capabilities))


class PlatformModel:
    """
    Rigid platform made of sensors sharing one coordinate convention.  Positions and orientations measured at the
    reference sensor are moved to any other sensor with position/orientation.

    Parameters
    ----------
    sensors
        list of Sensor
    reference_sensor
        id of the sensor whose position the navigation describes
    target_sensor
        id of the sensor the survey data should be referenced to (usually the sonar)
    depth_sensor
        optional id of the sensor the sensor depth describes, defaults to the reference sensor
    heading_sensor
        optional id of the heading sensor, its mounting heading is removed before composing orientations
    attitude_sensor
        optional id of the roll/pitch sensor, its mounting roll/pitch are removed before composing orientations
    """

    def __init__(self, sensors: list = None, reference_sensor: str = None, target_sensor: str = None,
                 depth_sensor: str = None, heading_sensor: str = None, attitude_sensor: str = None, name: str = ''):
        self.name = name
        self.sensors = {}
        for sensor in (sensors or []):
            self.add_sensor(sensor)
        self.reference_sensor = reference_sensor
        self.target_sensor = target_sensor
        self.depth_sensor = depth_sensor
        self.heading_sensor = heading_sensor
        self.attitude_sensor = attitude_sensor

    def __repr__(self):
        return 'PlatformModel({}, sensors={}, reference={}, target={})'.format(self.name, list(self.sensors.keys()),
                                                                                self.reference_sensor, self.target_sensor)

    def add_sensor(self, sensor: Sensor):
        if sensor.id in self.sensors:
            raise ConfigError('PlatformModel: duplicate sensor id {}'.format(sensor.id))
        self.sensors[sensor.id] = sensor

    @property
    def sensor_list(self):
        return list(self.sensors.values())

    def sensor(self, sensor_id: Union[str, None]):
        """
        Return the sensor for the given id, None for a None id
        """
        if sensor_id is None:
            return None
        try:
            return self.sensors[str(sensor_id)]
        except KeyError:
            raise ConfigError('PlatformModel: unable to find sensor {}, expected one of {}'.format(sensor_id, list(self.sensors.keys())))

    def validate(self):
        """
        Check that every designated sensor exists, raises ConfigError otherwise
        """
        if not self.sensors:
            raise ConfigError('PlatformModel: platform has no sensors')
        if self.reference_sensor is None:
            raise ConfigError('PlatformModel: no reference sensor designated')
        for sid in (self.reference_sensor, self.target_sensor, self.depth_sensor, self.heading_sensor, self.attitude_sensor):
            self.sensor(sid)

    def sensor_latency(self, sensor_id: str):
        """
        Time latency model attached to the sensor, None if the sensor is not designated or has no latency
        """
        sensor = self.sensor(sensor_id)
        return sensor.time_latency if sensor is not None else None

    def lever_arm(self, target: str):
        """
        Offset of the target sensor from the reference sensor in the body frame.  The vertical component is relative
        to the depth sensor when one is designated.

        Returns
        -------
        np.ndarray
            (x, y, z) meters
        """

        tgt = self.sensor(target)
        ref = self.sensor(self.reference_sensor)
        depth = self.sensor(self.depth_sensor) or ref
        return np.array([tgt.offset_xyz[0] - ref.offset_xyz[0], tgt.offset_xyz[1] - ref.offset_xyz[1],
                         tgt.offset_xyz[2] - depth.offset_xyz[2]])

    def _rotated_lever_arm(self, target: str, ref_heading: float, ref_roll: float, ref_pitch: float):
        lever = self.lever_arm(target)
        rotmat = build_rot_mat(ref_roll, ref_pitch, ref_heading, order='rpy', degrees=True)
        north, east, down = rotate_vector(rotmat, lever[0], lever[1], lever[2])
        return float(north), float(east), float(down)

    def position(self, target: str, ref_lon: float, ref_lat: float, ref_depth: float, ref_heading: float,
                 ref_roll: float, ref_pitch: float):
        """
        Move a position measured at the reference sensor to the target sensor.

        Parameters
        ----------
        target
            id of the target sensor
        ref_lon
            longitude of the reference sensor in degrees
        ref_lat
            latitude of the reference sensor in degrees
        ref_depth
            depth of the reference (depth) sensor in meters, positive down
        ref_heading
            platform heading in degrees
        ref_roll
            platform roll in degrees
        ref_pitch
            platform pitch in degrees

        Returns
        -------
        float
            target longitude
        float
            target latitude
        float
            target depth
        """

        north, east, down = self._rotated_lever_arm(target, ref_heading, ref_roll, ref_pitch)
        mtodeglon, mtodeglat = meters_per_degree(ref_lat)
        return ref_lon + east * float(mtodeglon), ref_lat + north * float(mtodeglat), ref_depth + down

    def reference_position(self, target: str, target_lon: float, target_lat: float, target_depth: float,
                           ref_heading: float, ref_roll: float, ref_pitch: float):
        """
        Inverse of position, move a position measured at the target sensor back to the reference sensor.  The scale
        factors are evaluated at the estimated reference latitude.

        Returns
        -------
        float
            reference longitude
        float
            reference latitude
        float
            reference depth
        """

        north, east, down = self._rotated_lever_arm(target, ref_heading, ref_roll, ref_pitch)
        ref_lat = target_lat
        for _ in range(2):
            mtodeglon, mtodeglat = meters_per_degree(ref_lat)
            ref_lat = target_lat - north * float(mtodeglat)
        return target_lon - east * float(mtodeglon), ref_lat, target_depth - down

    def orientation(self, target: str, ref_heading: float, ref_roll: float, ref_pitch: float):
        """
        Orientation of the target sensor, the measured orientation minus the mounting angles of the heading/attitude
        sensors plus the mounting angles of the target.  Small angle, additive composition.

        Returns
        -------
        float
            target heading in degrees [0, 360)
        float
            target roll in degrees
        float
            target pitch in degrees
        """

        tgt = self.sensor(target)
        headsensor = self.sensor(self.heading_sensor)
        attsensor = self.sensor(self.attitude_sensor)
        head_base = headsensor.offset_hrp[0] if headsensor is not None else 0.0
        roll_base = attsensor.offset_hrp[1] if attsensor is not None else 0.0
        pitch_base = attsensor.offset_hrp[2] if attsensor is not None else 0.0
        heading = wrap_heading(ref_heading - head_base + tgt.offset_hrp[0])
        roll = ref_roll - roll_base + tgt.offset_hrp[1]
        pitch = ref_pitch - pitch_base + tgt.offset_hrp[2]
        return heading, roll, pitch


def _latency_from_dict(data: Union[dict, None]):
    if not data:
        return None
    convention = data.get('convention', None)
    if 'static' in data:
        return StaticLatency(data['static'], convention=convention)
    elif 'times' in data and 'values' in data:
        return PiecewiseLinearLatency(data['times'], data['values'], convention=convention)
    raise ConfigError('PlatformFile: time_latency must contain either "static" or "times"/"values", found {}'.format(list(data.keys())))


def _latency_to_dict(model: Union[TimeLatencyModel, None]):
    if model is None:
        return None
    if isinstance(model, StaticLatency):
        return {'static': model.offset, 'convention': model.convention}
    return {'times': model.times.tolist(), 'values': model.values.tolist(), 'convention': model.convention}


class PlatformFile:
    """
    JSON platform description file.  Looks like this:

    {"name": "survey launch",
     "reference_sensor": "gnss", "target_sensor": "sonar", "depth_sensor": null,
     "heading_sensor": "gnss", "attitude_sensor": "imu",
     "sensors": [{"id": "gnss", "sensor_type": 0, "capability": ["position", "heading"],
                  "offset_xyz": [0.0, 0.0, -2.0], "offset_hrp": [0.0, 0.0, 0.0],
                  "time_latency": {"static": 0.05}}, ...]}
    """

    designations = ['reference_sensor', 'target_sensor', 'depth_sensor', 'heading_sensor', 'attitude_sensor']

    def __init__(self, filepath: str = None):
        self.data = {}
        self.source_file = ''
        if filepath:
            self.open(filepath)

    def open(self, filepath: str):
        """
        Open from a platform file

        Parameters
        ----------
        filepath
            absolute file path to the platform file
        """

        if not os.path.exists(filepath):
            raise ConfigError('PlatformFile: {} can not be found'.format(filepath))
        filext = os.path.splitext(filepath)[1]
        if filext not in swathprep_variables.platform_file_extensions:
            raise ConfigError('PlatformFile: {} is not a valid platform file ({})'.format(filepath, swathprep_variables.platform_file_extensions))
        try:
            with open(filepath, 'r') as json_fil:
                self.data = json.load(json_fil)
        except json.JSONDecodeError as e:
            raise ConfigError('PlatformFile: unable to parse {}: {}'.format(filepath, e))
        if not isinstance(self.data, dict) or 'sensors' not in self.data:
            raise ConfigError('PlatformFile: {} does not contain a "sensors" list'.format(filepath))
        self.source_file = filepath

    def save(self, filepath: str = None):
        """
        Save the internal platform data to a json file

        Parameters
        ----------
        filepath
            absolute file path to the platform file, defaults to the file it was opened from
        """

        if not filepath:
            filepath = self.source_file
        with open(filepath, 'w') as json_fil:
            json.dump(self.data, json_fil, indent=4)
        self.source_file = filepath

    def return_platform(self):
        """
        Build the PlatformModel described by this file

        Returns
        -------
        PlatformModel
            validated platform model
        """

        sensors = []
        for entry in self.data.get('sensors', []):
            try:
                sensors.append(Sensor(id=entry['id'], offset_xyz=entry.get('offset_xyz', (0.0, 0.0, 0.0)),
                                      offset_hrp=entry.get('offset_hrp', (0.0, 0.0, 0.0)),
                                      time_latency=_latency_from_dict(entry.get('time_latency', None)),
                                      sensor_type=int(entry.get('sensor_type', 0)),
                                      capability=list(entry.get('capability', []))))
            except ConfigError:
                raise
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigError('PlatformFile: malformed sensor entry {}: {}'.format(entry, e))
        platform = PlatformModel(sensors, name=self.data.get('name', ''),
                                 **{ky: self.data.get(ky, None) for ky in self.designations})
        platform.validate()
        return platform

    def from_platform(self, platform: PlatformModel):
        """
        Replace the internal data with the description of the given platform (still must call save to write to disk)
        """

        self.data = {'name': platform.name}
        for ky in self.designations:
            self.data[ky] = getattr(platform, ky)
        self.data['sensors'] = [{'id': s.id, 'sensor_type': s.sensor_type, 'capability': list(s.capability),
                                 'offset_xyz': list(s.offset_xyz), 'offset_hrp': list(s.offset_hrp),
                                 'time_latency': _latency_to_dict(s.time_latency)} for s in platform.sensor_list]


def load_platform_file(filepath: str):
    """
    Parse a platform file into a PlatformModel

    Parameters
    ----------
    filepath
        absolute file path to the platform file

    Returns
    -------
    PlatformModel
        validated platform model
    """

    return PlatformFile(filepath).return_platform()


def create_platform_file(filepath: str, platform: PlatformModel):
    """
    Write a new platform file for the given platform

    Returns
    -------
    PlatformFile
        newly generated PlatformFile instance
    """

    pf = PlatformFile()
    pf.from_platform(platform)
    pf.save(filepath)
    return pf
