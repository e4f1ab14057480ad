from typing import Union

import numpy as np
from pyproj import Geod

from HSTB.swathprep import swathprep_variables


# one Geod per ellipsoid name, built on first use
geods = {}


def return_geod(ellipsoid: str = None):
    """
    Cached pyproj Geod for the ellipsoid name, swathprep_variables.default_ellipsoid when None
    """
    if ellipsoid is None:
        ellipsoid = swathprep_variables.default_ellipsoid
    if ellipsoid not in geods:
        geods[ellipsoid] = Geod(ellps=ellipsoid)
    return geods[ellipsoid]


def build_rot_mat(roll: Union[float, np.ndarray], pitch: Union[float, np.ndarray], yaw: Union[float, np.ndarray],
                  order: str = 'rpy', degrees: bool = True):
    """
    Make the rotation matrix for a set of angles and return the matrix.  Body frame is x forward, y starboard,
    z down, so the matrix takes a body frame vector to north/east/down.

    Intrinsic - each rotation performed on coordinate system as rotated by previous operation
    Intrinsic rotation, rot(rpy) = rot(y)*rot(p)*rot(r)

    Parameters
    ----------
    roll
        roll angle, float or 1d array
    pitch
        pitch angle, float or 1d array
    yaw
        yaw (heading) angle, float or 1d array
    order
        order of rotation, either 'rpy' or 'ypr'
    degrees
        True if incoming angles are in degrees, False if radians

    Returns
    -------
    np.ndarray
        rotation matrix (3, 3) for float input, (n, 3, 3) for array input
    """

    if order == 'ypr':
        r = yaw
        p = pitch
        y = roll
    elif order == 'rpy':
        r = roll
        p = pitch
        y = yaw
    else:
        raise ValueError('Order provided is not rpy or ypr.')

    r = np.asarray(r, dtype=np.float64)
    p = np.asarray(p, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if degrees:
        r = np.deg2rad(r)
        p = np.deg2rad(p)
        y = np.deg2rad(y)

    rcos = np.cos(r)
    pcos = np.cos(p)
    ycos = np.cos(y)
    rsin = np.sin(r)
    psin = np.sin(p)
    ysin = np.sin(y)

    r0 = np.stack([ycos * pcos, ycos * psin * rsin - ysin * rcos, ycos * psin * rcos + ysin * rsin], axis=-1)
    r1 = np.stack([ysin * pcos, ysin * psin * rsin + ycos * rcos, ysin * psin * rcos - ycos * rsin], axis=-1)
    r2 = np.stack([-psin, pcos * rsin, pcos * rcos], axis=-1)
    return np.stack([r0, r1, r2], axis=-2)


def rotate_vector(rotmat: np.ndarray, x: Union[float, np.ndarray], y: Union[float, np.ndarray],
                  z: Union[float, np.ndarray]):
    """
    Apply a single (3, 3) rotation matrix to one or many (x, y, z) vectors

    Returns
    -------
    tuple
        rotated x, y, z
    """

    vec = np.stack([np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64),
                    np.asarray(z, dtype=np.float64)], axis=0)
    rotated = np.tensordot(rotmat, vec, axes=([1], [0]))
    return rotated[0], rotated[1], rotated[2]


def rotate_beams(acrosstrack: np.ndarray, alongtrack: np.ndarray, depth: np.ndarray, roll_delta: float,
                 pitch_delta: float):
    """
    Rigid rotation of beam positions relative to the sonar by a change in roll (about the along track axis) and a
    change in pitch (about the across track axis).  Positive roll takes starboard beams deeper, positive pitch takes
    forward beams shallower.

    Parameters
    ----------
    acrosstrack
        1d array of across track distances (m, positive starboard)
    alongtrack
        1d array of along track distances (m, positive forward)
    depth
        1d array of depths relative to the sonar (m, positive down)
    roll_delta
        change in roll in degrees
    pitch_delta
        change in pitch in degrees

    Returns
    -------
    np.ndarray
        new acrosstrack
    np.ndarray
        new alongtrack
    np.ndarray
        new depth
    """

    rotmat = build_rot_mat(roll_delta, pitch_delta, 0.0, order='rpy', degrees=True)
    newalong, newacross, newdepth = rotate_vector(rotmat, alongtrack, acrosstrack, depth)
    return newacross, newalong, newdepth


def meters_per_degree(latitude: Union[float, np.ndarray], ellipsoid: str = None):
    """
    Local scale factors between meters and degrees of longitude/latitude, from the radii of curvature of the
    ellipsoid at the given latitude.

    Parameters
    ----------
    latitude
        latitude in degrees
    ellipsoid
        pyproj ellipsoid name, defaults to swathprep_variables.default_ellipsoid

    Returns
    -------
    float or np.ndarray
        degrees of longitude per meter
    float or np.ndarray
        degrees of latitude per meter
    """

    geod = return_geod(ellipsoid)
    phi = np.deg2rad(latitude)
    sinphi2 = np.sin(phi) ** 2
    # prime vertical and meridional radii of curvature
    nrad = geod.a / np.sqrt(1.0 - geod.es * sinphi2)
    mrad = geod.a * (1.0 - geod.es) / (1.0 - geod.es * sinphi2) ** 1.5
    mtodeglon = 1.0 / np.abs(np.deg2rad(nrad * np.cos(phi)))
    mtodeglat = 1.0 / np.deg2rad(mrad)
    return mtodeglon, mtodeglat
