"""Rotation helpers: quaternions, ZYX Euler angles and their rates.

Quaternions are given as ``(x, y, z, w)``, the order used by the IMU
orientation buffers. ZYX Euler angles are ordered ``(yaw, pitch, roll)``.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import ArrayLike

__all__ = [
    "quat_to_zyx",
    "quaternion_to_rotation_matrix",
    "rotation_matrix_from_zyx",
    "euler_angles_xyz",
    "euler_zyx_derivatives_from_local_angular_velocity",
    "euler_zyx_derivatives_from_global_angular_velocity",
    "global_angular_velocity_from_euler_zyx_derivatives",
    "shortest_angular_distance",
]


def _vector(values: ArrayLike, size: int, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=float)
    if array.shape != (size,):
        raise ValueError(f"{name} must have {size} elements, got shape {array.shape}")
    return array


def quat_to_zyx(quat: ArrayLike) -> np.ndarray:
    """Return the ZYX Euler angles (yaw, pitch, roll) of an ``(x, y, z, w)`` quaternion."""
    x, y, z, w = _vector(quat, 4, "quat")
    sin_pitch = min(-2.0 * (x * z - w * y), 0.99999)
    with np.errstate(invalid="ignore"):
        pitch = float(np.arcsin(sin_pitch))
    return np.array(
        [
            math.atan2(2.0 * (x * y + w * z), w * w + x * x - y * y - z * z),
            pitch,
            math.atan2(2.0 * (y * z + w * x), w * w - x * x - y * y + z * z),
        ]
    )


def quaternion_to_rotation_matrix(quat: ArrayLike) -> np.ndarray:
    """Return the rotation matrix of a unit ``(x, y, z, w)`` quaternion."""
    x, y, z, w = _vector(quat, 4, "quat")
    tx, ty, tz = 2.0 * x, 2.0 * y, 2.0 * z
    twx, twy, twz = tx * w, ty * w, tz * w
    txx, txy, txz = tx * x, ty * x, tz * x
    tyy, tyz, tzz = ty * y, tz * y, tz * z
    return np.array(
        [
            [1.0 - (tyy + tzz), txy - twz, txz + twy],
            [txy + twz, 1.0 - (txx + tzz), tyz - twx],
            [txz - twy, tyz + twx, 1.0 - (txx + tyy)],
        ]
    )


def rotation_matrix_from_zyx(zyx: ArrayLike) -> np.ndarray:
    """Return ``Rz(yaw) @ Ry(pitch) @ Rx(roll)``."""
    yaw, pitch, roll = _vector(zyx, 3, "zyx")
    cz, sz = math.cos(yaw), math.sin(yaw)
    cy, sy = math.cos(pitch), math.sin(pitch)
    cx, sx = math.cos(roll), math.sin(roll)
    rz = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rx = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    return rz @ ry @ rx


def euler_angles_xyz(rotation: ArrayLike) -> np.ndarray:
    """Decompose ``rotation`` as ``Rx(a) @ Ry(b) @ Rz(c)`` and return ``(a, b, c)``.

    The first angle lies in ``[0, pi]``, the others in ``[-pi, pi]``.
    """
    m = np.asarray(rotation, dtype=float)
    if m.shape != (3, 3):
        raise ValueError(f"rotation must be 3x3, got shape {m.shape}")
    i, j, k = 0, 1, 2
    res = np.zeros(3)
    res[0] = math.atan2(m[j, k], m[k, k])
    c2 = math.hypot(m[i, i], m[i, j])
    if res[0] > 0:
        res[0] -= math.pi
        res[1] = math.atan2(-m[i, k], -c2)
    else:
        res[1] = math.atan2(-m[i, k], c2)
    s1, c1 = math.sin(res[0]), math.cos(res[0])
    res[2] = math.atan2(s1 * m[k, i] - c1 * m[j, i], c1 * m[j, j] - s1 * m[k, j])
    return -res


def euler_zyx_derivatives_from_local_angular_velocity(zyx: ArrayLike, angular_velocity: ArrayLike) -> np.ndarray:
    """Return ZYX Euler angle rates from an angular velocity in the body frame."""
    _, pitch, roll = _vector(zyx, 3, "zyx")
    wx, wy, wz = _vector(angular_velocity, 3, "angular_velocity")
    sy, cy = math.sin(pitch), math.cos(pitch)
    sx, cx = math.sin(roll), math.cos(roll)
    yaw_rate = sx * wy / cy + cx * wz / cy
    return np.array([yaw_rate, cx * wy - sx * wz, wx + sy * yaw_rate])


def euler_zyx_derivatives_from_global_angular_velocity(zyx: ArrayLike, angular_velocity: ArrayLike) -> np.ndarray:
    """Return ZYX Euler angle rates from an angular velocity in the world frame."""
    yaw, pitch, _ = _vector(zyx, 3, "zyx")
    wx, wy, wz = _vector(angular_velocity, 3, "angular_velocity")
    sz, cz = math.sin(yaw), math.cos(yaw)
    sy, cy = math.sin(pitch), math.cos(pitch)
    roll_rate = cz * wx / cy + sz * wy / cy
    return np.array([sy * roll_rate + wz, -sz * wx + cz * wy, roll_rate])


def global_angular_velocity_from_euler_zyx_derivatives(zyx: ArrayLike, derivatives: ArrayLike) -> np.ndarray:
    """Return the world-frame angular velocity for the given ZYX Euler angle rates."""
    yaw, pitch, _ = _vector(zyx, 3, "zyx")
    dz, dy, dx = _vector(derivatives, 3, "derivatives")
    sz, cz = math.sin(yaw), math.cos(yaw)
    sy, cy = math.sin(pitch), math.cos(pitch)
    return np.array([-sz * dy + cy * cz * dx, cz * dy + cy * sz * dx, dz - sy * dx])


def _normalize_angle(angle: float) -> float:
    two_pi = 2.0 * math.pi
    wrapped = math.fmod(math.fmod(angle, two_pi) + two_pi, two_pi)
    if wrapped > math.pi:
        wrapped -= two_pi
    return wrapped


def shortest_angular_distance(source: float, target: float) -> float:
    """Return the signed angle in ``(-pi, pi]`` that turns ``source`` onto ``target``."""
    return _normalize_angle(target - source)