import math
from itertools import product

import numpy as np
import pytest

from leggedctl.rotations import rotation_matrix_from_zyx
from leggedctl.state_estimate import (
    FromTopicStateEstimate,
    ModelInfo,
    Odometry,
    stance_leg_to_mode_number,
)


def _imu(estimator, quat, angular_vel):
    estimator_cls_update = type(estimator).update_imu
    estimator_cls_update(estimator, quat, angular_vel, [0.0, 0.0, 9.81], np.eye(3), np.eye(3), np.eye(3))


def test_stance_mode_all_contacts_is_stance():
    assert stance_leg_to_mode_number([True] * 4) == 15
    assert stance_leg_to_mode_number([False] * 4) == 0


def test_stance_modes_are_distinct():
    modes = {stance_leg_to_mode_number(flags) for flags in product([False, True], repeat=4)}
    assert modes == set(range(16))


def test_stance_mode_wrong_length():
    with pytest.raises(ValueError):
        stance_leg_to_mode_number([True, False])


def test_model_info_mismatch_rejected():
    with pytest.raises(ValueError):
        ModelInfo(generalized_coordinates_num=10, actuated_dof_num=12)


def test_update_joint_states_layout():
    info = ModelInfo()
    est = FromTopicStateEstimate(info)
    pos = np.arange(12, dtype=float)
    vel = -np.arange(12, dtype=float)
    est.update_joint_states(pos, vel)
    gen = info.generalized_coordinates_num
    assert np.array_equal(est.rbd_state[6:18], pos)
    assert np.array_equal(est.rbd_state[gen + 6 : gen + 18], vel)


def test_update_joint_states_wrong_size():
    est = FromTopicStateEstimate(ModelInfo())
    with pytest.raises(ValueError):
        est.update_joint_states(np.zeros(3), np.zeros(12))


def test_update_contact_and_mode():
    est = FromTopicStateEstimate(ModelInfo())
    est.update_contact([True, True, True, True])
    assert est.mode() == stance_leg_to_mode_number([True] * 4)
    with pytest.raises(ValueError):
        est.update_contact([True])


def test_base_update_imu_rotates_angular_velocity_to_world():
    info = ModelInfo()
    est = FromTopicStateEstimate(info)
    yaw = 0.7
    quat = [0.0, 0.0, math.sin(yaw / 2), math.cos(yaw / 2)]
    local = np.array([0.3, -0.2, 0.5])
    _imu(est, quat, local)
    gen = info.generalized_coordinates_num
    assert est.rbd_state[0] == pytest.approx(yaw)
    expected = rotation_matrix_from_zyx(est.rbd_state[0:3]) @ local
    assert np.allclose(est.rbd_state[gen : gen + 3], expected)


def test_base_update_imu_applies_offset():
    est = FromTopicStateEstimate(ModelInfo())
    est.zyx_offset = np.array([0.1, 0.0, 0.0])
    yaw = 0.5
    _imu(est, [0.0, 0.0, math.sin(yaw / 2), math.cos(yaw / 2)], np.zeros(3))
    assert est.rbd_state[0] == pytest.approx(yaw - 0.1)


def test_from_topic_update_imu_is_ignored():
    est = FromTopicStateEstimate(ModelInfo())
    est.update_imu([0.0, 0.0, 0.6, 0.8], [1.0, 2.0, 3.0], np.zeros(3), np.eye(3), np.eye(3), np.eye(3))
    assert np.array_equal(est.rbd_state, np.zeros(36))


def test_from_topic_update_before_message_is_zero():
    est = FromTopicStateEstimate(ModelInfo())
    state = est.update(0.0, 0.002)
    assert np.array_equal(state, np.zeros(36))


def test_from_topic_update_copies_message():
    info = ModelInfo()
    published = []
    est = FromTopicStateEstimate(info, odom_publisher=published.append)
    yaw = 0.4
    odom = Odometry(
        stamp=1.0,
        position=[1.0, 2.0, 0.3],
        orientation=[0.0, 0.0, math.sin(yaw / 2), math.cos(yaw / 2)],
        linear=[0.5, 0.1, 0.0],
        angular=[0.0, 0.0, 0.2],
    )
    est.callback(odom)
    state = est.update(1.0, 0.002)
    gen = info.generalized_coordinates_num
    assert state[0] == pytest.approx(yaw)
    assert np.allclose(state[3:6], [1.0, 2.0, 0.3])
    assert np.allclose(state[gen : gen + 3], [0.0, 0.0, 0.2])
    assert np.allclose(state[gen + 3 : gen + 6], [0.5, 0.1, 0.0])
    assert len(published) == 1
    assert published[0].stamp == 1.0


def test_update_returns_copy():
    est = FromTopicStateEstimate(ModelInfo())
    state = est.update(0.0, 0.002)
    state[0] = 42.0
    assert est.rbd_state[0] == 0.0


def test_publish_rate_limited():
    odom_out, pose_out = [], []
    est = FromTopicStateEstimate(ModelInfo(), odom_publisher=odom_out.append, pose_publisher=pose_out.append)
    for stamp in (0.001, 0.01, 0.012, 0.02):
        est.callback(Odometry(stamp=stamp, position=[stamp, 0.0, 0.0]))
        est.update(stamp, 0.002)
    assert [o.stamp for o in odom_out] == [0.01, 0.02]
    assert [p.stamp for p in pose_out] == [0.01, 0.02]
    assert np.allclose(pose_out[0].position, [0.01, 0.0, 0.0])


def test_publish_msgs_reports_result():
    est = FromTopicStateEstimate(ModelInfo())
    assert est.publish_msgs(Odometry(stamp=1.0)) is True
    assert est.publish_msgs(Odometry(stamp=1.001)) is False


def test_odometry_shape_validation():
    with pytest.raises(ValueError):
        Odometry(position=[1.0, 2.0])