import dataclasses
import math

import numpy as np
import pytest

from leggedctl.trajectories import (
    SystemObservation,
    TargetTrajectoriesPublisher,
    TrajectorySettings,
    cmd_vel_to_target_trajectories,
    estimate_time_to_target,
    goal_to_target_trajectories,
    target_pose_to_target_trajectories,
)


@pytest.fixture
def settings():
    return TrajectorySettings(
        target_displacement_velocity=0.5,
        target_rotation_velocity=0.3,
        com_height=0.3,
        default_joint_state=np.linspace(-0.5, 0.5, 12),
        time_to_target=1.0,
    )


@pytest.fixture
def observation():
    state = np.zeros(24)
    state[6:12] = [0.2, -0.1, 0.28, 0.1, 0.05, -0.02]
    return SystemObservation(mode=15, time=2.0, state=state, input=np.zeros(24))


def test_estimate_time_pinned(settings):
    unit = dataclasses.replace(settings, target_displacement_velocity=1.0, target_rotation_velocity=1.0)
    assert estimate_time_to_target([3.0, 4.0, 0.0, 0.0, 0.0, 0.0], unit) == pytest.approx(5.0)


def test_estimate_time_scales_linearly(settings):
    d = np.array([0.4, -0.3, 0.0, 0.2, 0.0, 0.0])
    assert estimate_time_to_target(2 * d, settings) == pytest.approx(2 * estimate_time_to_target(d, settings))


def test_estimate_time_takes_slower_motion(settings):
    yaw_only = estimate_time_to_target([0.0, 0.0, 0.0, 0.6, 0.0, 0.0], settings)
    both = estimate_time_to_target([0.01, 0.0, 0.0, 0.6, 0.0, 0.0], settings)
    assert both == pytest.approx(yaw_only)


def test_target_pose_trajectory_layout(settings, observation):
    target = np.array([1.0, 2.0, 0.3, 0.5, 0.0, 0.0])
    traj = target_pose_to_target_trajectories(target, observation, 7.0, settings)
    assert traj.time_trajectory == [observation.time, 7.0]
    first, second = traj.state_trajectory
    assert np.allclose(first[:6], 0.0)
    assert first[6] == observation.state[6]
    assert first[8] == settings.com_height
    assert first[10] == 0.0 and first[11] == 0.0
    assert np.allclose(second[6:12], target)
    assert np.allclose(second[12:], settings.default_joint_state)
    assert all(np.allclose(u, 0.0) and u.size == 24 for u in traj.input_trajectory)


def test_target_pose_size_mismatch(settings):
    small = SystemObservation(time=1.0, state=np.zeros(10), input=np.zeros(3))
    with pytest.raises(ValueError):
        target_pose_to_target_trajectories(np.zeros(6), small, 2.0, settings)


def test_goal_trajectory(settings, observation):
    goal = np.array([1.0, -1.0, 5.0, 0.4, 0.3, 0.2])
    traj = goal_to_target_trajectories(goal, observation, settings)
    target = traj.state_trajectory[1][6:12]
    assert target[0] == goal[0] and target[1] == goal[1] and target[3] == goal[3]
    assert target[2] == settings.com_height
    displacement = target - observation.state[6:12]
    expected_time = observation.time + estimate_time_to_target(displacement, settings)
    assert traj.time_trajectory[1] == pytest.approx(expected_time)


def test_cmd_vel_rotates_into_world(settings, observation):
    observation.state[9] = math.pi / 2
    observation.state[10] = 0.0
    observation.state[11] = 0.0
    traj = cmd_vel_to_target_trajectories([1.0, 0.0, 0.0, 0.2], observation, settings)
    for state in traj.state_trajectory:
        assert np.allclose(state[:3], [0.0, 1.0, 0.0])
    assert traj.time_trajectory[1] == pytest.approx(observation.time + settings.time_to_target)
    assert traj.state_trajectory[1][6] == pytest.approx(observation.state[6])


def test_cmd_vel_zero_keeps_position(settings, observation):
    traj = cmd_vel_to_target_trajectories(np.zeros(4), observation, settings)
    target = traj.state_trajectory[1]
    assert np.allclose(target[[6, 7, 9]], observation.state[[6, 7, 9]])


def test_settings_requires_twelve_joints():
    with pytest.raises(ValueError):
        TrajectorySettings(1.0, 1.0, 0.3, np.zeros(5), 1.0)


class _Recorder:
    def __init__(self, settings, fn):
        self.settings = settings
        self.fn = fn
        self.commands = []

    def __call__(self, cmd, observation):
        self.commands.append(cmd)
        return self.fn(cmd, observation, self.settings)


def _publisher(settings, transform=None):
    goal = _Recorder(settings, goal_to_target_trajectories)
    vel = _Recorder(settings, cmd_vel_to_target_trajectories)
    published = []
    publisher = TargetTrajectoriesPublisher(goal, vel, published.append, transform)
    return publisher, goal, vel, published


def test_publisher_ignores_before_observation(settings):
    publisher, _, vel, published = _publisher(settings)
    assert publisher.on_cmd_vel([0.1, 0.0, 0.0], 0.0) is None
    assert published == [] and vel.commands == []


def test_publisher_cmd_vel(settings, observation):
    publisher, _, vel, published = _publisher(settings)
    publisher.on_observation(observation)
    result = publisher.on_cmd_vel([0.1, 0.2, 0.0], 0.3)
    assert published == [result]
    assert np.allclose(vel.commands[0], [0.1, 0.2, 0.0, 0.3])


def test_publisher_goal_yaw(settings, observation):
    publisher, goal, _, published = _publisher(settings)
    publisher.on_observation(observation)
    angle = 0.6
    result = publisher.on_goal([1.0, 2.0, 0.0], [0.0, 0.0, math.sin(angle / 2), math.cos(angle / 2)])
    assert published == [result]
    cmd = goal.commands[0]
    assert cmd[:3] == pytest.approx([1.0, 2.0, 0.0])
    assert cmd[3] == pytest.approx(angle)


def test_publisher_goal_transform_failure(settings, observation):
    def transform(position, orientation):
        raise LookupError("no transform")

    publisher, _, _, published = _publisher(settings, transform)
    publisher.on_observation(observation)
    assert publisher.on_goal([1.0, 0.0, 0.0], [0.0, 0.0, 0.0, 1.0]) is None
    assert published == []