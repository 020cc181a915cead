# leggedctl

Building blocks for controlling a quadruped robot:

- rotation helpers for quaternions, ZYX Euler angles and angular velocities;
- a hardware-interface layer of joint, contact and IMU handles kept in
  name-keyed registries;
- a state-estimator base class and an estimator that takes the base state
  from a ground-truth odometry stream;
- a simulated robot whose hybrid joint commands are delayed and applied as
  PD efforts, with IMU and foot-contact sensing;
- a hardware base class and a fixed-rate read / update / write loop;
- a safety check on the base orientation;
- the conversion of goal poses and velocity commands into two-point target
  trajectories;
- decoding of the 40-byte wireless remote block.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `leggedctl.rotations` | `quat_to_zyx`, `quaternion_to_rotation_matrix`, `rotation_matrix_from_zyx`, `euler_angles_xyz`, the Euler-rate / angular-velocity mappings, `shortest_angular_distance` |
| `leggedctl.hardware` | `JointState`, `JointCommand`, `ContactState`, `ImuData`; `HybridJointHandle`, `ContactSensorHandle`, `ImuSensorHandle`; `HardwareResourceManager` and `HybridJointInterface`, `ContactSensorInterface`, `ImuSensorInterface`; `HardwareInterfaceError` |
| `leggedctl.trajectories` | `SystemObservation`, `TargetTrajectories`, `TrajectorySettings`, `estimate_time_to_target`, `target_pose_to_target_trajectories`, `goal_to_target_trajectories`, `cmd_vel_to_target_trajectories`, `TargetTrajectoriesPublisher` |
| `leggedctl.safety` | `SafetyChecker`, which rejects observations whose base roll leaves `[-pi/2, pi/2]` |
| `leggedctl.state_estimate` | `ModelInfo`, `Odometry`, `stance_leg_to_mode_number`, `StateEstimateBase`, `FromTopicStateEstimate` |
| `leggedctl.hw_sim` | `LeggedHWSim` with the `SimJoint`, `SimLink` and `SimModel` protocols, `Contact`, `HybridJointCommand` |
| `leggedctl.robot_hw` | `LeggedHW` and the threaded `LeggedHWLoop` |
| `leggedctl.joystick` | `KeySwitches`, `RockerButtons`, `decode_rocker`, `joy_message` |

Quaternions are `(x, y, z, w)` throughout; ZYX Euler angles are
`(yaw, pitch, roll)`. Times and periods are seconds.

## Examples

Angles wrap the short way round:

```python
from math import pi
from leggedctl.rotations import shortest_angular_distance

shortest_angular_distance(0.0, 1.5 * pi)   # -pi / 2
```

Handles share their data objects with whoever owns the hardware buffers:

```python
from leggedctl.hardware import HybridJointHandle, HybridJointInterface, JointCommand, JointState

state, command = JointState(), JointCommand()
joints = HybridJointInterface()
joints.register_handle(HybridJointHandle("LF_HAA", state, command))

handle = joints.get_handle("LF_HAA")        # claims the joint
handle.set_command(pos_des=0.8, vel_des=0.0, kp=0.0, kd=3.0, ff=1.2)
command.kd                                  # 3.0
```

Looking up an unknown name, or creating a handle without its data, raises
`HardwareInterfaceError`.

A velocity command becomes a two-point target trajectory over the settings'
horizon:

```python
import numpy as np
from leggedctl.trajectories import SystemObservation, TrajectorySettings, cmd_vel_to_target_trajectories

settings = TrajectorySettings(
    target_displacement_velocity=0.5,
    target_rotation_velocity=0.3,
    com_height=0.3,
    default_joint_state=np.zeros(12),
    time_to_target=1.0,
)
observation = SystemObservation(time=2.0, state=np.zeros(24), input=np.zeros(24))
trajectories = cmd_vel_to_target_trajectories([0.5, 0.0, 0.0, 0.0], observation, settings)
trajectories.time_trajectory                # [2.0, 3.0]
```

`TargetTrajectoriesPublisher` wraps two such conversions and a publish
callable; `on_observation`, `on_goal` and `on_cmd_vel` feed it, and goal or
velocity commands are ignored until an observation with non-zero time has
arrived.

The ground-truth estimator copies an odometry message into the rigid-body
state:

```python
from leggedctl.state_estimate import FromTopicStateEstimate, ModelInfo, Odometry

estimator = FromTopicStateEstimate(ModelInfo())
estimator.callback(Odometry(stamp=1.0, position=[0.0, 0.0, 0.3]))
rbd_state = estimator.update(1.0, 0.002)
rbd_state[3:6]                              # array([0. , 0. , 0.3])
estimator.update_contact([True, True, True, True])
estimator.mode()                            # 15
```

The wireless remote block decodes into gamepad-style axes and buttons:

```python
from leggedctl.joystick import KeySwitches, RockerButtons, joy_message

block = RockerButtons(buttons=KeySwitches(a=True), lx=0.5).pack()
axes, buttons = joy_message(block)
axes                                        # [-0.5, 0.0, -0.0, 0.0]
buttons                                     # [0, 1, 0, 0, 0, 0, 0, 0, 0, 0]
```

`LeggedHWLoop(hardware, controller_update, params)` reads
`loop_frequency`, `cycle_time_error_threshold` and `thread_priority` from
`params`, raises `RuntimeError` if one is missing, and calls
`hardware.read`, `controller_update` and `hardware.write` once per cycle in
its own thread until `stop()` is called or its `with` block ends.

## What this package does not do

- It has no estimator that fuses IMU, leg kinematics and foot contacts into
  a base position and velocity; `FromTopicStateEstimate` only passes through
  an odometry stream, and `StateEstimateBase` is the base for writing one.
- It does not talk to a physical robot. There are no encoders or decoders
  for the low-level motor state and command frames and no hardware class
  for a real robot; `LeggedHW.read` and `LeggedHW.write` do nothing and are
  meant to be overridden.
- It contains no physics engine; `LeggedHWSim` drives whatever objects
  satisfy its `SimJoint`, `SimLink` and `SimModel` protocols.
- It provides no command-line programs.