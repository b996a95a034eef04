"""Shared fixtures: small chains, a scene and a recording diagnostics sink."""

from pathlib import Path

import jax.numpy as jnp
import pytest

from jax_armsim.chain import JointChain
from jax_armsim.core import serial_chain
from jax_armsim.recorder import Frame
from jax_armsim.scene import HeldObject, Scene, SceneNode
from jax_armsim.transforms import so3

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def arm_urdf():
    return FIXTURES / "three_link_arm.urdf"


def planar_model(num_segments=2, length=1.0):
    """Chain along +Z turning about X: link0 at the origin, tip last."""
    names = [f"link{i}" for i in range(num_segments)] + ["tip"]
    offsets = [[0.0, 0.0, 0.0]] + [[0.0, 0.0, length]] * num_segments
    return serial_chain(names, offsets)


@pytest.fixture
def planar_chain():
    return JointChain(planar_model())


def build_arm_chain():
    """Four links reaching 0.85 m up: yaw, pitch, pitch, then the tool tip."""
    names = ["base", "shoulder", "elbow", "wrist", "tool"]
    offsets = [[0.0, 0.0, 0.0], [0.0, 0.0, 0.1], [0.0, 0.0, 0.2],
               [0.0, 0.0, 0.3], [0.0, 0.0, 0.25]]
    x = jnp.array([1.0, 0.0, 0.0])
    anchors = jnp.stack([
        so3.rotation_between(x, jnp.array([0.0, 0.0, 1.0])),
        so3.rotation_between(x, jnp.array([0.0, 1.0, 0.0])),
        so3.rotation_between(x, jnp.array([0.0, 1.0, 0.0])),
        so3.rotation_between(x, jnp.array([0.0, 1.0, 0.0])),
        jnp.eye(3),
    ])
    return JointChain(serial_chain(names, offsets, anchor_rotations=anchors))


@pytest.fixture
def arm_chain():
    return build_arm_chain()


def build_scene():
    cube = HeldObject("cube", [0.35, 0.0, 0.05], size=0.05, mass=2.0)
    pad = SceneNode("target_pad", [0.0, 0.35, 0.0])
    return Scene(cube, pad)


@pytest.fixture
def scene():
    return build_scene()


def make_frame(time, num_links=3, num_tracked=3, phase="Idle", held=False, value=0.0):
    """Frame with every array filled from ``value``."""
    return Frame(
        time=float(time),
        phase=phase,
        held=held,
        target_position=jnp.full(3, value),
        joint_rotations=jnp.broadcast_to(jnp.eye(3), (num_links, 3, 3)) * 1.0,
        held_position=jnp.full(3, value),
        held_rotation=jnp.eye(3),
        pseudo_torques=jnp.full(num_tracked, value),
        joint_velocities=jnp.full(num_tracked, value),
        ee_velocity=jnp.full(3, value),
        ee_acceleration=jnp.full(3, value),
    )


class RecordingSink:
    """DiagnosticsSink that keeps everything it is shown."""

    def __init__(self):
        self.levels = []
        self.signals = []
        self.series = []
        self.highlights = []

    def show_joint_levels(self, levels):
        self.levels.append(list(levels))

    def show_signal(self, name, value):
        self.signals.append((name, value))

    def show_series(self, series):
        self.series.append(series)

    def highlight_time(self, time):
        self.highlights.append(time)


@pytest.fixture
def sink():
    return RecordingSink()
