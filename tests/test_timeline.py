"""Tests for the timeline, the recorder and floor lookup."""

import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_armsim.ik import IKTarget
from jax_armsim.motion import MotionPhase
from jax_armsim.recorder import Timeline, TimelineRecorder
from jax_armsim.rig import Rig

from conftest import make_frame


@pytest.fixture
def timeline():
    return Timeline(make_frame(t) for t in (0.1, 0.2, 0.35, 0.5))


def test_empty_timeline_has_no_data():
    timeline = Timeline()
    assert not timeline.has_data
    assert timeline.frame_at_or_before(1.0) is None
    assert timeline.max_time == 0.0


def test_floor_lookup(timeline):
    assert timeline.frame_at_or_before(0.1).time == 0.1
    assert timeline.frame_at_or_before(0.3).time == 0.2
    assert timeline.frame_at_or_before(0.35).time == 0.35
    # Past the end: the last frame
    assert timeline.frame_at_or_before(9.0).time == 0.5


def test_before_first_frame_is_none(timeline):
    assert timeline.frame_at_or_before(0.05) is None
    # Clamping the query selects the first frame instead
    assert timeline.frame_at_or_before(timeline.clamp_time(0.05)).time == 0.1


def test_append_requires_increasing_time(timeline):
    with pytest.raises(ValueError):
        timeline.append(make_frame(0.5))
    with pytest.raises(ValueError):
        timeline.append(make_frame(0.4))
    assert len(timeline) == 4


def test_frames_snapshot_is_stable(timeline):
    snapshot = timeline.frames
    timeline.append(make_frame(0.6))
    assert len(snapshot) == 4
    assert len(timeline.frames) == 5
    assert timeline.times == (0.1, 0.2, 0.35, 0.5, 0.6)


def test_copy_is_independent(timeline):
    copied = timeline.copy()
    timeline.clear()
    assert len(copied) == 4
    assert copied.max_time == 0.5


@given(st.lists(st.floats(min_value=0.0, max_value=100.0), min_size=1, max_size=30, unique=True),
       st.floats(min_value=-10.0, max_value=110.0),
       st.floats(min_value=-10.0, max_value=110.0))
@settings(max_examples=50, deadline=None)
def test_floor_lookup_is_monotonic(times, t1, t2):
    timeline = Timeline(make_frame(t) for t in sorted(times))
    t1, t2 = min(t1, t2), max(t1, t2)

    f1 = timeline.frame_at_or_before(t1)
    f2 = timeline.frame_at_or_before(t2)

    if f1 is not None:
        assert f1.time <= t1
        assert f2 is not None
        assert f1.time <= f2.time
    if f2 is not None:
        assert f2.time <= t2


def test_recorder_captures_rig_state(arm_chain, scene):
    rig = Rig(arm_chain)
    target = IKTarget(jnp.array([0.1, 0.2, 0.3]))
    recorder = TimelineRecorder()

    scene.cube.attach(arm_chain.end_effector_transform)
    frame = recorder.record_frame(0.5, rig, target, scene.cube, MotionPhase.GRASPING,
                                  joint_velocities=jnp.arange(5.0))

    assert recorder.has_data
    assert recorder.max_time == 0.5
    assert frame.phase == "Grasping"
    assert frame.held
    np.testing.assert_array_equal(frame.target_position, target.position)
    np.testing.assert_array_equal(frame.joint_rotations, arm_chain.joint_rotations)
    np.testing.assert_array_equal(frame.held_position, scene.cube.position)
    np.testing.assert_array_equal(frame.pseudo_torques, rig.telemetry.torques)
    np.testing.assert_array_equal(frame.joint_velocities, jnp.arange(5.0))

    recorder.record_frame(0.6, rig, target, scene.cube, MotionPhase.LIFTING_CUBE)
    assert recorder.timeline.times == (0.5, 0.6)

    recorder.clear()
    assert not recorder.has_data
