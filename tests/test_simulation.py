"""End-to-end tests of the tick loop and the control surface."""

import jax.numpy as jnp
import numpy as np
import pytest

from jax_armsim import PickAndPlaceSimulation
from jax_armsim.ik import TargetOwner
from jax_armsim.motion import MotionPhase

from conftest import RecordingSink, build_arm_chain, build_scene, make_frame

DT = 0.05

RUN_PHASES = [
    "MovingToPreGrasp",
    "LoweringToGrasp",
    "Grasping",
    "LiftingCube",
    "MovingToTargetPad",
    "LoweringToRelease",
    "Releasing",
    "ReturningHome",
]


def run_to_completion(sim, max_ticks=2000):
    assert sim.play()
    for _ in range(max_ticks):
        sim.tick(DT)
        if not sim.is_recording:
            return
    raise AssertionError(f"run did not finish, phase {sim.phase}")


@pytest.fixture
def sim():
    return PickAndPlaceSimulation(build_arm_chain(), build_scene(), sink=RecordingSink())


@pytest.fixture(scope="module")
def finished_frames():
    simulation = PickAndPlaceSimulation(build_arm_chain(), build_scene())
    run_to_completion(simulation)
    return simulation.recorder.timeline.frames


def collapse(values):
    out = []
    for value in values:
        if not out or out[-1] != value:
            out.append(value)
    return out


def test_run_visits_every_phase_once(finished_frames):
    assert collapse(f.phase for f in finished_frames) == RUN_PHASES


def test_held_only_between_grasp_and_release(finished_frames):
    carrying = {"LiftingCube", "MovingToTargetPad", "LoweringToRelease"}
    may_hold = carrying | {"Grasping"}

    for frame in finished_frames:
        if frame.phase in carrying:
            assert frame.held
        if frame.held:
            assert frame.phase in may_hold


def test_frame_times_strictly_increase(finished_frames):
    times = [f.time for f in finished_frames]
    assert all(b > a for a, b in zip(times, times[1:]))
    assert times[0] == pytest.approx(DT)


def test_cube_carried_to_pad(sim):
    run_to_completion(sim)

    pad = sim.scene.target_pad.position
    cube = sim.scene.cube
    assert sim.phase is MotionPhase.IDLE
    assert not cube.attached
    # Released next to the pad, not left at the pick location
    assert float(jnp.linalg.norm(cube.position[:2] - pad[:2])) < 0.3


def test_replay_round_trip_is_bit_identical(sim):
    run_to_completion(sim)
    frames = sim.recorder.timeline.frames

    for frame in frames:
        applied = sim.scrub_to(frame.time)
        assert applied is frame
        np.testing.assert_array_equal(sim.chain.joint_rotations, frame.joint_rotations)
        np.testing.assert_array_equal(sim.target.position, frame.target_position)
        np.testing.assert_array_equal(sim.rig.telemetry.torques, frame.pseudo_torques)
        np.testing.assert_array_equal(sim.rig.telemetry.ee_velocity, frame.ee_velocity)

    # Scrubbing never records
    assert len(sim.recorder.timeline) == len(frames)


def test_replay_ticks_leave_state_untouched(sim):
    run_to_completion(sim)
    frame = sim.scrub_to(1.0)

    assert sim.phase is MotionPhase.REPLAY
    assert sim.target.owner is TargetOwner.SCRUBBER
    assert sim.scene.cube.kinematic

    for _ in range(5):
        sim.tick(DT)
    np.testing.assert_array_equal(sim.chain.joint_rotations, frame.joint_rotations)
    np.testing.assert_array_equal(sim.rig.telemetry.torques, frame.pseudo_torques)


def test_scrub_clamps_into_recorded_range(sim):
    run_to_completion(sim)
    frames = sim.recorder.timeline.frames

    assert sim.scrub_to(-5.0) is frames[0]
    assert sim.scrub_to(1e6) is frames[-1]


def test_scrub_without_data(sim, caplog):
    assert sim.scrub_to(1.0) is None
    assert sim.phase is MotionPhase.IDLE
    assert "No recorded data" in caplog.text


def test_reset_after_replay(sim):
    home = sim.chain.joint_rotations
    run_to_completion(sim)
    sim.scrub_to(2.0)

    sim.reset()

    assert sim.phase is MotionPhase.IDLE
    assert sim.target.owner is TargetOwner.SEQUENCER
    assert not sim.recorder.has_data
    assert not sim.scene.cube.kinematic
    assert not sim.rig.telemetry.is_replaying
    np.testing.assert_array_equal(sim.chain.joint_rotations, home)


def test_play_from_replay_starts_fresh_run(sim):
    run_to_completion(sim)
    sim.scrub_to(2.0)

    assert sim.play()
    assert sim.phase is MotionPhase.MOVING_TO_PRE_GRASP
    assert sim.target.owner is TargetOwner.SEQUENCER
    assert not sim.recorder.has_data

    sim.tick(DT)
    assert len(sim.recorder.timeline) == 1


def first_frame_of_next_run(sim):
    assert sim.play()
    sim.tick(DT)
    return sim.recorder.timeline[0]


def test_no_velocity_spike_after_play_from_replay(sim):
    sim.play()
    for _ in range(40):
        sim.tick(DT)
    sim.scrub_to(1.5)

    frame = first_frame_of_next_run(sim)

    np.testing.assert_allclose(frame.joint_velocities, np.zeros(5), atol=1e-9)
    np.testing.assert_allclose(frame.pseudo_torques, np.zeros(5), atol=1e-9)


def test_no_velocity_spike_after_mid_run_reset(sim):
    sim.play()
    for _ in range(40):
        sim.tick(DT)
    sim.reset()

    assert all(sim.actuator.get_joint_velocity(i) == 0.0 for i in range(5))
    frame = first_frame_of_next_run(sim)

    np.testing.assert_allclose(frame.joint_velocities, np.zeros(5), atol=1e-9)
    np.testing.assert_allclose(frame.pseudo_torques, np.zeros(5), atol=1e-9)


def test_first_frame_after_reset_matches_fresh_run(sim):
    fresh = PickAndPlaceSimulation(build_arm_chain(), build_scene())
    expected = first_frame_of_next_run(fresh)

    run_to_completion(sim)
    sim.scrub_to(2.0)
    frame = first_frame_of_next_run(sim)

    np.testing.assert_allclose(frame.joint_rotations, expected.joint_rotations, atol=1e-12)
    np.testing.assert_allclose(frame.joint_velocities, expected.joint_velocities, atol=1e-9)
    np.testing.assert_allclose(frame.ee_velocity, expected.ee_velocity, atol=1e-9)


def test_play_rejected_mid_run(sim, caplog):
    sim.play()
    sim.tick(DT)
    assert not sim.play()
    assert "Play ignored" in caplog.text


def test_archive_and_select_run(sim):
    run_to_completion(sim)
    live_frames = sim.recorder.timeline.frames

    saved = sim.save_run()
    assert saved.name == "Run 1 - 2.0kg"

    sim.reset()
    assert not sim.recorder.has_data

    # Live run is empty, the archived one still scrubs
    assert sim.scrub_to(1.0) is None
    assert sim.select_run(1)
    frame = sim.scrub_to(1.0)
    expected = [f for f in live_frames if f.time <= 1.0][-1]
    assert frame.time == expected.time
    np.testing.assert_array_equal(frame.joint_rotations, expected.joint_rotations)
    np.testing.assert_array_equal(sim.chain.joint_rotations, expected.joint_rotations)

    assert not sim.select_run(2)
    sim.clear_runs()
    assert sim.selected_run == 0
    assert len(sim.archive) == 0


def test_mismatched_archived_frame_is_rejected(sim, caplog):
    sim.archive.save([make_frame(0.1, num_links=3, num_tracked=3)], name="foreign")
    sim.select_run(1)
    rotations = sim.chain.joint_rotations

    assert sim.scrub_to(0.1) is None

    assert sim.phase is MotionPhase.IDLE
    np.testing.assert_array_equal(sim.chain.joint_rotations, rotations)
    assert "rejected" in caplog.text


def test_set_load_mass(sim, caplog):
    assert sim.set_load_mass("12.5") == 12.5
    assert sim.scene.cube.mass == 12.5

    assert sim.set_load_mass("heavy") == 12.5
    assert sim.set_load_mass(None) == 12.5
    assert sim.set_load_mass("nan") == 12.5
    assert "Invalid load mass" in caplog.text
    assert sim.scene.cube.mass == 12.5

    assert sim.set_load_mass(-3) == sim.config.min_load_mass


def test_select_joint(sim):
    assert sim.select_joint(2)
    assert sim.selected_joint == 2
    assert not sim.select_joint(99)
    assert sim.selected_joint == 2


def test_sink_receives_diagnostics():
    sink = RecordingSink()
    simulation = PickAndPlaceSimulation(build_arm_chain(), build_scene(), sink=sink)
    run_to_completion(simulation)

    assert len(sink.levels) > 0
    assert all(len(levels) == 5 for levels in sink.levels)
    assert all(0.0 <= v <= 1.0 for levels in sink.levels for v in levels)
    assert {name for name, _ in sink.signals} == {"velocity", "acceleration"}
    assert sink.highlights[-1] == pytest.approx(simulation.recorder.max_time)
    # The finished run's graph
    assert len(sink.series[-1].times) == len(simulation.recorder.timeline)


def test_joint_graph_follows_selection(sim):
    run_to_completion(sim)
    sim.select_joint(1)

    graph = sim.joint_graph()
    frames = sim.recorder.timeline.frames
    assert graph.joint_index == 1
    np.testing.assert_allclose(graph.torques, [float(f.pseudo_torques[1]) for f in frames])


def test_actuators_follow_chain(sim):
    sim.play()
    for _ in range(20):
        sim.tick(DT)

    targets = np.array([sim.actuator.get_joint_drive_target(i) for i in range(5)])
    assert np.any(np.abs(targets) > 1e-3)
    assert sim.actuator.get_joint_drive_target(4) == pytest.approx(0.0, abs=1e-9)


def test_from_urdf(arm_urdf):
    simulation = PickAndPlaceSimulation.from_urdf(arm_urdf, build_scene())
    assert simulation.chain.num_links == 5
    assert simulation.rig.telemetry.joint_count == 5
