"""Tests for URDF parser functionality."""

import jax.numpy as jnp
import numpy as np
import pytest

from jax_armsim.chain import JointChain
from jax_armsim.core import ChainModel
from jax_armsim.io import load_chain


def test_load_arm_urdf(arm_urdf):
    """Loading follows the first child joint down to the tool link."""
    model = load_chain(arm_urdf)

    assert isinstance(model, ChainModel)
    assert model.link_names == ("base_link", "link1", "link2", "link3", "tool")

    n = model.num_links
    assert model.parent_indices.shape == (n,)
    assert model.offsets.shape == (n, 3)
    assert model.anchor_rotations.shape == (n, 3, 3)

    # Root parents itself, every other link its predecessor
    np.testing.assert_array_equal(model.parent_indices, jnp.array([0, 0, 1, 2, 3]))


def test_offsets_from_joint_origins(arm_urdf):
    model = load_chain(arm_urdf)
    np.testing.assert_allclose(model.offsets[:, 2], jnp.array([0.0, 0.1, 0.2, 0.3, 0.25]))

    chain = JointChain(model)
    np.testing.assert_allclose(chain.end_effector_position, jnp.array([0.0, 0.0, 0.85]), atol=1e-12)


def test_anchors_map_local_x_onto_joint_axis(arm_urdf):
    model = load_chain(arm_urdf)
    physical = model.physical_axes()

    np.testing.assert_allclose(physical[1], jnp.array([0.0, 0.0, 1.0]), atol=1e-9)
    np.testing.assert_allclose(physical[2], jnp.array([0.0, 1.0, 0.0]), atol=1e-9)
    np.testing.assert_allclose(physical[3], jnp.array([0.0, 1.0, 0.0]), atol=1e-9)
    np.testing.assert_allclose(model.axes, jnp.tile(jnp.array([1.0, 0.0, 0.0]), (5, 1)))


def test_limits_in_degrees(arm_urdf):
    model = load_chain(arm_urdf)

    np.testing.assert_allclose(model.lower_limits[1], -170.0, atol=1e-2)
    np.testing.assert_allclose(model.upper_limits[2], 90.0, atol=1e-2)
    # Continuous joints are unlimited
    assert model.lower_limits[3] == -180.0
    assert model.upper_limits[3] == 180.0


def test_fixed_and_root_links_are_not_movable(arm_urdf):
    model = load_chain(arm_urdf)
    np.testing.assert_array_equal(model.movable, jnp.array([False, True, True, True, False]))


def test_explicit_tip_link(arm_urdf):
    model = load_chain(arm_urdf, tip_link="gripper_left")

    assert model.link_names == ("base_link", "link1", "link2", "link3", "gripper_left")
    np.testing.assert_allclose(model.offsets[-1], jnp.array([0.0, 0.02, 0.2]))
    assert model.tracked_indices("gripper") == (0, 1, 2, 3)


def test_unknown_tip_link(arm_urdf):
    with pytest.raises(ValueError):
        load_chain(arm_urdf, tip_link="missing")


def test_rpy_origin(tmp_path):
    urdf = tmp_path / "bent.urdf"
    urdf.write_text(
        """<?xml version="1.0"?>
<robot name="bent">
  <link name="a"/>
  <link name="b"/>
  <joint name="j" type="revolute">
    <parent link="a"/>
    <child link="b"/>
    <origin xyz="1 0 0" rpy="0 0 1.5707963267948966"/>
    <axis xyz="1 0 0"/>
    <limit lower="-1" upper="1"/>
  </joint>
</robot>
""")
    model = load_chain(urdf)

    np.testing.assert_allclose(model.rest_rotations[1] @ jnp.array([1.0, 0.0, 0.0]),
                               jnp.array([0.0, 1.0, 0.0]), atol=1e-9)
    np.testing.assert_allclose(model.anchor_rotations[1], jnp.eye(3), atol=1e-9)


def test_multiple_roots_rejected(tmp_path):
    urdf = tmp_path / "two_roots.urdf"
    urdf.write_text('<robot name="r"><link name="a"/><link name="b"/></robot>')
    with pytest.raises(ValueError):
        load_chain(urdf)
