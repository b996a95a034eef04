"""URDF parser for loading a reference joint chain.

This module parses a URDF file with lxml and converts the serial path from
the root link to the tip link into a ChainModel. Each joint's origin becomes
the child link's offset and rest rotation; the joint axis becomes the link's
anchor rotation, so the chain-local axis stays X for every link.
"""

from collections import deque
from typing import Dict, List, Optional

import jax.numpy as jnp
import numpy as np
from lxml import etree

from ..core.robot_model import LOCAL_X_AXIS, ChainModel
from ..transforms import so3

UNLIMITED_DEGREES = 180.0
MOVABLE_JOINT_TYPES = ('revolute', 'continuous')


def load_chain(urdf_path: str, tip_link: Optional[str] = None) -> ChainModel:
    """Load the root-to-tip path of a URDF file as a ChainModel.

    Args:
        urdf_path: Path to the URDF file to load.
        tip_link: Name of the end-effector link. Without it, the path follows
            the first child joint of every link until a leaf is reached.

    Returns:
        ChainModel: the root link first, the tip link last.
    """
    tree = etree.parse(str(urdf_path))
    root = tree.getroot()

    all_links = [link.get('name') for link in root.findall('.//link')]

    # child link name -> joint element
    joint_by_child: Dict[str, etree._Element] = {}
    children: Dict[str, List[str]] = {name: [] for name in all_links}
    for joint in root.findall('.//joint'):
        parent_elem = joint.find('parent')
        child_elem = joint.find('child')
        if parent_elem is None or child_elem is None:
            continue
        parent_name = parent_elem.get('link')
        child_name = child_elem.get('link')
        joint_by_child[child_name] = joint
        children.setdefault(parent_name, []).append(child_name)

    # Find root link (not a child of any joint)
    root_links = [name for name in all_links if name not in joint_by_child]
    if len(root_links) != 1:
        raise ValueError(f"Expected exactly one root link, found: {root_links}")
    root_link = root_links[0]

    path = _path_to_tip(root_link, children, tip_link)
    if len(path) < 2:
        raise ValueError(f"URDF chain needs at least 2 links, found: {path}")

    n = len(path)
    offsets = np.zeros((n, 3))
    rest_rotations = np.tile(np.eye(3), (n, 1, 1))
    anchor_rotations = np.tile(np.eye(3), (n, 1, 1))
    lower_limits = np.zeros(n)
    upper_limits = np.zeros(n)
    movable = np.zeros(n, dtype=bool)

    for i, link_name in enumerate(path[1:], start=1):
        joint = joint_by_child[link_name]
        joint_type = joint.get('type')

        origin_elem = joint.find('origin')
        if origin_elem is not None:
            offsets[i] = _parse_floats(origin_elem.get('xyz', '0 0 0'))
            rest_rotations[i] = _rpy_to_rotation_matrix(
                _parse_floats(origin_elem.get('rpy', '0 0 0')))

        if joint_type not in MOVABLE_JOINT_TYPES:
            continue

        axis_elem = joint.find('axis')
        axis_xyz = _parse_floats(axis_elem.get('xyz', '1 0 0')) if axis_elem is not None \
            else np.array([1.0, 0.0, 0.0])  # URDF default axis
        anchor_rotations[i] = np.asarray(
            so3.rotation_between(jnp.array(LOCAL_X_AXIS), jnp.asarray(axis_xyz)))

        movable[i] = True
        lower_limits[i], upper_limits[i] = _limits_in_degrees(joint, joint_type)

    return ChainModel(
        link_names=tuple(path),
        parent_indices=jnp.array([0] + list(range(n - 1)), dtype=jnp.int32),
        offsets=jnp.asarray(offsets),
        rest_rotations=jnp.asarray(rest_rotations),
        axes=jnp.tile(jnp.array(LOCAL_X_AXIS), (n, 1)),
        anchor_rotations=jnp.asarray(anchor_rotations),
        lower_limits=jnp.asarray(lower_limits),
        upper_limits=jnp.asarray(upper_limits),
        movable=jnp.asarray(movable),
        base_transform=jnp.eye(4),
    )


def _path_to_tip(root_link: str, children: Dict[str, List[str]],
                 tip_link: Optional[str]) -> List[str]:
    if tip_link is None:
        path = [root_link]
        while children.get(path[-1]):
            path.append(children[path[-1]][0])
        return path

    # Breadth-first search from root, remembering each link's parent
    parents: Dict[str, Optional[str]] = {root_link: None}
    queue = deque([root_link])
    while queue:
        current = queue.popleft()
        if current == tip_link:
            break
        for child in children.get(current, []):
            if child not in parents:
                parents[child] = current
                queue.append(child)

    if tip_link not in parents:
        raise ValueError(f"Link '{tip_link}' not found in URDF")

    path = [tip_link]
    while parents[path[-1]] is not None:
        path.append(parents[path[-1]])
    return path[::-1]


def _limits_in_degrees(joint, joint_type: str):
    limit_elem = joint.find('limit')
    if joint_type == 'continuous' or limit_elem is None:
        return -UNLIMITED_DEGREES, UNLIMITED_DEGREES
    lower = float(limit_elem.get('lower', '0'))
    upper = float(limit_elem.get('upper', '0'))
    return float(np.degrees(lower)), float(np.degrees(upper))


def _parse_floats(text: str) -> np.ndarray:
    return np.array([float(x) for x in text.split()])


def _rpy_to_rotation_matrix(rpy: np.ndarray) -> np.ndarray:
    """Convert roll-pitch-yaw angles to rotation matrix.

    Args:
        rpy: Array of [roll, pitch, yaw] angles in radians.

    Returns:
        3x3 rotation matrix.
    """
    roll, pitch, yaw = rpy

    R_x = np.array([
        [1, 0, 0],
        [0, np.cos(roll), -np.sin(roll)],
        [0, np.sin(roll), np.cos(roll)]
    ])

    R_y = np.array([
        [np.cos(pitch), 0, np.sin(pitch)],
        [0, 1, 0],
        [-np.sin(pitch), 0, np.cos(pitch)]
    ])

    R_z = np.array([
        [np.cos(yaw), -np.sin(yaw), 0],
        [np.sin(yaw), np.cos(yaw), 0],
        [0, 0, 1]
    ])

    # Combined rotation: R = R_z * R_y * R_x
    return R_z @ R_y @ R_x
