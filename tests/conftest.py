import dataclasses
import logging

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from treedyn.model import (
    FixedOffsetFrame,
    MultibodyTree,
    PrismaticJoint,
    QuaternionFloatingMobilizer,
    RevoluteJoint,
    SpatialInertia,
    UniformGravityFieldElement,
    WeldJoint,
    make_pose,
)


@dataclasses.dataclass
class State:
    q: np.ndarray
    v: np.ndarray
    vdot: np.ndarray


@dataclasses.dataclass
class TreeCfg:
    name: str
    tree: MultibodyTree
    end_effector: str
    state: State


@dataclasses.dataclass
class DoublePendulumParams:
    m1: float = 1.5
    m2: float = 0.8
    l1: float = 0.7
    l2: float = 0.5
    g: float = 9.81


def build_two_link_chain() -> MultibodyTree:
    """Two point-mass links rotating about z, both joints at the world origin"""
    tree = MultibodyTree()
    link_A = tree.add_rigid_body("A", SpatialInertia.point_mass(2.0, [0.5, 0.0, 0.0]))
    link_B = tree.add_rigid_body("B", SpatialInertia.point_mass(1.0, [0.3, 0.0, 0.0]))
    tree.add_joint(
        RevoluteJoint("joint_A", tree.world_frame(), link_A.body_frame, axis=[0, 0, 1])
    )
    tree.add_joint(
        RevoluteJoint("joint_B", link_A.body_frame, link_B.body_frame, axis=[0, 0, 1])
    )
    tree.finalize()
    return tree


def build_double_pendulum(params: DoublePendulumParams) -> MultibodyTree:
    """Point masses hanging along -z, swinging about y"""
    tree = MultibodyTree()
    link1 = tree.add_rigid_body(
        "link1", SpatialInertia.point_mass(params.m1, [0.0, 0.0, -params.l1])
    )
    link2 = tree.add_rigid_body(
        "link2", SpatialInertia.point_mass(params.m2, [0.0, 0.0, -params.l2])
    )
    elbow = tree.add_frame(
        FixedOffsetFrame("elbow", link1.body_frame, make_pose(p=[0.0, 0.0, -params.l1]))
    )
    tree.add_joint(
        RevoluteJoint("shoulder", tree.world_frame(), link1.body_frame, axis=[0, 1, 0])
    )
    tree.add_joint(RevoluteJoint("elbow_joint", elbow, link2.body_frame, axis=[0, 1, 0]))
    tree.add_force_element(UniformGravityFieldElement([0.0, 0.0, -params.g]))
    tree.finalize()
    return tree


def build_free_body() -> MultibodyTree:
    tree = MultibodyTree()
    tree.add_rigid_body(
        "box", SpatialInertia.solid_box(2.5, 0.4, 0.3, 0.2, p_BoBcm_B=[0.1, -0.05, 0.2])
    )
    tree.add_force_element(UniformGravityFieldElement())
    tree.finalize()
    return tree


def build_branched_tree() -> MultibodyTree:
    """A free base with a revolute-revolute-weld arm and a prismatic-revolute arm

    The right arm lives in its own model instance. Every one-dof joint is actuated.
    """
    tree = MultibodyTree()
    right_arm = tree.add_model_instance("right_arm")

    base = tree.add_rigid_body(
        "base", SpatialInertia.solid_box(3.0, 0.4, 0.3, 0.2, p_BoBcm_B=[0.05, 0.0, 0.02])
    )
    arm_l1 = tree.add_rigid_body(
        "arm_l1", SpatialInertia.solid_cylinder(1.0, 0.05, 0.4, p_BoBcm_B=[0.0, 0.0, 0.2])
    )
    arm_l2 = tree.add_rigid_body(
        "arm_l2", SpatialInertia.solid_cylinder(0.7, 0.04, 0.3, p_BoBcm_B=[0.0, 0.0, 0.15])
    )
    hand = tree.add_rigid_body("hand", SpatialInertia.solid_sphere(0.3, 0.05))
    arm_r1 = tree.add_rigid_body(
        "arm_r1",
        SpatialInertia.solid_box(0.9, 0.3, 0.05, 0.05, p_BoBcm_B=[0.15, 0.0, 0.0]),
        model_instance=right_arm,
    )
    arm_r2 = tree.add_rigid_body(
        "arm_r2",
        SpatialInertia.solid_box(0.5, 0.05, 0.25, 0.05, p_BoBcm_B=[0.0, 0.1, 0.02]),
        model_instance=right_arm,
    )

    l_shoulder = tree.add_frame(
        FixedOffsetFrame(
            "l_shoulder",
            base.body_frame,
            make_pose(
                R=Rotation.from_euler("xyz", [0.1, -0.2, 0.3]).as_matrix(),
                p=[0.0, 0.2, 0.1],
            ),
        )
    )
    l_elbow = tree.add_frame(
        FixedOffsetFrame("l_elbow", arm_l1.body_frame, make_pose(p=[0.0, 0.0, 0.4]))
    )
    l_elbow_child = tree.add_frame(
        FixedOffsetFrame(
            "l_elbow_child",
            arm_l2.body_frame,
            make_pose(
                R=Rotation.from_euler("z", 0.4).as_matrix(), p=[0.0, 0.0, -0.05]
            ),
        )
    )
    r_shoulder = tree.add_frame(
        FixedOffsetFrame("r_shoulder", base.body_frame, make_pose(p=[0.0, -0.2, 0.1]))
    )
    r_elbow = tree.add_frame(
        FixedOffsetFrame("r_elbow", arm_r1.body_frame, make_pose(p=[0.3, 0.0, 0.0]))
    )

    l_shoulder_joint = tree.add_joint(
        RevoluteJoint("l_shoulder_joint", l_shoulder, arm_l1.body_frame, axis=[0, 0, 1])
    )
    l_elbow_joint = tree.add_joint(
        RevoluteJoint("l_elbow_joint", l_elbow, l_elbow_child, axis=[0, 1, 0])
    )
    tree.add_joint(
        WeldJoint("wrist", arm_l2.body_frame, hand.body_frame, make_pose(p=[0.0, 0.0, 0.3]))
    )
    r_shoulder_joint = tree.add_joint(
        PrismaticJoint(
            "r_shoulder_joint", r_shoulder, arm_r1.body_frame, axis=[1, 0, 0], damping=0.5
        )
    )
    r_elbow_joint = tree.add_joint(
        RevoluteJoint("r_elbow_joint", r_elbow, arm_r2.body_frame, axis=[1, 1, 0])
    )

    tree.add_joint_actuator("l_shoulder_motor", l_shoulder_joint)
    tree.add_joint_actuator("l_elbow_motor", l_elbow_joint, effort_limit=50.0)
    tree.add_joint_actuator("r_shoulder_motor", r_shoulder_joint)
    tree.add_joint_actuator("r_elbow_motor", r_elbow_joint)

    tree.add_force_element(UniformGravityFieldElement())
    tree.finalize()
    return tree


def random_state(tree: MultibodyTree) -> State:
    q = np.random.uniform(-1.0, 1.0, tree.num_positions())
    for mobilizer in tree.mobilizers:
        if isinstance(mobilizer, QuaternionFloatingMobilizer):
            start = mobilizer.position_start_in_q
            quaternion = np.random.randn(4)
            q[start : start + 4] = quaternion / np.linalg.norm(quaternion)
    v = np.random.uniform(-1.0, 1.0, tree.num_velocities())
    vdot = np.random.uniform(-1.0, 1.0, tree.num_velocities())
    return State(q=q, v=v, vdot=vdot)


TREES = {
    "double_pendulum": (lambda: build_double_pendulum(DoublePendulumParams()), "link2"),
    "free_body": (build_free_body, "box"),
    "branched": (build_branched_tree, "hand"),
}


@pytest.fixture(scope="module", params=list(TREES), ids=list(TREES))
def tests_setup(request) -> TreeCfg:
    logging.basicConfig(level=logging.DEBUG)
    np.random.seed(42)
    build, end_effector = TREES[request.param]
    tree = build()
    return TreeCfg(
        name=request.param,
        tree=tree,
        end_effector=end_effector,
        state=random_state(tree),
    )


@pytest.fixture(scope="module")
def double_pendulum():
    logging.basicConfig(level=logging.DEBUG)
    params = DoublePendulumParams()
    return build_double_pendulum(params), params


@pytest.fixture(scope="module")
def branched_tree() -> MultibodyTree:
    logging.basicConfig(level=logging.DEBUG)
    return build_branched_tree()


@pytest.fixture(scope="module")
def free_body_tree() -> MultibodyTree:
    logging.basicConfig(level=logging.DEBUG)
    return build_free_body()


@pytest.fixture
def two_link_chain() -> MultibodyTree:
    return build_two_link_chain()
