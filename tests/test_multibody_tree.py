import logging

import numpy as np
import pytest

from treedyn.core.errors import IncompatibleContextError, InvariantError, UsageError
from treedyn.core.rbd_algorithms import RBDAlgorithms
from treedyn.model import (
    MultibodyForces,
    MultibodyTree,
    RevoluteJoint,
    SpatialInertia,
    UniformGravityFieldElement,
    WeldJoint,
)
from treedyn.numpy.numpy_like import SpatialMath


def make_single_pendulum(finalize: bool = True) -> MultibodyTree:
    tree = MultibodyTree()
    body = tree.add_rigid_body("A", SpatialInertia.point_mass(1.0, [0.0, 0.0, -1.0]))
    tree.add_joint(RevoluteJoint("pin", tree.world_frame(), body.body_frame, [0, 1, 0]))
    if finalize:
        tree.finalize()
    return tree


def test_pre_finalize_queries_are_rejected():
    tree = make_single_pendulum(finalize=False)
    with pytest.raises(UsageError) as error:
        tree.create_default_context()
    assert str(error.value) == (
        "Pre-finalize calls to 'create_default_context()' are not allowed; "
        "you must call finalize() first."
    )
    with pytest.raises(UsageError):
        tree.num_positions()
    with pytest.raises(UsageError):
        RBDAlgorithms(tree, SpatialMath())


def test_post_finalize_build_calls_are_rejected():
    tree = make_single_pendulum()
    with pytest.raises(UsageError) as error:
        tree.add_rigid_body("B")
    assert str(error.value) == (
        "Post-finalize calls to 'add_rigid_body()' are not allowed; "
        "calls to this method must happen before finalize()."
    )
    with pytest.raises(UsageError, match="finalize"):
        tree.finalize()
    with pytest.raises(UsageError):
        tree.add_force_element(UniformGravityFieldElement())


def test_finalize_logs_free_mobilizers(caplog):
    caplog.set_level(logging.DEBUG, logger="treedyn.model.multibody_tree")
    tree = MultibodyTree()
    tree.add_rigid_body("floating", SpatialInertia.solid_sphere(1.0, 0.1))
    tree.finalize()
    assert "Added a free mobilizer to body 'floating'" in caplog.text
    assert tree.is_finalized()


def test_names_are_unique_per_model_instance():
    tree = MultibodyTree()
    tree.add_rigid_body("A")
    with pytest.raises(UsageError):
        tree.add_rigid_body("A")
    other = tree.add_model_instance("other")
    tree.add_rigid_body("A", model_instance=other)
    with pytest.raises(UsageError):
        tree.add_model_instance("other")
    with pytest.raises(UsageError, match="specify the model instance"):
        tree.get_body_by_name("A")
    assert tree.get_body_by_name("A", other).model_instance == other
    with pytest.raises(UsageError):
        tree.get_body_by_name("missing")


def test_only_one_gravity_field():
    tree = MultibodyTree()
    tree.add_force_element(UniformGravityFieldElement())
    with pytest.raises(UsageError):
        tree.add_force_element(UniformGravityFieldElement([0.0, 0.0, -1.0]))


def test_actuators_need_one_dof_joints():
    tree = MultibodyTree()
    body_A = tree.add_rigid_body("A", SpatialInertia.point_mass(1.0, [0.1, 0.0, 0.0]))
    body_B = tree.add_rigid_body("B", SpatialInertia.point_mass(1.0, [0.1, 0.0, 0.0]))
    pin = tree.add_joint(
        RevoluteJoint("pin", tree.world_frame(), body_A.body_frame, [0, 0, 1])
    )
    weld = tree.add_joint(WeldJoint("weld", body_A.body_frame, body_B.body_frame))
    with pytest.raises(UsageError):
        tree.add_joint_actuator("weld_motor", weld)
    tree.add_joint_actuator("pin_motor", pin)
    with pytest.raises(UsageError, match="already has an actuator"):
        tree.add_joint_actuator("pin_motor_2", pin)


def test_negative_damping():
    tree = MultibodyTree()
    body = tree.add_rigid_body("A")
    with pytest.raises(InvariantError):
        RevoluteJoint("pin", tree.world_frame(), body.body_frame, [0, 0, 1], damping=-1.0)


def test_incompatible_context():
    tree = make_single_pendulum()
    other = make_single_pendulum()
    context = other.create_default_context()
    with pytest.raises(IncompatibleContextError) as error:
        tree.get_positions(context)
    assert str(error.value) == "The context provided is not compatible with a multibody model."
    with pytest.raises(IncompatibleContextError):
        tree.set_positions(None, [0.0])
    rbdalgos = RBDAlgorithms(tree, SpatialMath())
    with pytest.raises(IncompatibleContextError):
        rbdalgos.calc_mass_matrix_via_inverse_dynamics(context)


def test_state_vector_size_is_checked():
    tree = make_single_pendulum()
    context = tree.create_default_context()
    with pytest.raises(InvariantError):
        tree.set_multibody_state_vector(context, np.zeros(3))
    with pytest.raises(InvariantError):
        tree.set_velocities(context, np.zeros(2))
    tree.set_multibody_state_vector(context, [0.2, -0.1])
    assert tree.get_positions(context).array.reshape(-1) - np.array([0.2]) == pytest.approx(
        0.0, abs=1e-12
    )
    assert tree.get_velocities(context).array.reshape(-1) - np.array(
        [-0.1]
    ) == pytest.approx(0.0, abs=1e-12)


def test_default_state(branched_tree):
    x = branched_tree.get_default_state_vector()
    assert x.shape == (branched_tree.num_states(),)
    base = branched_tree.get_body_by_name("base")
    start = branched_tree.get_free_body_mobilizer_or_throw(base).position_start_in_q
    expected = np.zeros_like(x)
    expected[start] = 1.0
    assert x - expected == pytest.approx(0.0, abs=1e-12)
    context = branched_tree.create_default_context()
    assert branched_tree.get_multibody_state_vector(context).array.reshape(
        -1
    ) - expected == pytest.approx(0.0, abs=1e-12)


def test_cached_kinematics_follow_the_state(branched_tree):
    rbdalgos = RBDAlgorithms(branched_tree, SpatialMath())
    context = rbdalgos.create_context()
    pc = rbdalgos.eval_position_kinematics(context)
    assert rbdalgos.eval_position_kinematics(context) is pc
    vc = rbdalgos.eval_velocity_kinematics(context)

    context.set_velocities(np.ones(branched_tree.num_velocities()))
    assert rbdalgos.eval_position_kinematics(context) is pc
    assert rbdalgos.eval_velocity_kinematics(context) is not vc

    q = branched_tree.get_default_state_vector()[: branched_tree.num_positions()]
    q[7] = 0.5
    context.set_positions(q)
    assert rbdalgos.eval_position_kinematics(context) is not pc

    clone = context.clone()
    assert clone.get_state_vector().array - context.get_state_vector().array == pytest.approx(
        0.0, abs=1e-12
    )
    assert rbdalgos.eval_position_kinematics(clone) is not rbdalgos.eval_position_kinematics(
        context
    )


def test_joint_accessors(branched_tree):
    context = branched_tree.create_default_context()
    l_elbow = branched_tree.get_joint_by_name("l_elbow_joint")
    r_shoulder = branched_tree.get_joint_by_name("r_shoulder_joint")
    l_elbow.set_angle(context, 0.3)
    l_elbow.set_angular_rate(context, -1.2)
    r_shoulder.set_translation(context, 0.05)
    r_shoulder.set_translation_rate(context, 0.4)
    assert float(l_elbow.get_angle(context).array[0, 0]) == pytest.approx(0.3)
    assert float(l_elbow.get_angular_rate(context).array[0, 0]) == pytest.approx(-1.2)
    assert float(r_shoulder.get_translation(context).array[0, 0]) == pytest.approx(0.05)
    assert float(r_shoulder.get_translation_rate(context).array[0, 0]) == pytest.approx(0.4)

    q = branched_tree.get_positions(context).array.reshape(-1)
    v = branched_tree.get_velocities(context).array.reshape(-1)
    assert q[l_elbow.position_start] == pytest.approx(0.3)
    assert v[l_elbow.velocity_start] == pytest.approx(-1.2)
    assert q[r_shoulder.position_start] == pytest.approx(0.05)
    assert v[r_shoulder.velocity_start] == pytest.approx(0.4)


def test_free_body_errors(branched_tree):
    arm = branched_tree.get_body_by_name("arm_l1")
    assert not branched_tree.is_free_body(arm)
    with pytest.raises(UsageError) as error:
        branched_tree.get_free_body_mobilizer_or_throw(arm)
    assert str(error.value) == "Body 'arm_l1' is not a free floating body."
    context = branched_tree.create_default_context()
    with pytest.raises(UsageError):
        branched_tree.set_free_body_pose_or_throw(context, arm, np.eye(4))


def test_model_instances(branched_tree):
    right_arm = branched_tree.get_model_instance_by_name("right_arm")
    assert branched_tree.get_model_instance_name(right_arm) == "right_arm"
    assert branched_tree.num_positions(right_arm) == 2
    assert branched_tree.num_velocities(right_arm) == 2
    assert branched_tree.num_actuated_dofs(right_arm) == 2
    assert [branched_tree.get_body(i).name for i in branched_tree.get_body_indices(right_arm)] == [
        "arm_r1",
        "arm_r2",
    ]
    assert [
        branched_tree.get_joint(i).name for i in branched_tree.get_joint_indices(right_arm)
    ] == ["r_shoulder_joint", "r_elbow_joint"]

    q = np.arange(branched_tree.num_positions(), dtype=float)
    assert branched_tree.get_positions_from_array(right_arm, q) - np.array(
        [8.0, 10.0]
    ) == pytest.approx(0.0)
    v = np.arange(branched_tree.num_velocities(), dtype=float)
    assert branched_tree.get_velocities_from_array(right_arm, v) - np.array(
        [7.0, 9.0]
    ) == pytest.approx(0.0)

    branched_tree.set_positions_in_array(right_arm, [-1.0, -2.0], q)
    assert q[8] == -1.0 and q[10] == -2.0
    branched_tree.set_velocities_in_array(right_arm, [-3.0, -4.0], v)
    assert v[7] == -3.0 and v[9] == -4.0
    with pytest.raises(InvariantError):
        branched_tree.set_positions_in_array(right_arm, [1.0, 2.0, 3.0], q)
    with pytest.raises(InvariantError):
        branched_tree.get_positions_from_array(right_arm, np.zeros(3))

    default = branched_tree.get_model_instance_by_name("DefaultModelInstance")
    assert branched_tree.num_positions(default) == 9
    assert branched_tree.num_velocities(default) == 8


def test_actuation_vector(branched_tree):
    right_arm = branched_tree.get_model_instance_by_name("right_arm")
    u = np.zeros(branched_tree.num_actuated_dofs())
    branched_tree.set_actuation_vector(right_arm, [1.0, 2.0], u)
    assert u - np.array([0.0, 0.0, 1.0, 2.0]) == pytest.approx(0.0)
    assert branched_tree.get_actuation_from_array(right_arm, u) - np.array(
        [1.0, 2.0]
    ) == pytest.approx(0.0)

    motor = branched_tree.get_joint_actuator_by_name("l_elbow_motor")
    assert motor.effort_limit == 50.0
    motor.set_actuation_vector(5.0, u)
    assert u[1] == 5.0
    assert motor.get_actuation_vector(u) - np.array([5.0]) == pytest.approx(0.0)
    with pytest.raises(InvariantError):
        motor.set_actuation_vector([1.0, 2.0], u)


def test_state_selector_matrix(branched_tree):
    Sx = branched_tree.make_state_selector_matrix_from_joint_names(
        ["r_elbow_joint", "l_shoulder_joint"]
    )
    x = np.arange(branched_tree.num_states(), dtype=float)
    assert Sx.shape == (4, branched_tree.num_states())
    assert Sx @ x - np.array([10.0, 7.0, 20.0, 17.0]) == pytest.approx(0.0)

    with pytest.raises(UsageError) as error:
        branched_tree.make_state_selector_matrix_from_joint_names(
            ["r_elbow_joint", "r_elbow_joint"]
        )
    assert str(error.value) == "Joint named 'r_elbow_joint' is repeated multiple times."


def test_actuator_selector_matrix(branched_tree):
    r_elbow = branched_tree.get_joint_by_name("r_elbow_joint").index
    l_shoulder = branched_tree.get_joint_by_name("l_shoulder_joint").index
    Su = branched_tree.make_actuator_selector_matrix_from_joints([r_elbow, l_shoulder])
    assert Su.shape == (4, 2)
    assert Su @ np.array([1.0, 2.0]) - np.array([2.0, 0.0, 0.0, 1.0]) == pytest.approx(0.0)

    Su = branched_tree.make_actuator_selector_matrix([1, 2])
    assert Su @ np.array([1.0, 2.0]) - np.array([0.0, 1.0, 2.0, 0.0]) == pytest.approx(0.0)

    wrist = branched_tree.get_joint_by_name("wrist").index
    with pytest.raises(UsageError) as error:
        branched_tree.make_actuator_selector_matrix_from_joints([wrist])
    assert str(error.value) == "Joint 'wrist' does not have an actuator."


def test_selector_matrices_round_trip(branched_tree):
    joints = [
        branched_tree.get_joint_by_name(name).index
        for name in ["l_elbow_joint", "r_shoulder_joint", "l_shoulder_joint"]
    ]
    Sx = branched_tree.make_state_selector_matrix(joints)
    x = np.random.uniform(-1.0, 1.0, branched_tree.num_states())
    x_s = Sx @ x
    x_back = Sx.T @ x_s
    selected = Sx.sum(axis=0) == 1.0
    assert np.array_equal(Sx @ x_back, x_s)
    assert np.array_equal(x_back[selected], x[selected])
    assert not np.any(x_back[~selected])

    Su = branched_tree.make_actuator_selector_matrix([3, 0])
    u_s = np.array([0.25, -4.0])
    assert np.array_equal(Su.T @ (Su @ u_s), u_s)


def test_selector_indices_are_checked(branched_tree):
    with pytest.raises(InvariantError):
        branched_tree.make_state_selector_matrix([-1])
    with pytest.raises(InvariantError):
        branched_tree.make_state_selector_matrix([branched_tree.num_joints()])
    with pytest.raises(InvariantError):
        branched_tree.make_actuator_selector_matrix([-1])
    with pytest.raises(InvariantError):
        branched_tree.make_actuator_selector_matrix_from_joints([-2])

    r_elbow = branched_tree.get_joint_by_name("r_elbow_joint").index
    with pytest.raises(UsageError) as error:
        branched_tree.make_state_selector_matrix([r_elbow, r_elbow])
    assert str(error.value) == "Joint named 'r_elbow_joint' is repeated multiple times."
    with pytest.raises(UsageError) as error:
        branched_tree.make_actuator_selector_matrix([0, 0])
    assert str(error.value) == "Actuator named 'l_shoulder_motor' is repeated multiple times."


def test_same_joint_name_in_two_model_instances():
    tree = MultibodyTree()
    robot2 = tree.add_model_instance("robot2")
    body_A = tree.add_rigid_body("A", SpatialInertia.point_mass(1.0, [0.0, 0.0, -1.0]))
    body_B = tree.add_rigid_body(
        "B", SpatialInertia.point_mass(1.0, [0.0, 0.0, -1.0]), model_instance=robot2
    )
    pin_A = tree.add_joint(RevoluteJoint("pin", tree.world_frame(), body_A.body_frame, [0, 1, 0]))
    pin_B = tree.add_joint(RevoluteJoint("pin", tree.world_frame(), body_B.body_frame, [1, 0, 0]))
    tree.add_joint_actuator("motor", pin_A)
    tree.add_joint_actuator("motor", pin_B)
    tree.finalize()

    Sx = tree.make_state_selector_matrix([pin_B.index, pin_A.index])
    x = np.array([1.0, 2.0, 3.0, 4.0])
    nq = tree.num_positions()
    rows = [
        pin_B.position_start,
        pin_A.position_start,
        nq + pin_B.velocity_start,
        nq + pin_A.velocity_start,
    ]
    expected = x[rows]
    assert np.array_equal(Sx @ x, expected)

    Su = tree.make_actuator_selector_matrix_from_joints([pin_A.index, pin_B.index])
    assert np.array_equal(Su, np.eye(2))


def test_context_does_not_alias_caller_state():
    tree = make_single_pendulum()
    rbdalgos = RBDAlgorithms(tree, SpatialMath())
    body = tree.get_body_by_name("A")
    context = rbdalgos.create_context()
    x = np.zeros(2)
    tree.set_multibody_state_vector(context, x)
    X_before = rbdalgos.eval_body_pose_in_world(context, body).array.copy()

    # editing the buffer after the write must not reach the context
    x[0] = np.pi / 2
    assert float(tree.get_multibody_state_vector(context).array[0, 0]) == 0.0
    X_after = rbdalgos.eval_body_pose_in_world(context, body).array
    assert np.array_equal(X_after, X_before)

    # neither must editing the returned state
    state = tree.get_multibody_state_vector(context).array
    state[0, 0] = 1.0
    assert float(tree.get_multibody_state_vector(context).array[0, 0]) == 0.0

    tree.set_multibody_state_vector(context, x)
    fresh = rbdalgos.create_context()
    tree.set_multibody_state_vector(fresh, np.array([np.pi / 2, 0.0]))
    X_WB = rbdalgos.eval_body_pose_in_world(context, body).array
    X_WB_fresh = rbdalgos.eval_body_pose_in_world(fresh, body).array
    assert X_WB - X_WB_fresh == pytest.approx(0.0, abs=1e-12)
    assert not np.allclose(X_WB, X_before)


def test_failed_finalize_is_terminal():
    tree = MultibodyTree()
    body_A = tree.add_rigid_body("A", SpatialInertia.point_mass(1.0, [0.1, 0.0, 0.0]))
    body_B = tree.add_rigid_body("B", SpatialInertia.point_mass(1.0, [0.1, 0.0, 0.0]))
    tree.add_joint(RevoluteJoint("ab", body_A.body_frame, body_B.body_frame, [0, 0, 1]))
    tree.add_joint(RevoluteJoint("ba", body_B.body_frame, body_A.body_frame, [0, 0, 1]))
    with pytest.raises(UsageError, match="closed loop"):
        tree.finalize()

    with pytest.raises(UsageError) as error:
        tree.finalize()
    assert str(error.value) == (
        "Calls to 'finalize()' are not allowed; "
        "finalize() failed and left this tree unusable."
    )
    with pytest.raises(UsageError):
        tree.add_rigid_body("C")
    with pytest.raises(UsageError):
        tree.create_default_context()


def test_force_elements_contribution(branched_tree):
    math = SpatialMath()
    rbdalgos = RBDAlgorithms(branched_tree, math)
    context = rbdalgos.create_context()
    v = np.random.uniform(-1.0, 1.0, branched_tree.num_velocities())
    context.set_velocities(v)
    forces = MultibodyForces(branched_tree, math)
    forces.add_in_generalized_forces(0, np.ones(branched_tree.num_velocities()))
    rbdalgos.calc_force_elements_contribution(
        context,
        rbdalgos.eval_position_kinematics(context),
        rbdalgos.eval_velocity_kinematics(context),
        forces,
    )
    r_shoulder = branched_tree.get_joint_by_name("r_shoulder_joint")
    expected = np.zeros(branched_tree.num_velocities())
    expected[r_shoulder.velocity_start] = -0.5 * v[r_shoulder.velocity_start]
    assert forces.generalized_forces.array.reshape(-1) - expected == pytest.approx(
        0.0, abs=1e-12
    )

    # gravity acts on the center of mass of the hand, at its origin
    hand = branched_tree.get_body_by_name("hand")
    F = forces.body_forces[hand.node_index].array.reshape(-1)
    assert F - np.array([0.0, 0.0, 0.0, 0.0, 0.0, -0.3 * 9.81]) == pytest.approx(
        0.0, abs=1e-12
    )

    with pytest.raises(InvariantError):
        forces.add_in_body_force(hand.node_index, np.zeros(3))
    other = MultibodyForces(make_single_pendulum(), math)
    with pytest.raises(InvariantError):
        forces.add_in(other)


def test_print_table(branched_tree, capsys):
    branched_tree.print_table()
    out = capsys.readouterr().out
    assert "QuaternionFloatingMobilizer" in out
    assert "WeldMobilizer" in out
    assert "arm_r2" in out
