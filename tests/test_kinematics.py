import numpy as np
import pytest
from conftest import State, TreeCfg
from scipy.spatial.transform import Rotation

from treedyn.core.errors import InvariantError
from treedyn.core.rbd_algorithms import RBDAlgorithms
from treedyn.numpy import KinDynComputations
from treedyn.numpy.numpy_like import SpatialMath


@pytest.fixture(scope="module")
def setup_test(tests_setup) -> KinDynComputations | TreeCfg | State:
    tree_cfg = tests_setup
    kin_dyn = KinDynComputations(tree_cfg.tree)
    return kin_dyn, tree_cfg, tree_cfg.state


def R_y(angle: float) -> np.ndarray:
    return Rotation.from_rotvec([0.0, angle, 0.0]).as_matrix()


def wxyz(rotation: Rotation) -> np.ndarray:
    x, y, z, w = rotation.as_quat()
    return np.array([w, x, y, z])


def integrate(kin_dyn: KinDynComputations, q: np.ndarray, v: np.ndarray, h: float):
    qdot = kin_dyn.map_velocity_to_qdot(q, v)
    return q + h * qdot, q - h * qdot


def test_zero_configuration_is_identity(two_link_chain):
    kin_dyn = KinDynComputations(two_link_chain)
    q = np.zeros(2)
    for name in ["A", "B"]:
        assert kin_dyn.forward_kinematics(name, q) - np.eye(4) == pytest.approx(
            0.0, abs=1e-12
        )
        assert kin_dyn.body_spatial_velocity(name, q, np.zeros(2)) == pytest.approx(
            0.0, abs=1e-12
        )


def test_two_link_jacobian_at_zero(two_link_chain):
    kin_dyn = KinDynComputations(two_link_chain)
    J = kin_dyn.frame_jacobian("B", np.zeros(2), p_FQ=np.array([0.3, 0.0, 0.0]))
    expected = np.zeros((6, 2))
    expected[2, :] = 1.0
    expected[4, :] = 0.3
    assert J - expected == pytest.approx(0.0, abs=1e-12)


def test_double_pendulum_forward_kinematics(double_pendulum):
    tree, params = double_pendulum
    kin_dyn = KinDynComputations(tree)
    q = np.array([0.4, -0.9])
    X_W2 = kin_dyn.forward_kinematics("link2", q)
    p_elbow = np.array([-params.l1 * np.sin(q[0]), 0.0, -params.l1 * np.cos(q[0])])
    assert X_W2[:3, 3] - p_elbow == pytest.approx(0.0, abs=1e-12)
    assert X_W2[:3, :3] - R_y(q[0] + q[1]) == pytest.approx(0.0, abs=1e-12)
    assert X_W2[3, :] - np.array([0.0, 0.0, 0.0, 1.0]) == pytest.approx(0.0, abs=1e-12)

    X_elbow = kin_dyn.forward_kinematics("elbow", q)
    assert X_elbow[:3, 3] - p_elbow == pytest.approx(0.0, abs=1e-12)
    assert X_elbow[:3, :3] - R_y(q[0]) == pytest.approx(0.0, abs=1e-12)


def test_forward_kinematics_is_repeatable(setup_test):
    _, tree_cfg, state = setup_test
    rbdalgos = RBDAlgorithms(tree_cfg.tree, SpatialMath())
    poses = []
    for _ in range(2):
        context = rbdalgos.create_context()
        context.set_positions(state.q)
        poses.append(
            [X.array for X in rbdalgos.calc_all_body_poses_in_world(context)]
        )
    for X_first, X_second in zip(*poses):
        assert np.array_equal(X_first, X_second)


def test_world_pose_is_identity(setup_test):
    _, tree_cfg, state = setup_test
    rbdalgos = RBDAlgorithms(tree_cfg.tree, SpatialMath())
    context = rbdalgos.create_context()
    context.set_state_vector(np.concatenate([state.q, state.v]))
    X_WW = rbdalgos.calc_all_body_poses_in_world(context)[0]
    V_WW = rbdalgos.calc_all_body_spatial_velocities_in_world(context)[0]
    assert X_WW.array - np.eye(4) == pytest.approx(0.0, abs=1e-12)
    assert V_WW.array == pytest.approx(0.0, abs=1e-12)


def test_poses_are_rigid_transforms(setup_test):
    kin_dyn, tree_cfg, state = setup_test
    for body in tree_cfg.tree.bodies:
        X = kin_dyn.forward_kinematics(body.name, state.q)
        R = X[:3, :3]
        assert R.T @ R - np.eye(3) == pytest.approx(0.0, abs=1e-10)
        assert np.linalg.det(R) == pytest.approx(1.0, abs=1e-10)


def test_relative_transform(setup_test):
    kin_dyn, tree_cfg, state = setup_test
    frame_A = tree_cfg.tree.bodies[1].name
    frame_B = tree_cfg.end_effector
    X_WA = kin_dyn.forward_kinematics(frame_A, state.q)
    X_WB = kin_dyn.forward_kinematics(frame_B, state.q)
    X_AB = kin_dyn.relative_transform(frame_A, frame_B, state.q)
    assert X_WA @ X_AB - X_WB == pytest.approx(0.0, abs=1e-10)


def test_points_positions(setup_test):
    _, tree_cfg, state = setup_test
    tree = tree_cfg.tree
    rbdalgos = RBDAlgorithms(tree, SpatialMath())
    context = rbdalgos.create_context()
    context.set_positions(state.q)
    frame = tree.get_frame_by_name(tree_cfg.end_effector)
    p_FQi = np.random.randn(3, 4)
    p_WQi = rbdalgos.calc_points_positions(context, frame, p_FQi, tree.world_frame())
    X_WF = rbdalgos.calc_frame_pose_in_world(context, frame).array
    assert p_WQi.array - (X_WF[:3, :3] @ p_FQi + X_WF[:3, 3:4]) == pytest.approx(
        0.0, abs=1e-10
    )
    with pytest.raises(InvariantError):
        rbdalgos.calc_points_positions(context, frame, np.zeros((2, 4)), tree.world_frame())


def test_jacobian_maps_velocities_to_body_velocity(setup_test):
    kin_dyn, tree_cfg, state = setup_test
    for body in tree_cfg.tree.bodies[1:]:
        J = kin_dyn.frame_jacobian(body.name, state.q)
        V_WB = kin_dyn.body_spatial_velocity(body.name, state.q, state.v)
        assert J @ state.v - V_WB == pytest.approx(0.0, abs=1e-10)


def test_jacobian_of_a_point(setup_test):
    kin_dyn, tree_cfg, state = setup_test
    name = tree_cfg.end_effector
    p_FQ = np.array([0.1, -0.2, 0.05])
    J = kin_dyn.frame_jacobian(name, state.q, p_FQ)
    V_WB = kin_dyn.body_spatial_velocity(name, state.q, state.v)
    X_WF = kin_dyn.forward_kinematics(name, state.q)
    p_BoQ_W = X_WF[:3, :3] @ p_FQ
    w = V_WB[:3]
    expected = np.concatenate([w, V_WB[3:] + np.cross(w, p_BoQ_W)])
    assert J @ state.v - expected == pytest.approx(0.0, abs=1e-10)

    p_WQ = (X_WF[:3, :3] @ p_FQ + X_WF[:3, 3]).reshape(3, 1)
    Jv = kin_dyn.points_jacobian(name, state.q, p_WQ)
    assert Jv - J[3:, :] == pytest.approx(0.0, abs=1e-10)


def test_jacobian_matches_finite_differences(setup_test):
    kin_dyn, tree_cfg, state = setup_test
    name = tree_cfg.end_effector
    h = 1e-6
    q_plus, q_minus = integrate(kin_dyn, state.q, state.v, h)
    p_plus = kin_dyn.forward_kinematics(name, q_plus)[:3, 3]
    p_minus = kin_dyn.forward_kinematics(name, q_minus)[:3, 3]
    J = kin_dyn.frame_jacobian(name, state.q)
    assert (p_plus - p_minus) / (2 * h) - J[3:, :] @ state.v == pytest.approx(0.0, abs=1e-6)


def test_jacobian_bias_matches_finite_differences(setup_test):
    kin_dyn, tree_cfg, state = setup_test
    name = tree_cfg.end_effector
    p_FQ = np.array([0.05, 0.1, -0.1])
    h = 1e-6
    q_plus, q_minus = integrate(kin_dyn, state.q, state.v, h)
    V_plus = kin_dyn.frame_jacobian(name, q_plus, p_FQ) @ state.v
    V_minus = kin_dyn.frame_jacobian(name, q_minus, p_FQ) @ state.v
    Jdot_v = kin_dyn.frame_jacobian_bias(name, state.q, state.v, p_FQ)
    assert (V_plus - V_minus) / (2 * h) - Jdot_v == pytest.approx(0.0, abs=1e-5)


def test_points_jacobian_bias(setup_test):
    _, tree_cfg, state = setup_test
    tree = tree_cfg.tree
    rbdalgos = RBDAlgorithms(tree, SpatialMath())
    context = rbdalgos.create_context()
    context.set_state_vector(np.concatenate([state.q, state.v]))
    frame = tree.get_frame_by_name(tree_cfg.end_effector)
    p_FQi = np.random.randn(3, 2)
    bias = rbdalgos.calc_bias_for_points_geometric_jacobian_expressed_in_world(
        context, frame, p_FQi
    ).array.reshape(-1)
    for k in range(2):
        A = rbdalgos.calc_bias_for_frame_geometric_jacobian_expressed_in_world(
            context, frame, p_FQi[:, k]
        ).array.reshape(-1)
        assert bias[3 * k : 3 * k + 3] - A[3:] == pytest.approx(0.0, abs=1e-10)


def test_no_points(setup_test):
    kin_dyn, tree_cfg, state = setup_test
    tree = tree_cfg.tree
    Jv = kin_dyn.points_jacobian(tree_cfg.end_effector, state.q, np.zeros((3, 0)))
    assert Jv.shape == (0, tree.num_velocities())

    rbdalgos = RBDAlgorithms(tree, SpatialMath())
    context = rbdalgos.create_context()
    context.set_state_vector(np.concatenate([state.q, state.v]))
    frame = tree.get_frame_by_name(tree_cfg.end_effector)
    Jw, Jv = rbdalgos.calc_frame_jacobian_expressed_in_world(context, frame, np.zeros((3, 0)))
    assert Jw.shape == (3, tree.num_velocities())
    assert Jv.shape == (0, tree.num_velocities())
    bias = rbdalgos.calc_bias_for_points_geometric_jacobian_expressed_in_world(
        context, frame, np.zeros((3, 0))
    )
    assert bias.shape == (0, 1)
    p_WQi = rbdalgos.calc_points_positions(context, frame, np.zeros((3, 0)), tree.world_frame())
    assert p_WQi.shape == (3, 0)


def test_acceleration_kinematics(setup_test):
    _, tree_cfg, state = setup_test
    tree = tree_cfg.tree
    rbdalgos = RBDAlgorithms(tree, SpatialMath())
    context = rbdalgos.create_context()
    context.set_state_vector(np.concatenate([state.q, state.v]))
    body = tree.get_body_by_name(tree_cfg.end_effector)
    A_WB = rbdalgos.calc_acceleration_kinematics_cache(context, state.vdot).get_A_WB(
        body.node_index
    )
    J = rbdalgos.calc_frame_geometric_jacobian_expressed_in_world(context, body.body_frame)
    Jdot_v = rbdalgos.calc_bias_for_frame_geometric_jacobian_expressed_in_world(
        context, body.body_frame
    )
    expected = J.array @ state.vdot + Jdot_v.array.reshape(-1)
    assert A_WB.array.reshape(-1) - expected == pytest.approx(0.0, abs=1e-10)
    with pytest.raises(InvariantError):
        rbdalgos.calc_acceleration_kinematics_cache(context, np.zeros(tree.num_velocities() + 1))


def test_velocity_to_qdot_round_trip(setup_test):
    kin_dyn, _, state = setup_test
    qdot = kin_dyn.map_velocity_to_qdot(state.q, state.v)
    assert qdot.shape == state.q.shape
    assert kin_dyn.map_qdot_to_velocity(state.q, qdot) - state.v == pytest.approx(
        0.0, abs=1e-10
    )


def test_free_body_jacobian_is_identity(free_body_tree):
    kin_dyn = KinDynComputations(free_body_tree)
    q = np.concatenate(
        [wxyz(Rotation.from_euler("xyz", [0.3, -0.7, 1.1])), [1.0, 2.0, 3.0]]
    )
    J = kin_dyn.frame_jacobian("box", q)
    assert J - np.eye(6) == pytest.approx(0.0, abs=1e-12)


def test_free_body_pose_and_velocity(free_body_tree):
    rbdalgos = RBDAlgorithms(free_body_tree, SpatialMath())
    context = rbdalgos.create_context()
    box = free_body_tree.get_body_by_name("box")
    X_WB = np.eye(4)
    X_WB[:3, :3] = Rotation.from_euler("zyx", [0.5, 0.2, -0.4]).as_matrix()
    X_WB[:3, 3] = [0.3, -1.0, 2.0]
    V_WB = np.array([0.1, -0.2, 0.3, 1.0, 0.5, -0.5])
    free_body_tree.set_free_body_pose_or_throw(context, box, X_WB)
    free_body_tree.set_free_body_spatial_velocity_or_throw(context, box, V_WB)
    assert rbdalgos.eval_body_pose_in_world(context, box).array - X_WB == pytest.approx(
        0.0, abs=1e-10
    )
    assert rbdalgos.eval_body_spatial_velocity_in_world(
        context, box
    ).array.reshape(-1) - V_WB == pytest.approx(0.0, abs=1e-12)


def test_unnormalized_quaternion(free_body_tree):
    kin_dyn = KinDynComputations(free_body_tree)
    quaternion = wxyz(Rotation.from_euler("xyz", [0.3, -0.7, 1.1]))
    q = np.concatenate([quaternion, [1.0, 2.0, 3.0]])
    q_scaled = np.concatenate([2.5 * quaternion, [1.0, 2.0, 3.0]])
    assert kin_dyn.forward_kinematics("box", q_scaled) - kin_dyn.forward_kinematics(
        "box", q
    ) == pytest.approx(0.0, abs=1e-12)
