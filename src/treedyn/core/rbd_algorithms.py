# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple

import numpy.typing as npt

from treedyn.core.caches import (
    AccelerationKinematicsCache,
    ArticulatedBodyInertiaCache,
    PositionKinematicsCache,
    VelocityKinematicsCache,
)
from treedyn.core.errors import InvariantError, check_shape
from treedyn.core.spatial_math import SpatialMath

if TYPE_CHECKING:
    from treedyn.model.body import Body
    from treedyn.model.body_node import BodyNode
    from treedyn.model.context import MultibodyTreeContext
    from treedyn.model.frame import Frame
    from treedyn.model.multibody_forces import MultibodyForces
    from treedyn.model.multibody_tree import MultibodyTree


class RBDAlgorithms:
    """Tree algorithms for a finalized MultibodyTree, built on the recursions of its body nodes

    Base-to-tip passes visit the levels from 1 to the tree height, tip-to-base passes
    the other way round. Position and velocity quantities are reused from the context
    as long as its state does not change.
    """

    def __init__(self, tree: "MultibodyTree", math: SpatialMath) -> None:
        """
        Args:
            tree (MultibodyTree): a finalized tree
            math (SpatialMath): the spatial math of the contexts created by create_context
        """
        tree.throw_if_not_finalized("RBDAlgorithms")
        self.tree = tree
        self.math = math
        self.NV = tree.num_velocities()
        self.NQ = tree.num_positions()

    def create_context(self) -> "MultibodyTreeContext":
        return self.tree.create_default_context(self.math)

    def _check(self, context: "MultibodyTreeContext", method: str) -> None:
        self.tree.throw_if_not_finalized(method)
        self.tree.check_context(context)

    def _nodes_base_to_tip(self, first_level: int = 1) -> Iterator["BodyNode"]:
        nodes = self.tree.body_nodes
        levels = self.tree.body_node_levels
        for depth in range(first_level, len(levels)):
            for node_index in levels[depth]:
                node = nodes[node_index]
                if node.level != depth:
                    raise InvariantError(
                        f"Body node {node_index} is at level {node.level}, "
                        f"but it is listed at level {depth}"
                    )
                yield node

    def _nodes_tip_to_base(self, last_level: int = 0) -> Iterator["BodyNode"]:
        nodes = self.tree.body_nodes
        levels = self.tree.body_node_levels
        for depth in range(len(levels) - 1, last_level - 1, -1):
            for node_index in levels[depth]:
                node = nodes[node_index]
                if node.level != depth:
                    raise InvariantError(
                        f"Body node {node_index} is at level {node.level}, "
                        f"but it is listed at level {depth}"
                    )
                yield node

    def _as_column(self, context, name: str, x: npt.ArrayLike, size: int):
        x = context.math.asarray(x)
        check_shape(name, x, (size, 1))
        return x

    # kinematics

    def calc_position_kinematics_cache(
        self, context, pc: Optional[PositionKinematicsCache] = None
    ) -> PositionKinematicsCache:
        self._check(context, "calc_position_kinematics_cache")
        if pc is None:
            pc = PositionKinematicsCache.allocate(
                self.tree.num_bodies(), context.math.factory
            )
        for node in self._nodes_base_to_tip():
            node.calc_position_kinematics_cache_base_to_tip(context, pc)
        return pc

    def eval_position_kinematics(self, context) -> PositionKinematicsCache:
        self._check(context, "eval_position_kinematics")
        return context.eval_cached(
            "position_kinematics", False, lambda: self.calc_position_kinematics_cache(context)
        )

    def calc_across_node_geometric_jacobian_expressed_in_world(
        self, context, pc: PositionKinematicsCache
    ) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: the 6 x nv matrix of all the hinge matrices H_PB_W. The block of a
            node sits in the columns of its mobilizer velocities.
        """
        self._check(context, "calc_across_node_geometric_jacobian_expressed_in_world")
        math = context.math
        # velocities are assigned in node order, so the blocks are contiguous
        blocks = [
            node.calc_across_node_geometric_jacobian_expressed_in_world(context, pc)
            for node in self.tree.body_nodes[1:]
            if node.num_mobilizer_velocities > 0
        ]
        if not blocks:
            return math.factory.zeros(6, 0)
        return math.horzcat(*blocks)

    def eval_across_node_jacobian(self, context) -> npt.ArrayLike:
        self._check(context, "eval_across_node_jacobian")
        return context.eval_cached(
            "across_node_jacobian",
            False,
            lambda: self.calc_across_node_geometric_jacobian_expressed_in_world(
                context, self.eval_position_kinematics(context)
            ),
        )

    def calc_velocity_kinematics_cache(
        self,
        context,
        pc: PositionKinematicsCache,
        H_PB_W_all: npt.ArrayLike,
        vc: Optional[VelocityKinematicsCache] = None,
    ) -> VelocityKinematicsCache:
        self._check(context, "calc_velocity_kinematics_cache")
        if vc is None:
            vc = VelocityKinematicsCache.allocate(
                self.tree.num_bodies(), context.math.factory
            )
        for node in self._nodes_base_to_tip():
            node.calc_velocity_kinematics_cache_base_to_tip(
                context, pc, node.get_jacobian_from_array(H_PB_W_all), vc
            )
        return vc

    def eval_velocity_kinematics(self, context) -> VelocityKinematicsCache:
        self._check(context, "eval_velocity_kinematics")
        return context.eval_cached(
            "velocity_kinematics",
            True,
            lambda: self.calc_velocity_kinematics_cache(
                context,
                self.eval_position_kinematics(context),
                self.eval_across_node_jacobian(context),
            ),
        )

    def calc_spatial_accelerations_from_vdot(
        self,
        context,
        pc: PositionKinematicsCache,
        vc: VelocityKinematicsCache,
        vdot: npt.ArrayLike,
        ac: Optional[AccelerationKinematicsCache] = None,
    ) -> AccelerationKinematicsCache:
        self._check(context, "calc_spatial_accelerations_from_vdot")
        vdot = self._as_column(context, "vdot", vdot, self.NV)
        if ac is None:
            ac = AccelerationKinematicsCache.allocate(
                self.tree.num_bodies(), context.math.factory
            )
        for node in self._nodes_base_to_tip():
            node.calc_spatial_acceleration_base_to_tip(context, pc, vc, vdot, ac)
        return ac

    def calc_acceleration_kinematics_cache(
        self, context, vdot: npt.ArrayLike
    ) -> AccelerationKinematicsCache:
        self._check(context, "calc_acceleration_kinematics_cache")
        return self.calc_spatial_accelerations_from_vdot(
            context,
            self.eval_position_kinematics(context),
            self.eval_velocity_kinematics(context),
            vdot,
        )

    def calc_all_body_poses_in_world(self, context) -> List[npt.ArrayLike]:
        """
        Returns:
            List[npt.ArrayLike]: X_WB of every body, indexed by body index
        """
        self._check(context, "calc_all_body_poses_in_world")
        pc = self.eval_position_kinematics(context)
        return [pc.get_X_WB(body.node_index) for body in self.tree.bodies]

    def calc_all_body_spatial_velocities_in_world(self, context) -> List[npt.ArrayLike]:
        self._check(context, "calc_all_body_spatial_velocities_in_world")
        vc = self.eval_velocity_kinematics(context)
        return [vc.get_V_WB(body.node_index) for body in self.tree.bodies]

    def eval_body_pose_in_world(self, context, body: "Body") -> npt.ArrayLike:
        self._check(context, "eval_body_pose_in_world")
        body.has_this_parent_tree_or_throw(self.tree)
        return self.eval_position_kinematics(context).get_X_WB(body.node_index)

    def eval_body_spatial_velocity_in_world(self, context, body: "Body") -> npt.ArrayLike:
        self._check(context, "eval_body_spatial_velocity_in_world")
        body.has_this_parent_tree_or_throw(self.tree)
        return self.eval_velocity_kinematics(context).get_V_WB(body.node_index)

    def calc_frame_pose_in_world(self, context, frame: "Frame") -> npt.ArrayLike:
        X_WB = self.eval_body_pose_in_world(context, frame.body)
        return X_WB @ frame.calc_pose_in_body_frame(context)

    def calc_relative_transform(
        self, context, frame_A: "Frame", frame_B: "Frame"
    ) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: X_AB, the pose of frame_B in frame_A
        """
        self._check(context, "calc_relative_transform")
        X_WA = self.calc_frame_pose_in_world(context, frame_A)
        X_WB = self.calc_frame_pose_in_world(context, frame_B)
        return context.math.homogeneous_inverse(X_WA) @ X_WB

    def calc_points_positions(
        self, context, frame_B: "Frame", p_BQi: npt.ArrayLike, frame_A: "Frame"
    ) -> npt.ArrayLike:
        """
        Args:
            frame_B (Frame): the frame the points are measured and expressed in
            p_BQi (npt.ArrayLike): 3xn points
            frame_A (Frame): the frame to measure and express the points in

        Returns:
            npt.ArrayLike: 3xn points p_AQi
        """
        self._check(context, "calc_points_positions")
        p_BQi = context.math.asarray(p_BQi)
        if p_BQi.shape[0] != 3:
            raise InvariantError(f"p_BQi must have 3 rows, it has shape {p_BQi.shape}")
        X_AB = self.calc_relative_transform(context, frame_A, frame_B)
        return context.math.transform_points(X_AB, p_BQi)

    # jacobians

    def calc_frame_jacobian_expressed_in_world(
        self, context, frame_F: "Frame", p_WQ_list: npt.ArrayLike
    ) -> Tuple[npt.ArrayLike, npt.ArrayLike]:
        """Jacobians of points Qi rigidly attached to the body of frame_F

        Args:
            frame_F (Frame): the frame the points move with
            p_WQ_list (npt.ArrayLike): 3xn positions of the points, measured and expressed in W

        Returns:
            Tuple[npt.ArrayLike, npt.ArrayLike]: Jw (3 x nv) for the angular velocity of the
            body and Jv (3n x nv) for the translational velocities of the points, stacked
        """
        self._check(context, "calc_frame_jacobian_expressed_in_world")
        math = context.math
        p_WQ_list = math.asarray(p_WQ_list)
        if p_WQ_list.shape[0] != 3:
            raise InvariantError(
                f"p_WQ_list must have 3 rows, it has shape {p_WQ_list.shape}"
            )
        num_points = p_WQ_list.shape[1]
        pc = self.eval_position_kinematics(context)
        H_PB_W_all = self.eval_across_node_jacobian(context)

        path = set(
            self.tree.topology.get_kinematic_path_to_world(frame_F.body.node_index)
        )
        Jw_blocks = []
        Jv_blocks = []
        for node in self.tree.body_nodes[1:]:
            nv = node.num_mobilizer_velocities
            if nv == 0:
                continue
            if node.index not in path:
                Jw_blocks.append(math.factory.zeros(3, nv))
                Jv_blocks.append(math.factory.zeros(3 * num_points, nv))
                continue
            H = node.get_jacobian_from_array(H_PB_W_all)
            Hw = math.angular(H)
            Hv = math.translational(H)
            p_WBo = pc.get_p_WoBo(node.index)
            Jw_blocks.append(Hw)
            if num_points == 0:
                Jv_blocks.append(math.factory.zeros(0, nv))
                continue
            Jv_blocks.append(
                math.vertcat(
                    *[
                        Hv - math.skew(p_WQ_list[:, k : k + 1] - p_WBo) @ Hw
                        for k in range(num_points)
                    ]
                )
            )
        if not Jw_blocks:
            return math.factory.zeros(3, 0), math.factory.zeros(3 * num_points, 0)
        return math.horzcat(*Jw_blocks), math.horzcat(*Jv_blocks)

    def calc_points_geometric_jacobian_expressed_in_world(
        self, context, frame_F: "Frame", p_WQ_list: npt.ArrayLike
    ) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: Jv (3n x nv), such that the stacked velocities of the points in W are Jv @ v
        """
        _, Jv = self.calc_frame_jacobian_expressed_in_world(context, frame_F, p_WQ_list)
        return Jv

    def _calc_p_WQ(self, context, frame_F: "Frame", p_FQ: npt.ArrayLike) -> npt.ArrayLike:
        X_WF = self.calc_frame_pose_in_world(context, frame_F)
        return context.math.transform_points(X_WF, context.math.asarray(p_FQ))

    def calc_frame_geometric_jacobian_expressed_in_world(
        self, context, frame_F: "Frame", p_FQ: npt.ArrayLike = (0.0, 0.0, 0.0)
    ) -> npt.ArrayLike:
        """
        Args:
            frame_F (Frame): the frame the point Q is fixed in
            p_FQ (npt.ArrayLike): position of Q in frame_F. Defaults to the frame origin.

        Returns:
            npt.ArrayLike: the 6 x nv Jacobian J such that [w_WF; v_WQ] = J @ v
        """
        self._check(context, "calc_frame_geometric_jacobian_expressed_in_world")
        Jw, Jv = self.calc_frame_jacobian_expressed_in_world(
            context, frame_F, self._calc_p_WQ(context, frame_F, p_FQ)
        )
        return context.math.vertcat(Jw, Jv)

    def _calc_bias_spatial_accelerations(
        self, context, frame_F: "Frame", p_FQi: npt.ArrayLike
    ) -> List[npt.ArrayLike]:
        math = context.math
        pc = self.eval_position_kinematics(context)
        vc = self.eval_velocity_kinematics(context)
        ac = self.calc_spatial_accelerations_from_vdot(
            context, pc, vc, math.factory.zeros(self.NV, 1)
        )
        node_index = frame_F.body.node_index
        R_WB = pc.get_R_WB(node_index)
        A_WB = ac.get_A_WB(node_index)
        w_WB = vc.get_w_WB(node_index)
        p_BQi = math.transform_points(
            frame_F.calc_pose_in_body_frame(context), math.asarray(p_FQi)
        )
        return [
            math.shift_spatial_acceleration(A_WB, R_WB @ p_BQi[:, k : k + 1], w_WB)
            for k in range(p_BQi.shape[1])
        ]

    def calc_bias_for_frame_geometric_jacobian_expressed_in_world(
        self, context, frame_F: "Frame", p_FQ: npt.ArrayLike = (0.0, 0.0, 0.0)
    ) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: the 6x1 bias Jdot @ v, the spatial acceleration of Q when vdot = 0
        """
        self._check(context, "calc_bias_for_frame_geometric_jacobian_expressed_in_world")
        return self._calc_bias_spatial_accelerations(context, frame_F, p_FQ)[0]

    def calc_bias_for_points_geometric_jacobian_expressed_in_world(
        self, context, frame_F: "Frame", p_FQi: npt.ArrayLike
    ) -> npt.ArrayLike:
        """
        Args:
            p_FQi (npt.ArrayLike): 3xn points fixed in frame_F, measured and expressed in it

        Returns:
            npt.ArrayLike: the 3n x 1 stacked translational accelerations of the points when vdot = 0
        """
        self._check(context, "calc_bias_for_points_geometric_jacobian_expressed_in_world")
        math = context.math
        A_WQi = self._calc_bias_spatial_accelerations(context, frame_F, p_FQi)
        if not A_WQi:
            return math.factory.zeros(0, 1)
        return math.vertcat(*[math.translational(A) for A in A_WQi])

    # dynamics

    def _calc_inverse_dynamics(
        self,
        context,
        pc: PositionKinematicsCache,
        vc: VelocityKinematicsCache,
        ac: AccelerationKinematicsCache,
        H_PB_W_all: npt.ArrayLike,
        forces: Optional["MultibodyForces"],
    ) -> npt.ArrayLike:
        math = context.math
        num_nodes = self.tree.num_bodies()
        F_BBo_W_array: List[Optional[npt.ArrayLike]] = [None] * num_nodes
        tau_per_node: List[Optional[npt.ArrayLike]] = [None] * num_nodes
        for node in self._nodes_tip_to_base():
            Fapplied_Bo_W = None
            tau_applied_m = None
            if forces is not None:
                Fapplied_Bo_W = forces.body_forces[node.index]
                nv = node.num_mobilizer_velocities
                if nv > 0:
                    start = node.velocity_start_in_v
                    tau_applied_m = forces.generalized_forces[start : start + nv, :]
            tau_per_node[node.index] = node.calc_inverse_dynamics_tip_to_base(
                context,
                pc,
                vc,
                ac,
                Fapplied_Bo_W,
                tau_applied_m,
                node.get_jacobian_from_array(H_PB_W_all),
                F_BBo_W_array,
            )
        if self.NV == 0:
            return math.factory.zeros(0, 1)
        # velocities are assigned in node order
        return math.vertcat(*[tau for tau in tau_per_node if tau.shape[0] > 0])

    def _check_forces(self, forces: Optional["MultibodyForces"]) -> None:
        if forces is not None and not forces.check_has_right_size_for_model(self.tree):
            raise InvariantError("The applied forces were created for a different model")

    def calc_inverse_dynamics(
        self,
        context,
        vdot: npt.ArrayLike,
        forces: Optional["MultibodyForces"] = None,
    ) -> npt.ArrayLike:
        """
        Args:
            vdot (npt.ArrayLike): the generalized accelerations
            forces (MultibodyForces, optional): applied body and generalized forces

        Returns:
            npt.ArrayLike: tau = M(q) vdot + C(q, v) - tau_applied - sum J^T F_applied
        """
        self._check(context, "calc_inverse_dynamics")
        self._check_forces(forces)
        pc = self.eval_position_kinematics(context)
        vc = self.eval_velocity_kinematics(context)
        H_PB_W_all = self.eval_across_node_jacobian(context)
        ac = self.calc_spatial_accelerations_from_vdot(context, pc, vc, vdot)
        return self._calc_inverse_dynamics(context, pc, vc, ac, H_PB_W_all, forces)

    def calc_force_elements_contribution(
        self,
        context,
        pc: PositionKinematicsCache,
        vc: VelocityKinematicsCache,
        forces: "MultibodyForces",
    ) -> None:
        """Overwrites forces with the contribution of all the force elements and of the joint damping"""
        self._check(context, "calc_force_elements_contribution")
        self._check_forces(forces)
        forces.set_zero()
        for force_element in self.tree.force_elements:
            force_element.calc_and_add_force_contribution(context, pc, vc, forces)
        for joint in self.tree.joints:
            joint.add_in_damping(context, forces)

    def calc_mass_matrix_via_inverse_dynamics(self, context) -> npt.ArrayLike:
        """Builds the mass matrix one column at a time, as the inverse dynamics of a unit vdot at zero velocity

        Returns:
            npt.ArrayLike: the nv x nv mass matrix
        """
        self._check(context, "calc_mass_matrix_via_inverse_dynamics")
        math = context.math
        if self.NV == 0:
            return math.factory.zeros(0, 0)
        pc = self.eval_position_kinematics(context)
        H_PB_W_all = self.eval_across_node_jacobian(context)
        vc = VelocityKinematicsCache.allocate(self.tree.num_bodies(), math.factory)
        columns = []
        for j in range(self.NV):
            ac = self.calc_spatial_accelerations_from_vdot(
                context, pc, vc, math.unit_vector(self.NV, j)
            )
            columns.append(
                self._calc_inverse_dynamics(context, pc, vc, ac, H_PB_W_all, None)
            )
        return math.horzcat(*columns)

    def calc_bias_term(self, context) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: C(q, v) v, the Coriolis, centrifugal and gyroscopic generalized forces
        """
        self._check(context, "calc_bias_term")
        return self.calc_inverse_dynamics(context, context.math.factory.zeros(self.NV, 1))

    def calc_gravity_generalized_forces(self, context) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: tau_g, the generalized forces of gravity. Zero if the tree has no gravity field.
        """
        self._check(context, "calc_gravity_generalized_forces")
        math = context.math
        gravity = self.tree.gravity_field
        if gravity is None:
            return math.factory.zeros(self.NV, 1)
        # treedyn.model imports treedyn.core, so this import is deferred
        from treedyn.model.multibody_forces import MultibodyForces

        pc = self.eval_position_kinematics(context)
        H_PB_W_all = self.eval_across_node_jacobian(context)
        vc = VelocityKinematicsCache.allocate(self.tree.num_bodies(), math.factory)
        forces = MultibodyForces(self.tree, math)
        gravity.calc_and_add_force_contribution(context, pc, vc, forces)
        ac = self.calc_spatial_accelerations_from_vdot(
            context, pc, vc, math.factory.zeros(self.NV, 1)
        )
        return -self._calc_inverse_dynamics(context, pc, vc, ac, H_PB_W_all, forces)

    def calc_potential_energy(self, context) -> npt.ArrayLike:
        self._check(context, "calc_potential_energy")
        pc = self.eval_position_kinematics(context)
        energy = context.math.factory.zeros(1, 1)
        for force_element in self.tree.force_elements:
            energy = energy + force_element.calc_potential_energy(context, pc)
        return energy

    def calc_conservative_power(self, context) -> npt.ArrayLike:
        self._check(context, "calc_conservative_power")
        pc = self.eval_position_kinematics(context)
        vc = self.eval_velocity_kinematics(context)
        power = context.math.factory.zeros(1, 1)
        for force_element in self.tree.force_elements:
            power = power + force_element.calc_conservative_power(context, pc, vc)
        return power

    def calc_articulated_body_inertia_cache(
        self, context, abc: Optional[ArticulatedBodyInertiaCache] = None
    ) -> ArticulatedBodyInertiaCache:
        """Articulated body inertias of every node except the world, tip to base"""
        self._check(context, "calc_articulated_body_inertia_cache")
        if abc is None:
            abc = ArticulatedBodyInertiaCache.allocate(
                self.tree.num_bodies(), context.math.factory
            )
        pc = self.eval_position_kinematics(context)
        H_PB_W_all = self.eval_across_node_jacobian(context)
        for node in self._nodes_tip_to_base(last_level=1):
            node.calc_articulated_body_inertia_cache_tip_to_base(
                context, pc, node.get_jacobian_from_array(H_PB_W_all), abc
            )
        return abc

    # q/v mappings

    def map_qdot_to_velocity(self, context, qdot: npt.ArrayLike) -> npt.ArrayLike:
        self._check(context, "map_qdot_to_velocity")
        qdot = self._as_column(context, "qdot", qdot, self.NQ)
        segments = [
            node.mobilizer.map_qdot_to_velocity(
                context, node.mobilizer.get_positions_from_array(qdot)
            )
            for node in self.tree.body_nodes[1:]
            if node.num_mobilizer_velocities > 0
        ]
        if not segments:
            return context.math.factory.zeros(0, 1)
        return context.math.vertcat(*segments)

    def map_velocity_to_qdot(self, context, v: npt.ArrayLike) -> npt.ArrayLike:
        self._check(context, "map_velocity_to_qdot")
        v = self._as_column(context, "v", v, self.NV)
        segments = [
            node.mobilizer.map_velocity_to_qdot(
                context, node.mobilizer.get_velocities_from_array(v)
            )
            for node in self.tree.body_nodes[1:]
            if node.num_mobilizer_positions > 0
        ]
        if not segments:
            return context.math.factory.zeros(0, 1)
        return context.math.vertcat(*segments)
