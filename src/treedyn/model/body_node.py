# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from typing import List, Optional

import numpy.typing as npt

from treedyn.core.caches import (
    AccelerationKinematicsCache,
    ArticulatedBodyInertiaCache,
    PositionKinematicsCache,
    VelocityKinematicsCache,
)
from treedyn.core.errors import InvariantError


class BodyNode:
    """Computational unit of the tree, one per body.

    A node refers to its body, to its inboard mobilizer and, without owning them, to its
    parent and children nodes. It implements one step of every tree recursion; the
    orchestration over levels lives in RBDAlgorithms.

    Notation: P is the parent body, B this node's body, F the inboard frame of the
    mobilizer (fixed in P) and M its outboard frame (fixed in B). W is the world.
    """

    def __init__(self, parent_node: Optional["BodyNode"], body, mobilizer) -> None:
        self._parent_node = parent_node
        self._body = body
        self._mobilizer = mobilizer
        self._children: List["BodyNode"] = []
        self._topology = None

    def set_topology(self, topology, index: int) -> None:
        self._topology = topology.get_body_node(index)
        if self._topology.body != self._body.index:
            raise InvariantError(
                f"Body node {index} was created for body '{self._body.name}' "
                f"but the topology assigns it body {self._topology.body}."
            )

    def add_child_node(self, child: "BodyNode") -> None:
        self._children.append(child)

    @property
    def index(self) -> int:
        return self._topology.index

    @property
    def level(self) -> int:
        return self._topology.level

    @property
    def parent_node(self) -> Optional["BodyNode"]:
        return self._parent_node

    @property
    def children(self) -> List["BodyNode"]:
        return self._children

    @property
    def body(self):
        return self._body

    @property
    def mobilizer(self):
        return self._mobilizer

    @property
    def model_instance(self) -> int:
        return self._mobilizer.model_instance

    @property
    def num_mobilizer_positions(self) -> int:
        return self._topology.num_mobilizer_positions

    @property
    def num_mobilizer_velocities(self) -> int:
        return self._topology.num_mobilizer_velocities

    @property
    def velocity_start_in_v(self) -> int:
        return self._topology.mobilizer_velocities_start_in_v

    def get_jacobian_from_array(self, H_PB_W_all: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            H_PB_W_all (npt.ArrayLike): the 6 x nv buffer of all the hinge matrices

        Returns:
            npt.ArrayLike: the 6 x k block of this node
        """
        start = self.velocity_start_in_v
        return H_PB_W_all[:, start : start + self.num_mobilizer_velocities]

    def _calc_inboard_frame_rotation_in_world(self, context, pc) -> npt.ArrayLike:
        math = context.math
        X_PF = self._mobilizer.inboard_frame.calc_pose_in_body_frame(context)
        R_WP = pc.get_R_WB(self._parent_node.index)
        return R_WP @ math.rotation(X_PF)

    def _calc_p_MoBo_W(self, context, pc) -> npt.ArrayLike:
        math = context.math
        X_BM = self._mobilizer.outboard_frame.calc_pose_in_body_frame(context)
        return -(pc.get_R_WB(self.index) @ math.translation(X_BM))

    def calc_spatial_inertia_in_world(self, context, pc: PositionKinematicsCache):
        """
        Returns:
            the mass, the center of mass from Bo and the rotational inertia about Bo,
            the last two expressed in W
        """
        math = context.math
        M_BBo_B = self._body.default_spatial_inertia
        R_WB = pc.get_R_WB(self.index)
        p_BoBcm_W = R_WB @ math.asarray(M_BBo_B.p_BoBcm_B)
        I_BBo_W = R_WB @ math.asarray(M_BBo_B.I_BBo_B) @ R_WB.T
        return M_BBo_B.mass, p_BoBcm_W, I_BBo_W

    def calc_position_kinematics_cache_base_to_tip(
        self, context, pc: PositionKinematicsCache
    ) -> None:
        """Computes X_WB from the parent's X_WP, which must already be in pc"""
        math = context.math
        mobilizer = self._mobilizer
        X_PF = mobilizer.inboard_frame.calc_pose_in_body_frame(context)
        X_MB = math.homogeneous_inverse(
            mobilizer.outboard_frame.calc_pose_in_body_frame(context)
        )
        X_FM = mobilizer.calc_across_mobilizer_transform(context)
        X_PB = X_PF @ X_FM @ X_MB
        X_WP = pc.get_X_WB(self._parent_node.index)

        pc.X_FM[self.index] = X_FM
        pc.X_PB[self.index] = X_PB
        pc.X_WB[self.index] = X_WP @ X_PB
        pc.p_PoBo_W[self.index] = math.rotation(X_WP) @ math.translation(X_PB)

    def calc_across_node_geometric_jacobian_expressed_in_world(
        self, context, pc: PositionKinematicsCache
    ) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: H_PB_W, the 6 x k hinge matrix such that V_PB_W = H_PB_W v_m, about Bo
        """
        math = context.math
        if self.num_mobilizer_velocities == 0:
            return math.factory.zeros(6, 0)
        R_WF = self._calc_inboard_frame_rotation_in_world(context, pc)
        H_FM = self._mobilizer.calc_hinge_matrix(context)
        return math.shift_spatial_velocity(
            math.rotate_spatial(R_WF, H_FM), self._calc_p_MoBo_W(context, pc)
        )

    def calc_velocity_kinematics_cache_base_to_tip(
        self,
        context,
        pc: PositionKinematicsCache,
        H_PB_W: npt.ArrayLike,
        vc: VelocityKinematicsCache,
    ) -> None:
        math = context.math
        V_WP = vc.get_V_WB(self._parent_node.index)
        # rigidly shifted to Bo
        V_WPb = math.shift_spatial_velocity(V_WP, pc.p_PoBo_W[self.index])
        if self.num_mobilizer_velocities == 0:
            V_PB_W = math.factory.zeros(6, 1)
        else:
            V_PB_W = H_PB_W @ self._mobilizer.get_velocities(context)
        vc.V_PB_W[self.index] = V_PB_W
        vc.V_WB[self.index] = V_WPb + V_PB_W

    def calc_spatial_acceleration_base_to_tip(
        self,
        context,
        pc: PositionKinematicsCache,
        vc: VelocityKinematicsCache,
        vdot: npt.ArrayLike,
        ac: AccelerationKinematicsCache,
    ) -> None:
        math = context.math
        parent_index = self._parent_node.index
        A_WP = ac.get_A_WB(parent_index)
        w_WP = vc.get_w_WB(parent_index)
        V_PB_W = vc.V_PB_W[self.index]

        if self.num_mobilizer_velocities == 0:
            A_PB_W = math.factory.zeros(6, 1)
        else:
            vdot_m = self._mobilizer.get_velocities_from_array(vdot)
            A_FM = self._mobilizer.calc_across_mobilizer_spatial_acceleration(
                context, vdot_m
            )
            R_WF = self._calc_inboard_frame_rotation_in_world(context, pc)
            # M moves with B, so w_FM = w_PB
            A_PB_W = math.shift_spatial_acceleration(
                math.rotate_spatial(R_WF, A_FM),
                self._calc_p_MoBo_W(context, pc),
                math.angular(V_PB_W),
            )

        ac.A_WB[self.index] = math.compose_with_moving_frame_acceleration(
            A_WP, pc.p_PoBo_W[self.index], w_WP, V_PB_W, A_PB_W
        )

    def calc_inverse_dynamics_tip_to_base(
        self,
        context,
        pc: PositionKinematicsCache,
        vc: VelocityKinematicsCache,
        ac: AccelerationKinematicsCache,
        Fapplied_Bo_W: Optional[npt.ArrayLike],
        tau_applied_m: Optional[npt.ArrayLike],
        H_PB_W: npt.ArrayLike,
        F_BBo_W_array: list,
    ) -> npt.ArrayLike:
        """Computes the spatial force the inboard mobilizer exerts on B at Bo and its generalized forces

        Children entries of F_BBo_W_array must already be computed. This node's entry is written.

        Returns:
            npt.ArrayLike: the k x 1 generalized forces of the mobilizer
        """
        math = context.math
        mass, p_BoBcm_W, I_BBo_W = self.calc_spatial_inertia_in_world(context, pc)
        w_WB = vc.get_w_WB(self.index)
        M_B_W = math.spatial_inertia(mass, p_BoBcm_W, I_BBo_W)
        Fb_Bo_W = math.spatial_inertia_bias_force(mass, p_BoBcm_W, I_BBo_W, w_WB)

        F_BBo_W = M_B_W @ ac.get_A_WB(self.index) + Fb_Bo_W
        if Fapplied_Bo_W is not None:
            F_BBo_W = F_BBo_W - Fapplied_Bo_W
        for child in self._children:
            # p_PoBo_W of the child is the position of Co from Bo
            p_CoBo_W = -pc.p_PoBo_W[child.index]
            F_BBo_W = F_BBo_W + math.shift_spatial_force(
                F_BBo_W_array[child.index], p_CoBo_W
            )
        F_BBo_W_array[self.index] = F_BBo_W

        if self.num_mobilizer_velocities == 0:
            return math.factory.zeros(0, 1)
        tau = H_PB_W.T @ F_BBo_W
        if tau_applied_m is not None:
            tau = tau - tau_applied_m
        return tau

    def calc_articulated_body_inertia_cache_tip_to_base(
        self,
        context,
        pc: PositionKinematicsCache,
        H_PB_W: npt.ArrayLike,
        abc: ArticulatedBodyInertiaCache,
    ) -> None:
        math = context.math
        mass, p_BoBcm_W, I_BBo_W = self.calc_spatial_inertia_in_world(context, pc)
        P_B_W = math.spatial_inertia(mass, p_BoBcm_W, I_BBo_W)
        for child in self._children:
            p_CoBo_W = -pc.p_PoBo_W[child.index]
            P_B_W = P_B_W + math.shift_spatial_inertia(
                abc.get_Pplus_PB_W(child.index), p_CoBo_W
            )
        abc.P_B_W[self.index] = P_B_W

        if self.num_mobilizer_velocities == 0:
            # a weld transmits the whole articulated inertia
            abc.Pplus_PB_W[self.index] = P_B_W
            return
        PH = P_B_W @ H_PB_W
        D_B = H_PB_W.T @ PH
        abc.Pplus_PB_W[self.index] = P_B_W - PH @ math.solve(D_B, PH.T)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(body={self._body.name!r})"


class BodyNodeWelded(BodyNode):
    """The world node. It has no mobilizer and no mobilities; its pose is the identity."""

    def __init__(self, world_body) -> None:
        super().__init__(None, world_body, None)

    @property
    def model_instance(self) -> int:
        return self._body.model_instance

    def calc_position_kinematics_cache_base_to_tip(self, context, pc) -> None:
        raise InvariantError("The world node is not updated by base-to-tip recursions.")

    def calc_velocity_kinematics_cache_base_to_tip(self, context, pc, H_PB_W, vc) -> None:
        raise InvariantError("The world node is not updated by base-to-tip recursions.")

    def calc_spatial_acceleration_base_to_tip(self, context, pc, vc, vdot, ac) -> None:
        raise InvariantError("The world node is not updated by base-to-tip recursions.")

    def calc_across_node_geometric_jacobian_expressed_in_world(self, context, pc):
        return context.math.factory.zeros(6, 0)

    def calc_inverse_dynamics_tip_to_base(
        self, context, pc, vc, ac, Fapplied_Bo_W, tau_applied_m, H_PB_W, F_BBo_W_array
    ):
        math = context.math
        F_BBo_W = math.factory.zeros(6, 1)
        for child in self._children:
            F_BBo_W = F_BBo_W + math.shift_spatial_force(
                F_BBo_W_array[child.index], -pc.p_PoBo_W[child.index]
            )
        F_BBo_W_array[self.index] = F_BBo_W
        return math.factory.zeros(0, 1)
