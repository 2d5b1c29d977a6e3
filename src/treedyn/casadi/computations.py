# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from typing import Union

import casadi as cs
import numpy as np

from treedyn.casadi.casadi_like import SpatialMath
from treedyn.core.rbd_algorithms import RBDAlgorithms
from treedyn.model import Body, Frame, MultibodyForces, MultibodyTree


class KinDynComputations:
    """Class that retrieves the quantities of a MultibodyTree as CasADi functions.

    Every function takes the generalized positions q and, when needed, the generalized
    velocities v and accelerations vdot as column vectors.
    """

    def __init__(
        self,
        tree: MultibodyTree,
        f_opts: dict = dict(jit=False, jit_options=dict(flags="-Ofast"), cse=True),
    ) -> None:
        """
        Args:
            tree (MultibodyTree): a finalized tree. Gravity comes from its UniformGravityFieldElement.
            f_opts (dict): options of the generated casadi.Function objects
        """
        math = SpatialMath()
        self.tree = tree
        self.rbdalgos = RBDAlgorithms(tree=tree, math=math)
        self.NQ = self.rbdalgos.NQ
        self.NV = self.rbdalgos.NV
        self.f_opts = f_opts

    def _frame(self, frame: Union[str, Frame]) -> Frame:
        return self.tree.get_frame_by_name(frame) if isinstance(frame, str) else frame

    def _body(self, body: Union[str, Body]) -> Body:
        return self.tree.get_body_by_name(body) if isinstance(body, str) else body

    def _symbolic_context(self, with_velocities: bool = False):
        q = cs.SX.sym("q", self.NQ)
        v = cs.SX.sym("v", self.NV) if with_velocities else cs.SX.zeros(self.NV)
        context = self.rbdalgos.create_context()
        context.set_state_vector(cs.vertcat(q, v))
        return context, q, v

    def forward_kinematics_fun(self, frame: Union[str, Frame]) -> cs.Function:
        """Returns the forward kinematics function of a frame

        Args:
            frame (Union[str, Frame]): The frame or its name

        Returns:
            X_WF (casADi function): the pose of the frame in the world
        """
        context, q, _ = self._symbolic_context()
        X_WF = self.rbdalgos.calc_frame_pose_in_world(context, self._frame(frame))
        return cs.Function("X_WF", [q], [X_WF.array], self.f_opts)

    def relative_transform_fun(
        self, frame_A: Union[str, Frame], frame_B: Union[str, Frame]
    ) -> cs.Function:
        context, q, _ = self._symbolic_context()
        X_AB = self.rbdalgos.calc_relative_transform(
            context, self._frame(frame_A), self._frame(frame_B)
        )
        return cs.Function("X_AB", [q], [X_AB.array], self.f_opts)

    def body_spatial_velocity_fun(self, body: Union[str, Body]) -> cs.Function:
        context, q, v = self._symbolic_context(with_velocities=True)
        V_WB = self.rbdalgos.eval_body_spatial_velocity_in_world(context, self._body(body))
        return cs.Function("V_WB", [q, v], [V_WB.array], self.f_opts)

    def jacobian_fun(
        self, frame: Union[str, Frame], p_FQ: np.ndarray = np.zeros(3)
    ) -> cs.Function:
        """Returns the Jacobian function of a point of a frame

        Args:
            frame (Union[str, Frame]): The frame or its name
            p_FQ (np.ndarray, optional): the point in the frame. Defaults to its origin.

        Returns:
            J (casADi function): the 6 x nv Jacobian mapping v to [w_WF; v_WQ]
        """
        context, q, _ = self._symbolic_context()
        J = self.rbdalgos.calc_frame_geometric_jacobian_expressed_in_world(
            context, self._frame(frame), p_FQ
        )
        return cs.Function("J", [q], [J.array], self.f_opts)

    def jacobian_bias_fun(
        self, frame: Union[str, Frame], p_FQ: np.ndarray = np.zeros(3)
    ) -> cs.Function:
        """
        Returns:
            Jdot_v (casADi function): the bias acceleration of the frame Jacobian
        """
        context, q, v = self._symbolic_context(with_velocities=True)
        Jdot_v = self.rbdalgos.calc_bias_for_frame_geometric_jacobian_expressed_in_world(
            context, self._frame(frame), p_FQ
        )
        return cs.Function("Jdot_v", [q, v], [Jdot_v.array], self.f_opts)

    def points_jacobian_fun(self, frame: Union[str, Frame], num_points: int) -> cs.Function:
        """
        Args:
            frame (Union[str, Frame]): the frame the points move with
            num_points (int): the number of points

        Returns:
            Jv (casADi function): of q and of the 3 x num_points points in the world
        """
        context, q, _ = self._symbolic_context()
        p_WQ_list = cs.SX.sym("p_WQ", 3, num_points)
        Jv = self.rbdalgos.calc_points_geometric_jacobian_expressed_in_world(
            context, self._frame(frame), p_WQ_list
        )
        return cs.Function("Jv", [q, p_WQ_list], [Jv.array], self.f_opts)

    def mass_matrix_fun(self) -> cs.Function:
        """Returns the Mass Matrix function computed with the inverse dynamics

        Returns:
            M (casADi function): Mass Matrix
        """
        context, q, _ = self._symbolic_context()
        M = self.rbdalgos.calc_mass_matrix_via_inverse_dynamics(context)
        return cs.Function("M", [q], [M.array], self.f_opts)

    def bias_term_fun(self) -> cs.Function:
        """Returns the bias term function, gravity excluded

        Returns:
            C (casADi function): the Coriolis, centrifugal and gyroscopic generalized forces
        """
        context, q, v = self._symbolic_context(with_velocities=True)
        C = self.rbdalgos.calc_bias_term(context)
        return cs.Function("C", [q, v], [C.array], self.f_opts)

    def inverse_dynamics_fun(self) -> cs.Function:
        """
        Returns:
            tau (casADi function): of q, v, vdot and the applied generalized forces
        """
        context, q, v = self._symbolic_context(with_velocities=True)
        vdot = cs.SX.sym("vdot", self.NV)
        tau_applied = cs.SX.sym("tau_applied", self.NV)
        forces = MultibodyForces(self.tree, self.rbdalgos.math)
        forces.add_in_generalized_forces(0, tau_applied)
        tau = self.rbdalgos.calc_inverse_dynamics(context, vdot, forces)
        return cs.Function(
            "tau", [q, v, vdot, tau_applied], [tau.array], self.f_opts
        )

    def gravity_generalized_forces_fun(self) -> cs.Function:
        context, q, _ = self._symbolic_context()
        tau_g = self.rbdalgos.calc_gravity_generalized_forces(context)
        return cs.Function("tau_g", [q], [tau_g.array], self.f_opts)

    def potential_energy_fun(self) -> cs.Function:
        context, q, _ = self._symbolic_context()
        energy = self.rbdalgos.calc_potential_energy(context)
        return cs.Function("V", [q], [energy.array], self.f_opts)

    def conservative_power_fun(self) -> cs.Function:
        context, q, v = self._symbolic_context(with_velocities=True)
        power = self.rbdalgos.calc_conservative_power(context)
        return cs.Function("P", [q, v], [power.array], self.f_opts)

    def map_qdot_to_velocity_fun(self) -> cs.Function:
        context, q, _ = self._symbolic_context()
        qdot = cs.SX.sym("qdot", self.NQ)
        v = self.rbdalgos.map_qdot_to_velocity(context, qdot)
        return cs.Function("v", [q, qdot], [v.array], self.f_opts)

    def map_velocity_to_qdot_fun(self) -> cs.Function:
        context, q, _ = self._symbolic_context()
        v = cs.SX.sym("v", self.NV)
        qdot = self.rbdalgos.map_velocity_to_qdot(context, v)
        return cs.Function("qdot", [q, v], [qdot.array], self.f_opts)

    def articulated_body_inertia_fun(self, body: Union[str, Body]) -> cs.Function:
        context, q, _ = self._symbolic_context()
        abc = self.rbdalgos.calc_articulated_body_inertia_cache(context)
        P_B_W = abc.get_P_B_W(self._body(body).node_index)
        return cs.Function("P_B_W", [q], [P_B_W.array], self.f_opts)
