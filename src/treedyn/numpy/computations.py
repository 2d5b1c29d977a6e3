# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from typing import Dict, Optional, Union

import numpy as np

from treedyn.core.rbd_algorithms import RBDAlgorithms
from treedyn.model import Body, Frame, MultibodyForces, MultibodyTree
from treedyn.numpy.numpy_like import SpatialMath


class KinDynComputations:
    """This is a small class that retrieves the quantities of a MultibodyTree using NumPy.

    Vectors are passed and returned as 1-D arrays, q and v ordered as the tree assigns them.
    """

    def __init__(self, tree: MultibodyTree) -> None:
        """
        Args:
            tree (MultibodyTree): a finalized tree. Gravity comes from its UniformGravityFieldElement.
        """
        math = SpatialMath()
        self.tree = tree
        self.rbdalgos = RBDAlgorithms(tree=tree, math=math)
        self.NQ = self.rbdalgos.NQ
        self.NV = self.rbdalgos.NV
        self._context = self.rbdalgos.create_context()

    def _frame(self, frame: Union[str, Frame]) -> Frame:
        return self.tree.get_frame_by_name(frame) if isinstance(frame, str) else frame

    def _body(self, body: Union[str, Body]) -> Body:
        return self.tree.get_body_by_name(body) if isinstance(body, str) else body

    def _set_state(self, q: np.ndarray, v: Optional[np.ndarray] = None):
        q = np.asarray(q, dtype=float).reshape(-1)
        v = np.zeros(self.NV) if v is None else np.asarray(v, dtype=float).reshape(-1)
        self._context.set_state_vector(np.concatenate([q, v]))
        return self._context

    def forward_kinematics(self, frame: Union[str, Frame], q: np.ndarray) -> np.ndarray:
        """
        Args:
            frame (Union[str, Frame]): The frame or its name
            q (np.ndarray): The generalized positions

        Returns:
            np.ndarray: the 4x4 pose of the frame in the world
        """
        context = self._set_state(q)
        return self.rbdalgos.calc_frame_pose_in_world(context, self._frame(frame)).array

    def relative_transform(
        self, frame_A: Union[str, Frame], frame_B: Union[str, Frame], q: np.ndarray
    ) -> np.ndarray:
        """
        Returns:
            np.ndarray: X_AB, the pose of frame_B in frame_A
        """
        context = self._set_state(q)
        return self.rbdalgos.calc_relative_transform(
            context, self._frame(frame_A), self._frame(frame_B)
        ).array

    def body_spatial_velocity(
        self, body: Union[str, Body], q: np.ndarray, v: np.ndarray
    ) -> np.ndarray:
        """
        Returns:
            np.ndarray: [w_WB; v_WBo], expressed in the world
        """
        context = self._set_state(q, v)
        V_WB = self.rbdalgos.eval_body_spatial_velocity_in_world(context, self._body(body))
        return V_WB.array.reshape(-1)

    def frame_jacobian(
        self,
        frame: Union[str, Frame],
        q: np.ndarray,
        p_FQ: np.ndarray = np.zeros(3),
    ) -> np.ndarray:
        """
        Args:
            frame (Union[str, Frame]): The frame or its name
            q (np.ndarray): The generalized positions
            p_FQ (np.ndarray, optional): the point of the frame. Defaults to its origin.

        Returns:
            np.ndarray: the 6 x nv Jacobian mapping v to [w_WF; v_WQ]
        """
        context = self._set_state(q)
        return self.rbdalgos.calc_frame_geometric_jacobian_expressed_in_world(
            context, self._frame(frame), p_FQ
        ).array

    def frame_jacobian_bias(
        self,
        frame: Union[str, Frame],
        q: np.ndarray,
        v: np.ndarray,
        p_FQ: np.ndarray = np.zeros(3),
    ) -> np.ndarray:
        """
        Returns:
            np.ndarray: the 6 x 1 bias acceleration Jdot v of the frame Jacobian, flattened
        """
        context = self._set_state(q, v)
        return self.rbdalgos.calc_bias_for_frame_geometric_jacobian_expressed_in_world(
            context, self._frame(frame), p_FQ
        ).array.reshape(-1)

    def points_jacobian(
        self, frame: Union[str, Frame], q: np.ndarray, p_WQ_list: np.ndarray
    ) -> np.ndarray:
        """
        Args:
            frame (Union[str, Frame]): the frame the points move with
            q (np.ndarray): The generalized positions
            p_WQ_list (np.ndarray): 3 x n points, measured and expressed in the world

        Returns:
            np.ndarray: the 3n x nv Jacobian of the stacked point velocities
        """
        context = self._set_state(q)
        p_WQ_list = np.asarray(p_WQ_list, dtype=float).reshape(3, -1)
        return self.rbdalgos.calc_points_geometric_jacobian_expressed_in_world(
            context, self._frame(frame), p_WQ_list
        ).array

    def mass_matrix(self, q: np.ndarray) -> np.ndarray:
        """Returns the Mass Matrix computed column by column with the inverse dynamics

        Args:
            q (np.ndarray): The generalized positions

        Returns:
            M (np.ndarray): Mass Matrix
        """
        context = self._set_state(q)
        return self.rbdalgos.calc_mass_matrix_via_inverse_dynamics(context).array

    def bias_term(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        """Returns the Coriolis, centrifugal and gyroscopic generalized forces, gravity excluded

        Args:
            q (np.ndarray): The generalized positions
            v (np.ndarray): The generalized velocities

        Returns:
            C (np.ndarray): the bias term
        """
        context = self._set_state(q, v)
        return self.rbdalgos.calc_bias_term(context).array.reshape(-1)

    def inverse_dynamics(
        self,
        q: np.ndarray,
        v: np.ndarray,
        vdot: np.ndarray,
        tau_applied: np.ndarray = None,
        body_forces: Dict[str, np.ndarray] = None,
    ) -> np.ndarray:
        """
        Args:
            q (np.ndarray): The generalized positions
            v (np.ndarray): The generalized velocities
            vdot (np.ndarray): The generalized accelerations
            tau_applied (np.ndarray, optional): applied generalized forces
            body_forces (Dict[str, np.ndarray], optional): spatial forces [torque; force]
                applied at the body origins, expressed in the world, by body name

        Returns:
            tau (np.ndarray): M vdot + C - tau_applied - sum J^T F_applied
        """
        context = self._set_state(q, v)
        forces = None
        if tau_applied is not None or body_forces:
            forces = MultibodyForces(self.tree, self.rbdalgos.math)
            if tau_applied is not None:
                forces.add_in_generalized_forces(0, np.asarray(tau_applied, dtype=float))
            for name, F_Bo_W in (body_forces or {}).items():
                forces.add_in_body_force(
                    self._body(name).node_index, np.asarray(F_Bo_W, dtype=float)
                )
        return self.rbdalgos.calc_inverse_dynamics(
            context, np.asarray(vdot, dtype=float), forces
        ).array.reshape(-1)

    def gravity_generalized_forces(self, q: np.ndarray) -> np.ndarray:
        """
        Returns:
            tau_g (np.ndarray): the generalized forces exerted by gravity
        """
        context = self._set_state(q)
        return self.rbdalgos.calc_gravity_generalized_forces(context).array.reshape(-1)

    def potential_energy(self, q: np.ndarray) -> float:
        context = self._set_state(q)
        return float(self.rbdalgos.calc_potential_energy(context).array[0, 0])

    def conservative_power(self, q: np.ndarray, v: np.ndarray) -> float:
        context = self._set_state(q, v)
        return float(self.rbdalgos.calc_conservative_power(context).array[0, 0])

    def map_qdot_to_velocity(self, q: np.ndarray, qdot: np.ndarray) -> np.ndarray:
        context = self._set_state(q)
        return self.rbdalgos.map_qdot_to_velocity(
            context, np.asarray(qdot, dtype=float)
        ).array.reshape(-1)

    def map_velocity_to_qdot(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        context = self._set_state(q)
        return self.rbdalgos.map_velocity_to_qdot(
            context, np.asarray(v, dtype=float)
        ).array.reshape(-1)

    def articulated_body_inertia(self, body: Union[str, Body], q: np.ndarray) -> np.ndarray:
        """
        Returns:
            np.ndarray: the 6x6 articulated body inertia of the body about its origin, expressed in the world
        """
        context = self._set_state(q)
        abc = self.rbdalgos.calc_articulated_body_inertia_cache(context)
        return abc.get_P_B_W(self._body(body).node_index).array
