# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import abc
from typing import Optional

import numpy as np
import numpy.typing as npt
from scipy.spatial.transform import Rotation

from treedyn.core.errors import InvariantError, UsageError
from treedyn.model.body_node import BodyNode
from treedyn.model.element import MultibodyTreeElement
from treedyn.model.frame import Frame, as_pose


def _unit_axis(axis: npt.ArrayLike) -> np.ndarray:
    axis = np.asarray(axis, dtype=float).reshape(3)
    norm = np.linalg.norm(axis)
    if norm < 1e-12:
        raise InvariantError("The mobilizer axis must be a non-zero vector")
    return axis / norm


class Mobilizer(MultibodyTreeElement, abc.ABC):
    """Runtime joint primitive connecting an inboard frame F on the parent body P to an outboard frame M on the child body B

    A mobilizer owns a contiguous slice of the generalized positions q and of the
    generalized velocities v. It maps them to the pose X_FM, the spatial velocity V_FM
    and the hinge matrix H_FM, all expressed in F.
    """

    def __init__(self, inboard_frame: Frame, outboard_frame: Frame):
        if inboard_frame.body is outboard_frame.body:
            raise UsageError(
                f"The inboard frame '{inboard_frame.name}' and the outboard frame "
                f"'{outboard_frame.name}' are attached to the same body "
                f"'{inboard_frame.body.name}'."
            )
        super().__init__(model_instance=outboard_frame.body.model_instance)
        self._inboard_frame = inboard_frame
        self._outboard_frame = outboard_frame
        self._position_start: Optional[int] = None
        self._velocity_start: Optional[int] = None

    @property
    def inboard_frame(self) -> Frame:
        return self._inboard_frame

    @property
    def outboard_frame(self) -> Frame:
        return self._outboard_frame

    @property
    def inboard_body(self):
        return self._inboard_frame.body

    @property
    def outboard_body(self):
        return self._outboard_frame.body

    @property
    @abc.abstractmethod
    def num_positions(self) -> int:
        pass

    @property
    @abc.abstractmethod
    def num_velocities(self) -> int:
        pass

    @property
    def position_start_in_q(self) -> int:
        if self._position_start is None:
            raise UsageError(
                "Pre-finalize calls to 'position_start_in_q()' are not allowed; "
                "you must call finalize() first."
            )
        return self._position_start

    @property
    def velocity_start_in_v(self) -> int:
        if self._velocity_start is None:
            raise UsageError(
                "Pre-finalize calls to 'velocity_start_in_v()' are not allowed; "
                "you must call finalize() first."
            )
        return self._velocity_start

    def _do_set_topology(self, topology) -> None:
        mobilizer_topology = topology.get_mobilizer(self.index)
        self._position_start = mobilizer_topology.positions_start
        self._velocity_start = mobilizer_topology.velocities_start_in_v

    def get_positions_from_array(self, q: npt.ArrayLike) -> npt.ArrayLike:
        start = self.position_start_in_q
        return q[start : start + self.num_positions, :]

    def get_velocities_from_array(self, v: npt.ArrayLike) -> npt.ArrayLike:
        start = self.velocity_start_in_v
        return v[start : start + self.num_velocities, :]

    def get_positions(self, context) -> npt.ArrayLike:
        return self.get_positions_from_array(context.get_positions())

    def get_velocities(self, context) -> npt.ArrayLike:
        return self.get_velocities_from_array(context.get_velocities())

    def set_positions(self, context, q_m: npt.ArrayLike) -> None:
        context.set_position_segment(self.position_start_in_q, q_m, self.num_positions)

    def set_velocities(self, context, v_m: npt.ArrayLike) -> None:
        context.set_velocity_segment(self.velocity_start_in_v, v_m, self.num_velocities)

    @abc.abstractmethod
    def zero_configuration(self) -> np.ndarray:
        """
        Returns:
            np.ndarray: the positions for which X_FM is the identity
        """
        pass

    def set_zero_state(self, context) -> None:
        self.set_positions(context, self.zero_configuration())
        self.set_velocities(context, np.zeros(self.num_velocities))

    @abc.abstractmethod
    def calc_across_mobilizer_transform(self, context) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: X_FM
        """
        pass

    @abc.abstractmethod
    def calc_across_mobilizer_spatial_velocity(
        self, context, v_m: npt.ArrayLike
    ) -> npt.ArrayLike:
        """
        Args:
            v_m (npt.ArrayLike): the velocities of this mobilizer

        Returns:
            npt.ArrayLike: V_FM, expressed in F
        """
        pass

    @abc.abstractmethod
    def calc_across_mobilizer_spatial_acceleration(
        self, context, vdot_m: npt.ArrayLike
    ) -> npt.ArrayLike:
        """
        Args:
            vdot_m (npt.ArrayLike): the generalized accelerations of this mobilizer

        Returns:
            npt.ArrayLike: A_FM, expressed in F
        """
        pass

    @abc.abstractmethod
    def calc_hinge_matrix(self, context) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: H_FM, the 6xk matrix such that V_FM = H_FM v_m
        """
        pass

    def project_spatial_force(self, context, F_Mo_F: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            F_Mo_F (npt.ArrayLike): spatial force on the outboard body at Mo, expressed in F

        Returns:
            npt.ArrayLike: the generalized forces of this mobilizer
        """
        return self.calc_hinge_matrix(context).T @ F_Mo_F

    @abc.abstractmethod
    def map_qdot_to_velocity(self, context, qdot_m: npt.ArrayLike) -> npt.ArrayLike:
        pass

    @abc.abstractmethod
    def map_velocity_to_qdot(self, context, v_m: npt.ArrayLike) -> npt.ArrayLike:
        pass

    def create_body_node(self, parent_node: BodyNode, body) -> BodyNode:
        return BodyNode(parent_node, body, self)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(inboard={self.inboard_frame.name!r}, "
            f"outboard={self.outboard_frame.name!r})"
        )


class RevoluteMobilizer(Mobilizer):
    """One rotational degree of freedom about an axis fixed in both F and M

    Args:
        inboard_frame (Frame): F
        outboard_frame (Frame): M
        axis_F (npt.ArrayLike): the rotation axis, expressed in F. It is normalized.
    """

    def __init__(self, inboard_frame: Frame, outboard_frame: Frame, axis_F: npt.ArrayLike):
        super().__init__(inboard_frame, outboard_frame)
        self.axis_F = _unit_axis(axis_F)

    @property
    def num_positions(self) -> int:
        return 1

    @property
    def num_velocities(self) -> int:
        return 1

    def zero_configuration(self) -> np.ndarray:
        return np.zeros(1)

    def get_angle(self, context) -> npt.ArrayLike:
        return self.get_positions(context)

    def set_angle(self, context, angle) -> None:
        self.set_positions(context, [angle])

    def get_angular_rate(self, context) -> npt.ArrayLike:
        return self.get_velocities(context)

    def set_angular_rate(self, context, rate) -> None:
        self.set_velocities(context, [rate])

    def calc_across_mobilizer_transform(self, context) -> npt.ArrayLike:
        math = context.math
        R_FM = math.R_from_axis_angle(math.asarray(self.axis_F), self.get_angle(context))
        return math.homogeneous(R_FM, math.factory.zeros(3, 1))

    def calc_across_mobilizer_spatial_velocity(self, context, v_m):
        return self.calc_hinge_matrix(context) @ v_m

    def calc_across_mobilizer_spatial_acceleration(self, context, vdot_m):
        return self.calc_hinge_matrix(context) @ vdot_m

    def calc_hinge_matrix(self, context) -> npt.ArrayLike:
        math = context.math
        return math.vertcat(math.asarray(self.axis_F), math.factory.zeros(3, 1))

    def map_qdot_to_velocity(self, context, qdot_m):
        return qdot_m

    def map_velocity_to_qdot(self, context, v_m):
        return v_m


class PrismaticMobilizer(Mobilizer):
    """One translational degree of freedom along an axis fixed in both F and M

    Args:
        inboard_frame (Frame): F
        outboard_frame (Frame): M
        axis_F (npt.ArrayLike): the translation axis, expressed in F. It is normalized.
    """

    def __init__(self, inboard_frame: Frame, outboard_frame: Frame, axis_F: npt.ArrayLike):
        super().__init__(inboard_frame, outboard_frame)
        self.axis_F = _unit_axis(axis_F)

    @property
    def num_positions(self) -> int:
        return 1

    @property
    def num_velocities(self) -> int:
        return 1

    def zero_configuration(self) -> np.ndarray:
        return np.zeros(1)

    def get_translation(self, context) -> npt.ArrayLike:
        return self.get_positions(context)

    def set_translation(self, context, translation) -> None:
        self.set_positions(context, [translation])

    def get_translation_rate(self, context) -> npt.ArrayLike:
        return self.get_velocities(context)

    def set_translation_rate(self, context, rate) -> None:
        self.set_velocities(context, [rate])

    def calc_across_mobilizer_transform(self, context) -> npt.ArrayLike:
        math = context.math
        p_FM = math.asarray(self.axis_F) * self.get_translation(context)
        return math.homogeneous(math.factory.eye(3), p_FM)

    def calc_across_mobilizer_spatial_velocity(self, context, v_m):
        return self.calc_hinge_matrix(context) @ v_m

    def calc_across_mobilizer_spatial_acceleration(self, context, vdot_m):
        return self.calc_hinge_matrix(context) @ vdot_m

    def calc_hinge_matrix(self, context) -> npt.ArrayLike:
        math = context.math
        return math.vertcat(math.factory.zeros(3, 1), math.asarray(self.axis_F))

    def map_qdot_to_velocity(self, context, qdot_m):
        return qdot_m

    def map_velocity_to_qdot(self, context, v_m):
        return v_m


class WeldMobilizer(Mobilizer):
    """Zero degrees of freedom. M is rigidly fixed in F at X_FM."""

    def __init__(
        self,
        inboard_frame: Frame,
        outboard_frame: Frame,
        X_FM: Optional[npt.ArrayLike] = None,
    ):
        super().__init__(inboard_frame, outboard_frame)
        self.X_FM = np.eye(4) if X_FM is None else as_pose(X_FM)

    @property
    def num_positions(self) -> int:
        return 0

    @property
    def num_velocities(self) -> int:
        return 0

    def zero_configuration(self) -> np.ndarray:
        return np.zeros(0)

    def calc_across_mobilizer_transform(self, context) -> npt.ArrayLike:
        return context.math.asarray(self.X_FM)

    def calc_across_mobilizer_spatial_velocity(self, context, v_m):
        return context.math.factory.zeros(6, 1)

    def calc_across_mobilizer_spatial_acceleration(self, context, vdot_m):
        return context.math.factory.zeros(6, 1)

    def calc_hinge_matrix(self, context) -> npt.ArrayLike:
        return context.math.factory.zeros(6, 0)

    def map_qdot_to_velocity(self, context, qdot_m):
        return qdot_m

    def map_velocity_to_qdot(self, context, v_m):
        return v_m


class QuaternionFloatingMobilizer(Mobilizer):
    """Six degrees of freedom. q = [qw, qx, qy, qz, px, py, pz] and v = [w_FM; v_FM], both expressed in F

    The hinge matrix is the identity, so the angular velocity is a generalized velocity
    and quaternion rates only show up in the q/qdot mappings. The quaternion does not
    need to be unit: the rotation is computed from its normalized value.
    """

    @property
    def num_positions(self) -> int:
        return 7

    @property
    def num_velocities(self) -> int:
        return 6

    def zero_configuration(self) -> np.ndarray:
        return np.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0])

    def get_quaternion(self, context) -> npt.ArrayLike:
        return self.get_positions(context)[0:4, :]

    def get_position(self, context) -> npt.ArrayLike:
        return self.get_positions(context)[4:7, :]

    def get_angular_velocity(self, context) -> npt.ArrayLike:
        return self.get_velocities(context)[0:3, :]

    def get_translational_velocity(self, context) -> npt.ArrayLike:
        return self.get_velocities(context)[3:6, :]

    def set_quaternion(self, context, quaternion: npt.ArrayLike) -> None:
        """
        Args:
            quaternion (npt.ArrayLike): [w, x, y, z]
        """
        context.set_position_segment(self.position_start_in_q, quaternion, 4)

    def set_position(self, context, p_FM: npt.ArrayLike) -> None:
        context.set_position_segment(self.position_start_in_q + 4, p_FM, 3)

    def set_from_rotation_matrix(self, context, R_FM: npt.ArrayLike) -> None:
        x, y, z, w = Rotation.from_matrix(np.asarray(R_FM, dtype=float)).as_quat()
        self.set_quaternion(context, [w, x, y, z])

    def set_pose(self, context, X_FM: npt.ArrayLike) -> None:
        X_FM = as_pose(X_FM)
        self.set_from_rotation_matrix(context, X_FM[:3, :3])
        self.set_position(context, X_FM[:3, 3])

    def set_angular_velocity(self, context, w_FM: npt.ArrayLike) -> None:
        context.set_velocity_segment(self.velocity_start_in_v, w_FM, 3)

    def set_translational_velocity(self, context, v_FM: npt.ArrayLike) -> None:
        context.set_velocity_segment(self.velocity_start_in_v + 3, v_FM, 3)

    def set_spatial_velocity(self, context, V_FM: npt.ArrayLike) -> None:
        self.set_velocities(context, V_FM)

    def calc_across_mobilizer_transform(self, context) -> npt.ArrayLike:
        math = context.math
        R_FM = math.R_from_quaternion(self.get_quaternion(context))
        return math.homogeneous(R_FM, self.get_position(context))

    def calc_across_mobilizer_spatial_velocity(self, context, v_m):
        return v_m

    def calc_across_mobilizer_spatial_acceleration(self, context, vdot_m):
        return vdot_m

    def calc_hinge_matrix(self, context) -> npt.ArrayLike:
        return context.math.factory.eye(6)

    def map_qdot_to_velocity(self, context, qdot_m):
        math = context.math
        quaternion = self.get_quaternion(context)
        L = math.quaternion_rate_matrix(quaternion)
        w_FM = 2.0 * (L.T @ qdot_m[0:4, :]) / (quaternion.T @ quaternion)
        return math.vertcat(w_FM, qdot_m[4:7, :])

    def map_velocity_to_qdot(self, context, v_m):
        math = context.math
        L = math.quaternion_rate_matrix(self.get_quaternion(context))
        return math.vertcat(0.5 * (L @ v_m[0:3, :]), v_m[3:6, :])
