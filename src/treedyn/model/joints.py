# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import abc
from typing import List, Optional

import numpy as np
import numpy.typing as npt

from treedyn.core.errors import InvariantError, UsageError
from treedyn.model.element import MultibodyTreeElement
from treedyn.model.frame import Frame, as_pose
from treedyn.model.mobilizers import (
    Mobilizer,
    PrismaticMobilizer,
    RevoluteMobilizer,
    WeldMobilizer,
)


class Joint(MultibodyTreeElement, abc.ABC):
    """User facing connection between a frame on the parent body and a frame on the child body

    A joint is expanded into mobilizers once, when the tree is finalized. After that all
    the kinematics is delegated to them.

    Args:
        name (str): the joint name, unique in the tree
        frame_on_parent (Frame): the frame F on the parent body
        frame_on_child (Frame): the frame M on the child body
        damping (float): viscous damping, applied as -damping * v. Defaults to 0.
        model_instance (int, optional): defaults to the model instance of the child body
    """

    def __init__(
        self,
        name: str,
        frame_on_parent: Frame,
        frame_on_child: Frame,
        damping: float = 0.0,
        model_instance: Optional[int] = None,
    ):
        super().__init__(
            model_instance=(
                frame_on_child.body.model_instance
                if model_instance is None
                else model_instance
            )
        )
        if damping < 0.0:
            raise InvariantError(f"Joint '{name}' has negative damping {damping}")
        self.name = name
        self.frame_on_parent = frame_on_parent
        self.frame_on_child = frame_on_child
        self.damping = float(damping)
        self._mobilizers: Optional[List[Mobilizer]] = None

    @property
    def parent_body(self):
        return self.frame_on_parent.body

    @property
    def child_body(self):
        return self.frame_on_child.body

    @property
    @abc.abstractmethod
    def num_positions(self) -> int:
        pass

    @property
    @abc.abstractmethod
    def num_velocities(self) -> int:
        pass

    @abc.abstractmethod
    def _make_mobilizers(self) -> List[Mobilizer]:
        pass

    def build_implementation(self) -> List[Mobilizer]:
        """
        Returns:
            List[Mobilizer]: the mobilizers implementing this joint, to be added to the tree
        """
        if self._mobilizers is not None:
            raise UsageError(f"Joint '{self.name}' was already built.")
        self._mobilizers = self._make_mobilizers()
        return self._mobilizers

    @property
    def mobilizers(self) -> List[Mobilizer]:
        if self._mobilizers is None:
            raise UsageError(
                f"Joint '{self.name}' has no implementation; you must call finalize() first."
            )
        return self._mobilizers

    @property
    def mobilizer(self) -> Mobilizer:
        return self.mobilizers[0]

    @property
    def position_start(self) -> int:
        return self.mobilizer.position_start_in_q

    @property
    def velocity_start(self) -> int:
        return self.mobilizer.velocity_start_in_v

    def add_in_damping(self, context, forces) -> None:
        """Adds the damping generalized forces -damping * v of this joint to forces"""
        if self.damping == 0.0 or self.num_velocities == 0:
            return
        v = self.mobilizer.get_velocities(context)
        forces.add_in_generalized_forces(self.velocity_start, -self.damping * v)

    def add_in_one_force(self, context, joint_dof: int, joint_tau, forces) -> None:
        """
        Args:
            joint_dof (int): the degree of freedom of the joint, in [0, num_velocities)
            joint_tau: the generalized force to add
            forces (MultibodyForces): where the force is accumulated
        """
        if not 0 <= joint_dof < self.num_velocities:
            raise InvariantError(
                f"Joint '{self.name}' has no degree of freedom {joint_dof}"
            )
        forces.add_in_generalized_forces(self.velocity_start + joint_dof, joint_tau)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class RevoluteJoint(Joint):
    """
    Args:
        axis (npt.ArrayLike): the rotation axis, expressed both in the parent and child frames
    """

    def __init__(
        self,
        name: str,
        frame_on_parent: Frame,
        frame_on_child: Frame,
        axis: npt.ArrayLike,
        damping: float = 0.0,
        model_instance: Optional[int] = None,
    ):
        super().__init__(name, frame_on_parent, frame_on_child, damping, model_instance)
        self.axis = np.asarray(axis, dtype=float).reshape(3)

    @property
    def num_positions(self) -> int:
        return 1

    @property
    def num_velocities(self) -> int:
        return 1

    def _make_mobilizers(self) -> List[Mobilizer]:
        return [RevoluteMobilizer(self.frame_on_parent, self.frame_on_child, self.axis)]

    def get_angle(self, context) -> npt.ArrayLike:
        return self.mobilizer.get_angle(context)

    def set_angle(self, context, angle) -> None:
        self.mobilizer.set_angle(context, angle)

    def get_angular_rate(self, context) -> npt.ArrayLike:
        return self.mobilizer.get_angular_rate(context)

    def set_angular_rate(self, context, rate) -> None:
        self.mobilizer.set_angular_rate(context, rate)


class PrismaticJoint(Joint):
    """
    Args:
        axis (npt.ArrayLike): the translation axis, expressed both in the parent and child frames
    """

    def __init__(
        self,
        name: str,
        frame_on_parent: Frame,
        frame_on_child: Frame,
        axis: npt.ArrayLike,
        damping: float = 0.0,
        model_instance: Optional[int] = None,
    ):
        super().__init__(name, frame_on_parent, frame_on_child, damping, model_instance)
        self.axis = np.asarray(axis, dtype=float).reshape(3)

    @property
    def num_positions(self) -> int:
        return 1

    @property
    def num_velocities(self) -> int:
        return 1

    def _make_mobilizers(self) -> List[Mobilizer]:
        return [PrismaticMobilizer(self.frame_on_parent, self.frame_on_child, self.axis)]

    def get_translation(self, context) -> npt.ArrayLike:
        return self.mobilizer.get_translation(context)

    def set_translation(self, context, translation) -> None:
        self.mobilizer.set_translation(context, translation)

    def get_translation_rate(self, context) -> npt.ArrayLike:
        return self.mobilizer.get_translation_rate(context)

    def set_translation_rate(self, context, rate) -> None:
        self.mobilizer.set_translation_rate(context, rate)


class WeldJoint(Joint):
    """Rigidly attaches the child frame C to the parent frame P at the pose X_PC"""

    def __init__(
        self,
        name: str,
        frame_on_parent: Frame,
        frame_on_child: Frame,
        X_PC: Optional[npt.ArrayLike] = None,
        model_instance: Optional[int] = None,
    ):
        super().__init__(name, frame_on_parent, frame_on_child, 0.0, model_instance)
        self.X_PC = np.eye(4) if X_PC is None else as_pose(X_PC)

    @property
    def num_positions(self) -> int:
        return 0

    @property
    def num_velocities(self) -> int:
        return 0

    def _make_mobilizers(self) -> List[Mobilizer]:
        return [WeldMobilizer(self.frame_on_parent, self.frame_on_child, self.X_PC)]


class JointActuator(MultibodyTreeElement):
    """Actuates a single degree of freedom joint. Its index is its position in the actuation vector u.

    Args:
        name (str): the actuator name, unique in the tree
        joint (Joint): the actuated joint
        effort_limit (float): the maximum absolute effort. Defaults to infinity.
    """

    def __init__(self, name: str, joint: Joint, effort_limit: float = np.inf):
        if joint.num_velocities != 1:
            raise UsageError(
                f"Actuator '{name}' cannot actuate joint '{joint.name}': only joints with "
                f"one degree of freedom can be actuated, it has {joint.num_velocities}."
            )
        super().__init__(model_instance=joint.model_instance)
        self.name = name
        self.joint = joint
        self.effort_limit = float(effort_limit)
        self._input_start: Optional[int] = None

    @property
    def num_inputs(self) -> int:
        return 1

    @property
    def input_start(self) -> int:
        if self._input_start is None:
            raise UsageError(
                "Pre-finalize calls to 'input_start()' are not allowed; "
                "you must call finalize() first."
            )
        return self._input_start

    def _do_set_topology(self, topology) -> None:
        self._input_start = topology.get_joint_actuator(self.index).actuator_index_start

    def get_actuation_vector(self, u: npt.ArrayLike) -> np.ndarray:
        """
        Args:
            u (npt.ArrayLike): the actuation vector of the whole tree

        Returns:
            np.ndarray: the entries of u for this actuator
        """
        u = np.asarray(u, dtype=float)
        return u[self.input_start : self.input_start + self.num_inputs]

    def set_actuation_vector(self, u_actuator: npt.ArrayLike, u: np.ndarray) -> None:
        """Writes u_actuator in place into u, the actuation vector of the whole tree"""
        u_actuator = np.atleast_1d(np.asarray(u_actuator, dtype=float))
        if u_actuator.shape != (self.num_inputs,):
            raise InvariantError(
                f"Actuator '{self.name}' has {self.num_inputs} inputs, got {u_actuator.shape}"
            )
        u[self.input_start : self.input_start + self.num_inputs] = u_actuator

    def add_in_one_force(self, context, joint_dof: int, joint_tau, forces) -> None:
        self.joint.add_in_one_force(context, joint_dof, joint_tau, forces)

    def __repr__(self) -> str:
        return f"JointActuator(name={self.name!r}, joint={self.joint.name!r})"
