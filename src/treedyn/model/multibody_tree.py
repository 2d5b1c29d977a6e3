# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import itertools
import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import numpy.typing as npt
from prettytable import PrettyTable

from treedyn.core.constants import (
    DEFAULT_MODEL_INSTANCE,
    DEFAULT_MODEL_INSTANCE_NAME,
    WORLD_BODY_NAME,
    WORLD_INDEX,
    WORLD_MODEL_INSTANCE,
    WORLD_MODEL_INSTANCE_NAME,
    TreeState,
)
from treedyn.core.errors import IncompatibleContextError, InvariantError, UsageError
from treedyn.core.spatial_math import SpatialMath
from treedyn.model.body import Body, RigidBody, SpatialInertia
from treedyn.model.body_node import BodyNode, BodyNodeWelded
from treedyn.model.context import MultibodyTreeContext
from treedyn.model.force_elements import ForceElement, UniformGravityFieldElement
from treedyn.model.frame import Frame
from treedyn.model.joints import Joint, JointActuator
from treedyn.model.mobilizers import Mobilizer, QuaternionFloatingMobilizer
from treedyn.model.model_instance import ModelInstance
from treedyn.model.topology import MultibodyTreeTopology

logger = logging.getLogger(__name__)


class MultibodyTree:
    """A tree of rigid bodies rooted at the world body

    The tree is built by adding bodies, frames, mobilizers, joints, force elements and
    actuators, then frozen by finalize(). Build methods are only allowed before
    finalize(), queries and computations only after it.
    """

    def __init__(self) -> None:
        self._state = TreeState.BUILDING
        self._topology = MultibodyTreeTopology()
        self._bodies: List[Body] = []
        self._frames: List[Frame] = []
        self._mobilizers: List[Mobilizer] = []
        self._joints: List[Joint] = []
        self._force_elements: List[ForceElement] = []
        self._actuators: List[JointActuator] = []
        self._body_nodes: List[BodyNode] = []
        self._model_instance_names: List[str] = []
        self._model_instances: List[ModelInstance] = []
        self._gravity_field: Optional[UniformGravityFieldElement] = None

        self.add_model_instance(WORLD_MODEL_INSTANCE_NAME)
        self.add_model_instance(DEFAULT_MODEL_INSTANCE_NAME)
        self._add_body(RigidBody(WORLD_BODY_NAME, model_instance=WORLD_MODEL_INSTANCE))

    # lifecycle

    def is_finalized(self) -> bool:
        return self._state is TreeState.FINALIZED

    def _throw_if_failed(self, method: str) -> None:
        if self._state is TreeState.FAILED:
            raise UsageError(
                f"Calls to '{method}()' are not allowed; "
                "finalize() failed and left this tree unusable."
            )

    def throw_if_finalized(self, method: str) -> None:
        self._throw_if_failed(method)
        if self.is_finalized():
            raise UsageError(
                f"Post-finalize calls to '{method}()' are not allowed; "
                "calls to this method must happen before finalize()."
            )

    def throw_if_not_finalized(self, method: str) -> None:
        self._throw_if_failed(method)
        if not self.is_finalized():
            raise UsageError(
                f"Pre-finalize calls to '{method}()' are not allowed; "
                "you must call finalize() first."
            )

    # build

    def add_model_instance(self, name: str) -> int:
        self.throw_if_finalized("add_model_instance")
        if name in self._model_instance_names:
            raise UsageError(f"This model already contains a model instance named '{name}'.")
        self._model_instance_names.append(name)
        return len(self._model_instance_names) - 1

    def _check_model_instance(self, model_instance: int) -> None:
        if not 0 <= model_instance < len(self._model_instance_names):
            raise UsageError(f"Model instance {model_instance} does not exist in this model.")

    def _check_name_is_unique(self, elements, name: str, model_instance: int, what: str):
        for element in elements:
            if element.name == name and element.model_instance == model_instance:
                raise UsageError(
                    f"This model already contains a {what} named '{name}' in model "
                    f"instance '{self._model_instance_names[model_instance]}'."
                )

    def _add_body(self, body: Body) -> Body:
        self._check_model_instance(body.model_instance)
        self._check_name_is_unique(self._bodies, body.name, body.model_instance, "body")
        body_index, frame_index = self._topology.add_body(body.name)
        body.set_parent_tree(self, body_index)
        body.body_frame.set_parent_tree(self, frame_index)
        self._bodies.append(body)
        self._frames.append(body.body_frame)
        return body

    def add_body(self, body: Body) -> Body:
        self.throw_if_finalized("add_body")
        return self._add_body(body)

    def add_rigid_body(
        self,
        name: str,
        M_BBo_B: Optional[SpatialInertia] = None,
        model_instance: int = DEFAULT_MODEL_INSTANCE,
    ) -> RigidBody:
        """
        Args:
            name (str): the body name, unique in its model instance
            M_BBo_B (SpatialInertia, optional): mass properties about the body origin
            model_instance (int): the owning model instance

        Returns:
            RigidBody: the added body
        """
        self.throw_if_finalized("add_rigid_body")
        return self._add_body(RigidBody(name, M_BBo_B, model_instance))

    def add_frame(self, frame: Frame) -> Frame:
        self.throw_if_finalized("add_frame")
        frame.body.has_this_parent_tree_or_throw(self)
        self._check_model_instance(frame.model_instance)
        self._check_name_is_unique(self._frames, frame.name, frame.model_instance, "frame")
        frame.set_parent_tree(self, self._topology.add_frame(frame.body.index))
        self._frames.append(frame)
        return frame

    def _add_mobilizer(self, mobilizer: Mobilizer) -> Mobilizer:
        mobilizer.inboard_frame.has_this_parent_tree_or_throw(self)
        mobilizer.outboard_frame.has_this_parent_tree_or_throw(self)
        index = self._topology.add_mobilizer(
            mobilizer.inboard_frame.index,
            mobilizer.outboard_frame.index,
            mobilizer.num_positions,
            mobilizer.num_velocities,
        )
        mobilizer.set_parent_tree(self, index)
        self._mobilizers.append(mobilizer)
        return mobilizer

    def add_mobilizer(self, mobilizer: Mobilizer) -> Mobilizer:
        self.throw_if_finalized("add_mobilizer")
        return self._add_mobilizer(mobilizer)

    def add_joint(self, joint: Joint) -> Joint:
        self.throw_if_finalized("add_joint")
        joint.frame_on_parent.has_this_parent_tree_or_throw(self)
        joint.frame_on_child.has_this_parent_tree_or_throw(self)
        self._check_model_instance(joint.model_instance)
        self._check_name_is_unique(self._joints, joint.name, joint.model_instance, "joint")
        if joint.parent_body is joint.child_body:
            raise UsageError(
                f"Joint '{joint.name}' connects body '{joint.parent_body.name}' to itself."
            )
        joint.set_parent_tree(self, len(self._joints))
        self._joints.append(joint)
        return joint

    def add_force_element(self, force_element: ForceElement) -> ForceElement:
        self.throw_if_finalized("add_force_element")
        if isinstance(force_element, UniformGravityFieldElement):
            if self._gravity_field is not None:
                raise UsageError(
                    "This model already contains a gravity field element. "
                    "Only one gravity field element is allowed per model."
                )
            self._gravity_field = force_element
        force_element.set_parent_tree(self, self._topology.add_force_element())
        self._force_elements.append(force_element)
        return force_element

    def add_joint_actuator(
        self, name: str, joint: Joint, effort_limit: float = np.inf
    ) -> JointActuator:
        self.throw_if_finalized("add_joint_actuator")
        joint.has_this_parent_tree_or_throw(self)
        self._check_name_is_unique(self._actuators, name, joint.model_instance, "actuator")
        if any(a.joint is joint for a in self._actuators):
            raise UsageError(f"Joint '{joint.name}' already has an actuator.")
        actuator = JointActuator(name, joint, effort_limit)
        actuator.set_parent_tree(self, self._topology.add_joint_actuator(actuator.num_inputs))
        self._actuators.append(actuator)
        return actuator

    def finalize(self) -> None:
        """Expands joints, adds free mobilizers, compiles the topology and creates the body nodes"""
        self.throw_if_finalized("finalize")
        try:
            self._compile()
        except (UsageError, InvariantError):
            self._state = TreeState.FAILED
            raise
        logger.debug(
            "Finalized a tree with %d bodies, %d levels, %d positions and %d velocities",
            self.num_bodies(),
            self.tree_height(),
            self.num_positions(),
            self.num_velocities(),
        )

    def _compile(self) -> None:
        for joint in self._joints:
            for mobilizer in joint.build_implementation():
                mobilizer.set_model_instance(joint.model_instance)
                self._add_mobilizer(mobilizer)

        for body in self._bodies[1:]:
            if self._topology.get_body(body.index).inboard_mobilizer is None:
                mobilizer = QuaternionFloatingMobilizer(self.world_frame(), body.body_frame)
                mobilizer.set_model_instance(body.model_instance)
                self._add_mobilizer(mobilizer)
                logger.debug("Added a free mobilizer to body '%s'", body.name)

        self._topology.finalize()

        for element in itertools.chain(
            self._bodies,
            self._frames,
            self._mobilizers,
            self._force_elements,
            self._actuators,
        ):
            element.set_topology(self._topology)

        self._create_body_nodes()
        self._create_model_instances()
        self._state = TreeState.FINALIZED

    def _create_body_nodes(self) -> None:
        self._body_nodes = []
        for node_index in range(self._topology.get_num_body_nodes()):
            node_topology = self._topology.get_body_node(node_index)
            body = self._bodies[node_topology.body]
            if node_topology.parent_body_node is None:
                node = BodyNodeWelded(body)
            else:
                parent_node = self._body_nodes[node_topology.parent_body_node]
                mobilizer = self._mobilizers[node_topology.mobilizer]
                node = mobilizer.create_body_node(parent_node, body)
                parent_node.add_child_node(node)
            node.set_topology(self._topology, node_index)
            self._body_nodes.append(node)

    def _create_model_instances(self) -> None:
        self._model_instances = [
            ModelInstance(index, name)
            for index, name in enumerate(self._model_instance_names)
        ]
        for node in self._body_nodes[1:]:
            mobilizer = node.mobilizer
            if mobilizer.num_positions > 0 or mobilizer.num_velocities > 0:
                self._model_instances[mobilizer.model_instance].add_mobilizer(mobilizer)
        for actuator in self._actuators:
            self._model_instances[actuator.model_instance].add_joint_actuator(actuator)

    # sizes

    def num_bodies(self) -> int:
        return len(self._bodies)

    def num_frames(self) -> int:
        return len(self._frames)

    def num_mobilizers(self) -> int:
        return len(self._mobilizers)

    def num_joints(self) -> int:
        return len(self._joints)

    def num_force_elements(self) -> int:
        return len(self._force_elements)

    def num_actuators(self) -> int:
        return len(self._actuators)

    def num_model_instances(self) -> int:
        return len(self._model_instance_names)

    def num_positions(self, model_instance: Optional[int] = None) -> int:
        self.throw_if_not_finalized("num_positions")
        if model_instance is None:
            return self._topology.num_positions()
        return self.get_model_instance(model_instance).num_positions()

    def num_velocities(self, model_instance: Optional[int] = None) -> int:
        self.throw_if_not_finalized("num_velocities")
        if model_instance is None:
            return self._topology.num_velocities()
        return self.get_model_instance(model_instance).num_velocities()

    def num_states(self) -> int:
        return self.num_positions() + self.num_velocities()

    def num_actuated_dofs(self, model_instance: Optional[int] = None) -> int:
        self.throw_if_not_finalized("num_actuated_dofs")
        if model_instance is None:
            return self._topology.num_actuated_dofs()
        return self.get_model_instance(model_instance).num_actuated_dofs()

    def tree_height(self) -> int:
        self.throw_if_not_finalized("tree_height")
        return self._topology.tree_height()

    # elements

    @property
    def topology(self) -> MultibodyTreeTopology:
        return self._topology

    @property
    def bodies(self) -> Tuple[Body, ...]:
        return tuple(self._bodies)

    @property
    def frames(self) -> Tuple[Frame, ...]:
        return tuple(self._frames)

    @property
    def mobilizers(self) -> Tuple[Mobilizer, ...]:
        return tuple(self._mobilizers)

    @property
    def joints(self) -> Tuple[Joint, ...]:
        return tuple(self._joints)

    @property
    def force_elements(self) -> Tuple[ForceElement, ...]:
        return tuple(self._force_elements)

    @property
    def actuators(self) -> Tuple[JointActuator, ...]:
        return tuple(self._actuators)

    @property
    def gravity_field(self) -> Optional[UniformGravityFieldElement]:
        return self._gravity_field

    @property
    def body_nodes(self) -> Tuple[BodyNode, ...]:
        self.throw_if_not_finalized("body_nodes")
        return tuple(self._body_nodes)

    @property
    def body_node_levels(self) -> List[List[int]]:
        self.throw_if_not_finalized("body_node_levels")
        return self._topology.body_node_levels

    def get_body_node(self, node_index: int) -> BodyNode:
        self.throw_if_not_finalized("get_body_node")
        return self._body_nodes[node_index]

    def world_body(self) -> Body:
        return self._bodies[WORLD_INDEX]

    def world_frame(self) -> Frame:
        return self._bodies[WORLD_INDEX].body_frame

    def get_body(self, index: int) -> Body:
        return self._bodies[index]

    def get_frame(self, index: int) -> Frame:
        return self._frames[index]

    def get_mobilizer(self, index: int) -> Mobilizer:
        return self._mobilizers[index]

    def get_joint(self, index: int) -> Joint:
        return self._joints[index]

    def get_joint_actuator(self, index: int) -> JointActuator:
        return self._actuators[index]

    def _get_by_name(self, elements, name: str, model_instance: Optional[int], what: str):
        matches = [
            e
            for e in elements
            if e.name == name and (model_instance is None or e.model_instance == model_instance)
        ]
        if not matches:
            raise UsageError(f"There is no {what} named '{name}' in the model.")
        if len(matches) > 1:
            raise UsageError(
                f"Found {len(matches)} {what} elements named '{name}'; "
                "specify the model instance."
            )
        return matches[0]

    def get_body_by_name(self, name: str, model_instance: Optional[int] = None) -> Body:
        return self._get_by_name(self._bodies, name, model_instance, "body")

    def get_frame_by_name(self, name: str, model_instance: Optional[int] = None) -> Frame:
        return self._get_by_name(self._frames, name, model_instance, "frame")

    def get_joint_by_name(self, name: str, model_instance: Optional[int] = None) -> Joint:
        return self._get_by_name(self._joints, name, model_instance, "joint")

    def get_joint_actuator_by_name(
        self, name: str, model_instance: Optional[int] = None
    ) -> JointActuator:
        return self._get_by_name(self._actuators, name, model_instance, "actuator")

    def has_body_named(self, name: str) -> bool:
        return any(b.name == name for b in self._bodies)

    def has_joint_named(self, name: str) -> bool:
        return any(j.name == name for j in self._joints)

    def get_model_instance_by_name(self, name: str) -> int:
        if name not in self._model_instance_names:
            raise UsageError(f"There is no model instance named '{name}' in the model.")
        return self._model_instance_names.index(name)

    def get_model_instance_name(self, model_instance: int) -> str:
        self._check_model_instance(model_instance)
        return self._model_instance_names[model_instance]

    def get_model_instance(self, model_instance: int) -> ModelInstance:
        self.throw_if_not_finalized("get_model_instance")
        self._check_model_instance(model_instance)
        return self._model_instances[model_instance]

    def get_body_indices(self, model_instance: int) -> List[int]:
        return [b.index for b in self._bodies if b.model_instance == model_instance]

    def get_joint_indices(self, model_instance: int) -> List[int]:
        return [j.index for j in self._joints if j.model_instance == model_instance]

    # model instance slicing

    def get_positions_from_array(self, model_instance: int, q: npt.ArrayLike) -> np.ndarray:
        self._check_vector_size("q", q, self.num_positions())
        return self.get_model_instance(model_instance).get_positions_from_array(q)

    def set_positions_in_array(
        self, model_instance: int, q_instance: npt.ArrayLike, q: np.ndarray
    ) -> None:
        self._check_vector_size("q", q, self.num_positions())
        self.get_model_instance(model_instance).set_positions_in_array(q_instance, q)

    def get_velocities_from_array(self, model_instance: int, v: npt.ArrayLike) -> np.ndarray:
        self._check_vector_size("v", v, self.num_velocities())
        return self.get_model_instance(model_instance).get_velocities_from_array(v)

    def set_velocities_in_array(
        self, model_instance: int, v_instance: npt.ArrayLike, v: np.ndarray
    ) -> None:
        self._check_vector_size("v", v, self.num_velocities())
        self.get_model_instance(model_instance).set_velocities_in_array(v_instance, v)

    def get_actuation_from_array(self, model_instance: int, u: npt.ArrayLike) -> np.ndarray:
        self._check_vector_size("u", u, self.num_actuated_dofs())
        return self.get_model_instance(model_instance).get_actuation_from_array(u)

    def set_actuation_vector(
        self, model_instance: int, u_instance: npt.ArrayLike, u: np.ndarray
    ) -> None:
        self._check_vector_size("u", u, self.num_actuated_dofs())
        self.get_model_instance(model_instance).set_actuation_vector(u_instance, u)

    @staticmethod
    def _check_vector_size(name: str, x: npt.ArrayLike, size: int) -> None:
        n = np.asarray(x).size
        if n != size:
            raise InvariantError(f"{name} has {n} entries, expected {size}")

    # state

    def create_default_context(self, math: Optional[SpatialMath] = None) -> MultibodyTreeContext:
        """
        Args:
            math (SpatialMath, optional): the backend of the context. Defaults to NumPy.

        Returns:
            MultibodyTreeContext: a context in the zero configuration with zero velocities
        """
        self.throw_if_not_finalized("create_default_context")
        if math is None:
            from treedyn.numpy.numpy_like import SpatialMath as NumpySpatialMath

            math = NumpySpatialMath()
        context = MultibodyTreeContext(self, math)
        self.set_default_state(context)
        return context

    def get_default_state_vector(self) -> np.ndarray:
        self.throw_if_not_finalized("get_default_state_vector")
        x = np.zeros(self.num_states())
        for mobilizer in self._mobilizers:
            start = mobilizer.position_start_in_q
            x[start : start + mobilizer.num_positions] = mobilizer.zero_configuration()
        return x

    def set_default_state(self, context: MultibodyTreeContext) -> None:
        self.check_context(context)
        context.set_state_vector(self.get_default_state_vector())

    def check_context(self, context) -> None:
        if not isinstance(context, MultibodyTreeContext) or context.tree is not self:
            raise IncompatibleContextError(
                "The context provided is not compatible with a multibody model."
            )

    def get_multibody_state_vector(self, context) -> npt.ArrayLike:
        self.throw_if_not_finalized("get_multibody_state_vector")
        self.check_context(context)
        return context.get_state_vector()

    def set_multibody_state_vector(self, context, x: npt.ArrayLike) -> None:
        self.throw_if_not_finalized("set_multibody_state_vector")
        self.check_context(context)
        context.set_state_vector(x)

    def get_positions(self, context) -> npt.ArrayLike:
        self.throw_if_not_finalized("get_positions")
        self.check_context(context)
        return context.get_positions()

    def set_positions(self, context, q: npt.ArrayLike) -> None:
        self.throw_if_not_finalized("set_positions")
        self.check_context(context)
        context.set_positions(q)

    def get_velocities(self, context) -> npt.ArrayLike:
        self.throw_if_not_finalized("get_velocities")
        self.check_context(context)
        return context.get_velocities()

    def set_velocities(self, context, v: npt.ArrayLike) -> None:
        self.throw_if_not_finalized("set_velocities")
        self.check_context(context)
        context.set_velocities(v)

    # free bodies

    def get_free_body_mobilizer_or_throw(self, body: Body) -> QuaternionFloatingMobilizer:
        self.throw_if_not_finalized("get_free_body_mobilizer_or_throw")
        body.has_this_parent_tree_or_throw(self)
        mobilizer_index = self._topology.get_body(body.index).inboard_mobilizer
        mobilizer = None if mobilizer_index is None else self._mobilizers[mobilizer_index]
        if not isinstance(mobilizer, QuaternionFloatingMobilizer):
            raise UsageError(f"Body '{body.name}' is not a free floating body.")
        return mobilizer

    def is_free_body(self, body: Body) -> bool:
        self.throw_if_not_finalized("is_free_body")
        mobilizer_index = self._topology.get_body(body.index).inboard_mobilizer
        return mobilizer_index is not None and isinstance(
            self._mobilizers[mobilizer_index], QuaternionFloatingMobilizer
        )

    def set_free_body_pose_or_throw(self, context, body: Body, X_WB: npt.ArrayLike) -> None:
        """Sets the pose of a free body. Its inboard frame is the world frame, so X_FM = X_WB"""
        self.check_context(context)
        self.get_free_body_mobilizer_or_throw(body).set_pose(context, X_WB)

    def set_free_body_spatial_velocity_or_throw(
        self, context, body: Body, V_WB: npt.ArrayLike
    ) -> None:
        """
        Args:
            V_WB (npt.ArrayLike): [w_WB; v_WBo], expressed in the world
        """
        self.check_context(context)
        self.get_free_body_mobilizer_or_throw(body).set_spatial_velocity(context, V_WB)

    # selector matrices

    def _throw_if_repeated(self, names: List[str], what: str) -> None:
        seen = set()
        for name in names:
            if name in seen:
                raise UsageError(f"{what} named '{name}' is repeated multiple times.")
            seen.add(name)

    def _select(self, elements: list, indices: List[int], what: str) -> list:
        """Elements picked by index, rejecting out of range and repeated indices"""
        selected = []
        seen = set()
        for i in indices:
            if not 0 <= i < len(elements):
                raise InvariantError(
                    f"{what} index {i} is out of range [0, {len(elements)})"
                )
            if i in seen:
                raise UsageError(
                    f"{what} named '{elements[i].name}' is repeated multiple times."
                )
            seen.add(i)
            selected.append(elements[i])
        return selected

    def make_state_selector_matrix(self, user_to_joint_index_map: List[int]) -> np.ndarray:
        """
        Args:
            user_to_joint_index_map (List[int]): the selected joints, in the user order

        Returns:
            np.ndarray: Sx such that x_s = Sx @ x, with x_s = [q_s; v_s]
        """
        self.throw_if_not_finalized("make_state_selector_matrix")
        joints = self._select(self._joints, user_to_joint_index_map, "Joint")

        nq = self.num_positions()
        nq_s = sum(j.num_positions for j in joints)
        nv_s = sum(j.num_velocities for j in joints)
        Sx = np.zeros((nq_s + nv_s, self.num_states()))
        row_q = 0
        row_v = nq_s
        for joint in joints:
            for i in range(joint.num_positions):
                Sx[row_q, joint.position_start + i] = 1.0
                row_q += 1
            for i in range(joint.num_velocities):
                Sx[row_v, nq + joint.velocity_start + i] = 1.0
                row_v += 1
        return Sx

    def make_state_selector_matrix_from_joint_names(
        self, selected_joints: List[str]
    ) -> np.ndarray:
        self.throw_if_not_finalized("make_state_selector_matrix_from_joint_names")
        self._throw_if_repeated(selected_joints, "Joint")
        return self.make_state_selector_matrix(
            [self.get_joint_by_name(name).index for name in selected_joints]
        )

    def make_actuator_selector_matrix(
        self, user_to_actuator_index_map: List[int]
    ) -> np.ndarray:
        """
        Args:
            user_to_actuator_index_map (List[int]): the selected actuators, in the user order

        Returns:
            np.ndarray: Su such that u = Su @ u_s
        """
        self.throw_if_not_finalized("make_actuator_selector_matrix")
        actuators = self._select(self._actuators, user_to_actuator_index_map, "Actuator")

        Su = np.zeros((self.num_actuated_dofs(), len(actuators)))
        for column, actuator in enumerate(actuators):
            Su[actuator.input_start, column] = 1.0
        return Su

    def make_actuator_selector_matrix_from_joints(
        self, user_to_joint_index_map: List[int]
    ) -> np.ndarray:
        self.throw_if_not_finalized("make_actuator_selector_matrix_from_joints")
        joints = self._select(self._joints, user_to_joint_index_map, "Joint")

        actuator_of: Dict[int, int] = {a.joint.index: a.index for a in self._actuators}
        actuator_indices = []
        for joint in joints:
            if joint.index not in actuator_of:
                raise UsageError(f"Joint '{joint.name}' does not have an actuator.")
            actuator_indices.append(actuator_of[joint.index])
        return self.make_actuator_selector_matrix(actuator_indices)

    def print_table(self) -> None:
        """Prints the connectivity of the tree, one row per body node"""
        self.throw_if_not_finalized("print_table")
        table = PrettyTable(
            ["Node", "Level", "Parent Body", "Mobilizer", "Child Body", "nq", "nv"]
        )
        for node in self._body_nodes[1:]:
            table.add_row(
                [
                    node.index,
                    node.level,
                    node.parent_node.body.name,
                    type(node.mobilizer).__name__,
                    node.body.name,
                    node.num_mobilizer_positions,
                    node.num_mobilizer_velocities,
                ]
            )
        print(table)
