# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import dataclasses
from collections import deque
from typing import List, Optional, Tuple

from treedyn.core.constants import WORLD_INDEX
from treedyn.core.errors import InvariantError, UsageError


@dataclasses.dataclass
class BodyTopology:
    """Connectivity of a body. Node related fields are filled by finalize()"""

    index: int
    body_frame: int
    name: str
    inboard_mobilizer: Optional[int] = None
    parent_body: Optional[int] = None
    child_bodies: List[int] = dataclasses.field(default_factory=list)
    level: int = -1
    body_node: int = -1


@dataclasses.dataclass
class FrameTopology:
    index: int
    body: int


@dataclasses.dataclass
class MobilizerTopology:
    """Connectivity and state offsets of a mobilizer

    positions_start is an offset into q, velocities_start_in_v an offset into v
    """

    index: int
    inboard_frame: int
    outboard_frame: int
    inboard_body: int
    outboard_body: int
    num_positions: int
    num_velocities: int
    positions_start: int = -1
    velocities_start_in_v: int = -1
    body_node: int = -1


@dataclasses.dataclass
class ForceElementTopology:
    index: int


@dataclasses.dataclass
class JointActuatorTopology:
    """actuator_index_start is the offset of the actuator in the actuation vector u"""

    index: int
    actuator_index_start: int
    num_dofs: int


@dataclasses.dataclass
class BodyNodeTopology:
    index: int
    level: int
    parent_body_node: Optional[int]
    body: int
    parent_body: Optional[int]
    mobilizer: Optional[int]
    mobilizer_positions_start: int
    num_mobilizer_positions: int
    mobilizer_velocities_start_in_v: int
    num_mobilizer_velocities: int
    child_nodes: List[int] = dataclasses.field(default_factory=list)


class MultibodyTreeTopology:
    """Scalar independent description of the connectivity of a MultibodyTree

    It is built incrementally while elements are added to the tree and compiled once by
    finalize(): body levels, the breadth first ordering of the body nodes and the
    offsets of every mobilizer into the generalized positions and velocities.
    """

    def __init__(self) -> None:
        self._bodies: List[BodyTopology] = []
        self._frames: List[FrameTopology] = []
        self._mobilizers: List[MobilizerTopology] = []
        self._force_elements: List[ForceElementTopology] = []
        self._joint_actuators: List[JointActuatorTopology] = []
        self._body_nodes: List[BodyNodeTopology] = []
        self._body_node_levels: List[List[int]] = []
        self._num_positions = 0
        self._num_velocities = 0
        self._num_actuated_dofs = 0
        self._is_valid = False

    def _throw_if_valid(self) -> None:
        if self._is_valid:
            raise UsageError(
                "This MultibodyTreeTopology is finalized already, it cannot be modified."
            )

    def add_body(self, name: str) -> Tuple[int, int]:
        """Adds a body together with its body frame

        Returns:
            Tuple[int, int]: the body index and the body frame index
        """
        self._throw_if_valid()
        body_index = len(self._bodies)
        frame_index = len(self._frames)
        self._bodies.append(BodyTopology(body_index, frame_index, name))
        self._frames.append(FrameTopology(frame_index, body_index))
        return body_index, frame_index

    def add_frame(self, body_index: int) -> int:
        self._throw_if_valid()
        frame_index = len(self._frames)
        self._frames.append(FrameTopology(frame_index, body_index))
        return frame_index

    def add_mobilizer(
        self,
        inboard_frame: int,
        outboard_frame: int,
        num_positions: int,
        num_velocities: int,
    ) -> int:
        """
        Args:
            inboard_frame (int): index of the inboard frame F
            outboard_frame (int): index of the outboard frame M
            num_positions (int): positions of the mobilizer
            num_velocities (int): velocities of the mobilizer

        Returns:
            int: the mobilizer index
        """
        self._throw_if_valid()
        inboard_body = self._frames[inboard_frame].body
        outboard_body = self._frames[outboard_frame].body
        if outboard_body == WORLD_INDEX:
            raise UsageError(
                "The world body cannot be the outboard body of a mobilizer. "
                "Swap the inboard and outboard frames."
            )
        if inboard_body == outboard_body:
            raise UsageError(
                f"A mobilizer cannot connect two frames of the same body "
                f"'{self._bodies[inboard_body].name}'."
            )
        outboard = self._bodies[outboard_body]
        if outboard.inboard_mobilizer is not None:
            raise UsageError(
                f"Body '{outboard.name}' already has an inboard mobilizer. "
                "A body can only have one inboard mobilizer: closed loops are not supported."
            )

        mobilizer_index = len(self._mobilizers)
        self._mobilizers.append(
            MobilizerTopology(
                index=mobilizer_index,
                inboard_frame=inboard_frame,
                outboard_frame=outboard_frame,
                inboard_body=inboard_body,
                outboard_body=outboard_body,
                num_positions=num_positions,
                num_velocities=num_velocities,
            )
        )
        outboard.inboard_mobilizer = mobilizer_index
        outboard.parent_body = inboard_body
        self._bodies[inboard_body].child_bodies.append(outboard_body)
        return mobilizer_index

    def add_force_element(self) -> int:
        self._throw_if_valid()
        index = len(self._force_elements)
        self._force_elements.append(ForceElementTopology(index))
        return index

    def add_joint_actuator(self, num_dofs: int) -> int:
        self._throw_if_valid()
        index = len(self._joint_actuators)
        self._joint_actuators.append(
            JointActuatorTopology(index, self._num_actuated_dofs, num_dofs)
        )
        self._num_actuated_dofs += num_dofs
        return index

    def finalize(self) -> None:
        """Compiles levels, the body node ordering and the state offsets"""
        self._throw_if_valid()

        # breadth first from the world, so parents always precede their children
        order: List[int] = []
        self._bodies[WORLD_INDEX].level = 0
        queue = deque([WORLD_INDEX])
        while queue:
            body_index = queue.popleft()
            body = self._bodies[body_index]
            body.body_node = len(order)
            order.append(body_index)
            for child in body.child_bodies:
                self._bodies[child].level = body.level + 1
                queue.append(child)

        unreachable = [b.name for b in self._bodies if b.body_node < 0]
        if unreachable:
            raise UsageError(
                f"Bodies {unreachable} are not connected to the world through a chain of "
                "mobilizers. The model has a closed loop or an unsupported topology."
            )

        q_start = 0
        v_start = 0
        self._body_nodes = []
        for node_index, body_index in enumerate(order):
            body = self._bodies[body_index]
            if body.inboard_mobilizer is None:
                parent_node = None
                nq = nv = 0
            else:
                mobilizer = self._mobilizers[body.inboard_mobilizer]
                mobilizer.positions_start = q_start
                mobilizer.velocities_start_in_v = v_start
                mobilizer.body_node = node_index
                nq = mobilizer.num_positions
                nv = mobilizer.num_velocities
                parent_node = self._bodies[body.parent_body].body_node
            node = BodyNodeTopology(
                index=node_index,
                level=body.level,
                parent_body_node=parent_node,
                body=body_index,
                parent_body=body.parent_body,
                mobilizer=body.inboard_mobilizer,
                mobilizer_positions_start=q_start,
                num_mobilizer_positions=nq,
                mobilizer_velocities_start_in_v=v_start,
                num_mobilizer_velocities=nv,
            )
            self._body_nodes.append(node)
            if parent_node is not None:
                self._body_nodes[parent_node].child_nodes.append(node_index)
            q_start += nq
            v_start += nv

        self._num_positions = q_start
        self._num_velocities = v_start
        if self._num_positions != sum(m.num_positions for m in self._mobilizers):
            raise InvariantError("Positions are not consistent with the mobilizers")
        if self._num_velocities != sum(m.num_velocities for m in self._mobilizers):
            raise InvariantError("Velocities are not consistent with the mobilizers")

        height = max(b.level for b in self._bodies) + 1
        self._body_node_levels = [[] for _ in range(height)]
        for node in self._body_nodes:
            self._body_node_levels[node.level].append(node.index)
        self._is_valid = True

    @property
    def is_valid(self) -> bool:
        return self._is_valid

    def get_body(self, index: int) -> BodyTopology:
        return self._bodies[index]

    def get_frame(self, index: int) -> FrameTopology:
        return self._frames[index]

    def get_mobilizer(self, index: int) -> MobilizerTopology:
        return self._mobilizers[index]

    def get_joint_actuator(self, index: int) -> JointActuatorTopology:
        return self._joint_actuators[index]

    def get_body_node(self, index: int) -> BodyNodeTopology:
        return self._body_nodes[index]

    def get_num_bodies(self) -> int:
        return len(self._bodies)

    def get_num_frames(self) -> int:
        return len(self._frames)

    def get_num_mobilizers(self) -> int:
        return len(self._mobilizers)

    def get_num_force_elements(self) -> int:
        return len(self._force_elements)

    def get_num_joint_actuators(self) -> int:
        return len(self._joint_actuators)

    def get_num_body_nodes(self) -> int:
        return len(self._body_nodes)

    def num_positions(self) -> int:
        return self._num_positions

    def num_velocities(self) -> int:
        return self._num_velocities

    def num_states(self) -> int:
        return self._num_positions + self._num_velocities

    def num_actuated_dofs(self) -> int:
        return self._num_actuated_dofs

    def tree_height(self) -> int:
        return len(self._body_node_levels)

    @property
    def body_node_levels(self) -> List[List[int]]:
        return self._body_node_levels

    def get_kinematic_path_to_world(self, node_index: int) -> List[int]:
        """
        Args:
            node_index (int): the body node to start from

        Returns:
            List[int]: the body nodes from the world (first) to node_index (last)
        """
        path = [node_index]
        parent = self._body_nodes[node_index].parent_body_node
        while parent is not None:
            path.append(parent)
            parent = self._body_nodes[parent].parent_body_node
        return path[::-1]
