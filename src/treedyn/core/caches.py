# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import dataclasses
from typing import List

import numpy.typing as npt

from treedyn.core.spatial_math import ArrayLikeFactory


@dataclasses.dataclass
class PositionKinematicsCache:
    """Per body node poses. Entry 0 (the world) is the identity and is never recomputed.

    X_WB: pose of the body frame B in the world
    X_PB: pose of B in its parent body frame P
    X_FM: pose of the outboard mobilizer frame M in the inboard frame F
    p_PoBo_W: position of Bo from Po, expressed in W
    """

    X_WB: List[npt.ArrayLike]
    X_PB: List[npt.ArrayLike]
    X_FM: List[npt.ArrayLike]
    p_PoBo_W: List[npt.ArrayLike]

    @staticmethod
    def allocate(num_nodes: int, factory: ArrayLikeFactory) -> "PositionKinematicsCache":
        identity = factory.eye(4)
        zero = factory.zeros(3, 1)
        return PositionKinematicsCache(
            X_WB=[identity] * num_nodes,
            X_PB=[identity] * num_nodes,
            X_FM=[identity] * num_nodes,
            p_PoBo_W=[zero] * num_nodes,
        )

    def get_X_WB(self, node_index: int) -> npt.ArrayLike:
        return self.X_WB[node_index]

    def get_R_WB(self, node_index: int) -> npt.ArrayLike:
        return self.X_WB[node_index][0:3, 0:3]

    def get_p_WoBo(self, node_index: int) -> npt.ArrayLike:
        return self.X_WB[node_index][0:3, 3:4]


@dataclasses.dataclass
class VelocityKinematicsCache:
    """Per body node spatial velocities, expressed in the world.

    V_WB: spatial velocity of B in W, at Bo
    V_PB_W: spatial velocity of B in its parent P, at Bo
    """

    V_WB: List[npt.ArrayLike]
    V_PB_W: List[npt.ArrayLike]

    @staticmethod
    def allocate(num_nodes: int, factory: ArrayLikeFactory) -> "VelocityKinematicsCache":
        zero = factory.zeros(6, 1)
        return VelocityKinematicsCache(V_WB=[zero] * num_nodes, V_PB_W=[zero] * num_nodes)

    def get_V_WB(self, node_index: int) -> npt.ArrayLike:
        return self.V_WB[node_index]

    def get_w_WB(self, node_index: int) -> npt.ArrayLike:
        return self.V_WB[node_index][0:3, :]


@dataclasses.dataclass
class AccelerationKinematicsCache:
    """A_WB: spatial acceleration of B in W at Bo. The world entry is always zero."""

    A_WB: List[npt.ArrayLike]

    @staticmethod
    def allocate(num_nodes: int, factory: ArrayLikeFactory) -> "AccelerationKinematicsCache":
        return AccelerationKinematicsCache(A_WB=[factory.zeros(6, 1)] * num_nodes)

    def get_A_WB(self, node_index: int) -> npt.ArrayLike:
        return self.A_WB[node_index]


@dataclasses.dataclass
class ArticulatedBodyInertiaCache:
    """Articulated body inertias about Bo, expressed in W.

    P_B_W: articulated body inertia of the subtree rooted at B
    Pplus_PB_W: the same inertia as felt by the parent across B's mobilizer
    """

    P_B_W: List[npt.ArrayLike]
    Pplus_PB_W: List[npt.ArrayLike]

    @staticmethod
    def allocate(num_nodes: int, factory: ArrayLikeFactory) -> "ArticulatedBodyInertiaCache":
        zero = factory.zeros(6, 6)
        return ArticulatedBodyInertiaCache(
            P_B_W=[zero] * num_nodes, Pplus_PB_W=[zero] * num_nodes
        )

    def get_P_B_W(self, node_index: int) -> npt.ArrayLike:
        return self.P_B_W[node_index]

    def get_Pplus_PB_W(self, node_index: int) -> npt.ArrayLike:
        return self.Pplus_PB_W[node_index]
