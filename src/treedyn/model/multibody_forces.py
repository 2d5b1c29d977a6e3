# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from typing import List

import numpy.typing as npt

from treedyn.core.errors import InvariantError, check_shape
from treedyn.core.spatial_math import SpatialMath


class MultibodyForces:
    """Applied forces on a MultibodyTree

    body_forces holds, per body node, the spatial force applied on the body at Bo,
    expressed in W. generalized_forces holds forces directly applied on the generalized
    velocities, e.g. actuation or damping.
    """

    def __init__(self, tree, math: SpatialMath):
        self._num_bodies = tree.num_bodies()
        self._num_velocities = tree.num_velocities()
        self._math = math
        self.set_zero()

    def set_zero(self) -> None:
        zero = self._math.factory.zeros(6, 1)
        self.body_forces: List[npt.ArrayLike] = [zero] * self._num_bodies
        self.generalized_forces: npt.ArrayLike = self._math.factory.zeros(
            self._num_velocities, 1
        )

    @property
    def num_bodies(self) -> int:
        return self._num_bodies

    @property
    def num_velocities(self) -> int:
        return self._num_velocities

    def add_in_body_force(self, node_index: int, F_Bo_W: npt.ArrayLike) -> None:
        F_Bo_W = self._math.asarray(F_Bo_W)
        check_shape("F_Bo_W", F_Bo_W, (6, 1))
        self.body_forces[node_index] = self.body_forces[node_index] + F_Bo_W

    def add_in_generalized_forces(self, start: int, tau: npt.ArrayLike) -> None:
        """Adds tau to the generalized forces starting at the velocity index start"""
        tau = self._math.asarray(tau)
        self.generalized_forces = self.generalized_forces + self._math.embed(
            tau, start, self._num_velocities
        )

    def add_in(self, other: "MultibodyForces") -> None:
        if not self.check_has_right_size_for_model(other):
            raise InvariantError("The forces to add were created for a different model")
        self.body_forces = [a + b for a, b in zip(self.body_forces, other.body_forces)]
        self.generalized_forces = self.generalized_forces + other.generalized_forces

    def check_has_right_size_for_model(self, tree_or_forces) -> bool:
        if isinstance(tree_or_forces, MultibodyForces):
            return (
                tree_or_forces.num_bodies == self._num_bodies
                and tree_or_forces.num_velocities == self._num_velocities
            )
        return (
            tree_or_forces.num_bodies() == self._num_bodies
            and tree_or_forces.num_velocities() == self._num_velocities
        )
