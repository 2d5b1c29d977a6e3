# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import abc

import numpy as np
import numpy.typing as npt

from treedyn.core.caches import PositionKinematicsCache, VelocityKinematicsCache
from treedyn.core.constants import DEFAULT_GRAVITY, WORLD_INDEX
from treedyn.model.element import MultibodyTreeElement


class ForceElement(MultibodyTreeElement, abc.ABC):
    """Contributes applied forces, potential energy and conservative power to the tree"""

    @abc.abstractmethod
    def calc_and_add_force_contribution(
        self,
        context,
        pc: PositionKinematicsCache,
        vc: VelocityKinematicsCache,
        forces,
    ) -> None:
        """Adds the body and generalized forces of this element to forces"""
        pass

    @abc.abstractmethod
    def calc_potential_energy(self, context, pc: PositionKinematicsCache) -> npt.ArrayLike:
        pass

    @abc.abstractmethod
    def calc_conservative_power(
        self, context, pc: PositionKinematicsCache, vc: VelocityKinematicsCache
    ) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: the rate at which this element converts potential energy into
            kinetic energy, the opposite of the time derivative of the potential energy
        """
        pass


class UniformGravityFieldElement(ForceElement):
    """
    Args:
        gravity_vector (npt.ArrayLike): the acceleration of gravity, expressed in the world.
            Defaults to [0, 0, -9.81].
    """

    def __init__(self, gravity_vector: npt.ArrayLike = DEFAULT_GRAVITY):
        super().__init__()
        self._gravity_vector = np.asarray(gravity_vector, dtype=float).reshape(3)

    @property
    def gravity_vector(self) -> np.ndarray:
        return self._gravity_vector

    def set_gravity_vector(self, gravity_vector: npt.ArrayLike) -> None:
        self._gravity_vector = np.asarray(gravity_vector, dtype=float).reshape(3)

    def _massive_bodies(self):
        for body in self.get_parent_tree().bodies:
            if body.index != WORLD_INDEX and body.get_default_mass() != 0.0:
                yield body

    def _calc_p_BoBcm_W(self, context, pc, body) -> npt.ArrayLike:
        math = context.math
        return pc.get_R_WB(body.node_index) @ math.asarray(body.get_default_com())

    def calc_and_add_force_contribution(self, context, pc, vc, forces) -> None:
        math = context.math
        g = math.asarray(self._gravity_vector)
        for body in self._massive_bodies():
            mg = body.get_default_mass() * g
            # the weight acts at the center of mass, shifted here to Bo
            p_BoBcm_W = self._calc_p_BoBcm_W(context, pc, body)
            forces.add_in_body_force(
                body.node_index, math.vertcat(math.cross(p_BoBcm_W, mg), mg)
            )

    def calc_potential_energy(self, context, pc) -> npt.ArrayLike:
        math = context.math
        g = math.asarray(self._gravity_vector)
        energy = math.factory.zeros(1, 1)
        for body in self._massive_bodies():
            p_WBcm = pc.get_p_WoBo(body.node_index) + self._calc_p_BoBcm_W(
                context, pc, body
            )
            energy = energy - body.get_default_mass() * (g.T @ p_WBcm)
        return energy

    def calc_conservative_power(self, context, pc, vc) -> npt.ArrayLike:
        math = context.math
        g = math.asarray(self._gravity_vector)
        power = math.factory.zeros(1, 1)
        for body in self._massive_bodies():
            V_WB = vc.get_V_WB(body.node_index)
            v_WBcm = math.translational(V_WB) + math.cross(
                math.angular(V_WB), self._calc_p_BoBcm_W(context, pc, body)
            )
            power = power + body.get_default_mass() * (g.T @ v_WBcm)
        return power

    def __repr__(self) -> str:
        return f"UniformGravityFieldElement(gravity_vector={self._gravity_vector.tolist()})"
