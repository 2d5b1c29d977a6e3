# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import abc
import dataclasses
from typing import Optional

import numpy as np
import numpy.typing as npt

from treedyn.core.constants import DEFAULT_MODEL_INSTANCE
from treedyn.core.errors import InvariantError
from treedyn.model.element import MultibodyTreeElement
from treedyn.model.frame import BodyFrame


@dataclasses.dataclass(frozen=True)
class SpatialInertia:
    """Mass properties of a rigid body, about the body origin Bo and expressed in the body frame B

    Args:
        mass (float): the body mass
        p_BoBcm_B (npt.ArrayLike): position of the center of mass from Bo
        I_BBo_B (npt.ArrayLike): rotational inertia about Bo
    """

    mass: float
    p_BoBcm_B: np.ndarray
    I_BBo_B: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "mass", float(self.mass))
        object.__setattr__(
            self, "p_BoBcm_B", np.asarray(self.p_BoBcm_B, dtype=float).reshape(3)
        )
        object.__setattr__(
            self, "I_BBo_B", np.asarray(self.I_BBo_B, dtype=float).reshape(3, 3)
        )

    @staticmethod
    def zero() -> "SpatialInertia":
        return SpatialInertia(0.0, np.zeros(3), np.zeros((3, 3)))

    @staticmethod
    def make_from_central_inertia(
        mass: float, p_BoBcm_B: npt.ArrayLike, I_BBcm_B: npt.ArrayLike
    ) -> "SpatialInertia":
        """Builds the spatial inertia about Bo from the rotational inertia about the center of mass

        Args:
            mass (float): the body mass
            p_BoBcm_B (npt.ArrayLike): position of the center of mass from Bo
            I_BBcm_B (npt.ArrayLike): rotational inertia about the center of mass

        Returns:
            SpatialInertia: the spatial inertia about Bo
        """
        c = np.asarray(p_BoBcm_B, dtype=float).reshape(3)
        I_cm = np.asarray(I_BBcm_B, dtype=float).reshape(3, 3)
        return SpatialInertia(mass, c, I_cm + _parallel_axis_term(mass, c))

    @staticmethod
    def point_mass(mass: float, p_BoQ_B: npt.ArrayLike) -> "SpatialInertia":
        return SpatialInertia.make_from_central_inertia(
            mass, p_BoQ_B, np.zeros((3, 3))
        )

    @staticmethod
    def solid_sphere(
        mass: float, radius: float, p_BoBcm_B: npt.ArrayLike = (0.0, 0.0, 0.0)
    ) -> "SpatialInertia":
        I = 2.0 / 5.0 * mass * radius**2 * np.eye(3)
        return SpatialInertia.make_from_central_inertia(mass, p_BoBcm_B, I)

    @staticmethod
    def solid_box(
        mass: float,
        lx: float,
        ly: float,
        lz: float,
        p_BoBcm_B: npt.ArrayLike = (0.0, 0.0, 0.0),
    ) -> "SpatialInertia":
        I = (
            mass
            / 12.0
            * np.diag([ly**2 + lz**2, lx**2 + lz**2, lx**2 + ly**2])
        )
        return SpatialInertia.make_from_central_inertia(mass, p_BoBcm_B, I)

    @staticmethod
    def solid_cylinder(
        mass: float,
        radius: float,
        length: float,
        p_BoBcm_B: npt.ArrayLike = (0.0, 0.0, 0.0),
    ) -> "SpatialInertia":
        """Solid cylinder with its axis along z"""
        Ixx = mass * (3.0 * radius**2 + length**2) / 12.0
        Izz = mass * radius**2 / 2.0
        I = np.diag([Ixx, Ixx, Izz])
        return SpatialInertia.make_from_central_inertia(mass, p_BoBcm_B, I)

    def central_inertia(self) -> np.ndarray:
        """
        Returns:
            np.ndarray: rotational inertia about the center of mass, expressed in B
        """
        return self.I_BBo_B - _parallel_axis_term(self.mass, self.p_BoBcm_B)

    def shift(self, p_BoQ_B: npt.ArrayLike) -> "SpatialInertia":
        """
        Args:
            p_BoQ_B (npt.ArrayLike): position of the new about-point Q from Bo

        Returns:
            SpatialInertia: the same mass properties about Q
        """
        p = np.asarray(p_BoQ_B, dtype=float).reshape(3)
        return SpatialInertia.make_from_central_inertia(
            self.mass, self.p_BoBcm_B - p, self.central_inertia()
        )

    def is_physically_valid(self, tolerance: float = 1e-12) -> bool:
        if self.mass < 0.0:
            return False
        I = self.central_inertia()
        if not np.allclose(I, I.T, atol=tolerance):
            return False
        d = np.linalg.eigvalsh(I)
        if np.any(d < -tolerance):
            return False
        # triangle inequality on the principal moments
        return bool(
            d[0] + d[1] >= d[2] - tolerance
            and d[1] + d[2] >= d[0] - tolerance
            and d[0] + d[2] >= d[1] - tolerance
        )


def _parallel_axis_term(mass: float, p: np.ndarray) -> np.ndarray:
    return mass * (np.dot(p, p) * np.eye(3) - np.outer(p, p))


class Body(MultibodyTreeElement, abc.ABC):
    """A rigid element of the tree, with its own body frame"""

    def __init__(self, name: str, model_instance: int = DEFAULT_MODEL_INSTANCE):
        super().__init__(model_instance=model_instance)
        self.name = name
        self._body_frame = BodyFrame(self)
        self._node_index: Optional[int] = None

    @property
    def body_frame(self) -> BodyFrame:
        return self._body_frame

    @property
    def node_index(self) -> int:
        if self._node_index is None:
            raise InvariantError(
                f"Body '{self.name}' has no body node; the tree was not finalized."
            )
        return self._node_index

    def _do_set_topology(self, topology) -> None:
        self._node_index = topology.get_body(self.index).body_node

    @property
    @abc.abstractmethod
    def default_spatial_inertia(self) -> SpatialInertia:
        pass

    def get_default_mass(self) -> float:
        return self.default_spatial_inertia.mass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class RigidBody(Body):
    """
    Args:
        name (str): the body name, unique in the tree
        M_BBo_B (SpatialInertia): mass properties about the body origin. Defaults to zero.
        model_instance (int): the owning model instance. Defaults to the default model instance.
    """

    def __init__(
        self,
        name: str,
        M_BBo_B: Optional[SpatialInertia] = None,
        model_instance: int = DEFAULT_MODEL_INSTANCE,
    ):
        super().__init__(name, model_instance)
        self._M_BBo_B = SpatialInertia.zero() if M_BBo_B is None else M_BBo_B

    @property
    def default_spatial_inertia(self) -> SpatialInertia:
        return self._M_BBo_B

    def get_default_com(self) -> np.ndarray:
        return self._M_BBo_B.p_BoBcm_B
