# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from typing import List

import numpy as np
import numpy.typing as npt

from treedyn.core.errors import InvariantError


class ModelInstance:
    """A named group of mobilizers and actuators, used to slice the full state and actuation vectors

    Slices are concatenated in the order mobilizers and actuators were added, which is
    node order for mobilizers and actuator index order for actuators.
    """

    def __init__(self, index: int, name: str):
        self.index = index
        self.name = name
        self._mobilizers: List = []
        self._actuators: List = []

    def add_mobilizer(self, mobilizer) -> None:
        self._mobilizers.append(mobilizer)

    def add_joint_actuator(self, actuator) -> None:
        self._actuators.append(actuator)

    @property
    def mobilizers(self) -> List:
        return self._mobilizers

    @property
    def actuators(self) -> List:
        return self._actuators

    def num_positions(self) -> int:
        return sum(m.num_positions for m in self._mobilizers)

    def num_velocities(self) -> int:
        return sum(m.num_velocities for m in self._mobilizers)

    def num_actuated_dofs(self) -> int:
        return sum(a.num_inputs for a in self._actuators)

    def _position_indices(self) -> List[int]:
        return [
            m.position_start_in_q + i
            for m in self._mobilizers
            for i in range(m.num_positions)
        ]

    def _velocity_indices(self) -> List[int]:
        return [
            m.velocity_start_in_v + i
            for m in self._mobilizers
            for i in range(m.num_velocities)
        ]

    def _actuation_indices(self) -> List[int]:
        return [a.input_start + i for a in self._actuators for i in range(a.num_inputs)]

    @staticmethod
    def _scatter(indices: List[int], values: npt.ArrayLike, out: np.ndarray, what: str):
        values = np.asarray(values, dtype=float).reshape(-1)
        if values.shape[0] != len(indices):
            raise InvariantError(
                f"Expected {len(indices)} {what} for the model instance, got {values.shape[0]}"
            )
        out[indices] = values

    def get_positions_from_array(self, q: npt.ArrayLike) -> np.ndarray:
        return np.asarray(q, dtype=float).reshape(-1)[self._position_indices()]

    def set_positions_in_array(self, q_instance: npt.ArrayLike, q: np.ndarray) -> None:
        self._scatter(self._position_indices(), q_instance, q, "positions")

    def get_velocities_from_array(self, v: npt.ArrayLike) -> np.ndarray:
        return np.asarray(v, dtype=float).reshape(-1)[self._velocity_indices()]

    def set_velocities_in_array(self, v_instance: npt.ArrayLike, v: np.ndarray) -> None:
        self._scatter(self._velocity_indices(), v_instance, v, "velocities")

    def get_actuation_from_array(self, u: npt.ArrayLike) -> np.ndarray:
        return np.asarray(u, dtype=float).reshape(-1)[self._actuation_indices()]

    def set_actuation_vector(self, u_instance: npt.ArrayLike, u: np.ndarray) -> None:
        self._scatter(self._actuation_indices(), u_instance, u, "actuation values")

    def __repr__(self) -> str:
        return f"ModelInstance(index={self.index}, name={self.name!r})"
