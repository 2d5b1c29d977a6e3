# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import copy
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

import numpy.typing as npt

from treedyn.core.errors import check_shape
from treedyn.core.spatial_math import SpatialMath


class MultibodyTreeContext:
    """State of a MultibodyTree for one snapshot, x = [q; v], and the caches computed from it

    Every state write bumps a version counter. Cached values remember the versions they
    were computed from and are recomputed on demand when those change.

    Args:
        tree: the MultibodyTree this context was created for
        math (SpatialMath): the backend used to store the state and evaluate the caches
        x (npt.ArrayLike, optional): the initial state. Defaults to zeros.
    """

    def __init__(self, tree, math: SpatialMath, x: Optional[npt.ArrayLike] = None):
        self._tree = tree
        self._math = math
        self._num_positions = tree.num_positions()
        self._num_velocities = tree.num_velocities()
        self._positions_version = 0
        self._velocities_version = 0
        self._cache: Dict[Hashable, Tuple[int, Optional[int], Any]] = {}
        if x is None:
            self._x = math.factory.zeros(self.num_states, 1)
        else:
            self._x = self._as_column("x", x, self.num_states)

    @property
    def tree(self):
        return self._tree

    @property
    def math(self) -> SpatialMath:
        return self._math

    @property
    def num_positions(self) -> int:
        return self._num_positions

    @property
    def num_velocities(self) -> int:
        return self._num_velocities

    @property
    def num_states(self) -> int:
        return self._num_positions + self._num_velocities

    @property
    def positions_version(self) -> int:
        return self._positions_version

    @property
    def velocities_version(self) -> int:
        return self._velocities_version

    def _as_column(self, name: str, values: npt.ArrayLike, size: int) -> npt.ArrayLike:
        # copied, so edits of the caller's buffer cannot bypass the version counters
        values = self._math.asarray(values, copy=True)
        check_shape(name, values, (size, 1))
        return values

    def _invalidate(self, positions: bool, velocities: bool) -> None:
        if positions:
            self._positions_version += 1
        if velocities:
            self._velocities_version += 1

    def get_state_vector(self) -> npt.ArrayLike:
        return self._math.asarray(self._x, copy=True)

    def get_positions(self) -> npt.ArrayLike:
        return self._x[0 : self._num_positions, :]

    def get_velocities(self) -> npt.ArrayLike:
        return self._x[self._num_positions : self.num_states, :]

    def set_state_vector(self, x: npt.ArrayLike) -> None:
        self._x = self._as_column("x", x, self.num_states)
        self._invalidate(True, True)

    def set_positions(self, q: npt.ArrayLike) -> None:
        q = self._as_column("q", q, self._num_positions)
        self._x = self._math.vertcat(q, self.get_velocities())
        self._invalidate(True, False)

    def set_velocities(self, v: npt.ArrayLike) -> None:
        v = self._as_column("v", v, self._num_velocities)
        self._x = self._math.vertcat(self.get_positions(), v)
        self._invalidate(False, True)

    def set_position_segment(self, start: int, values: npt.ArrayLike, size: int) -> None:
        """Writes values into q[start : start + size]"""
        values = self._as_column("positions", values, size)
        self._x = self._math.replace_segment(self._x, start, values)
        self._invalidate(True, False)

    def set_velocity_segment(self, start: int, values: npt.ArrayLike, size: int) -> None:
        """Writes values into v[start : start + size]"""
        values = self._as_column("velocities", values, size)
        self._x = self._math.replace_segment(self._x, self._num_positions + start, values)
        self._invalidate(False, True)

    def eval_cached(
        self, key: Hashable, depends_on_velocities: bool, compute: Callable[[], Any]
    ) -> Any:
        """Returns the cached value for key, computing it if the state changed since it was stored

        Args:
            key (Hashable): the cache entry
            depends_on_velocities (bool): whether the value also depends on v
            compute (Callable[[], Any]): computes the value from the current state

        Returns:
            Any: the cached value
        """
        v_version = self._velocities_version if depends_on_velocities else None
        entry = self._cache.get(key)
        if entry is not None and entry[0] == self._positions_version and entry[1] == v_version:
            return entry[2]
        value = compute()
        self._cache[key] = (self._positions_version, v_version, value)
        return value

    def clone(self) -> "MultibodyTreeContext":
        """A context with the same state and an empty cache, to be used independently"""
        other = copy.copy(self)
        other._cache = {}
        return other
