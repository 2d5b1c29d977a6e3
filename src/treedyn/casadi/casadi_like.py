# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from dataclasses import dataclass
from typing import Union

import casadi as cs
import numpy as np
import numpy.typing as npt

from treedyn.core.spatial_math import (
    ArrayLike,
    ArrayLikeFactory,
    SpatialMath as _SpatialMath,
)


def _unwrap(x):
    return x.array if isinstance(x, ArrayLike) else x


@dataclass
class CasadiLike(ArrayLike):
    """Wrapper class for CasADi SX/DM with ArrayLike ops."""

    array: Union[cs.SX, cs.DM]

    def __matmul__(self, other: "CasadiLike") -> "CasadiLike":
        return CasadiLike(cs.mtimes(self.array, other.array))

    def __rmatmul__(self, other: "CasadiLike") -> "CasadiLike":
        return CasadiLike(cs.mtimes(other.array, self.array))

    def __mul__(self, other) -> "CasadiLike":
        return CasadiLike(self.array * _unwrap(other))

    def __rmul__(self, other) -> "CasadiLike":
        return CasadiLike(_unwrap(other) * self.array)

    def __truediv__(self, other) -> "CasadiLike":
        return CasadiLike(self.array / _unwrap(other))

    def __add__(self, other) -> "CasadiLike":
        b = _unwrap(other)
        if not isinstance(b, (cs.SX, cs.DM)):
            return CasadiLike(self.array + b)
        sa, sb = self.array.shape, b.shape
        # Scalars always broadcast in CasADi
        if sa == sb or (sa == (1, 1)) or (sb == (1, 1)):
            return CasadiLike(self.array + b)
        raise ValueError(f"Shape mismatch for add: {sa} + {sb}")

    def __radd__(self, other) -> "CasadiLike":
        return CasadiLike(_unwrap(other) + self.array)

    def __sub__(self, other) -> "CasadiLike":
        return CasadiLike(self.array - _unwrap(other))

    def __rsub__(self, other) -> "CasadiLike":
        return CasadiLike(_unwrap(other) - self.array)

    def __neg__(self) -> "CasadiLike":
        return CasadiLike(-self.array)

    def __getitem__(self, idx) -> "CasadiLike":
        # CasADi is 2-D only
        return CasadiLike(self.array[idx])

    @property
    def shape(self) -> tuple[int, int]:
        return self.array.shape

    @property
    def T(self) -> "CasadiLike":
        return CasadiLike(self.array.T)


class CasadiLikeFactory(ArrayLikeFactory):
    """ArrayLikeFactory for CasADi. Symbolic by default (cs.SX)."""

    def __init__(self, xp: Union[type[cs.SX], type[cs.DM], None] = None):
        self._xp = cs.SX if xp is None else xp

    def zeros(self, *x: npt.ArrayLike) -> CasadiLike:
        # Accept zeros((r, c)) or zeros(r, c)
        if len(x) == 1 and isinstance(x[0], (tuple, list)):
            shp = tuple(x[0])
        else:
            shp = tuple(x)
        if len(shp) == 1:
            shp = (shp[0], 1)
        return CasadiLike(self._xp.zeros(*shp))

    def eye(self, x: npt.ArrayLike) -> CasadiLike:
        return CasadiLike(self._xp.eye(int(x)))

    def asarray(self, x, copy: bool = False) -> CasadiLike:
        """
        Convert input to a CasadiLike array.

        Args:
            x: Input to convert. Can be:
            - a CasadiLike, returned as is unless copy is set
            - CasADi objects (cs.SX, cs.DM, cs.MX-free), wrapped
            - numbers, lists of numbers, lists of lists or NumPy arrays. 1-D inputs become columns.

        Returns:
            CasadiLike: A CasadiLike object wrapping the converted input.

        Examples:
            - 5 -> 1x1
            - [1, 2, 3] -> 3x1
            - [[1, 2], [3, 4]] -> 2x2
        """
        if isinstance(x, CasadiLike):
            if not copy:
                return x
            x = x.array
        if isinstance(x, (cs.SX, cs.DM)):
            return CasadiLike(self._xp(x))
        a = np.asarray(x, dtype=float)
        if a.ndim == 0:
            a = a.reshape((1, 1))
        elif a.ndim == 1:
            a = a.reshape((-1, 1))
        return CasadiLike(self._xp(a))


class SpatialMath(_SpatialMath):
    """CasADi backend for SpatialMath. Keeps the same high-level API."""

    def __init__(self, spec=None):
        super().__init__(CasadiLikeFactory(spec))

    @staticmethod
    def sin(x: CasadiLike) -> CasadiLike:
        return CasadiLike(cs.sin(x.array))

    @staticmethod
    def cos(x: CasadiLike) -> CasadiLike:
        return CasadiLike(cs.cos(x.array))

    @staticmethod
    def sqrt(x: CasadiLike) -> CasadiLike:
        return CasadiLike(cs.sqrt(x.array))

    @staticmethod
    def skew(x: Union[CasadiLike, npt.ArrayLike]) -> CasadiLike:
        a = x.array if isinstance(x, CasadiLike) else x
        if isinstance(a, (cs.SX, cs.DM)) and a.is_empty():
            raise ValueError("skew received empty array")
        return CasadiLike(cs.skew(a))

    @staticmethod
    def vertcat(*x: CasadiLike) -> CasadiLike:
        return CasadiLike(cs.vertcat(*[xi.array for xi in x]))

    @staticmethod
    def horzcat(*x: CasadiLike) -> CasadiLike:
        return CasadiLike(cs.horzcat(*[xi.array for xi in x]))

    @staticmethod
    def solve(A: CasadiLike, B: CasadiLike) -> CasadiLike:
        """Solve linear system Ax = B for x using CasADi.

        Args:
            A: Coefficient matrix (CasadiLike)
            B: Right-hand side vector or matrix (CasadiLike)

        Returns:
            CasadiLike: Solution x
        """
        return CasadiLike(cs.solve(A.array, B.array))
