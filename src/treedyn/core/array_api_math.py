# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Optional

import array_api_compat as aac

from treedyn.core.spatial_math import ArrayLike, ArrayLikeFactory, SpatialMath


@dataclass(frozen=True)
class ArraySpec:
    xp: ModuleType  # array API namespace (compat-wrapped if needed)
    dtype: Optional[Any]
    device: Optional[Any]


def xp_getter(*xs: Any):
    return aac.array_namespace(*xs)


def _unwrap(x: Any) -> Any:
    return x.array if isinstance(x, ArrayLike) else x


@dataclass
class ArrayAPILike(ArrayLike):
    """Generic Array-API-style wrapper. Plain python numbers are accepted on either side of an operator."""

    array: Any

    def __getitem__(self, idx) -> "ArrayAPILike":
        return self.__class__(self.array[idx])

    @property
    def shape(self):
        return tuple(self.array.shape)

    @property
    def T(self) -> "ArrayAPILike":
        return self.__class__(self.array.T)

    def __matmul__(self, other) -> "ArrayAPILike":
        xp = xp_getter(self.array, other.array)
        return self.__class__(xp.matmul(self.array, other.array))

    def __rmatmul__(self, other) -> "ArrayAPILike":
        xp = xp_getter(self.array, other.array)
        return self.__class__(xp.matmul(other.array, self.array))

    def __mul__(self, other) -> "ArrayAPILike":
        return self.__class__(self.array * _unwrap(other))

    def __rmul__(self, other) -> "ArrayAPILike":
        return self.__class__(_unwrap(other) * self.array)

    def __truediv__(self, other) -> "ArrayAPILike":
        return self.__class__(self.array / _unwrap(other))

    def __add__(self, other) -> "ArrayAPILike":
        return self.__class__(self.array + _unwrap(other))

    def __radd__(self, other) -> "ArrayAPILike":
        return self.__class__(_unwrap(other) + self.array)

    def __sub__(self, other) -> "ArrayAPILike":
        return self.__class__(self.array - _unwrap(other))

    def __rsub__(self, other) -> "ArrayAPILike":
        return self.__class__(_unwrap(other) - self.array)

    def __neg__(self) -> "ArrayAPILike":
        return self.__class__(-self.array)


class ArrayAPIFactory(ArrayLikeFactory):
    """
    Generic factory. Give it (a) a Like class and (b) an xp namespace
    (array_api_compat.* if available; otherwise the library module).
    """

    def __init__(self, like_cls, xp, *, dtype=None, device=None):
        self._like = like_cls
        self._xp = xp
        self._dtype = dtype
        self._device = device

    def zeros(self, *shape) -> ArrayAPILike:
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = tuple(shape[0])
        if len(shape) == 1:
            shape = (shape[0], 1)
        x = self._xp.zeros(shape, dtype=self._dtype, device=self._device)
        return self._like(x)

    def eye(self, x) -> ArrayAPILike:
        return self._like(self._xp.eye(x, dtype=self._dtype, device=self._device))

    def asarray(self, x, copy: bool = False) -> ArrayAPILike:
        if isinstance(x, ArrayLike):
            x = x.array
        a = self._xp.asarray(
            x, dtype=self._dtype, device=self._device, copy=True if copy else None
        )
        # kernels are written for 2-D arrays, as for CasADi
        if a.ndim == 0:
            a = self._xp.reshape(a, (1, 1))
        elif a.ndim == 1:
            a = self._xp.reshape(a, (-1, 1))
        return self._like(a)


class ArrayAPISpatialMath(SpatialMath):
    """A drop-in SpatialMath that implements the backend primitives with the Array API.

    CasADi keeps its own subclass.
    """

    def __init__(self, factory, xp_getter: Callable[..., Any] = xp_getter):
        super().__init__(factory)
        self._xp_getter = xp_getter

    def _xp(self, *xs: Any):
        return self._xp_getter(*xs)

    def sin(self, x):
        xp = self._xp(x.array)
        return self.factory.asarray(xp.sin(x.array))

    def cos(self, x):
        xp = self._xp(x.array)
        return self.factory.asarray(xp.cos(x.array))

    def sqrt(self, x):
        xp = self._xp(x.array)
        return self.factory.asarray(xp.sqrt(x.array))

    def skew(self, x):
        xp = self._xp(x.array)
        a = xp.reshape(x.array, (3,))
        x0, x1, x2 = a[0], a[1], a[2]
        z = x0 * 0
        row0 = xp.stack([z, -x2, x1])
        row1 = xp.stack([x2, z, -x0])
        row2 = xp.stack([-x1, x0, z])
        return self.factory.asarray(xp.stack([row0, row1, row2]))

    def vertcat(self, *x):
        xp = self._xp(*[xi.array for xi in x])
        return self.factory.asarray(xp.concat([xi.array for xi in x], axis=0))

    def horzcat(self, *x):
        xp = self._xp(*[xi.array for xi in x])
        return self.factory.asarray(xp.concat([xi.array for xi in x], axis=1))

    def solve(self, A: ArrayAPILike, B: ArrayAPILike) -> ArrayAPILike:
        xp = self._xp(A.array, B.array)
        return self.factory.asarray(xp.linalg.solve(A.array, B.array))
