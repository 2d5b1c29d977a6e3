# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.


from dataclasses import dataclass

import numpy as np

from treedyn.core.array_api_math import (
    ArrayAPISpatialMath,
    ArrayAPILike,
    ArrayAPIFactory,
    ArraySpec,
    xp_getter,
)


@dataclass
class NumpyLike(ArrayAPILike):
    """Class wrapping NumPy types"""

    array: np.ndarray


class NumpyLikeFactory(ArrayAPIFactory):

    def __init__(self, spec: ArraySpec | None = None):
        if spec is None:
            xp = xp_getter(np.zeros(1))
            super().__init__(NumpyLike, xp, dtype=np.float64, device=None)
        else:
            super().__init__(NumpyLike, spec.xp, dtype=spec.dtype, device=spec.device)


class SpatialMath(ArrayAPISpatialMath):
    def __init__(self, spec: ArraySpec | None = None):
        super().__init__(NumpyLikeFactory(spec))
