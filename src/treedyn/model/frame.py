# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import abc
from typing import Optional

import numpy as np
import numpy.typing as npt

from treedyn.core.errors import InvariantError
from treedyn.model.element import MultibodyTreeElement


def make_pose(
    R: Optional[npt.ArrayLike] = None, p: Optional[npt.ArrayLike] = None
) -> np.ndarray:
    """
    Args:
        R (npt.ArrayLike, optional): 3x3 rotation matrix. Defaults to identity.
        p (npt.ArrayLike, optional): translation. Defaults to zero.

    Returns:
        np.ndarray: the 4x4 homogeneous transform
    """
    X = np.eye(4)
    if R is not None:
        X[:3, :3] = np.asarray(R, dtype=float).reshape(3, 3)
    if p is not None:
        X[:3, 3] = np.asarray(p, dtype=float).reshape(3)
    return X


def as_pose(X: npt.ArrayLike) -> np.ndarray:
    X = np.asarray(X, dtype=float)
    if X.shape != (4, 4):
        raise InvariantError(f"A pose must be a 4x4 homogeneous transform, got {X.shape}")
    return X


class Frame(MultibodyTreeElement, abc.ABC):
    """A named frame attached to a body. It only expresses points and poses, it owns no dynamics."""

    def __init__(self, name: str, body, model_instance: Optional[int] = None):
        super().__init__(
            model_instance=body.model_instance if model_instance is None else model_instance
        )
        self.name = name
        self._body = body

    @property
    def body(self):
        return self._body

    @abc.abstractmethod
    def get_fixed_pose_in_body_frame(self) -> np.ndarray:
        """
        Returns:
            np.ndarray: X_BF, the pose of this frame in its body frame
        """
        pass

    def calc_pose_in_body_frame(self, context) -> npt.ArrayLike:
        return context.math.asarray(self.get_fixed_pose_in_body_frame())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, body={self._body.name!r})"


class BodyFrame(Frame):
    """The frame of a body. Created along with the body, it shares its name."""

    def __init__(self, body):
        super().__init__(body.name, body)

    def get_fixed_pose_in_body_frame(self) -> np.ndarray:
        return np.eye(4)


class FixedOffsetFrame(Frame):
    """
    Args:
        name (str): the frame name
        parent_frame (Frame): the frame F is rigidly attached to
        X_PF (npt.ArrayLike): pose of this frame in the parent frame
    """

    def __init__(
        self,
        name: str,
        parent_frame: Frame,
        X_PF: npt.ArrayLike,
        model_instance: Optional[int] = None,
    ):
        super().__init__(name, parent_frame.body, model_instance)
        self._parent_frame = parent_frame
        self._X_PF = as_pose(X_PF)

    @property
    def parent_frame(self) -> Frame:
        return self._parent_frame

    def get_fixed_pose_in_body_frame(self) -> np.ndarray:
        return self._parent_frame.get_fixed_pose_in_body_frame() @ self._X_PF
