# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

import abc

import numpy as np
import numpy.typing as npt


class ArrayLike(abc.ABC):
    """Abstract class for a generic Array wrapper. Every method should be implemented for every data type."""

    """This class has to implemented the following operators: """

    # numpy scalars on the left defer to the reflected operators
    __array_ufunc__ = None

    @abc.abstractmethod
    def __add__(self, other):
        pass

    @abc.abstractmethod
    def __radd__(self, other):
        pass

    @abc.abstractmethod
    def __sub__(self, other):
        pass

    @abc.abstractmethod
    def __rsub__(self, other):
        pass

    @abc.abstractmethod
    def __mul__(self, other):
        pass

    @abc.abstractmethod
    def __rmul__(self, other):
        pass

    @abc.abstractmethod
    def __matmul__(self, other):
        pass

    @abc.abstractmethod
    def __rmatmul__(self, other):
        pass

    @abc.abstractmethod
    def __neg__(self):
        pass

    @abc.abstractmethod
    def __getitem__(self, item):
        pass

    @abc.abstractmethod
    def __truediv__(self, other):
        pass

    @property
    @abc.abstractmethod
    def T(self):
        """
        Returns: Transpose of the array
        """
        pass

    @property
    @abc.abstractmethod
    def shape(self):
        """
        Returns: the 2-D shape (rows, cols) of the array
        """
        pass

    def __repr__(self):
        return self.array.__repr__()


class ArrayLikeFactory(abc.ABC):
    """Abstract class for a generic Array factory. Arrays are always 2-D: vectors are columns and scalars are 1x1."""

    @abc.abstractmethod
    def zeros(self, *x: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            x (npt.ArrayLike): matrix dimension

        Returns:
            npt.ArrayLike: zero matrix of dimension x
        """
        pass

    @abc.abstractmethod
    def eye(self, x: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            x (npt.ArrayLike): matrix dimension

        Returns:
            npt.ArrayLike: identity matrix of dimension x
        """
        pass

    @abc.abstractmethod
    def asarray(self, x: npt.ArrayLike, copy: bool = False) -> npt.ArrayLike:
        """
        Args:
            x (npt.ArrayLike): array, list or scalar. 1-D inputs become columns.
            copy (bool, optional): never share memory with x. Defaults to False.

        Returns:
            npt.ArrayLike: array
        """
        pass


class SpatialMath:
    """Class implementing the geometric kernels used by the tree recursions

    Spatial vectors are 6x1 columns ordered [angular; translational]. Poses are 4x4
    homogeneous transforms. Every kernel also accepts 6xk matrices where that makes sense,
    so that hinge matrices can be shifted column-wise in one shot.

    Args:
        factory (ArrayLikeFactory): the factory of the backend arrays
    """

    def __init__(self, factory: ArrayLikeFactory):
        self._factory = factory

    @property
    def factory(self) -> ArrayLikeFactory:
        return self._factory

    @abc.abstractmethod
    def vertcat(self, *x: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            x (npt.ArrayLike): elements

        Returns:
            npt.ArrayLike: vertical concatenation of elements x
        """
        pass

    @abc.abstractmethod
    def horzcat(self, *x: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            x (npt.ArrayLike): elements

        Returns:
            npt.ArrayLike: horizontal concatenation of elements x
        """
        pass

    @abc.abstractmethod
    def solve(self, A: npt.ArrayLike, B: npt.ArrayLike) -> npt.ArrayLike:
        pass

    @abc.abstractmethod
    def sin(self, x: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            x (npt.ArrayLike): angle value

        Returns:
            npt.ArrayLike: sin value of x
        """
        pass

    @abc.abstractmethod
    def cos(self, x: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            x (npt.ArrayLike): angle value

        Returns:
            npt.ArrayLike: cos value of angle x
        """
        pass

    @abc.abstractmethod
    def sqrt(self, x: npt.ArrayLike) -> npt.ArrayLike:
        pass

    @abc.abstractmethod
    def skew(self, x):
        """
        Args:
            x (npt.ArrayLike): 3x1 vector

        Returns:
            npt.ArrayLike: the 3x3 skew symmetric matrix such that skew(x) @ y = x X y
        """
        pass

    def asarray(self, x: npt.ArrayLike, copy: bool = False) -> npt.ArrayLike:
        return self.factory.asarray(x, copy=copy)

    def cross(self, a: npt.ArrayLike, b: npt.ArrayLike) -> npt.ArrayLike:
        return self.skew(a) @ b

    def unit_vector(self, size: int, index: int) -> npt.ArrayLike:
        e = np.zeros((size, 1))
        e[index, 0] = 1.0
        return self.factory.asarray(e)

    def embed(self, values: npt.ArrayLike, start: int, size: int) -> npt.ArrayLike:
        """
        Args:
            values (npt.ArrayLike): kx1 segment
            start (int): row where the segment starts
            size (int): rows of the result

        Returns:
            npt.ArrayLike: a size x 1 column, zero outside the segment
        """
        k = values.shape[0]
        return self.vertcat(
            self.factory.zeros(start, 1),
            values,
            self.factory.zeros(size - start - k, 1),
        )

    def replace_segment(
        self, x: npt.ArrayLike, start: int, values: npt.ArrayLike
    ) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: a copy of the column x with rows [start, start + k) replaced by values
        """
        k = values.shape[0]
        n = x.shape[0]
        return self.vertcat(x[0:start, :], values, x[start + k : n, :])

    def R_from_axis_angle(self, axis: npt.ArrayLike, q: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            axis (npt.ArrayLike): 3x1 unit axis
            q (npt.ArrayLike): 1x1 rotation angle

        Returns:
            npt.ArrayLike: rotation matrix
        """
        c = self.cos(q)
        s = self.sin(q)
        I = self.factory.eye(3)
        K = self.skew(axis)
        return I + s * K + (1.0 - c) * (K @ K)

    def R_from_quaternion(self, quaternion: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            quaternion (npt.ArrayLike): 4x1 quaternion [w, x, y, z], not necessarily unit

        Returns:
            npt.ArrayLike: the rotation matrix of the normalized quaternion
        """
        qn = quaternion / self.sqrt(quaternion.T @ quaternion)
        w = qn[0:1, 0:1]
        v = qn[1:4, 0:1]
        I = self.factory.eye(3)
        return (w * w - v.T @ v) * I + 2.0 * (v @ v.T) + 2.0 * w * self.skew(v)

    def quaternion_rate_matrix(self, quaternion: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            quaternion (npt.ArrayLike): 4x1 quaternion [w, x, y, z]

        Returns:
            npt.ArrayLike: the 4x3 matrix L such that qdot = 0.5 * L @ w, with w the angular
            velocity expressed in the fixed frame
        """
        w = quaternion[0:1, 0:1]
        x = quaternion[1:2, 0:1]
        y = quaternion[2:3, 0:1]
        z = quaternion[3:4, 0:1]
        return self.vertcat(
            self.horzcat(-x, -y, -z),
            self.horzcat(w, z, -y),
            self.horzcat(-z, w, x),
            self.horzcat(y, -x, w),
        )

    def homogeneous(self, R: npt.ArrayLike, p: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            R (npt.ArrayLike): Rotation matrix
            p (npt.ArrayLike): translation vector

        Returns:
            npt.ArrayLike: Homogeneous transform
        """
        last_row = self.factory.asarray([[0.0, 0.0, 0.0, 1.0]])
        return self.vertcat(self.horzcat(R, p), last_row)

    def homogeneous_inverse(self, X: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            X (npt.ArrayLike): Homogeneous transform

        Returns:
            npt.ArrayLike: the inverse transform
        """
        Rt = self.rotation(X).T
        return self.homogeneous(Rt, -(Rt @ self.translation(X)))

    @staticmethod
    def rotation(X: npt.ArrayLike) -> npt.ArrayLike:
        return X[0:3, 0:3]

    @staticmethod
    def translation(X: npt.ArrayLike) -> npt.ArrayLike:
        return X[0:3, 3:4]

    def transform_points(self, X: npt.ArrayLike, P: npt.ArrayLike) -> npt.ArrayLike:
        """
        Args:
            X (npt.ArrayLike): Homogeneous transform X_AB
            P (npt.ArrayLike): 3xn points measured and expressed in B

        Returns:
            npt.ArrayLike: 3xn points measured and expressed in A
        """
        p = self.translation(X)
        n = P.shape[1]
        if n == 0:
            return self.rotation(X) @ P
        return self.rotation(X) @ P + self.horzcat(*([p] * n))

    @staticmethod
    def angular(V: npt.ArrayLike) -> npt.ArrayLike:
        return V[0:3, :]

    @staticmethod
    def translational(V: npt.ArrayLike) -> npt.ArrayLike:
        return V[3:6, :]

    def rotate_spatial(self, R: npt.ArrayLike, V: npt.ArrayLike) -> npt.ArrayLike:
        """Re-expresses both halves of a spatial quantity (6xk) with the rotation R"""
        return self.vertcat(R @ self.angular(V), R @ self.translational(V))

    def shift_spatial_velocity(
        self, V: npt.ArrayLike, p_PQ: npt.ArrayLike
    ) -> npt.ArrayLike:
        """Shifts a spatial velocity (or each column of a 6xk hinge matrix) from P to Q

        Args:
            V (npt.ArrayLike): spatial velocity of a frame with origin P
            p_PQ (npt.ArrayLike): position of Q from P, same expressed-in frame as V

        Returns:
            npt.ArrayLike: [w; v + w X p_PQ]
        """
        w = self.angular(V)
        return self.vertcat(w, self.translational(V) - self.skew(p_PQ) @ w)

    def shift_spatial_force(
        self, F: npt.ArrayLike, p_PQ: npt.ArrayLike
    ) -> npt.ArrayLike:
        """Shifts a spatial force applied at P to the equivalent force applied at Q

        Args:
            F (npt.ArrayLike): spatial force [torque; force] at P
            p_PQ (npt.ArrayLike): position of Q from P

        Returns:
            npt.ArrayLike: [tau - p_PQ X f; f]
        """
        f = self.translational(F)
        return self.vertcat(self.angular(F) - self.skew(p_PQ) @ f, f)

    def shift_spatial_acceleration(
        self, A: npt.ArrayLike, p_PQ: npt.ArrayLike, w: npt.ArrayLike
    ) -> npt.ArrayLike:
        """Shifts a spatial acceleration from P to Q, both points fixed in a frame with angular velocity w

        Args:
            A (npt.ArrayLike): spatial acceleration of the frame at P
            p_PQ (npt.ArrayLike): position of Q from P
            w (npt.ArrayLike): angular velocity of the frame

        Returns:
            npt.ArrayLike: [alpha; a + alpha X p_PQ + w X (w X p_PQ)]
        """
        alpha = self.angular(A)
        a = (
            self.translational(A)
            + self.cross(alpha, p_PQ)
            + self.cross(w, self.cross(w, p_PQ))
        )
        return self.vertcat(alpha, a)

    def compose_with_moving_frame_acceleration(
        self,
        A_WP: npt.ArrayLike,
        p_PoBo_W: npt.ArrayLike,
        w_WP: npt.ArrayLike,
        V_PB_W: npt.ArrayLike,
        A_PB_W: npt.ArrayLike,
    ) -> npt.ArrayLike:
        """Composes the acceleration of a frame P in W with the acceleration of B measured in P

        Args:
            A_WP (npt.ArrayLike): spatial acceleration of P in W
            p_PoBo_W (npt.ArrayLike): position of Bo from Po, expressed in W
            w_WP (npt.ArrayLike): angular velocity of P in W
            V_PB_W (npt.ArrayLike): spatial velocity of B in P, expressed in W
            A_PB_W (npt.ArrayLike): spatial acceleration of B in P, expressed in W

        Returns:
            npt.ArrayLike: A_WB, expressed in W
        """
        alpha_WP = self.angular(A_WP)
        alpha_WB = (
            alpha_WP + self.angular(A_PB_W) + self.cross(w_WP, self.angular(V_PB_W))
        )
        a_WB = (
            self.translational(A_WP)
            + self.cross(alpha_WP, p_PoBo_W)
            + self.cross(w_WP, self.cross(w_WP, p_PoBo_W))
            + self.translational(A_PB_W)
            + 2.0 * self.cross(w_WP, self.translational(V_PB_W))
        )
        return self.vertcat(alpha_WB, a_WB)

    def spatial_inertia(
        self, mass, p_BoBcm: npt.ArrayLike, I_BBo: npt.ArrayLike
    ) -> npt.ArrayLike:
        """
        Args:
            mass: body mass
            p_BoBcm (npt.ArrayLike): center of mass from the body origin
            I_BBo (npt.ArrayLike): rotational inertia about the body origin

        Returns:
            npt.ArrayLike: the 6x6 spatial inertia about the body origin, mapping [w; v_Bo] to [h_Bo; l]
        """
        mC = mass * self.skew(p_BoBcm)
        return self.vertcat(
            self.horzcat(I_BBo, mC),
            self.horzcat(-mC, mass * self.factory.eye(3)),
        )

    def spatial_inertia_bias_force(
        self, mass, p_BoBcm: npt.ArrayLike, I_BBo: npt.ArrayLike, w: npt.ArrayLike
    ) -> npt.ArrayLike:
        """
        Returns:
            npt.ArrayLike: the velocity dependent term of the Newton-Euler equations about the body origin,
            [w X I_BBo w; m w X (w X p_BoBcm)]
        """
        return self.vertcat(
            self.cross(w, I_BBo @ w),
            mass * self.cross(w, self.cross(w, p_BoBcm)),
        )

    def shift_spatial_inertia(
        self, M: npt.ArrayLike, p_PQ: npt.ArrayLike
    ) -> npt.ArrayLike:
        """
        Args:
            M (npt.ArrayLike): 6x6 (articulated) spatial inertia about P
            p_PQ (npt.ArrayLike): position of Q from P

        Returns:
            npt.ArrayLike: the same inertia about Q
        """
        I3 = self.factory.eye(3)
        Z3 = self.factory.zeros(3, 3)
        Phi = self.vertcat(self.horzcat(I3, Z3), self.horzcat(self.skew(p_PQ), I3))
        return Phi.T @ M @ Phi
