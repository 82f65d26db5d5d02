r"""
Elementary holonomic constraints (Haug / Nikravesh primitives).

Every constraint acts on a body pair (i, j); either end may be the ground. Body state is
passed in at evaluation time, the constraint itself only keeps body indices and fixed
L-RF geometry.

Angular velocities are L-RF (\bar{\omega}), linear velocities G-RF. Twist-space Jacobians
have 12 columns [w_i, v_i, w_j, v_j]; `Aq` converts them to the 14 coordinate columns
[pdot_i, v_i, pdot_j, v_j].

Level 0:  g(q, t) = 0
Level 1:  Aw @ twist = nu(t)
Level 2:  Aw @ d(twist)/dt = gamma(q, twist, t)
"""
import logging
import numbers
import numpy as np
from typing import Callable, Optional, Union
from .Bodies import RigidBody
from .Orientation import tilde
from .Jacobians import Aw_to_Aq
from .Errors import ConfigurationError

logger = logging.getLogger(__name__)

I3 = np.eye(3)
Z3 = np.zeros(3)

TimeLaw = Union[Callable[[float], float], float, None]

def _body_index(body) -> Optional[int]:
    if body is None:
        return None
    if isinstance(body, RigidBody):
        if body._is_ground:
            return None
        if body._id is None:
            raise ConfigurationError(f"Body {body.name!r} must be added to an Assembly before it is constrained")
        return body._id
    return int(body)

def _as_law(f: TimeLaw, label: str) -> Callable[[float], float]:
    if f is None:
        return lambda t: 0.0
    if callable(f):
        return f
    if isinstance(f, numbers.Real):
        value = float(f)
        return lambda t: value
    raise ConfigurationError(f"{label}(t) must be a callable or a number, got {type(f).__name__}")

def _vec3(v, label: str) -> np.ndarray:
    v = np.asarray(v, dtype=float).reshape(-1)
    if v.shape != (3,):
        raise ConfigurationError(f"{label} must be a 3-vector, got shape {v.shape}")
    return v

def _unit(v, label: str) -> np.ndarray:
    v = _vec3(v, label)
    n = np.linalg.norm(v)
    if n == 0.0:
        raise ConfigurationError(f"{label} must be non-zero")
    return v / n

def _points(bi: RigidBody, siPbar, bj: RigidBody, sjQbar):
    """G-RF attachment vectors and d_ij = r_j + s_j - r_i - s_i"""
    Ai = bi.A
    Aj = bj.A
    si = Ai @ siPbar
    sj = Aj @ sjQbar
    dij = bj.r + sj - bi.r - si
    return Ai, Aj, si, sj, dij


class KCon:
    """
    Base kinematic constraint. Subclasses set `ndof` and implement g, Aw and gamma.

    ibody, jbody (RigidBody | int | None): Bodies (or their Assembly indices). None is ground.
    f, fdot, fddot: Time law on the right-hand side of g and its derivatives.
    """
    ndof = 1

    def __init__(self, ibody=None, jbody=None, f: TimeLaw=None, fdot: TimeLaw=None, fddot: TimeLaw=None, name: str=None):
        self.ibody = _body_index(ibody)
        self.jbody = _body_index(jbody)
        if self.ibody is None and self.jbody is None:
            raise ConfigurationError(f"{type(self).__name__}: both ends are attached to ground")
        if self.ibody is not None and self.ibody == self.jbody:
            raise ConfigurationError(f"{type(self).__name__}: ibody and jbody are the same body ({self.ibody})")

        self.f = _as_law(f, "f")
        self.fdot = _as_law(fdot, "fdot")
        self.fddot = _as_law(fddot, "fddot")
        self.name = name if name is not None else type(self).__name__

    @property
    def kcons(self):
        # Lets a bare KCon be used wherever a Joint is expected
        return [self]

    def g(self, bi: RigidBody, bj: RigidBody, t: float=0.0) -> np.ndarray:
        raise NotImplementedError

    def Aw(self, bi: RigidBody, bj: RigidBody) -> np.ndarray:
        raise NotImplementedError

    def Aq(self, bi: RigidBody, bj: RigidBody) -> np.ndarray:
        return Aw_to_Aq(self.Aw(bi, bj), bi.p, bj.p)

    def nu(self, t: float=0.0) -> np.ndarray:
        r"""L1 RHS: \dot{f}(t)"""
        return np.atleast_1d(float(self.fdot(t)))

    def gamma(self, bi: RigidBody, bj: RigidBody, t: float=0.0) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, ibody={self.ibody}, jbody={self.jbody})"


class CoincidentPoint(KCon):
    """Point P on ibody and point Q on jbody coincide (spherical joint core). 3 DOF."""
    ndof = 3

    def __init__(self, ibody, siPbar: np.ndarray, jbody, sjQbar: np.ndarray, name: str=None):
        """
        ibody (RigidBody): I body
        siPbar (np.ndarray): Location of Point P on ibody in L-RFi
        jbody (RigidBody): J body
        sjQbar (np.ndarray): Location of Point Q on jbody in L-RFj
        """
        super().__init__(ibody, jbody, name=name)
        self.siPbar = _vec3(siPbar, "siPbar")
        self.sjQbar = _vec3(sjQbar, "sjQbar")

    def g(self, bi, bj, t=0.0):
        r"""
        ACE: \Phi = r_j + A_j \bar{s}_j^Q - r_i - A_i \bar{s}_i^P = 0
        """
        *_, dij = _points(bi, self.siPbar, bj, self.sjQbar)
        return dij

    def Aw(self, bi, bj):
        Ai = bi.A
        Aj = bj.A
        return np.hstack((Ai @ tilde(self.siPbar), -I3, -Aj @ tilde(self.sjQbar), I3))    # 3x12

    def nu(self, t=0.0):
        return np.zeros(3)

    def gamma(self, bi, bj, t=0.0):
        r"""
        L2 RHS: A_i \tilde{\bar{\omega}}_i \tilde{\bar{\omega}}_i \bar{s}_i - A_j \tilde{\bar{\omega}}_j \tilde{\bar{\omega}}_j \bar{s}_j
        """
        witil = tilde(bi.w)
        wjtil = tilde(bj.w)
        return bi.A @ witil @ witil @ self.siPbar - bj.A @ wjtil @ wjtil @ self.sjQbar


class ConstantAngle(KCon):
    """
    Constant angle between a vector fixed in ibody and a vector fixed in jbody
    (DP1; type-1 perpendicularity when the angle is 90 deg). 1 DOF.
    """

    def __init__(self, ibody, aibar: np.ndarray, jbody, ajbar: np.ndarray, angle: float=np.pi/2,
                 f: TimeLaw=None, fdot: TimeLaw=None, fddot: TimeLaw=None, name: str=None):
        """
        ibody (RigidBody): I body
        aibar (np.ndarray): Unit vector fixed in L-RFi
        jbody (RigidBody): J body
        ajbar (np.ndarray): Unit vector fixed in L-RFj
        angle (float): Angle between the two vectors, radians. Ignored if f is given.
        f, fdot, fddot: Optional time law replacing cos(angle) on the RHS (driven angle).
        """
        if f is None:
            c = float(np.cos(angle))
            if abs(abs(c) - 1.0) < 1e-12:
                logger.warning("ConstantAngle %s: angle of %.1f deg makes the Jacobian vanish; "
                               "the constraint carries no information about the relative rotation.",
                               name, np.degrees(angle))
            f, fdot, fddot = c, 0.0, 0.0
        super().__init__(ibody, jbody, f, fdot, fddot, name=name)
        self.aibar = _unit(aibar, "aibar")
        self.ajbar = _unit(ajbar, "ajbar")

    def g(self, bi, bj, t=0.0):
        r"""
        ACE: \Phi^{DP1} = \bar{a}_i^T A_i^T A_j \bar{a}_j - f(t) = 0
        """
        ai = bi.A @ self.aibar
        aj = bj.A @ self.ajbar
        return np.array([ai @ aj - self.f(t)])

    def Aw(self, bi, bj):
        Ai = bi.A
        Aj = bj.A
        ai = Ai @ self.aibar
        aj = Aj @ self.ajbar
        return np.hstack((-aj @ Ai @ tilde(self.aibar), Z3, -ai @ Aj @ tilde(self.ajbar), Z3)).reshape(1, 12)

    def gamma(self, bi, bj, t=0.0):
        r"""
        L2 RHS: \ddot{f}(t) - a_j^T A_i \tilde{\bar{\omega}}_i^2 \bar{a}_i - a_i^T A_j \tilde{\bar{\omega}}_j^2 \bar{a}_j - 2 \dot{a}_i \cdot \dot{a}_j
        """
        Ai = bi.A
        Aj = bj.A
        ai = Ai @ self.aibar
        aj = Aj @ self.ajbar
        witil = tilde(bi.w)
        wjtil = tilde(bj.w)
        aidot = Ai @ witil @ self.aibar
        ajdot = Aj @ wjtil @ self.ajbar

        gamma_ = aj @ Ai @ witil @ witil @ self.aibar + ai @ Aj @ wjtil @ wjtil @ self.ajbar + 2*(aidot @ ajdot)
        return np.array([self.fddot(t) - gamma_])


class ConstantProjection(KCon):
    """
    Constant projection of d_ij = P_j - P_i onto a vector fixed in ibody
    (DP2; type-2 perpendicularity when the projection is 0). 1 DOF.
    """

    def __init__(self, ibody, aibar: np.ndarray, siPbar: np.ndarray, jbody, sjQbar: np.ndarray,
                 f: TimeLaw=0.0, fdot: TimeLaw=None, fddot: TimeLaw=None, name: str=None):
        """
        ibody (RigidBody): I body
        aibar (np.ndarray): Vector fixed in L-RFi
        siPbar (np.ndarray): Location of Point P on ibody in L-RFi
        jbody (RigidBody): J body
        sjQbar (np.ndarray): Location of Point Q on jbody in L-RFj
        f (Callable | float): Projection value, constant or function of time.
        fdot (Callable): Time derivative of f, as function of time.
        fddot (Callable): Second time derivative of f, as function of time.
        """
        super().__init__(ibody, jbody, f, fdot, fddot, name=name)
        self.aibar = _vec3(aibar, "aibar")
        self.siPbar = _vec3(siPbar, "siPbar")
        self.sjQbar = _vec3(sjQbar, "sjQbar")

    def g(self, bi, bj, t=0.0):
        r"""
        ACE: \Phi^{DP2} = \bar{a}_i^T A_i^T d_{ij} - f(t) = 0
        """
        Ai, _, _, _, dij = _points(bi, self.siPbar, bj, self.sjQbar)
        ai = Ai @ self.aibar
        return np.array([ai @ dij - self.f(t)])

    def Aw(self, bi, bj):
        Ai, Aj, _, _, dij = _points(bi, self.siPbar, bj, self.sjQbar)
        ai = Ai @ self.aibar
        row_wi = self.aibar @ tilde(self.siPbar) - dij @ Ai @ tilde(self.aibar)
        row_wj = -ai @ Aj @ tilde(self.sjQbar)
        return np.hstack((row_wi, -ai, row_wj, ai)).reshape(1, 12)

    def gamma(self, bi, bj, t=0.0):
        r"""
        L2 RHS: \ddot{f}(t) - d^T A_i \tilde{\bar{\omega}}_i^2 \bar{a}_i - 2 \dot{a}_i \cdot \dot{d}
                - a_i^T (A_j \tilde{\bar{\omega}}_j^2 \bar{s}_j - A_i \tilde{\bar{\omega}}_i^2 \bar{s}_i)
        """
        Ai, Aj, _, _, dij = _points(bi, self.siPbar, bj, self.sjQbar)
        ai = Ai @ self.aibar
        witil = tilde(bi.w)
        wjtil = tilde(bj.w)
        aidot = Ai @ witil @ self.aibar
        dijdot = bj.v + Aj @ wjtil @ self.sjQbar - bi.v - Ai @ witil @ self.siPbar

        h1 = Aj @ wjtil @ wjtil @ self.sjQbar - Ai @ witil @ witil @ self.siPbar    # Intermediate value
        gamma_ = dij @ Ai @ witil @ witil @ self.aibar + 2*(aidot @ dijdot) + ai @ h1
        return np.array([self.fddot(t) - gamma_])


class Distance(KCon):
    """Fixes distance between two points (D). 1 DOF."""

    def __init__(self, ibody, siPbar: np.ndarray, jbody, sjQbar: np.ndarray, length: float, name: str=None):
        """
        ibody (RigidBody): I body
        siPbar (np.ndarray): Location of Point P on ibody in L-RFi
        jbody (RigidBody): J body
        sjQbar (np.ndarray): Location of Point Q on jbody in L-RFj
        length (float): Distance between P and Q. Must be > 0 (use CoincidentPoint otherwise).
        """
        if not length > 0.0:
            raise ConfigurationError(f"Distance {name}: length must be positive, got {length}")
        super().__init__(ibody, jbody, f=float(length)**2, name=name)
        self.siPbar = _vec3(siPbar, "siPbar")
        self.sjQbar = _vec3(sjQbar, "sjQbar")
        self.length = float(length)

    def g(self, bi, bj, t=0.0):
        r"""
        ACE: \Phi^{D} = d_{ij}^T d_{ij} - L^2 = 0
        """
        *_, dij = _points(bi, self.siPbar, bj, self.sjQbar)
        return np.array([dij @ dij - self.f(t)])

    def Aw(self, bi, bj):
        Ai, Aj, _, _, dij = _points(bi, self.siPbar, bj, self.sjQbar)
        dij_w = np.hstack((Ai @ tilde(self.siPbar), -I3, -Aj @ tilde(self.sjQbar), I3))
        return (2*dij @ dij_w).reshape(1, 12)

    def gamma(self, bi, bj, t=0.0):
        r"""
        L2 RHS: -2 ||\dot{d}_{ij}||^2 - 2 d_{ij}^T (A_j \tilde{\bar{\omega}}_j^2 \bar{s}_j - A_i \tilde{\bar{\omega}}_i^2 \bar{s}_i)
        """
        Ai, Aj, _, _, dij = _points(bi, self.siPbar, bj, self.sjQbar)
        witil = tilde(bi.w)
        wjtil = tilde(bj.w)
        dijdot = bj.v + Aj @ wjtil @ self.sjQbar - bi.v - Ai @ witil @ self.siPbar

        gamma_ = 2*(dijdot @ dijdot) + 2*dij @ (Aj @ wjtil @ wjtil @ self.sjQbar - Ai @ witil @ witil @ self.siPbar)
        return np.array([self.fddot(t) - gamma_])


class SimpleCoordinate(KCon):
    """
    Fixes one G-RF coordinate of point Q on jbody, measured from point P on ibody
    (CD; ibody defaults to ground, so the coordinate is absolute). 1 DOF.
    """

    def __init__(self, jbody, sjQbar: np.ndarray, axis: Union[int, np.ndarray], value: float=0.0,
                 ibody=None, siPbar: np.ndarray=None, name: str=None):
        """
        jbody (RigidBody): Body carrying point Q
        sjQbar (np.ndarray): Location of Point Q on jbody in L-RFj
        axis (int | np.ndarray): 0/1/2 for x/y/z, or a G-RF direction c
        value (float): Target value of c^T d_ij
        ibody (RigidBody): Reference body. None is ground.
        siPbar (np.ndarray): Location of Point P on ibody in L-RFi
        """
        self._init_coordinate(jbody, sjQbar, axis, ibody, siPbar, value, None, None, name)

    def _init_coordinate(self, jbody, sjQbar, axis, ibody, siPbar, f, fdot, fddot, name):
        KCon.__init__(self, ibody, jbody, f, fdot, fddot, name=name)
        if isinstance(axis, numbers.Integral):
            if axis not in (0, 1, 2):
                raise ConfigurationError(f"axis must be 0, 1 or 2, got {axis}")
            c = np.zeros(3)
            c[axis] = 1.0
        else:
            c = _unit(axis, "axis")
        self.c = c
        self.sjQbar = _vec3(sjQbar, "sjQbar")
        self.siPbar = Z3.copy() if siPbar is None else _vec3(siPbar, "siPbar")

    def g(self, bi, bj, t=0.0):
        r"""
        ACE: \Phi^{CD} = c^T d_{ij} - f(t) = 0
        """
        *_, dij = _points(bi, self.siPbar, bj, self.sjQbar)
        return np.array([self.c @ dij - self.f(t)])

    def Aw(self, bi, bj):
        Ai = bi.A
        Aj = bj.A
        return np.hstack((self.c @ Ai @ tilde(self.siPbar), -self.c, -self.c @ Aj @ tilde(self.sjQbar), self.c)).reshape(1, 12)

    def gamma(self, bi, bj, t=0.0):
        r"""
        L2 RHS: \ddot{f}(t) - c^T (A_j \tilde{\bar{\omega}}_j^2 \bar{s}_j - A_i \tilde{\bar{\omega}}_i^2 \bar{s}_i)
        """
        witil = tilde(bi.w)
        wjtil = tilde(bj.w)
        gamma_ = self.c @ (bj.A @ wjtil @ wjtil @ self.sjQbar - bi.A @ witil @ witil @ self.siPbar)
        return np.array([self.fddot(t) - gamma_])


class DrivingCoordinate(SimpleCoordinate):
    """SimpleCoordinate whose target follows a prescribed time law f(t) (rheonomic). 1 DOF."""

    def __init__(self, jbody, sjQbar: np.ndarray, axis: Union[int, np.ndarray],
                 f: Callable[[float], float], fdot: Callable[[float], float], fddot: Callable[[float], float],
                 ibody=None, siPbar: np.ndarray=None, name: str=None):
        """
        f (Callable): Prescribed coordinate, as function of time.
        fdot (Callable): Time derivative of f, as function of time.
        fddot (Callable): Second time derivative of f, as function of time.
        """
        for label, law in (("f", f), ("fdot", fdot), ("fddot", fddot)):
            if not callable(law):
                raise ConfigurationError(f"DrivingCoordinate {name}: {label}(t) must be callable")
        self._init_coordinate(jbody, sjQbar, axis, ibody, siPbar, f, fdot, fddot, name)
