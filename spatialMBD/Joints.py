"""
Composite joints. A joint is an ordered list of elementary KCons acting on the same body
pair; its outputs are the row stacks of theirs.
"""
import numpy as np
from typing import List
from .Bodies import RigidBody
from .KCons import KCon, CoincidentPoint, ConstantAngle, ConstantProjection, _unit
from .Errors import ConfigurationError

def normals(a: np.ndarray):
    """Two unit vectors completing the unit vector a to a right-handed orthonormal triad"""
    a = _unit(a, "axis")
    helper = np.eye(3)[np.argmin(np.abs(a))]    # Coordinate axis least aligned with a
    n1 = np.cross(a, helper)
    n1 /= np.linalg.norm(n1)
    n2 = np.cross(a, n1)
    return n1, n2


class Joint:
    def __init__(self, kcons: List[KCon], name: str=None):
        if len(kcons) == 0:
            raise ConfigurationError("A joint needs at least one constraint")
        pair = (kcons[0].ibody, kcons[0].jbody)
        for kc in kcons[1:]:
            if (kc.ibody, kc.jbody) != pair:
                raise ConfigurationError(f"{type(self).__name__}: all constraints must act on the same body pair")
        self.kcons = list(kcons)
        self.name = name if name is not None else type(self).__name__

    @property
    def ibody(self):
        return self.kcons[0].ibody

    @property
    def jbody(self):
        return self.kcons[0].jbody

    @property
    def ndof(self):
        return sum(kc.ndof for kc in self.kcons)

    def g(self, bi, bj, t=0.0) -> np.ndarray:
        return np.concatenate([kc.g(bi, bj, t) for kc in self.kcons])

    def Aw(self, bi, bj) -> np.ndarray:
        return np.vstack([kc.Aw(bi, bj) for kc in self.kcons])

    def Aq(self, bi, bj) -> np.ndarray:
        return np.vstack([kc.Aq(bi, bj) for kc in self.kcons])

    def nu(self, t=0.0) -> np.ndarray:
        return np.concatenate([kc.nu(t) for kc in self.kcons])

    def gamma(self, bi, bj, t=0.0) -> np.ndarray:
        return np.concatenate([kc.gamma(bi, bj, t) for kc in self.kcons])

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, ndof={self.ndof}, ibody={self.ibody}, jbody={self.jbody})"


class Spherical(Joint):
    """Ball joint. 3 DOF removed."""
    def __init__(self, ibody, siPbar, jbody, sjQbar, name=None):
        super().__init__([CoincidentPoint(ibody, siPbar, jbody, sjQbar)], name=name)


def _axis_normals(aibar, ni1bar, ni2bar, joint: str):
    if (ni1bar is None) != (ni2bar is None):
        raise ConfigurationError(f"{joint}: give both ni1bar and ni2bar, or neither")
    if ni1bar is None:
        return normals(aibar)
    return _unit(ni1bar, "ni1bar"), _unit(ni2bar, "ni2bar")

def _body_A(body) -> np.ndarray:
    if body is None or (isinstance(body, RigidBody) and body._is_ground):
        return np.eye(3)
    if isinstance(body, RigidBody):
        return body.A
    raise ConfigurationError("Bodies given by index carry no orientation; pass nj1bar explicitly")


class Revolute(Joint):
    """
    Hinge about an axis through P (ibody) / Q (jbody). 5 DOF removed.

    ajbar (np.ndarray): Joint axis in L-RFj
    aibar (np.ndarray): Joint axis in L-RFi. Defaults to ajbar (bodies initially aligned).
    ni1bar, ni2bar (np.ndarray): Normals to the axis in L-RFi. Built from aibar if not given.
    """
    def __init__(self, ibody, siPbar, jbody, sjQbar, ajbar, aibar=None, ni1bar=None, ni2bar=None, name=None):
        aibar = ajbar if aibar is None else aibar
        ni1bar, ni2bar = _axis_normals(aibar, ni1bar, ni2bar, "Revolute")
        super().__init__([
            CoincidentPoint(ibody, siPbar, jbody, sjQbar),
            ConstantAngle(ibody, ni1bar, jbody, ajbar),
            ConstantAngle(ibody, ni2bar, jbody, ajbar),
        ], name=name)


class Universal(Joint):
    """Cross (Hooke) joint. aibar and ajbar are the two arms of the cross. 4 DOF removed."""
    def __init__(self, ibody, siPbar, jbody, sjQbar, aibar, ajbar, name=None):
        super().__init__([
            CoincidentPoint(ibody, siPbar, jbody, sjQbar),
            ConstantAngle(ibody, aibar, jbody, ajbar),
        ], name=name)


class Cylindrical(Joint):
    """
    Q (jbody) slides along and rotates about the line through P with direction aibar (ibody). 4 DOF removed.

    ajbar (np.ndarray): Joint axis in L-RFj
    aibar (np.ndarray): Joint axis in L-RFi. Defaults to ajbar (bodies initially aligned).
    """
    def __init__(self, ibody, siPbar, jbody, sjQbar, ajbar, aibar=None, name=None):
        aibar = ajbar if aibar is None else aibar
        ni1bar, ni2bar = normals(aibar)
        super().__init__(self._cylindrical(ibody, siPbar, jbody, sjQbar, ajbar, ni1bar, ni2bar), name=name)

    @staticmethod
    def _cylindrical(ibody, siPbar, jbody, sjQbar, ajbar, ni1bar, ni2bar):
        return [
            ConstantAngle(ibody, ni1bar, jbody, ajbar),
            ConstantAngle(ibody, ni2bar, jbody, ajbar),
            ConstantProjection(ibody, ni1bar, siPbar, jbody, sjQbar),
            ConstantProjection(ibody, ni2bar, siPbar, jbody, sjQbar),
        ]


class Translational(Cylindrical):
    """
    Prismatic joint: Cylindrical with the rotation about the axis locked. 5 DOF removed.

    The lock keeps ni1bar (L-RFi) perpendicular to nj1bar (L-RFj). Unless nj1bar is given,
    it is taken from the current configuration as A_j^T A_i ni2bar, so the joint holds
    the relative orientation the bodies have when it is built.
    """
    def __init__(self, ibody, siPbar, jbody, sjQbar, ajbar, aibar=None, ni1bar=None, ni2bar=None,
                 nj1bar=None, name=None):
        aibar = ajbar if aibar is None else aibar
        ni1bar, ni2bar = _axis_normals(aibar, ni1bar, ni2bar, "Translational")
        if nj1bar is None:
            nj1bar = _body_A(jbody).T @ _body_A(ibody) @ ni2bar
        kcons = self._cylindrical(ibody, siPbar, jbody, sjQbar, ajbar, ni1bar, ni2bar)
        kcons.append(ConstantAngle(ibody, ni1bar, jbody, nj1bar))
        Joint.__init__(self, kcons, name=name)
