"""
Applied loads. Each load acts on one body and returns its spatial force [n; F] for the
body's twist [w; v]: n is the moment about the CG in L-RF, F the force in G-RF.

Magnitudes can be constant vectors or callables of time.
"""
import numpy as np
from typing import Callable, Union
from .Bodies import RigidBody
from .Orientation import tilde
from .Errors import ConfigurationError

Vec3Law = Union[np.ndarray, Callable[[float], np.ndarray]]

def _as_vec3_law(value: Vec3Law, label: str) -> Callable[[float], np.ndarray]:
    if callable(value):
        return lambda t: np.asarray(value(t), dtype=float).reshape(3)
    value = np.asarray(value, dtype=float).reshape(-1)
    if value.shape != (3,):
        raise ConfigurationError(f"{label} must be a 3-vector or a callable of time")
    return lambda t: value


class Load:
    def __init__(self, body: RigidBody, name: str=None):
        if not isinstance(body, RigidBody) or body._is_ground:
            raise ConfigurationError("Loads must be applied to a (non-ground) RigidBody")
        if body._id is None:
            raise ConfigurationError(f"Body {body.name!r} must be added to an Assembly before it is loaded")
        self.body = body._id
        self.name = name if name is not None else type(self).__name__

    def wrench(self, b: RigidBody, t: float) -> np.ndarray:
        """[n_bar; F] acting on body b at time t"""
        raise NotImplementedError


class PointForce(Load):
    """
    Force F applied at point sbar (L-RF, relative to CG) of a body.

    F (np.ndarray | Callable): Force, constant or as function of time.
    sbar (np.ndarray): Point of application in L-RF. Defaults to the CG.
    local (bool): If True, F is given in L-RF (follower force), otherwise in G-RF.
    """
    def __init__(self, body: RigidBody, F: Vec3Law, sbar: np.ndarray=None, local: bool=False, name: str=None):
        super().__init__(body, name=name)
        self.F = _as_vec3_law(F, "F")
        self.sbar = np.zeros(3) if sbar is None else np.asarray(sbar, dtype=float).reshape(3)
        self.local = local

    def wrench(self, b, t):
        F = self.F(t)
        if self.local:
            Fbar = F
            F = b.A @ Fbar
        else:
            Fbar = b.A.T @ F
        return np.concatenate((tilde(self.sbar) @ Fbar, F))


class Torque(Load):
    """
    Pure moment n on a body.

    local (bool): If True, n is given in L-RF, otherwise in G-RF.
    """
    def __init__(self, body: RigidBody, n: Vec3Law, local: bool=False, name: str=None):
        super().__init__(body, name=name)
        self.n = _as_vec3_law(n, "n")
        self.local = local

    def wrench(self, b, t):
        n = self.n(t)
        nbar = n if self.local else b.A.T @ n
        return np.concatenate((nbar, np.zeros(3)))
