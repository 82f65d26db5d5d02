import numpy as np
from typing import Optional, Tuple
from dataclasses import dataclass, field, replace
from .Orientation import Orientation, E

@dataclass
class RigidBody:
    name: str
    r: np.ndarray   # (x,y,z) of CG in G-RF
    ori: Orientation
    mass: float = None
    inertia: np.ndarray = None      # Jbar about the CG, in L-RF
    w: np.ndarray = field(default_factory=lambda: np.zeros(3))     # Angular velocity, L-RF
    v: np.ndarray = field(default_factory=lambda: np.zeros(3))     # Velocity of CG, G-RF
    _id: int = None
    _is_ground: bool = False

    def __post_init__(self):
        self.r = np.asarray(self.r, dtype=float)
        self.w = np.asarray(self.w, dtype=float)
        self.v = np.asarray(self.v, dtype=float)
        if self.inertia is not None:
            self.inertia = np.asarray(self.inertia, dtype=float)

    @property
    def p(self):
        return self.ori.p

    @property
    def A(self):
        return self.ori.A

    @property
    def pdot(self):
        return w_to_pdot(self.w, self.p)

    @property
    def twist(self):
        """[w; v], the 6 generalized velocities of the body"""
        return np.concatenate((self.w, self.v))


def ground() -> RigidBody:
    """Fixed reference body at the G-RF origin"""
    return RigidBody("Ground", np.zeros(3), Orientation.identity(), _is_ground=True)

def w_to_pdot(w: np.ndarray, p: np.ndarray) -> np.ndarray:
    """Quaternion rate from L-RF angular velocity: pdot = 0.5 E(p)^T w"""
    return 0.5 * E(p).T @ w

def pack(bi: RigidBody, bj: Optional[RigidBody] = None) -> np.ndarray:
    """[p; r] of one body (7,) or [pi; ri; pj; rj] of a pair (14,)"""
    qi = np.concatenate((bi.p, bi.r))
    if bj is None:
        return qi
    return np.concatenate((qi, bj.p, bj.r))

def unpack(q: np.ndarray, templi: RigidBody, templj: RigidBody) -> Tuple[RigidBody, RigidBody]:
    """
    Inverse of `pack` for a pair. (p, r) come from q and are stored as given;
    everything else (w, v, mass, inertia, ...) is carried over from the templates.
    """
    q = np.asarray(q)
    bi = replace(templi, r=q[4:7].copy(), ori=Orientation.from_p(q[0:4]))
    bj = replace(templj, r=q[11:14].copy(), ori=Orientation.from_p(q[7:11]))
    return bi, bj
