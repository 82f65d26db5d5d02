import logging
import numpy as np
from typing import List, Optional, Tuple, Union
from .Bodies import RigidBody, ground, w_to_pdot
from .KCons import KCon
from .Joints import Joint
from .Forces import Load
from .Jacobians import Aw_body_to_world
from .Errors import ConfigurationError

logger = logging.getLogger(__name__)

I3 = np.eye(3)

class Assembly:
    """
    The multibody system. Bodies are arena-indexed: `_id` is the body's position in
    `bodies` and fixes its place in every global vector:

        twist        [w; v]           at 6*_id
        coordinates  [p; r]           at 7*_id
        state        [p; r; w; v]     at 13*_id

    Joint rows follow the order joints were added. Ground is not a member; constraint
    ends with body index None are attached to it and its columns are dropped.
    """
    def __init__(self):
        self.bodies: List[RigidBody] = []
        self.joints: List[Union[Joint, KCon]] = []
        self.forces: List[Load] = []
        self.grav = np.zeros(3)
        self.ground = ground()

    def add_body(self, body: RigidBody) -> RigidBody:
        if body._is_ground:
            raise ConfigurationError("The ground body is implicit and cannot be added")
        if body._id is not None:
            raise ConfigurationError(f"Body {body.name!r} already belongs to an Assembly (id {body._id})")
        body._id = len(self.bodies)
        self.bodies.append(body)
        return body

    def add_joint(self, joint: Union[Joint, KCon]):
        for kc in joint.kcons:
            for idx in (kc.ibody, kc.jbody):
                if idx is not None and not 0 <= idx < self.nb:
                    raise ConfigurationError(f"{joint!r} refers to unknown body index {idx}")
        self.joints.append(joint)
        return joint

    def add_force(self, load: Load):
        if not 0 <= load.body < self.nb:
            raise ConfigurationError(f"{load.name} refers to unknown body index {load.body}")
        self.forces.append(load)
        return load

    def add_grav(self, g: np.ndarray):
        g = np.asarray(g, dtype=float).reshape(-1)
        if g.shape != (3,):
            raise ConfigurationError(f"Gravity must be a 3-vector, got shape {g.shape}")
        self.grav = g

    @property
    def nb(self):
        return len(self.bodies)

    @property
    def nq(self):
        return 7 * self.nb

    @property
    def nv(self):
        return 6 * self.nb

    @property
    def kcons(self) -> List[KCon]:
        return [kc for J in self.joints for kc in J.kcons]

    @property
    def nc(self):
        return sum(kc.ndof for kc in self.kcons)

    def body(self, idx: Optional[int]) -> RigidBody:
        return self.ground if idx is None else self.bodies[idx]

    def _pair(self, kc: KCon) -> Tuple[RigidBody, RigidBody]:
        return self.body(kc.ibody), self.body(kc.jbody)

    # --- State -------------------------------------------------------------------------

    def pack_q(self) -> np.ndarray:
        q = np.zeros(self.nq)
        for bdy in self.bodies:
            i = 7*bdy._id
            q[i:i+4] = bdy.p
            q[i+4:i+7] = bdy.r
        return q

    def unpack_q(self, q: np.ndarray, normalize: bool=False):
        for bdy in self.bodies:
            i = 7*bdy._id
            bdy.r = q[i+4:i+7].copy()
            p = q[i:i+4].copy()
            if normalize:
                bdy.ori.set_p(p)
            else:
                [bdy.ori.e0, bdy.ori.e1, bdy.ori.e2, bdy.ori.e3] = p

    def get_twist(self, frame: str="body") -> np.ndarray:
        twist = np.zeros(self.nv)
        for bdy in self.bodies:
            i = 6*bdy._id
            twist[i:i+3] = bdy.A @ bdy.w if frame == "world" else bdy.w
            twist[i+3:i+6] = bdy.v
        return twist

    def set_twist(self, twist: np.ndarray, frame: str="body"):
        for bdy in self.bodies:
            i = 6*bdy._id
            w = twist[i:i+3].copy()
            bdy.w = bdy.A.T @ w if frame == "world" else w
            bdy.v = twist[i+3:i+6].copy()

    def get_qdot(self) -> np.ndarray:
        qdot = np.zeros(self.nq)
        for bdy in self.bodies:
            i = 7*bdy._id
            qdot[i:i+4] = w_to_pdot(bdy.w, bdy.p)
            qdot[i+4:i+7] = bdy.v
        return qdot

    # --- Constraints -------------------------------------------------------------------

    def get_phi(self, t: float=0.0) -> np.ndarray:
        rows = [kc.g(*self._pair(kc), t) for kc in self.kcons]
        return np.concatenate(rows) if rows else np.zeros(0)

    def get_Phi_w(self, frame: str="body") -> np.ndarray:
        """Twist-space constraint Jacobian (nc, 6nb)"""
        Phi_w = np.zeros((self.nc, self.nv))
        row = 0
        for kc in self.kcons:
            bi, bj = self._pair(kc)
            Aw = kc.Aw(bi, bj)
            if frame == "world":
                Aw = Aw_body_to_world(Aw, bi.p, bj.p)
            n = kc.ndof
            if kc.ibody is not None:
                c = 6*kc.ibody
                Phi_w[row:row+n, c:c+6] = Aw[:, 0:6]
            if kc.jbody is not None:
                c = 6*kc.jbody
                Phi_w[row:row+n, c:c+6] = Aw[:, 6:12]
            row += n
        return Phi_w

    def get_Phi_q(self) -> np.ndarray:
        """Coordinate-space constraint Jacobian (nc, 7nb)"""
        Phi_q = np.zeros((self.nc, self.nq))
        row = 0
        for kc in self.kcons:
            Aq = kc.Aq(*self._pair(kc))
            n = kc.ndof
            if kc.ibody is not None:
                c = 7*kc.ibody
                Phi_q[row:row+n, c:c+7] = Aq[:, 0:7]
            if kc.jbody is not None:
                c = 7*kc.jbody
                Phi_q[row:row+n, c:c+7] = Aq[:, 7:14]
            row += n
        return Phi_q

    def get_nu(self, t: float=0.0) -> np.ndarray:
        rows = [kc.nu(t) for kc in self.kcons]
        return np.concatenate(rows) if rows else np.zeros(0)

    def get_gamma(self, t: float=0.0) -> np.ndarray:
        """Acceleration RHS. Identical for body- and world-frame angular unknowns."""
        rows = [kc.gamma(*self._pair(kc), t) for kc in self.kcons]
        return np.concatenate(rows) if rows else np.zeros(0)

    # --- Inertia and loads -------------------------------------------------------------

    def mass_matrix(self, frame: str="body") -> np.ndarray:
        """Block-diagonal diag(J, mI) per body. J in L-RF, or A J A^T for frame='world'"""
        M = np.zeros((self.nv, self.nv))
        for bdy in self.bodies:
            i = 6*bdy._id
            J = bdy.inertia
            if frame == "world":
                A = bdy.A
                J = A @ J @ A.T
            M[i:i+3, i:i+3] = J
            M[i+3:i+6, i+3:i+6] = bdy.mass * I3
        return M

    def gyroscopic(self, frame: str="body") -> np.ndarray:
        """[w x (J w); 0] per body"""
        h = np.zeros(self.nv)
        for bdy in self.bodies:
            i = 6*bdy._id
            if frame == "world":
                A = bdy.A
                w = A @ bdy.w
                J = A @ bdy.inertia @ A.T
            else:
                w = bdy.w
                J = bdy.inertia
            h[i:i+3] = np.cross(w, J @ w)
        return h

    def generalized_forces(self, t: float=0.0, frame: str="body") -> np.ndarray:
        """Applied spatial force [n; F] per body (gravity + loads). n in the selected frame."""
        Q = np.zeros(self.nv)
        for bdy in self.bodies:
            i = 6*bdy._id
            Q[i+3:i+6] = bdy.mass * self.grav

        for load in self.forces:
            i = 6*load.body
            Q[i:i+6] += load.wrench(self.bodies[load.body], t)

        if frame == "world":
            for bdy in self.bodies:
                i = 6*bdy._id
                Q[i:i+3] = bdy.A @ Q[i:i+3]
        return Q

    def get_energy(self) -> Tuple[float, float, float]:
        """(total, kinetic, potential). Potential is measured from r = 0 along the gravity vector."""
        kin = 0.0
        pot = 0.0
        for b in self.bodies:
            kin += 0.5 * b.mass * (b.v @ b.v) + 0.5 * (b.w @ (b.inertia @ b.w))
            pot -= b.mass * (self.grav @ b.r)

        return kin+pot, kin, pot

    # --- Checks ------------------------------------------------------------------------

    def validate(self, unit_tol: float=1e-6):
        """
        Check the model before a run. Normalizes initial quaternions that are within unit_tol
        of unit length; raises ConfigurationError for anything else that is off.
        """
        if self.nb == 0:
            raise ConfigurationError("Assembly has no bodies")

        for k, bdy in enumerate(self.bodies):
            if bdy._id != k:
                raise ConfigurationError(f"Body {bdy.name!r} has id {bdy._id} but sits at position {k}")
            if bdy.mass is None or not bdy.mass > 0.0:
                raise ConfigurationError(f"Body {bdy.name!r}: mass must be positive, got {bdy.mass}")
            J = bdy.inertia
            if J is None or J.shape != (3, 3):
                raise ConfigurationError(f"Body {bdy.name!r}: inertia must be a 3x3 matrix")
            if not np.allclose(J, J.T, rtol=1e-10, atol=1e-12 * max(1.0, np.abs(J).max())):
                raise ConfigurationError(f"Body {bdy.name!r}: inertia is not symmetric")
            if np.linalg.eigvalsh(J).min() <= 0.0:
                raise ConfigurationError(f"Body {bdy.name!r}: inertia is not positive definite")
            for label, vec in (("r", bdy.r), ("w", bdy.w), ("v", bdy.v)):
                if vec.shape != (3,) or not np.all(np.isfinite(vec)):
                    raise ConfigurationError(f"Body {bdy.name!r}: {label} must be a finite 3-vector")
            pnorm = np.linalg.norm(bdy.p)
            if not abs(pnorm - 1.0) <= unit_tol:
                raise ConfigurationError(f"Body {bdy.name!r}: |p| = {pnorm} is not within {unit_tol} of 1")
            bdy.ori.set_p(bdy.p)

        for kc in self.kcons:
            for idx in (kc.ibody, kc.jbody):
                if idx is not None and not 0 <= idx < self.nb:
                    raise ConfigurationError(f"{kc!r} refers to unknown body index {idx}")

        if self.nc > self.nv:
            raise ConfigurationError(f"Over-constrained: {self.nc} constraint rows for {self.nv} velocity DOFs")

        if self.nc > 0:
            rank = np.linalg.matrix_rank(self.get_Phi_w())
            if rank < self.nc:
                raise ConfigurationError(f"Redundant constraints: Jacobian has rank {rank} for {self.nc} rows")

        logger.info("Assembly: %d bodies, %d constraint rows, %d DOF", self.nb, self.nc, self.nv - self.nc)
