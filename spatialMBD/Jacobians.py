"""
Bridge between twist-space (Aw) and coordinate-space (Aq) constraint Jacobians.

Column layouts for a body pair (i, j):
    twist space       [w_i, v_i, w_j, v_j]      (12,)
    coordinate space  [pdot_i, v_i, pdot_j, v_j]  (14,)

The maps below are one-sided inverses: Aw @ T_qw @ T_wq == Aw, but T_wq @ T_qw != I
(E(p) maps R^4 -> R^3 and only E E^T = I holds).

The *_FD functions differentiate a residual numerically through pack/unpack and give
an independent reference for the closed-form Jacobians and gamma terms in KCons.
"""
import numpy as np
from typing import Callable
from scipy.linalg import block_diag
from .Orientation import E, G, rotmat
from .Bodies import RigidBody, pack, unpack

I3 = np.eye(3)

def _T_wq(Emat_i, Emat_j):
    """(12,14) map taking [pdot_i; v_i; pdot_j; v_j] -> [w_i; v_i; w_j; v_j]"""
    return block_diag(2*Emat_i, I3, 2*Emat_j, I3)

def _T_qw(Emat_i, Emat_j):
    """(14,12) map taking [w_i; v_i; w_j; v_j] -> [pdot_i; v_i; pdot_j; v_j]"""
    return block_diag(0.5*Emat_i.T, I3, 0.5*Emat_j.T, I3)

def Aw_to_Aq(Aw: np.ndarray, pi: np.ndarray, pj: np.ndarray) -> np.ndarray:
    """Aq = Aw @ blockdiag(2E(pi), I, 2E(pj), I). Aw acts on L-RF angular velocities."""
    return np.atleast_2d(Aw) @ _T_wq(E(pi), E(pj))

def Aq_to_Aw(Aq: np.ndarray, pi: np.ndarray, pj: np.ndarray) -> np.ndarray:
    """Aw = Aq @ blockdiag(0.5 E(pi)^T, I, 0.5 E(pj)^T, I). L-RF angular velocities."""
    return np.atleast_2d(Aq) @ _T_qw(E(pi), E(pj))

def Aw_to_Aq_world(Aw: np.ndarray, pi: np.ndarray, pj: np.ndarray) -> np.ndarray:
    """Same as Aw_to_Aq, for an Aw acting on G-RF angular velocities (uses G)."""
    return np.atleast_2d(Aw) @ _T_wq(G(pi), G(pj))

def Aq_to_Aw_world(Aq: np.ndarray, pi: np.ndarray, pj: np.ndarray) -> np.ndarray:
    """Same as Aq_to_Aw, returning an Aw that acts on G-RF angular velocities (uses G)."""
    return np.atleast_2d(Aq) @ _T_qw(G(pi), G(pj))

def Aw_body_to_world(Aw: np.ndarray, pi: np.ndarray, pj: np.ndarray) -> np.ndarray:
    """Re-express the angular columns of Aw for G-RF angular velocities (w_bar = A^T w)."""
    return np.atleast_2d(Aw) @ block_diag(rotmat(pi).T, I3, rotmat(pj).T, I3)


def fd_jacobian(fun: Callable, x0: np.ndarray) -> np.ndarray:
    """Central-difference Jacobian of the vector function fun at x0"""
    x0 = np.asarray(x0, dtype=float)
    f0 = np.atleast_1d(fun(x0))
    m = len(f0)
    n = len(x0)
    jac = np.empty((m, n), dtype=float)
    eps = np.cbrt(np.finfo(float).eps)

    for idx in range(n):
        h = eps * max(1.0, abs(x0[idx]))
        xu = x0.copy()
        xd = x0.copy()
        xu[idx] += h
        xd[idx] -= h
        gu = np.atleast_1d(fun(xu))    # Residual when x_idx perturbed upward
        gd = np.atleast_1d(fun(xd))    # Residual when x_idx perturbed downward
        jac[:, idx] = (gu - gd)/(2*h)

    return jac

def Aq_FD(gfun: Callable, bi: RigidBody, bj: RigidBody) -> np.ndarray:
    """
    d g / d [pi; ri; pj; rj] by finite differences.

    gfun (Callable): gfun(bi, bj) -> residual vector.
    """
    q0 = pack(bi, bj)

    def _gfun(q):
        _bi, _bj = unpack(q, bi, bj)
        return gfun(_bi, _bj)

    return fd_jacobian(_gfun, q0)

def Aw_FD(gfun: Callable, bi: RigidBody, bj: RigidBody) -> np.ndarray:
    return Aq_to_Aw(Aq_FD(gfun, bi, bj), bi.p, bj.p)

def gamma_FD(Awfun: Callable, bi: RigidBody, bj: RigidBody) -> np.ndarray:
    """
    Scleronomic gamma = -((Aw v)_q T_qw) v, with v = [w_i; v_i; w_j; v_j] held fixed.

    Awfun (Callable): Awfun(bi, bj) -> (m,12) twist-space Jacobian.
    """
    q0 = pack(bi, bj)
    vel = np.concatenate((bi.twist, bj.twist))

    def _Awv(q):
        _bi, _bj = unpack(q, bi, bj)
        return Awfun(_bi, _bj) @ vel

    Awv_q = fd_jacobian(_Awv, q0)
    Awv_w = Aq_to_Aw(Awv_q, bi.p, bj.p)
    return -Awv_w @ vel
