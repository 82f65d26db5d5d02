import time
import logging
import warnings
import dataclasses
import numpy as np
import scipy.linalg
from scipy.linalg import LinAlgWarning
from typing import Tuple
from .Assembly import Assembly
from .Orientation import E
from .Settings import SolverSettings
from .Post import Results, Recorder
from .Errors import ConfigurationError, NumericalError, SingularSystemError

logger = logging.getLogger(__name__)

def _solveAxb(A, b):
    """Solve the symmetric (indefinite) KKT system. Ill-conditioning is an error, not a warning."""
    with warnings.catch_warnings():
        warnings.simplefilter("error", LinAlgWarning)
        try:
            x = scipy.linalg.solve(A, b, assume_a="sym", check_finite=False)
        except (np.linalg.LinAlgError, LinAlgWarning) as exc:
            raise SingularSystemError(f"KKT matrix is singular or ill-conditioned: {exc}") from exc

    if not np.all(np.isfinite(x)):
        raise NumericalError("Non-finite accelerations/multipliers from KKT solve")
    return x


def get_matrix_eq(asy: Assembly, t: float, settings: SolverSettings=None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build the L2 matrix equation for the current state of asy

    | M   Cq^T | * | twist_dot | = | f - gyro                     |
    | Cq  0    |   | lam       |   | gamma - 2 a Cdot - b^2 C     |

    with Cdot = Cq twist - nu(t). Angular unknowns are in settings.frame.
    """
    settings = settings if settings is not None else SolverSettings()
    frame = settings.frame
    nv = asy.nv
    nc = asy.nc

    A = np.zeros((nv + nc, nv + nc))
    b = np.zeros(nv + nc)

    A[0:nv, 0:nv] = asy.mass_matrix(frame)
    b[0:nv] = asy.generalized_forces(t, frame) - asy.gyroscopic(frame)

    if nc > 0:
        Cq = asy.get_Phi_w(frame)
        A[nv:, 0:nv] = Cq
        A[0:nv, nv:] = Cq.T

        C = asy.get_phi(t)
        Cdot = Cq @ asy.get_twist(frame) - asy.get_nu(t)
        b[nv:] = asy.get_gamma(t) - 2*settings.alpha*Cdot - settings.beta**2*C

    if not np.all(np.isfinite(b)):
        raise NumericalError(f"Non-finite right-hand side at t = {t}")

    return A, b


def solve_accelerations(asy: Assembly, t: float, settings: SolverSettings=None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve the EOM at the current state. Returns (twist_dot, lam) with the angular
    accelerations always expressed in L-RF.
    """
    settings = settings if settings is not None else SolverSettings()
    A, b = get_matrix_eq(asy, t, settings)
    x = _solveAxb(A, b)

    acc = x[0:asy.nv]
    lam = x[asy.nv:]
    if settings.frame == "world":
        for bdy in asy.bodies:
            i = 6*bdy._id
            acc[i:i+3] = bdy.A.T @ acc[i:i+3]    # L-RF: wbar_dot = A^T w_dot

    return acc, lam


def constraint_forces(asy: Assembly, lam: np.ndarray, frame: str="body") -> np.ndarray:
    """Reaction spatial force [n; F] on each body, -Cq^T lam, shape (nb, 6)"""
    Cq = asy.get_Phi_w(frame)
    return (-Cq.T @ lam).reshape(asy.nb, 6)


def get_state(asy: Assembly) -> np.ndarray:
    y = np.zeros(13*asy.nb)
    for bdy in asy.bodies:
        i = 13*bdy._id
        y[i:i+4] = bdy.p
        y[i+4:i+7] = bdy.r
        y[i+7:i+10] = bdy.w
        y[i+10:i+13] = bdy.v
    return y

def set_state(asy: Assembly, y: np.ndarray):
    for bdy in asy.bodies:
        i = 13*bdy._id
        [bdy.ori.e0, bdy.ori.e1, bdy.ori.e2, bdy.ori.e3] = y[i:i+4]
        bdy.r = y[i+4:i+7].copy()
        bdy.w = y[i+7:i+10].copy()
        bdy.v = y[i+10:i+13].copy()

def _state_derivative(asy: Assembly, t: float, y: np.ndarray, settings: SolverSettings):
    set_state(asy, y)
    acc, lam = solve_accelerations(asy, t, settings)
    ydot = np.zeros_like(y)
    for bdy in asy.bodies:
        i = 13*bdy._id
        k = 6*bdy._id
        ydot[i:i+4] = 0.5 * E(bdy.p).T @ bdy.w
        ydot[i+4:i+7] = bdy.v
        ydot[i+7:i+13] = acc[k:k+6]
    return ydot, lam


def step(asy: Assembly, t: float, settings: SolverSettings=None, renormalize: bool=True) -> np.ndarray:
    """
    Advance asy by one step of settings.dt from time t. Loads, time laws and the Baumgarte
    residual are evaluated at (t, current state). Returns lam at t.
    """
    settings = settings if settings is not None else SolverSettings()
    dt = settings.dt

    if settings.method == "euler":
        # Euler-Cromer: velocities first, positions with the updated velocities
        acc, lam = solve_accelerations(asy, t, settings)
        for bdy in asy.bodies:
            k = 6*bdy._id
            bdy.w = bdy.w + dt*acc[k:k+3]
            bdy.v = bdy.v + dt*acc[k+3:k+6]
            bdy.r = bdy.r + dt*bdy.v
            [bdy.ori.e0, bdy.ori.e1, bdy.ori.e2, bdy.ori.e3] = bdy.p + dt*0.5*E(bdy.p).T @ bdy.w
    else:
        y0 = get_state(asy)
        k1, lam = _state_derivative(asy, t, y0, settings)
        k2, _ = _state_derivative(asy, t + 0.5*dt, y0 + 0.5*dt*k1, settings)
        k3, _ = _state_derivative(asy, t + 0.5*dt, y0 + 0.5*dt*k2, settings)
        k4, _ = _state_derivative(asy, t + dt, y0 + dt*k3, settings)
        set_state(asy, y0 + (dt/6.0)*(k1 + 2*k2 + 2*k3 + k4))

    if renormalize:
        for bdy in asy.bodies:
            bdy.ori.set_p(bdy.p)

    if not np.all(np.isfinite(get_state(asy))):
        raise NumericalError(f"Non-finite state after step from t = {t}")

    return lam


def run_dynamics(asy: Assembly, settings: SolverSettings=None, **overrides) -> Results:
    """
    Forward dynamics from the current state of asy to settings.end_time.

    settings (SolverSettings): Solver configuration. Keyword overrides replace individual fields.
    """
    if settings is None:
        settings = SolverSettings(**overrides)
    elif overrides:
        settings = dataclasses.replace(settings, **overrides)

    asy.validate(settings.unit_tol)

    phi0 = np.linalg.norm(asy.get_phi(0.0))
    if phi0 > 1e-8:
        logger.warning("Initial configuration violates constraints (|phi| = %.3e); "
                       "consider project_positions/project_velocities first.", phi0)

    nsteps = settings.nsteps
    logger.info("Starting %s run: %d steps of dt = %g, frame = %s", settings.method, nsteps, settings.dt, settings.frame)
    tic = time.perf_counter()

    recorder = Recorder(asy)
    for n in range(nsteps):
        t = n * settings.dt
        write = n % settings.write_increment == 0
        if write:
            snap = recorder.snapshot(t)

        renormalize = settings.renormalize_every > 0 and (n + 1) % settings.renormalize_every == 0
        lam = step(asy, t, settings, renormalize=renormalize)

        if write:
            recorder.record(snap, lam)
            logger.debug("t = %.6f  |phi| = %.3e", t, snap.residual)

    if nsteps % settings.write_increment == 0:
        t = nsteps * settings.dt
        _, lam = solve_accelerations(asy, t, settings)
        recorder.record(recorder.snapshot(t), lam)

    toc = time.perf_counter()
    logger.info("Finished run to t = %g in %.3f s (final |phi| = %.3e)",
                nsteps * settings.dt, toc - tic, np.linalg.norm(asy.get_phi(nsteps * settings.dt)))

    return recorder.results()


def project_positions(asy: Assembly, t: float=0.0, tol: float=1e-10, max_iters: int=25) -> float:
    """
    Newton projection of (p, r) onto phi(q, t) = 0 together with the Euler parameter
    normalization 0.5(p^T p - 1) = 0. Minimum-norm corrections. Returns the final residual norm.

    Raises NumericalError if the residual is still >= tol after max_iters corrections.
    """
    if max_iters < 0:
        raise ConfigurationError(f"max_iters must be >= 0, got {max_iters}")
    nb = asy.nb
    nc = asy.nc

    # The residual is checked before every correction and once after the last one
    for k in range(max_iters + 1):
        phiP = np.array([0.5*(b.p @ b.p - 1.0) for b in asy.bodies])
        varphi = np.hstack([asy.get_phi(t), phiP])
        res = np.linalg.norm(varphi)
        logger.debug("Position projection step %d: |phi| = %.3e", k, res)
        if res < tol:
            break
        if k == max_iters:
            raise NumericalError(f"Position projection did not converge in {max_iters} iterations (|phi| = {res:.3e})")

        Phi_aug = np.zeros((nc + nb, asy.nq))
        Phi_aug[0:nc] = asy.get_Phi_q()
        for b in asy.bodies:
            Phi_aug[nc + b._id, 7*b._id:7*b._id+4] = b.p

        dq, *_ = np.linalg.lstsq(Phi_aug, -varphi, rcond=None)
        asy.unpack_q(asy.pack_q() + dq)

    for b in asy.bodies:
        b.ori.set_p(b.p)

    return res


def project_velocities(asy: Assembly, t: float=0.0) -> float:
    """Minimum-norm correction of the twist so that Cq twist = nu(t). Returns the final residual norm."""
    if asy.nc == 0:
        return 0.0

    Cq = asy.get_Phi_w()
    twist = asy.get_twist()
    rhs = asy.get_nu(t) - Cq @ twist
    dv, *_ = np.linalg.lstsq(Cq, rhs, rcond=None)
    asy.set_twist(twist + dv)

    return float(np.linalg.norm(Cq @ asy.get_twist() - asy.get_nu(t)))
