import numpy as np
import pytest
from numpy.testing import assert_allclose
from spatialMBD.Assembly import Assembly
from spatialMBD.Bodies import RigidBody
from spatialMBD.Forces import PointForce
from spatialMBD.KCons import DrivingCoordinate, SimpleCoordinate
from spatialMBD.Orientation import Orientation, vec2quat
from spatialMBD.Settings import SolverSettings
from spatialMBD.solvers import (get_matrix_eq, solve_accelerations, step, run_dynamics, project_positions,
                                project_velocities, constraint_forces)
from spatialMBD.Errors import ConfigurationError, NumericalError, SingularSystemError

GRAV = np.array([0.0, 0.0, -9.81])


def projectile():
    asy = Assembly()
    asy.add_body(RigidBody("Ball", np.array([0.0, 0.0, 1.0]), Orientation.identity(), mass=2.0,
                           inertia=np.diag([1.0, 2.0, 3.0]), v=np.array([1.0, 0.0, 2.0])))
    asy.add_grav(GRAV)
    return asy

def spinning_body():
    asy = Assembly()
    asy.add_body(RigidBody("Top", np.zeros(3), Orientation.from_p(vec2quat(0.3, [1.0, 2.0, 0.5])), mass=1.0,
                           inertia=np.diag([1.0, 2.0, 3.0]), w=np.array([2.0, 0.1, 0.3])))
    return asy


class TestProjectile:
    @pytest.mark.parametrize("method, tol", [("euler", 1e-2), ("rk4", 1e-9)])
    def test_ballistic_trajectory(self, method, tol):
        asy = projectile()
        res = run_dynamics(asy, dt=1e-3, end_time=1.0, method=method)
        t = res.time
        expected = np.array([0.0, 0.0, 1.0]) + np.outer(t, [1.0, 0.0, 2.0]) + 0.5*np.outer(t**2, GRAV)

        assert t[0] == 0.0
        assert t[-1] == pytest.approx(1.0)
        assert_allclose(res.r[:, 0], expected, atol=tol)
        assert_allclose(res.p[:, 0], np.tile([1.0, 0.0, 0.0, 0.0], (len(t), 1)), atol=1e-14)
        assert res.lam.shape == (len(t), 0)

    def test_step_count(self):
        assert SolverSettings(dt=1e-3, end_time=0.2).nsteps == 200
        assert SolverSettings(dt=0.1, end_time=0.3).nsteps == 3
        res = run_dynamics(projectile(), dt=0.1, end_time=0.3)
        assert res.time[-1] == pytest.approx(0.3)

    def test_write_increment(self):
        res = run_dynamics(projectile(), dt=0.01, end_time=1.0, write_increment=10)
        assert len(res) == 11
        assert_allclose(res.time, np.linspace(0.0, 1.0, 11))


class TestPendulum:
    def test_one_step_keeps_constraints(self, pendulum_factory):
        asy = pendulum_factory()
        assert np.linalg.norm(asy.get_phi(0.0)) < 1e-12
        settings = SolverSettings(dt=1e-3)
        step(asy, 0.0, settings)
        assert np.linalg.norm(asy.get_phi(settings.dt)) < 1e-8

    def test_residual_and_energy(self, pendulum_factory):
        asy = pendulum_factory(angle=np.pi/3)
        E0, *_ = asy.get_energy()
        res = run_dynamics(asy, dt=1e-3, end_time=1.0, method="rk4")
        E1, *_ = asy.get_energy()
        assert res.residual.max() < 1e-6
        assert E1 == pytest.approx(E0, abs=1e-6)
        # The bar actually swung
        assert np.linalg.norm(res.r[-1, 0] - res.r[0, 0]) > 0.1

    def test_baumgarte_bounds_drift(self, pendulum_factory):
        asy = pendulum_factory(angle=np.pi/3)
        res = run_dynamics(asy, dt=1e-3, end_time=1.0, method="euler", alpha=50.0, beta=50.0)
        assert res.residual.max() < 1e-3

    def test_static_reaction(self, pendulum_factory):
        asy = pendulum_factory(angle=0.0, mass=1.5)
        acc, lam = solve_accelerations(asy, 0.0)
        assert_allclose(acc, np.zeros(6), atol=1e-12)
        reaction = constraint_forces(asy, lam)
        assert reaction.shape == (1, 6)
        assert_allclose(reaction[0, 3:6], [0.0, 0.0, 1.5*9.81], atol=1e-10)
        assert_allclose(reaction[0, 0:3], np.zeros(3), atol=1e-10)


class TestFrames:
    def test_world_and_body_frames_agree(self, triple_pendulum_factory):
        finals = {}
        for frame in ("body", "world"):
            asy = triple_pendulum_factory()
            res = run_dynamics(asy, dt=1e-3, end_time=0.2, method="rk4", frame=frame)
            finals[frame] = res
        assert_allclose(finals["world"].r, finals["body"].r, atol=1e-8)
        assert_allclose(finals["world"].p, finals["body"].p, atol=1e-8)
        assert_allclose(finals["world"].w, finals["body"].w, atol=1e-8)
        assert_allclose(finals["world"].lam, finals["body"].lam, atol=1e-6)

    def test_solve_accelerations_frame_independent(self, triple_pendulum):
        for b in triple_pendulum.bodies:
            b.w = np.array([0.3, -0.2, 0.5])
        acc_b, lam_b = solve_accelerations(triple_pendulum, 0.0, SolverSettings(frame="body"))
        acc_w, lam_w = solve_accelerations(triple_pendulum, 0.0, SolverSettings(frame="world"))
        assert_allclose(acc_w, acc_b, atol=1e-10)
        assert_allclose(lam_w, lam_b, atol=1e-8)


class TestTriplePendulum:
    def test_conserves_energy(self, triple_pendulum):
        E0, *_ = triple_pendulum.get_energy()
        res = run_dynamics(triple_pendulum, dt=1e-3, end_time=0.5, method="rk4", write_increment=50)
        E1, *_ = triple_pendulum.get_energy()
        assert E1 == pytest.approx(E0, abs=1e-5)
        assert res.residual.max() < 1e-6
        assert res.lam.shape == (len(res), 9)


class TestTorqueFreeSpin:
    def test_conserves_world_angular_momentum(self):
        asy = spinning_body()
        b = asy.bodies[0]
        H0 = b.A @ b.inertia @ b.w
        _, T0, _ = asy.get_energy()
        run_dynamics(asy, dt=1e-3, end_time=2.0, method="rk4")
        H1 = b.A @ b.inertia @ b.w
        _, T1, _ = asy.get_energy()
        assert_allclose(H1, H0, rtol=1e-6, atol=1e-8)
        assert T1 == pytest.approx(T0, rel=1e-6)
        assert np.linalg.norm(b.p) == pytest.approx(1.0, abs=1e-12)

    def test_quaternion_stays_unit_without_constraints(self):
        asy = spinning_body()
        run_dynamics(asy, dt=1e-2, end_time=1.0, method="euler", renormalize_every=5)
        # Last step (100) is a multiple of 5, so the final state is renormalized
        assert np.linalg.norm(asy.bodies[0].p) == pytest.approx(1.0, abs=1e-12)


def driven_slider():
    """Free body whose CG x coordinate follows 0.1 sin(3t)"""
    asy = Assembly()
    body = asy.add_body(RigidBody("Slider", np.zeros(3), Orientation.identity(), mass=1.0, inertia=np.eye(3)))
    asy.add_joint(DrivingCoordinate(body, np.zeros(3), 0,
                                    lambda t: 0.1*np.sin(3*t),
                                    lambda t: 0.3*np.cos(3*t),
                                    lambda t: -0.9*np.sin(3*t), name="Drive-X"))
    return asy


class TestDrivingConstraint:
    def test_project_velocities(self):
        asy = driven_slider()
        residual = project_velocities(asy, 0.0)
        assert residual < 1e-12
        assert_allclose(asy.bodies[0].v, [0.3, 0.0, 0.0], atol=1e-12)
        assert_allclose(asy.bodies[0].w, np.zeros(3), atol=1e-12)

    def test_tracks_time_law(self):
        asy = driven_slider()
        project_velocities(asy, 0.0)
        res = run_dynamics(asy, dt=1e-3, end_time=1.0, method="rk4")
        assert_allclose(res.r[:, 0, 0], 0.1*np.sin(3*res.time), atol=1e-6)
        assert res.residual.max() < 1e-6
        # Force needed to drive a unit mass: lam = -m xddot
        assert_allclose(res.lam[:, 0], 0.9*np.sin(3*res.time), atol=1e-6)

    def test_baumgarte_uses_time_law(self):
        asy = driven_slider()
        asy.bodies[0].r = np.array([0.05, 0.0, 0.0])    # Off the prescribed path at t = 0
        settings = SolverSettings(alpha=0.0, beta=2.0)
        A, b = get_matrix_eq(asy, 0.0, settings)
        # gamma - beta^2 C with C = x - f(0) = 0.05 and Cdot = 0 - fdot(0) = -0.3
        assert b[-1] == pytest.approx(-4.0*0.05)
        settings = SolverSettings(alpha=1.0, beta=0.0)
        A, b = get_matrix_eq(asy, 0.0, settings)
        assert b[-1] == pytest.approx(-2.0*(-0.3))


def offset_body():
    """Body 0.3 off the plane x = 0 it is held on"""
    asy = Assembly()
    body = asy.add_body(RigidBody("Puck", np.array([0.3, 0.0, 0.0]), Orientation.identity(), mass=1.0, inertia=np.eye(3)))
    asy.add_joint(SimpleCoordinate(body, np.zeros(3), 0))
    return asy


class TestProjection:
    def test_project_positions(self, pendulum_factory):
        asy = pendulum_factory(angle=np.pi/4)
        bar = asy.bodies[0]
        bar.r = bar.r + [0.05, -0.02, 0.03]
        [bar.ori.e0, bar.ori.e1, bar.ori.e2, bar.ori.e3] = bar.p * 1.02
        assert np.linalg.norm(asy.get_phi(0.0)) > 1e-3

        residual = project_positions(asy, 0.0)
        assert residual < 1e-10
        assert np.linalg.norm(asy.get_phi(0.0)) < 1e-9
        assert np.linalg.norm(bar.p) == pytest.approx(1.0, abs=1e-12)

    def test_converges_on_last_iteration(self):
        asy = offset_body()
        # The constraint is linear in r, so one Newton correction is exact
        residual = project_positions(asy, 0.0, max_iters=1)
        assert residual < 1e-10
        assert asy.bodies[0].r[0] == pytest.approx(0.0, abs=1e-12)

    def test_no_iterations(self):
        asy = offset_body()
        with pytest.raises(NumericalError, match="0 iterations"):
            project_positions(asy, 0.0, max_iters=0)
        asy.bodies[0].r = np.zeros(3)
        assert project_positions(asy, 0.0, max_iters=0) == 0.0

    def test_negative_iterations(self):
        with pytest.raises(ConfigurationError):
            project_positions(offset_body(), 0.0, max_iters=-1)

    def test_projection_then_run(self, pendulum_factory):
        asy = pendulum_factory(angle=np.pi/4)
        bar = asy.bodies[0]
        bar.r = bar.r + [0.01, 0.0, 0.0]
        bar.v = np.array([0.0, 0.4, 0.0])
        project_positions(asy)
        project_velocities(asy)
        assert np.linalg.norm(asy.get_Phi_w() @ asy.get_twist()) < 1e-12
        res = run_dynamics(asy, dt=1e-3, end_time=0.2, method="rk4")
        assert res.residual.max() < 1e-8


class TestErrors:
    def test_invalid_model(self):
        asy = projectile()
        asy.bodies[0].mass = -1.0
        with pytest.raises(ConfigurationError):
            run_dynamics(asy, dt=1e-3, end_time=0.01)

    @pytest.mark.parametrize("kwargs", [
        dict(dt=0.0),
        dict(end_time=-1.0),
        dict(alpha=-1.0),
        dict(frame="inertial"),
        dict(method="bdf"),
        dict(write_increment=0),
        dict(renormalize_every=-1),
        dict(dt=0.1, end_time=0.25),
        dict(dt=0.3, end_time=1.0),
    ])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ConfigurationError):
            SolverSettings(**kwargs)
        with pytest.raises(ConfigurationError):
            run_dynamics(projectile(), SolverSettings(), **kwargs)

    def test_singular_system(self):
        asy = Assembly()
        asy.add_body(RigidBody("Massless", np.zeros(3), Orientation.identity(), mass=0.0, inertia=np.zeros((3, 3))))
        with pytest.raises(SingularSystemError):
            solve_accelerations(asy, 0.0)

    def test_singular_is_linalg_error(self):
        assert issubclass(SingularSystemError, np.linalg.LinAlgError)

    def test_non_finite_load(self):
        asy = projectile()
        asy.add_force(PointForce(asy.bodies[0], lambda t: [np.nan, 0.0, 0.0]))
        with pytest.raises(NumericalError):
            step(asy, 0.0, SolverSettings())

    def test_diverging_state(self):
        asy = projectile()
        asy.bodies[0].v = np.array([1e308, 0.0, 0.0])
        with pytest.raises(NumericalError):
            step(asy, 0.0, SolverSettings(dt=1e10, end_time=1e10))
