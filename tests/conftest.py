import numpy as np
import pytest
from spatialMBD.Assembly import Assembly
from spatialMBD.Bodies import RigidBody
from spatialMBD.Joints import Spherical
from spatialMBD.KCons import SimpleCoordinate
from spatialMBD.Orientation import Orientation, vec2quat, vecs2ori

PA = np.array([0.6425754631219991, -0.08032193289024989, 0.24096579867074963, 0.7228973960122489])
PB = np.array([np.cos(np.radians(15)), 0.0, np.sin(np.radians(15)), 0.0])

SA = np.array([0.3, -0.1, 0.2])     # Point on body A, L-RF
SB = np.array([1.0, 0.7, -0.2])     # Point on body B, L-RF
AA = np.array([-0.3, 0.2, -0.1])    # Direction fixed in body A, L-RF
AB = np.array([0.2, -0.4, 0.9])     # Direction fixed in body B, L-RF


def make_body(name, p, r, w=(0, 0, 0), v=(0, 0, 0), _id=None, mass=1.0, inertia=None):
    p = np.asarray(p, dtype=float)
    return RigidBody(name, np.asarray(r, dtype=float), Orientation.from_p(p / np.linalg.norm(p)),
                     mass=mass, inertia=np.diag([0.4, 0.5, 0.6]) if inertia is None else inertia,
                     w=np.asarray(w, dtype=float), v=np.asarray(v, dtype=float), _id=_id)


@pytest.fixture
def body_a():
    return make_body("A", PA, [0.1, 0.2, 0.3], w=[0.3, -0.5, 0.8], v=[0.1, 0.2, -0.3], _id=0)

@pytest.fixture
def body_b():
    return make_body("B", PB, [1.0, -0.7, 0.4], w=[0.0, 1.0, 0.0], v=[-0.2, 0.4, 0.5], _id=1)

@pytest.fixture
def body_b_spinning():
    """Body B with every velocity component non-zero"""
    return make_body("B", PB, [1.0, -0.7, 0.4], w=[0.7, 1.0, -0.4], v=[-0.2, 0.4, 0.5], _id=1)


def _link(name, r, f, g, h):
    ori = vecs2ori(np.array(f, float), np.array(g, float), np.array(h, float))
    return RigidBody(name, np.asarray(r, dtype=float), ori, mass=2.0, inertia=np.diag([0.01, 0.06, 0.06]))

def build_triple_pendulum():
    """Three unit links hanging from the origin, joined end to end by ball joints"""
    n0 = np.array([0, 0, 0])
    n1 = np.array([1, 0, 0])
    n2 = np.array([1, 0, -1])
    n3 = np.array([1, 1, -1])

    asy = Assembly()
    link1 = asy.add_body(_link("Link1", 0.5*(n0 + n1), [1, 0, 0], [0, 1, 0], [0, 0, 1]))
    link2 = asy.add_body(_link("Link2", 0.5*(n1 + n2), [0, 0, -1], [-1, 0, 0], [0, 1, 0]))
    link3 = asy.add_body(_link("Link3", 0.5*(n2 + n3), [0, 1, 0], [-1, 0, 0], [0, 0, 1]))

    siPbar = np.array([-0.5, 0.0, 0.0])  # left end of a link
    sjQbar = np.array([0.5, 0.0, 0.0])  # right end of a link

    # Link 1 to ground at origin (ball joint via 3 simple coordinates at the left end)
    for idx, xyz in enumerate("XYZ"):
        asy.add_joint(SimpleCoordinate(link1, siPbar, axis=idx, name=f"CD01-{xyz}"))

    asy.add_joint(Spherical(link1, sjQbar, link2, siPbar, name="S12"))
    asy.add_joint(Spherical(link2, sjQbar, link3, siPbar, name="S23"))
    asy.add_grav(np.array([0.0, 0.0, -9.81]))
    return asy

def build_pendulum(angle=np.pi/2, length=1.0, mass=1.5):
    """
    Single bar on a ball joint at the origin. angle is measured from the downward vertical
    in the x-z plane; the bar's local x axis points from the CG to the pivot.
    """
    d = np.array([np.sin(angle), 0.0, -np.cos(angle)])     # Pivot -> CG
    asy = Assembly()
    p = vec2quat(-(angle + np.pi/2), [0.0, 1.0, 0.0])   # R x_bar = -d
    bar = asy.add_body(RigidBody("Bar", 0.5*length*d, Orientation.from_p(p), mass=mass, inertia=np.diag([0.01, 0.2, 0.2])))
    asy.add_joint(Spherical(bar, [0.5*length, 0.0, 0.0], None, np.zeros(3), name="Pivot"))
    asy.add_grav(np.array([0.0, 0.0, -9.81]))
    return asy


@pytest.fixture
def triple_pendulum():
    return build_triple_pendulum()

@pytest.fixture
def pendulum_factory():
    return build_pendulum

@pytest.fixture
def triple_pendulum_factory():
    return build_triple_pendulum
