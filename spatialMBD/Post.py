from __future__ import annotations
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import List

COORD_LABELS = ["x", "y", "z", "e0", "e1", "e2", "e3"]
TWIST_LABELS = ["wx", "wy", "wz", "vx", "vy", "vz"]

@dataclass
class Snapshot:
    time: float
    r: np.ndarray       # (nb, 3)
    p: np.ndarray       # (nb, 4)
    w: np.ndarray       # (nb, 3), L-RF
    v: np.ndarray       # (nb, 3)
    residual: float     # |phi(q, t)|


@dataclass
class Results:
    """
    Recorded history of a run. Arrays are indexed [time step, body, component];
    lam is indexed [time step, constraint row].
    """
    names: List[str]
    time: np.ndarray
    r: np.ndarray
    p: np.ndarray
    w: np.ndarray
    v: np.ndarray
    lam: np.ndarray
    residual: np.ndarray

    def __len__(self):
        return len(self.time)

    def _index(self, name: str) -> int:
        try:
            return self.names.index(name)
        except ValueError:
            raise KeyError(f"No body named {name!r} in results") from None

    def to_frame(self) -> pd.DataFrame:
        """Positions and Euler parameters of every body, one row per recorded time"""
        header = []
        for k in self.names: header += [f"{k} {c}" for c in COORD_LABELS]

        data = np.concatenate((self.r, self.p), axis=2).reshape(len(self), -1)
        df = pd.DataFrame(data=data, columns=header, index=pd.Index(self.time, name="Time"))
        return df

    def body(self, name: str) -> pd.DataFrame:
        """Full recorded state (r, p, w, v) of one body"""
        k = self._index(name)
        data = np.hstack((self.r[:, k], self.p[:, k], self.w[:, k], self.v[:, k]))
        return pd.DataFrame(data=data, columns=COORD_LABELS + TWIST_LABELS, index=pd.Index(self.time, name="Time"))

    def lam_frame(self) -> pd.DataFrame:
        """Lagrange multipliers, one column per constraint row"""
        cols = [f"lam{i}" for i in range(self.lam.shape[1])]
        return pd.DataFrame(data=self.lam, columns=cols, index=pd.Index(self.time, name="Time"))


class Recorder:
    """Accumulates snapshots of an Assembly during a run"""
    def __init__(self, asy):
        self.asy = asy
        self._snaps: List[Snapshot] = []
        self._lams: List[np.ndarray] = []

    def snapshot(self, t: float) -> Snapshot:
        bodies = self.asy.bodies
        return Snapshot(
            time=t,
            r=np.array([b.r for b in bodies]),
            p=np.array([b.p for b in bodies]),
            w=np.array([b.w for b in bodies]),
            v=np.array([b.v for b in bodies]),
            residual=float(np.linalg.norm(self.asy.get_phi(t))),
        )

    def record(self, snap: Snapshot, lam: np.ndarray):
        self._snaps.append(snap)
        self._lams.append(np.asarray(lam, dtype=float))

    def results(self) -> Results:
        snaps = self._snaps
        nb = self.asy.nb
        nt = len(snaps)
        return Results(
            names=[b.name for b in self.asy.bodies],
            time=np.array([s.time for s in snaps]),
            r=np.array([s.r for s in snaps]).reshape(nt, nb, 3),
            p=np.array([s.p for s in snaps]).reshape(nt, nb, 4),
            w=np.array([s.w for s in snaps]).reshape(nt, nb, 3),
            v=np.array([s.v for s in snaps]).reshape(nt, nb, 3),
            lam=np.array(self._lams).reshape(nt, self.asy.nc),
            residual=np.array([s.residual for s in snaps]),
        )
