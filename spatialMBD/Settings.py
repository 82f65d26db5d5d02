from dataclasses import dataclass
from .Errors import ConfigurationError

FRAMES = ("body", "world")
METHODS = ("euler", "rk4")

@dataclass
class SolverSettings:
    dt: float = 1e-3
    end_time: float = 1.0
    alpha: float = 0.0              # Baumgarte velocity gain
    beta: float = 0.0               # Baumgarte position gain
    renormalize_every: int = 1      # Steps between quaternion renormalizations. 0 disables it.
    frame: str = "body"             # Frame of the angular velocity unknowns in the KKT solve
    method: str = "euler"
    write_increment: int = 1        # Record every n-th step
    unit_tol: float = 1e-6          # Allowed |‖p‖-1| of the initial quaternions

    def __post_init__(self):
        if not self.dt > 0.0:
            raise ConfigurationError(f"dt must be positive, got {self.dt}")
        if self.end_time < 0.0:
            raise ConfigurationError(f"end_time must be non-negative, got {self.end_time}")
        if self.alpha < 0.0 or self.beta < 0.0:
            raise ConfigurationError(f"Baumgarte gains must be non-negative, got alpha={self.alpha}, beta={self.beta}")
        if self.renormalize_every < 0:
            raise ConfigurationError(f"renormalize_every must be >= 0, got {self.renormalize_every}")
        if self.write_increment < 1:
            raise ConfigurationError(f"write_increment must be >= 1, got {self.write_increment}")
        if self.frame not in FRAMES:
            raise ConfigurationError(f"frame must be one of {FRAMES}, got {self.frame!r}")
        if self.method not in METHODS:
            raise ConfigurationError(f"method must be one of {METHODS}, got {self.method!r}")
        if not self.unit_tol > 0.0:
            raise ConfigurationError(f"unit_tol must be positive, got {self.unit_tol}")
        n = self.end_time / self.dt
        if abs(n - round(n)) > 1e-9*max(1.0, n):
            raise ConfigurationError(f"end_time = {self.end_time} is not a whole number of steps of dt = {self.dt}")

    @property
    def nsteps(self) -> int:
        return int(round(self.end_time / self.dt))
