import importlib

__all__ = [
    # classes
    "Assembly", "RigidBody", "Orientation", "SolverSettings", "Results",
    "KCon", "CoincidentPoint", "ConstantAngle", "ConstantProjection", "Distance",
    "SimpleCoordinate", "DrivingCoordinate",
    "Joint", "Spherical", "Revolute", "Universal", "Cylindrical", "Translational",
    "PointForce", "Torque",
    "SimEngineError", "ConfigurationError", "SingularSystemError", "NumericalError",
    # functions
    "vec2quat", "vecs2ori", "tilde", "rotmat", "E", "G", "A_to_p", "ground",
    "Aw_to_Aq", "Aq_to_Aw",
    "run_dynamics", "step", "solve_accelerations", "project_positions", "project_velocities",
    "constraint_forces",
]

_exports = {
    # classes
    "Assembly":            ("spatialMBD.Assembly",    "Assembly"),
    "RigidBody":           ("spatialMBD.Bodies",      "RigidBody"),
    "Orientation":         ("spatialMBD.Orientation", "Orientation"),
    "SolverSettings":      ("spatialMBD.Settings",    "SolverSettings"),
    "Results":             ("spatialMBD.Post",        "Results"),
    "KCon":                ("spatialMBD.KCons",       "KCon"),
    "CoincidentPoint":     ("spatialMBD.KCons",       "CoincidentPoint"),
    "ConstantAngle":       ("spatialMBD.KCons",       "ConstantAngle"),
    "ConstantProjection":  ("spatialMBD.KCons",       "ConstantProjection"),
    "Distance":            ("spatialMBD.KCons",       "Distance"),
    "SimpleCoordinate":    ("spatialMBD.KCons",       "SimpleCoordinate"),
    "DrivingCoordinate":   ("spatialMBD.KCons",       "DrivingCoordinate"),
    "Joint":               ("spatialMBD.Joints",      "Joint"),
    "Spherical":           ("spatialMBD.Joints",      "Spherical"),
    "Revolute":            ("spatialMBD.Joints",      "Revolute"),
    "Universal":           ("spatialMBD.Joints",      "Universal"),
    "Cylindrical":         ("spatialMBD.Joints",      "Cylindrical"),
    "Translational":       ("spatialMBD.Joints",      "Translational"),
    "PointForce":          ("spatialMBD.Forces",      "PointForce"),
    "Torque":              ("spatialMBD.Forces",      "Torque"),
    "SimEngineError":      ("spatialMBD.Errors",      "SimEngineError"),
    "ConfigurationError":  ("spatialMBD.Errors",      "ConfigurationError"),
    "SingularSystemError": ("spatialMBD.Errors",      "SingularSystemError"),
    "NumericalError":      ("spatialMBD.Errors",      "NumericalError"),
    # functions
    "vec2quat":            ("spatialMBD.Orientation", "vec2quat"),
    "vecs2ori":            ("spatialMBD.Orientation", "vecs2ori"),
    "tilde":               ("spatialMBD.Orientation", "tilde"),
    "rotmat":              ("spatialMBD.Orientation", "rotmat"),
    "E":                   ("spatialMBD.Orientation", "E"),
    "G":                   ("spatialMBD.Orientation", "G"),
    "A_to_p":              ("spatialMBD.Orientation", "A_to_p"),
    "ground":              ("spatialMBD.Bodies",      "ground"),
    "Aw_to_Aq":            ("spatialMBD.Jacobians",   "Aw_to_Aq"),
    "Aq_to_Aw":            ("spatialMBD.Jacobians",   "Aq_to_Aw"),
    "run_dynamics":        ("spatialMBD.solvers",     "run_dynamics"),
    "step":                ("spatialMBD.solvers",     "step"),
    "solve_accelerations": ("spatialMBD.solvers",     "solve_accelerations"),
    "project_positions":   ("spatialMBD.solvers",     "project_positions"),
    "project_velocities":  ("spatialMBD.solvers",     "project_velocities"),
    "constraint_forces":   ("spatialMBD.solvers",     "constraint_forces"),
}

def __getattr__(name):
    try:
        mod_name, attr = _exports[name]
    except KeyError:
        raise AttributeError(f"module 'spatialMBD' has no attribute {name!r}") from None
    obj = getattr(importlib.import_module(mod_name), attr)
    globals()[name] = obj  # cache for next access
    return obj

def __dir__():
    return sorted(list(globals().keys()) + list(__all__))
