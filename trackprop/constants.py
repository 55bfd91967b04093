"""Application-wide constants.

Global (caller-facing) units:
    Length   : cm
    Momentum : GeV
    Field    : Tesla

Native (integrator) units:
    Length   : mm
    Momentum : MeV
"""

APP_VERSION = "0.1.0"

# Unit scale factors (exact)
CM_TO_MM = 10.0
MM_TO_CM = 0.1
GEV_TO_MEV = 1000.0
MEV_TO_GEV = 0.001

# Curvature constant: dp/ds [MeV/mm] per unit charge per Tesla
C_LIGHT_MEV_PER_T_MM = 0.299792458
# Same constant in global units: 1/cm per (GeV/c) per Tesla
C_LIGHT_GEV_PER_T_CM = 2.99792458e-3

# Curvilinear parameters: (q/p, lambda, phi, x_perp, y_perp)
CURVILINEAR_DIM = 5

# Particle naming
DEFAULT_PARTICLE_NAME = "mu"
POSITIVE_SUFFIX = "+"
NEGATIVE_SUFFIX = "-"

# Rest masses [MeV], keyed by base particle name
PARTICLE_MASSES_MEV: dict[str, float] = {
    "e": 0.51099895,
    "mu": 105.6583755,
    "pi": 139.57039,
    "K": 493.677,
    "p": 938.27208816,
}

# Reference integrator defaults
DEFAULT_MAX_STEP_MM = 100.0
DEFAULT_MAX_STEPS = 10_000
DEFAULT_MAX_PATH_MM = 20_000.0  # 20 m
DEFAULT_SURFACE_TOLERANCE_MM = 1e-3
DEFAULT_MAX_CROSSING_ITERATIONS = 50

# Multiple scattering (Highland) scale [MeV]
HIGHLAND_SCALE_MEV = 13.6

# Geometry validation
NORMAL_MIN_NORM = 1e-12
ROTATION_ORTHONORMAL_TOL = 1e-6

# Extrapolation check selection (muon tracks)
MUON_PDG_ID = 13
MIN_TRACK_MOMENTUM_GEV = 2.0
MIN_HIT_MOMENTUM_GEV = 0.5
