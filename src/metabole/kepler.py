"""
Two-body (Keplerian) utilities.

Provides the analytic two-body solution used by the Encke reference orbit
and by Keplerian ephemerides:

- Stumpff functions C(z), S(z)
- Universal-variable propagation of a Cartesian state
- Cartesian <-> Keplerian element conversions

State vectors are [x, y, z, vx, vy, vz]; Keplerian elements are
[a, e, i, Omega, w, nu] with angles in radians. Units only need to be
consistent with the gravitational parameter.
"""

import math

import numpy as np

from .config import config
from .exceptions import EvaluationError

# below this |z| the Stumpff functions are evaluated from their series
_STUMPFF_SERIES_LIMIT = 1e-3


def stumpff_c(z: float) -> float:
    """Stumpff function C(z) = (1 - cos(sqrt(z))) / z."""
    if abs(z) < _STUMPFF_SERIES_LIMIT:
        return 0.5 - z / 24.0 + z**2 / 720.0 - z**3 / 40320.0
    if z > 0:
        return (1.0 - math.cos(math.sqrt(z))) / z
    return (math.cosh(math.sqrt(-z)) - 1.0) / (-z)


def stumpff_s(z: float) -> float:
    """Stumpff function S(z) = (sqrt(z) - sin(sqrt(z))) / sqrt(z)^3."""
    if abs(z) < _STUMPFF_SERIES_LIMIT:
        return 1.0 / 6.0 - z / 120.0 + z**2 / 5040.0 - z**3 / 362880.0
    if z > 0:
        sz = math.sqrt(z)
        return (sz - math.sin(sz)) / sz**3
    sz = math.sqrt(-z)
    return (math.sinh(sz) - sz) / sz**3


def propagate_kepler_orbit(state, dt: float, mu: float) -> np.ndarray:
    """
    Propagate a Cartesian state along its two-body orbit.

    Solves the universal Kepler equation for the universal anomaly with
    Newton iterations and maps the initial state through the Lagrange
    f and g coefficients. Valid for elliptic, parabolic and hyperbolic
    orbits, forward and backward in time.

    Parameters
    ----------
    state : array_like
        Initial Cartesian state [x, y, z, vx, vy, vz]
    dt : float
        Time of flight (may be negative)
    mu : float
        Gravitational parameter of the two-body problem

    Returns
    -------
    np.ndarray
        Cartesian state after ``dt``

    Raises
    ------
    EvaluationError
        If Kepler's equation does not converge or the state is degenerate
    """
    state = np.asarray(state, dtype=float)
    if dt == 0.0:
        return state.copy()

    r0_vec = state[:3]
    v0_vec = state[3:]
    r0 = np.linalg.norm(r0_vec)
    if r0 == 0.0 or mu <= 0.0:
        raise EvaluationError(
            f"Cannot propagate Kepler orbit with |r| = {r0} and mu = {mu}"
        )
    v0 = np.linalg.norm(v0_vec)
    sqrt_mu = math.sqrt(mu)
    vr0 = float(np.dot(r0_vec, v0_vec)) / r0
    # reciprocal of semi-major axis (negative for hyperbolic orbits)
    alpha = 2.0 / r0 - v0**2 / mu

    chi = sqrt_mu * abs(alpha) * dt
    if chi == 0.0:
        chi = sqrt_mu * dt / r0

    for _ in range(config.KEPLER_MAX_ITERATIONS):
        z = alpha * chi**2
        c = stumpff_c(z)
        s = stumpff_s(z)
        f_chi = (r0 * vr0 / sqrt_mu * chi**2 * c
                 + (1.0 - alpha * r0) * chi**3 * s
                 + r0 * chi - sqrt_mu * dt)
        df_chi = (r0 * vr0 / sqrt_mu * chi * (1.0 - z * s)
                  + (1.0 - alpha * r0) * chi**2 * c
                  + r0)
        delta = f_chi / df_chi
        chi -= delta
        if abs(delta) <= config.KEPLER_TOLERANCE * max(1.0, abs(chi)):
            break
    else:
        raise EvaluationError(
            f"Kepler's equation did not converge after "
            f"{config.KEPLER_MAX_ITERATIONS} iterations (dt = {dt})"
        )

    z = alpha * chi**2
    c = stumpff_c(z)
    s = stumpff_s(z)
    f = 1.0 - chi**2 / r0 * c
    g = dt - chi**3 / sqrt_mu * s
    r_vec = f * r0_vec + g * v0_vec
    r = np.linalg.norm(r_vec)
    f_dot = sqrt_mu / (r * r0) * (z * s - 1.0) * chi
    g_dot = 1.0 - chi**2 / r * c
    v_vec = f_dot * r0_vec + g_dot * v0_vec
    return np.concatenate([r_vec, v_vec])


def keplerian_to_cartesian(elements, mu: float) -> np.ndarray:
    """Convert Keplerian elements [a, e, i, Omega, w, nu] to a Cartesian state."""
    a, e, i, raan, w, nu = np.asarray(elements, dtype=float)
    # semi-latus rectum
    p = a * (1 - e**2)
    # position and velocity in the perifocal frame
    r_mag = p / (1 + e * np.cos(nu))
    rvec = np.array([r_mag * np.cos(nu), r_mag * np.sin(nu), 0.0])
    vvec = np.array([-np.sqrt(mu / p) * np.sin(nu),
                     np.sqrt(mu / p) * (e + np.cos(nu)), 0.0])
    # perifocal -> inertial: R3(-Omega) R1(-i) R3(-w)
    R3_raan = np.array([
        [np.cos(raan), -np.sin(raan), 0],
        [np.sin(raan),  np.cos(raan), 0],
        [0,             0,            1]
    ])
    R1_i = np.array([
        [1,  0,          0         ],
        [0,  np.cos(i), -np.sin(i) ],
        [0,  np.sin(i),  np.cos(i) ]
    ])
    R3_w = np.array([
        [np.cos(w), -np.sin(w), 0],
        [np.sin(w),  np.cos(w), 0],
        [0,          0,         1]
    ])
    DCM = R3_raan @ R1_i @ R3_w
    return np.concatenate([DCM @ rvec, DCM @ vvec])


def cartesian_to_keplerian(state, mu: float) -> np.ndarray:
    """
    Convert a Cartesian state to Keplerian elements [a, e, i, Omega, w, nu].

    Uses the algorithm of Flores & Fantino, Advances in Space Research,
    v.75, pp.4910. Angles are returned in radians; nu is wrapped to
    [0, 2pi).
    """
    state = np.asarray(state, dtype=float)
    rvec = state[:3]
    vvec = state[3:]
    hvec = np.cross(rvec, vvec)
    i = np.arctan2(np.sqrt(hvec[0]**2 + hvec[1]**2), hvec[2])
    raan = np.arctan2(hvec[0], -hvec[1])
    # line of nodes and an in-plane vector normal to it
    nhat = np.array([np.cos(raan), np.sin(raan), 0.0])
    bhat = np.cross(hvec / np.linalg.norm(hvec), nhat)
    a = ((2 / np.linalg.norm(rvec)) - (np.dot(vvec, vvec) / mu))**(-1)
    evec = np.cross(vvec, hvec) / mu - rvec / np.linalg.norm(rvec)
    w = np.arctan2(np.dot(evec, bhat), np.dot(evec, nhat))
    nu = (np.arctan2(np.dot(rvec, bhat), np.dot(rvec, nhat)) - w) % (2 * np.pi)
    e = np.linalg.norm(evec)
    return np.array([a, e, i, raan, w, nu])


def two_body_acceleration(position, mu: float) -> np.ndarray:
    """Point-mass acceleration -mu r / |r|^3."""
    position = np.asarray(position, dtype=float)
    r = np.linalg.norm(position)
    return -mu * position / r**3
