"""
Default Bodies and Environments
===============================

Gravitational parameters of common Solar System bodies and a factory for a
simple analytic Solar System environment (Keplerian ephemerides).

Values taken from Vallado, Fundamentals of Astrodynamics, Fifth Edition,
2022, Appendix D. Units are SI (m^3/s^2, m).

Examples
--------
>>> from metabole.defaults import solar_system_bodies
>>> bodies = solar_system_bodies()
>>> bodies['Moon'].state_in_base_frame_from_ephemeris(1.0e7)
"""

import numpy as np

from .bodies import Body, BodyMap
from .ephemerides import ConstantEphemeris, KeplerEphemeris

SUN_MU = 1.32712428e20
EARTH_MU = 3.986004415e14
MOON_MU = 4.902799e12
MARS_MU = 4.305e13

AU = 1.495978707e11

# [a, e, i, Omega, w, nu] at the reference epoch
EARTH_ELEMENTS = (1.00000011 * AU, 0.01671022, np.radians(0.00005),
                  np.radians(-11.26064), np.radians(114.20783), 0.0)
MOON_ELEMENTS = (3.844e8, 0.0549, np.radians(5.145),
                 np.radians(125.08), np.radians(318.15), np.radians(135.27))
MARS_ELEMENTS = (1.52366231 * AU, 0.09341233, np.radians(1.85061),
                 np.radians(49.57854), np.radians(286.4623), np.radians(19.41))


def solar_system_bodies(reference_epoch: float = 0.0, include_mars: bool = True) -> BodyMap:
    """
    Create a fresh Sun/Earth/Moon(/Mars) environment.

    The Sun rests at the frame origin; Earth and Mars follow Keplerian
    heliocentric orbits and the Moon a Keplerian geocentric one. Every
    call builds new Body objects, so concurrent propagations can each own
    (and modify) their environment.

    Parameters
    ----------
    reference_epoch : float, optional
        Epoch of the orbital elements [s]
    include_mars : bool, optional
        Add Mars to the environment (default: True)

    Returns
    -------
    dict of str to Body
    """
    sun_ephemeris = ConstantEphemeris()
    earth_ephemeris = KeplerEphemeris.from_keplerian_elements(
        EARTH_ELEMENTS, reference_epoch, SUN_MU + EARTH_MU, parent=sun_ephemeris)
    moon_ephemeris = KeplerEphemeris.from_keplerian_elements(
        MOON_ELEMENTS, reference_epoch, EARTH_MU + MOON_MU, parent=earth_ephemeris)

    bodies = {
        'Sun': Body('Sun', SUN_MU, sun_ephemeris),
        'Earth': Body('Earth', EARTH_MU, earth_ephemeris),
        'Moon': Body('Moon', MOON_MU, moon_ephemeris),
    }
    if include_mars:
        mars_ephemeris = KeplerEphemeris.from_keplerian_elements(
            MARS_ELEMENTS, reference_epoch, SUN_MU + MARS_MU, parent=sun_ephemeris)
        bodies['Mars'] = Body('Mars', MARS_MU, mars_ephemeris)
    return bodies
