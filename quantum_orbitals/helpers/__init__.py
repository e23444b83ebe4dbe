from quantum_orbitals.helpers.constant import Constants
from quantum_orbitals.helpers.special_functions import (
    factorial,
    double_factorial,
    generalized_laguerre,
    associated_legendre,
)
from quantum_orbitals.helpers.spherical_harmonics import spherical_harmonics
from quantum_orbitals.helpers.hydrogen_like import (
    calc_energy,
    orbital_energy_ev,
    calc_radial,
    calc_wave_function,
    calc_probability_density,
    calc_wave_function_grid,
)
from quantum_orbitals.helpers.calc_Zeff import calc_Zeff, calc_shielding, subshell_counts
