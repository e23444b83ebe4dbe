from quantum_orbitals.cache.base import CacheEntry, LRUCache
from quantum_orbitals.cache.prefetch import Priority, PrefetchJob, PrefetchQueue
from quantum_orbitals.cache.orbital_cache import OrbitalRequest, OrbitalSampleCache, neighbor_states, orbital_cache_key
from quantum_orbitals.cache.density_field_cache import DensityFieldCache, within_tolerance
from quantum_orbitals.cache.molecular_cache import MolecularRequest, MolecularOrbitalCache
from quantum_orbitals.cache.session import CacheSession
