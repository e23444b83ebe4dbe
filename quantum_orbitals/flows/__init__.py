from quantum_orbitals.flows.orbital_flow import orbital_sampling_pipeline
