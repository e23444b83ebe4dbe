import argparse
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quantum_orbitals.flows.orbital_flow import orbital_sampling_pipeline

def main():
    """Entry point for the orbital sampling pipeline"""
    parser = argparse.ArgumentParser(description='Sample a hydrogen-like orbital and its density grid')
    parser.add_argument('--atomic-number', type=int, default=1, help='nuclear charge Z')
    parser.add_argument('--n', type=int, default=2, help='principal quantum number')
    parser.add_argument('--l', type=int, default=1, help='angular quantum number')
    parser.add_argument('--m', type=int, default=0, help='magnetic quantum number')
    parser.add_argument('--particles', type=int, default=2000, help='number of particles')
    parser.add_argument('--resolution', type=int, default=32, help='requested grid resolution')
    parser.add_argument('--mode', choices=['accurate', 'aesthetic'], default='accurate', help='distribution mode')
    parser.add_argument('--theme', choices=['dark', 'light'], default='dark', help='colour theme')
    parser.add_argument('--config', default='config/settings.yaml', help='path of the settings file')

    args = parser.parse_args()

    result = orbital_sampling_pipeline(
        atomic_number=args.atomic_number,
        n=args.n,
        l=args.l,
        m=args.m,
        particle_count=args.particles,
        grid_resolution=args.resolution,
        distribution_mode=args.mode,
        theme_mode=args.theme,
        config_path=args.config,
    )

    sample = result["sample"]
    field = result["density_field"]
    print(f"Configuration: {result['configuration']} ({result['noble_gas_notation']})")
    print(f"Particles: {sample.count} (max |psi|^2 = {sample.max_probability:.4e}, extent = {sample.extent:.2f})")
    print(f"Density grid: {field.resolution}^3, max sample = {field.max_sample:.3f}")
    print(f"Iso levels: {', '.join(f'{level:.3f}' for level in result['iso_levels'])}")

if __name__ == "__main__":
    main()
