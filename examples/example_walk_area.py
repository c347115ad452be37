"""
Example: Walk-Around Area Measurement

Simulates a phone carried around a rectangular plot, feeds the synthetic
accelerometer/gyroscope/magnetometer stream (and optionally GPS fixes)
through a MeasurementSession and compares the measured area with the truth.

Can run with:
    - PDR only (default):   python example_walk_area.py
    - PDR + GPS (Hybrid):   python example_walk_area.py --gps
    - With a plot:          python example_walk_area.py --plot

Pipeline:
    - Per-axis Kalman smoothing of raw sensor samples
    - Adaptive peak/valley step detection and dynamic step length
    - Gyro/magnetometer complementary-filter heading
    - GPS gating and PDR/GPS fusion (Hybrid mode)
    - RDP simplification, loop closure and shoelace area
"""

import argparse
import time
from pathlib import Path

import numpy as np

from walkarea.session import MeasurementSession, SessionConfig
from walkarea.sim import generate_gps_fixes, generate_polygon_walk, rectangle_waypoints


def run_walk(width: float, height: float, user_height: float, use_gps: bool,
             noise: float, seed: int):
    """Simulate the walk and run it through a session."""
    rng = np.random.default_rng(seed)
    walk = generate_polygon_walk(
        rectangle_waypoints(width, height),
        accel_noise_std=noise,
        rng=rng,
    )
    fixes = []
    if use_gps:
        fixes = generate_gps_fixes(walk, origin_lat=22.3045, origin_lon=114.1799,
                                   noise_std_m=1.0, rng=rng)

    session = MeasurementSession(SessionConfig(user_height=user_height, use_gps=use_gps))
    session.start()

    # Merge both streams in time order
    fix_iter = iter(fixes)
    next_fix = next(fix_iter, None)
    for sample in walk.samples:
        while next_fix is not None and next_fix.timestamp_ms <= sample.timestamp_ms:
            session.process_fix(next_fix)
            next_fix = next(fix_iter, None)
        session.process_sample(sample)

    result = session.stop()
    return walk, session, result


def plot_walk(walk, session, result, output_file: Path):
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(8, 8))
    ax.plot(walk.waypoints[:, 0], walk.waypoints[:, 1], "k--", linewidth=2, label="Truth")

    raw = np.array([[p.x, p.y] for p in result.trajectory])
    ax.plot(raw[:, 0], raw[:, 1], "b.-", alpha=0.5, label="Trajectory")

    simplified = np.array([[p.x, p.y] for p in result.simplified])
    ax.plot(simplified[:, 0], simplified[:, 1], "r-o", linewidth=2, label="Simplified")

    gps = session.gps_trajectory.as_array()
    if len(gps) > 0:
        ax.plot(gps[:, 0], gps[:, 1], "g^", alpha=0.6, label="GPS")

    ax.set_xlabel("East [m]")
    ax.set_ylabel("North [m]")
    ax.set_title(f"Measured area {result.area_m2:.1f} m² (truth {walk.true_area:.1f} m²)")
    ax.axis("equal")
    ax.grid(True, alpha=0.3)
    ax.legend()

    plt.tight_layout()
    fig.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"  [OK] Saved: {output_file}")
    plt.show()


def main():
    """Main execution with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Walk-around area measurement with PDR and optional GPS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 12 m x 20 m plot, PDR only
  python example_walk_area.py

  # Larger plot with GPS fusion and a plot of the result
  python example_walk_area.py --width 40 --height 25 --gps --plot
        """,
    )
    parser.add_argument("--width", type=float, default=12.0, help="Plot width East-West (m)")
    parser.add_argument("--height", type=float, default=20.0, help="Plot length North-South (m)")
    parser.add_argument("--user-height", type=float, default=1.7, help="Walker height (m)")
    parser.add_argument("--gps", action="store_true", help="Fuse simulated GPS fixes (Hybrid mode)")
    parser.add_argument("--noise", type=float, default=0.2, help="Accelerometer noise std (m/s²)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--plot", action="store_true", help="Plot the trajectories (needs matplotlib)")
    args = parser.parse_args()

    print("\n" + "=" * 70)
    print("Walk-Around Area Measurement")
    print("=" * 70)
    print("\nConfiguration:")
    print(f"  Plot:            {args.width} m x {args.height} m")
    print(f"  User height:     {args.user_height} m")
    print(f"  Locating mode:   {'Hybrid' if args.gps else 'PDR'}")

    start = time.time()
    walk, session, result = run_walk(
        args.width, args.height, args.user_height, args.gps, args.noise, args.seed
    )
    elapsed = time.time() - start

    error = (result.area_m2 - walk.true_area) / walk.true_area * 100.0

    print("\n" + "=" * 70)
    print("RESULTS")
    print("=" * 70)
    print(f"  Samples processed:  {len(walk.samples)} in {elapsed:.3f} s")
    print(f"  Steps:              {result.step_count} detected / {walk.step_count} true")
    print(f"  Distance walked:    {result.distance_m:.1f} m")
    print(f"  Trajectory closed:  {result.closed}")
    print(f"  Vertices:           {len(result.trajectory)} raw -> {len(result.simplified)} simplified")
    print(f"  GPS fixes accepted: {session.gps_gate.accepted_count}")
    print(f"  Area:               {result.area_m2:.1f} m² (truth {walk.true_area:.1f} m², {error:+.1f}%)")

    if args.plot:
        print("\nGenerating plot...")
        plot_walk(walk, session, result, Path(__file__).parent / "walk_area.png")


if __name__ == "__main__":
    main()
