# gpxview/visualize/plot.py
"""
Plotting routines for gpxview
"""

import matplotlib.pyplot as plt


def plot_elevation_profile(profile, *, title="Elevation profile", ax=None, show=False):
    """
    Draw a cumulative-distance vs elevation line for one profile
    (a list of ElevationPoint). Returns the Axes.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 4))

    xs = [p.distance for p in profile]
    ys = [p.elevation for p in profile]
    ax.plot(xs, ys, color="tab:green", linewidth=1.2)
    if ys:
        ax.fill_between(xs, ys, min(ys), color="tab:green", alpha=0.15)
    ax.set_xlabel("Distance (km)")
    ax.set_ylabel("Elevation (m)")
    ax.set_title(title)

    if show:
        plt.show()
    return ax
