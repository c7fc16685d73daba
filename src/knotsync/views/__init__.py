"""Live View Composer and the application's view builders."""

from knotsync.views.builders import (
    group_knots,
    group_spots,
    home_feed,
    knot_spots,
    notifications,
    profile_knots,
    profile_spots,
    tagged_spots,
)
from knotsync.views.composer import LiveViewComposer, View, ViewCallback

__all__ = [
    "LiveViewComposer",
    "View",
    "ViewCallback",
    "group_knots",
    "group_spots",
    "home_feed",
    "knot_spots",
    "notifications",
    "profile_knots",
    "profile_spots",
    "tagged_spots",
]
