"""knotsync operator CLI (``knotsync``)."""
