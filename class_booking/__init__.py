"""Class booking core: session bookings, subscription credits and FIFO waitlists."""

__version__ = "1.0.0"
