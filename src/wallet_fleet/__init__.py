"""wallet-fleet: run a fleet of signed-identity polling loops with credential refresh."""

__version__ = "0.1.0"
