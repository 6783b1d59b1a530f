"""Pure payout domain: value objects and functions with zero I/O."""
