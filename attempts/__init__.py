"""Per-attempt event logs and server-side attempt clocks."""
