"""Timer core: clock, events, scheduling and the exam countdown."""
