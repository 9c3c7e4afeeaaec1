"""Poll/attach control loop."""
