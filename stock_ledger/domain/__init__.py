"""Pure domain layer: clock, stock-status rules and DTOs. Zero I/O."""
