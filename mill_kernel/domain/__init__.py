"""Pure domain layer: clock, DTOs, input parsing."""
