"""Pure domain types: clock, identity, authorization policy, DTOs, results."""
