"""Calendar domain logic: aggregation, store, commands, view state and duplication."""
