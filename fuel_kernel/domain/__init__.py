"""Domain layer: value types, enums, DTOs and the clock abstraction."""
