"""Domain layer: entities, rule evaluation and pure sync primitives."""
