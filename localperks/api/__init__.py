"""HTTP blueprints for the points engine."""
