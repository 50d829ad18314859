"""Domain layer: entities, value objects, pricing and the error taxonomy"""
