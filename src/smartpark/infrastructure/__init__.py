"""Infrastructure layer: stores, messaging and service wiring"""
