"""Application layer: use cases orchestrated over a unit of work"""
