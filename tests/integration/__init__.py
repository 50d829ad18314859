"""
Integration Tests Package for the SmartPark core

These tests exercise components together:
1. The SQLAlchemy store behind the application services
2. Concurrent units of work against one shared store
3. The command-line entry point end to end
"""
