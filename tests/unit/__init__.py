"""Unit tests for the SmartPark parking core"""
