"""
logger package

Event recorders that persist connection events.
"""
