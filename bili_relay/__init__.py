"""Bili Relay - polls Bilibili live rooms and dynamics and fans notifications out to chat outputs."""

__version__ = "0.1.0"
