"""Reporta: citizen issue reporting over WhatsApp with moderated publication."""

__version__ = "0.1.0"
