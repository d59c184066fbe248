"""Aetheria — a narrative engine driven by a tool-calling language model."""
