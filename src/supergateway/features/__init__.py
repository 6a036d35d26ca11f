"""
Modes du gateway (couche Features).
"""
