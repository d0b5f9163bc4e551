"""
GreekDash - Gestion multi-chapitres pour les fraternités et sororités.
"""

__version__ = "1.0.0"
