"""
Version 1 de l'API GreekDash.
"""
