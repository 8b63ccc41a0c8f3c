"""
Model-backed generators.
"""
