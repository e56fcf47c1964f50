"""
streamup session coordination core.
"""
