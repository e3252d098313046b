"""
Controllers driven by the route layer.
"""
