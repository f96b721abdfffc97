"""
Depth map refinement utilities
"""
