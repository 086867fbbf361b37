"""
bulkfetch package marker.
"""
