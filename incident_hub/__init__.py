"""
Incident Hub - incident lifecycle and geospatial verification engine.
"""
