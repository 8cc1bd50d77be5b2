"""
fieldmap: field image documentation pipeline.

Turns batches of geotagged field photos into validated metadata, spatial
clusters and Google Earth KML/KMZ exports, orchestrated as workflows of
concurrently executed capabilities.
"""

__version__ = "0.1.0"
