"""
geocodable - resolve coordinates for records from local data before calling
a metered geocoding API.

Usage:
    from geocodable.services.location.resolver import GeocodeResolver
    from geocodable.services.location.proximity import find_within_distance
"""
