"""Two UDT classes sharing the Python name ``Address`` in different modules."""
