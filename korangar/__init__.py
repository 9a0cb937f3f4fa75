"""glTF scene loading, mesh clean-up and BVH inspection for ray-tracing experiments."""

__version__ = "0.1.0"