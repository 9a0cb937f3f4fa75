[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "korangar"
version = "0.1.0"
description = "glTF scene loading, mesh clean-up and BVH inspection tools for ray-tracing experiments"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "gltf",
    "ray tracing",
    "bvh",
    "mesh",
    "scene",
    "bounding volume",
    "wavefront obj",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics :: 3D Rendering",
    "Topic :: Scientific/Engineering :: Visualization",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["korangar"]

[tool.hatch.build.targets.sdist]
include = [
    "korangar",
    "tests",
    "README.md",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP", "SIM"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
check_untyped_defs = true
