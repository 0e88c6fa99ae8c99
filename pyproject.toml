[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "trafficsim"
version = "0.1.0"
description = "Lane-based road traffic simulation with intersections, reservations and traffic lights"
requires-python = ">=3.10"
dependencies = []
keywords = ["traffic", "simulation", "intersection", "traffic-light", "cars"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Simulation",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
trafficsim = "trafficsim.main:main"

[tool.hatch.build.targets.wheel]
packages = ["trafficsim"]

[tool.hatch.build.targets.sdist]
include = ["trafficsim", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
