[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "moesched"
version = "0.1.0"
description = "Split, schedule and merge mixture-of-experts inference tasks"
requires-python = ">=3.10"
dependencies = []
keywords = ["mixture-of-experts", "moe", "scheduler", "switch-transformer", "inference"]
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
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
moesched-demo = "moesched.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["moesched"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
