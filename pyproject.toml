[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "scopeprof"
version = "0.1.0"
description = "Scope profiler that records timed measurements to a binary session file, with tools to read, analyse and plot them"
requires-python = ">=3.10"
dependencies = [
    "matplotlib",
]
keywords = ["profiler", "profiling", "timing", "instrumentation", "plotting"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
scopeprof-plot = "scopeprof.plotter:main"

[tool.hatch.build.targets.wheel]
packages = ["scopeprof"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
