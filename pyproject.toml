[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "payjoin"
version = "0.1.0"
description = "Payjoin receiver building blocks: PSBT validation, request parameter parsing, JSON error replies and OHTTP key handling."
requires-python = ">=3.10"
keywords = ["bitcoin", "payjoin", "psbt", "bip78", "bip77", "ohttp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Office/Business :: Financial",
]
dependencies = [
    "httpx>=0.26",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["payjoin"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
