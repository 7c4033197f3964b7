[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wechatlite"
version = "0.1.0"
description = "A small instant-messaging server and console client with friends, online lists, text chat and picture transfer over a fixed-header binary protocol"
requires-python = ">=3.10"
dependencies = [
    "pillow",
]
keywords = ["chat", "messaging", "instant-messaging", "asyncio", "protocol", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
wechatlite-server = "wechatlite.server:main"
wechatlite = "wechatlite.app:main"

[tool.hatch.build.targets.wheel]
packages = ["wechatlite"]

[tool.hatch.build.targets.sdist]
include = [
    "wechatlite",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
