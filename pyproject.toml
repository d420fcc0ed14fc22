[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fortanode"
version = "0.1.0"
description = "Scan node tooling: scanner keys, node initialisation, container control, health report rendering and client helpers"
requires-python = ">=3.10"
keywords = ["scan-node", "monitoring", "containers", "keystore", "health", "rate-limiting"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "requests>=2.28",
    "cryptography>=41",
    "pycryptodome>=3.18",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "responses>=0.23",
]

[project.scripts]
forta = "fortanode.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["fortanode"]

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
