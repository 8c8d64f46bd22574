[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "udpcopy"
version = "0.1.0"
description = "File copy over UDP using a selective-reject sliding window, with simulated packet loss and corruption"
requires-python = ">=3.10"
dependencies = []
keywords = ["udp", "file-transfer", "sliding-window", "selective-reject", "srej", "networking", "checksum"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: File Transfer Protocol (FTP)",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rcopy = "udpcopy.rcopy:main"

[tool.hatch.build.targets.wheel]
packages = ["udpcopy"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
